"""Compose backend requests from session state."""

from __future__ import annotations

import asyncio

from ..models.registry import ROLE_ANALYSIS, ROLE_EDIT, ROLE_TEXT_TO_IMAGE, ModelRegistry
from ..runs.artifacts import Artifact, image_size
from ..runs.events import EventWriter
from ..session.markers import WHITE, describe_markers, normalize_color
from ..session.state import Mode, SessionState
from .letterbox import letterbox_references
from .masks import rasterize_mask
from .policy import (
    BACKEND_ANALYSIS,
    BACKEND_TEXT_TO_IMAGE,
    ModePolicy,
    check_preconditions,
    resolve,
)
from .requests import ComposedRequest, ContentRequest, ImagesRequest, InlinePart, Part, TextPart

LIGHTING_REFERENCE_PROMPT = (
    "Apply the lighting style, mood, and color scheme from the second image (the reference) to the "
    "first image (the main subject). Maintain the character and pose from the first image. The first "
    "image is the primary subject, and the second is the lighting reference."
)
IMAGEN_OUTPUT_MIME_TYPE = "image/jpeg"


def fold_negative_prompt(prompt: str, negative: str) -> str:
    negative = negative.strip()
    if not negative:
        return prompt
    return f"{prompt}. Avoid the following: {negative}"


def wrap_reference_instructions(prompt: str) -> str:
    return (
        "This is an image editing task with references. You are given a primary image to edit, and "
        "one or more reference images. **Do not edit the reference images.** Your task is to apply "
        "the requested edit to the primary image only, using the reference images for guidance. The "
        "primary image is the first one in the sequence. Preserve its aspect ratio. "
        f'The user\'s request is: "{prompt}"'
    )


def slider_lighting_prompt(kelvin: int, color: str, intensity: float = 1.0) -> str:
    prompt = (
        "Adjust the lighting of the image. "
        f"Set the overall color temperature to approximately {int(kelvin)}K. "
        f"If relevant, tint the primary light source with the color {normalize_color(color)}."
    )
    if abs(intensity - 1.0) > 1e-6:
        prompt += f" Scale the overall light intensity to about {round(intensity * 100)}% of the original."
    return prompt


def lighting_prompt(session: SessionState) -> str:
    """Prompt for lighting mode when no lighting reference is attached."""
    user_text = session.prompt.strip()
    if session.markers and session.canvas_size:
        width, height = session.canvas_size
        placement = describe_markers(session.markers, width, height, session.light_color or WHITE)
        return f"{user_text}. {placement}" if user_text else placement
    if user_text:
        return user_text
    return slider_lighting_prompt(session.color_temperature, session.light_color, session.intensity)


class RequestComposer:
    def __init__(self, models: ModelRegistry | None = None, events: EventWriter | None = None) -> None:
        self.models = models or ModelRegistry()
        self.events = events

    async def compose(self, session: SessionState) -> ComposedRequest:
        policy = resolve(session.mode, session)
        check_preconditions(policy, session)

        prompt = session.prompt.strip()
        if policy.fold_negative and prompt:
            prompt = fold_negative_prompt(prompt, session.negative_prompt)

        if policy.mode == Mode.LIGHTING:
            return self._compose_lighting(policy, session)
        if policy.backend == BACKEND_ANALYSIS:
            return self._compose_analysis(policy, session, prompt)
        if policy.backend == BACKEND_TEXT_TO_IMAGE:
            request = ImagesRequest(
                model=self.models.model_for(ROLE_TEXT_TO_IMAGE),
                prompt=prompt,
                number_of_images=session.generation_count,
                output_mime_type=IMAGEN_OUTPUT_MIME_TYPE,
                aspect_ratio=session.aspect_ratio,
            )
            return ComposedRequest(policy=policy, prompt=prompt, request=request)
        return await self._compose_edit(policy, session, prompt)

    def _content(self, policy: ModePolicy, role: str, parts: list[Part], **kwargs: object) -> ContentRequest:
        modalities = ("TEXT",) if policy.response_kind == "text" else ("IMAGE",)
        return ContentRequest(
            model=self.models.model_for(role),
            parts=tuple(parts),
            response_modalities=modalities,
            temperature=policy.temperature,
            **kwargs,
        )

    def _compose_lighting(self, policy: ModePolicy, session: SessionState) -> ComposedRequest:
        primary = session.primary
        assert primary is not None
        parts: list[Part] = [InlinePart.from_artifact(primary)]
        if session.references:
            parts.append(InlinePart.from_artifact(session.references[0].artifact))
            prompt = LIGHTING_REFERENCE_PROMPT
        else:
            prompt = lighting_prompt(session)
        parts.append(TextPart(prompt))
        return ComposedRequest(policy=policy, prompt=prompt, request=self._content(policy, ROLE_EDIT, parts))

    def _compose_analysis(self, policy: ModePolicy, session: SessionState, prompt: str) -> ComposedRequest:
        parts: list[Part] = []
        if session.primary is not None:
            parts.append(InlinePart.from_artifact(session.primary))
        parts.extend(InlinePart.from_artifact(ref.artifact) for ref in session.references)
        parts.append(TextPart(prompt))
        return ComposedRequest(policy=policy, prompt=prompt, request=self._content(policy, ROLE_ANALYSIS, parts))

    async def _compose_edit(self, policy: ModePolicy, session: SessionState, prompt: str) -> ComposedRequest:
        parts: list[Part] = []
        notes: list[str] = []
        primary = session.primary
        aspect_ratio: str | None = None

        if primary is not None:
            parts.append(InlinePart.from_artifact(primary))

        if policy.uses_mask and primary is not None and session.mask is not None:
            mask = await self._mask_part(primary, session)
            if mask is not None:
                parts.append(InlinePart.from_artifact(mask))
                notes.append("mask")

        references = session.references if policy.uses_references else []
        if references and primary is not None:
            dims = await self._probe(primary)
            if dims is None:
                processed = [ref.artifact for ref in references]
            else:
                processed = await letterbox_references(references, dims, self.events)
            parts.extend(InlinePart.from_artifact(artifact) for artifact in processed)
            if policy.wrap_references:
                prompt = wrap_reference_instructions(prompt)
                notes.append("wrapped")
        elif references:
            parts.extend(InlinePart.from_artifact(ref.artifact) for ref in references)
            aspect_ratio = session.aspect_ratio if policy.mode == Mode.FREE else None

        parts.append(TextPart(prompt))
        request = self._content(policy, ROLE_EDIT, parts, aspect_ratio=aspect_ratio)
        return ComposedRequest(policy=policy, prompt=prompt, request=request, notes=tuple(notes))

    async def _mask_part(self, primary: Artifact, session: SessionState) -> Artifact | None:
        dims = await self._probe(primary)
        if dims is None:
            self._emit("mask_skipped", reason="primary dimensions unavailable")
            return None
        mask = await asyncio.to_thread(rasterize_mask, session.mask, dims)
        if mask is None:
            self._emit("mask_skipped", reason="blank mask")
        return mask

    async def _probe(self, primary: Artifact) -> tuple[int, int] | None:
        try:
            return await asyncio.to_thread(image_size, primary)
        except Exception as exc:
            self._emit("primary_probe_failed", error=str(exc))
            return None

    def _emit(self, event_type: str, **payload: object) -> None:
        if self.events is not None:
            self.events.emit(event_type, **payload)
