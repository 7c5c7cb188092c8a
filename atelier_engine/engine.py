"""Core Atelier engine orchestration."""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path
from typing import Any, Callable

import numpy as np

from .compose.composer import RequestComposer
from .compose.policy import MISSING_IMAGE_MESSAGE, RESPONSE_IMAGE, PreconditionError
from .compose.requests import ContentRequest, InlinePart, TextPart
from .config import EngineConfig
from .models.registry import ROLE_PROBE, ModelRegistry
from .orchestrator import GenerationOrchestrator, RetryPolicy, Sleep
from .presentation import (
    IDLE_MESSAGE,
    KIND_MESSAGE,
    Presentation,
    failed,
    pending_message,
    present,
    progress_message,
    refused,
)
from .providers import default_registry
from .providers.base import GenerationBackend
from .runs.artifacts import Artifact, ReferenceArtifact, load_artifact
from .runs.events import EventWriter
from .runs.history import HistoryStore
from .session.state import DEFAULT_COLOR_TEMPERATURE, Mode, SessionState

PHASE_IDLE = "idle"
PHASE_COMPOSING = "composing"
PHASE_DISPATCHING = "dispatching"
PHASE_RENDERING = "rendering"

TEMPERATURE_PROBE_PROMPT = (
    "Analyze the color temperature of this image. Respond with a single integer representing the "
    "Kelvin value, between 1000 and 10000. For example, a warm, candle-lit photo would be around "
    "2000, and a cool, blue sky would be around 10000. Respond with ONLY the integer number and "
    "nothing else."
)
BUSY_MESSAGE = "A generation is already running."

_INT_RE = re.compile(r"-?\d+")


def parse_kelvin(text: str | None) -> int | None:
    match = _INT_RE.search(text or "")
    if not match:
        return None
    return int(match.group(0))


class AtelierEngine:
    def __init__(
        self,
        config: EngineConfig | None = None,
        backend: GenerationBackend | None = None,
        session: SessionState | None = None,
        history: HistoryStore | None = None,
        events: EventWriter | None = None,
        sleep: Sleep = asyncio.sleep,
        auto_probe_temperature: bool = True,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.session_id = uuid.uuid4().hex[:12]
        self.events = events if events is not None else EventWriter(self.config.events_path, self.session_id)
        self.session = session if session is not None else SessionState()
        self.history = history if history is not None else HistoryStore(cap=self.config.history_cap)
        self.models = ModelRegistry(config=self.config)
        self.backend = backend if backend is not None else self._resolve_backend(self.config.backend)
        self.composer = RequestComposer(self.models, self.events)
        self.orchestrator = GenerationOrchestrator(
            self.backend,
            self.events,
            sleep=sleep,
            call_timeout_s=self.config.call_timeout_s,
        )
        self.auto_probe_temperature = auto_probe_temperature
        self.phase = PHASE_IDLE
        self.busy = False
        self.status_message = IDLE_MESSAGE
        self.last_presentation: Presentation | None = None
        self.on_progress: Callable[[int, int], None] | None = None
        self.events.emit("session_started", backend=self.backend.name, mode=self.session.mode.value)

    @staticmethod
    def _resolve_backend(name: str) -> GenerationBackend:
        registry = default_registry()
        backend = registry.get(name)
        if backend is None:
            raise RuntimeError(f"Unknown backend '{name}'. Available: {', '.join(registry.list())}.")
        return backend

    # Session wiring

    async def set_mode(self, mode: Mode | str) -> bool:
        changed = self.session.set_mode(mode)
        if changed:
            self.events.emit("mode_changed", mode=self.session.mode.value)
            await self._maybe_probe_temperature()
        return changed

    async def set_primary(self, artifact: Artifact) -> None:
        self.session.set_primary(artifact)
        self.events.emit("primary_set", mime_type=artifact.mime_type)
        await self._maybe_probe_temperature()

    async def load_primary(self, path: str | Path) -> Artifact:
        artifact = load_artifact(path)
        await self.set_primary(artifact)
        return artifact

    def clear_primary(self) -> None:
        self.session.clear_primary()
        self.events.emit("primary_cleared")

    def add_reference(self, artifact: Artifact) -> ReferenceArtifact:
        reference = self.session.add_reference(artifact)
        self.events.emit("reference_added", ref_id=reference.ref_id, mime_type=artifact.mime_type)
        return reference

    def remove_reference(self, ref_id: int) -> bool:
        removed = self.session.remove_reference(ref_id)
        if removed:
            self.events.emit("reference_removed", ref_id=ref_id)
        return removed

    def resize_canvas(self, width: int, height: int) -> bool:
        changed = self.session.resize_canvas(width, height)
        if changed:
            self.events.emit("canvas_resized", width=width, height=height)
        return changed

    def set_mask(self, rgba: np.ndarray) -> None:
        self.session.set_mask(rgba)

    async def _maybe_probe_temperature(self) -> None:
        if self.auto_probe_temperature and self.session.mode == Mode.LIGHTING and self.session.primary is not None:
            await self.estimate_color_temperature()

    async def estimate_color_temperature(self) -> int:
        """Ask the probe model for the primary image's colour temperature in Kelvin."""
        primary = self.session.primary
        if primary is None:
            return self.session.color_temperature
        request = ContentRequest(
            model=self.models.model_for(ROLE_PROBE),
            parts=(InlinePart.from_artifact(primary), TextPart(TEMPERATURE_PROBE_PROMPT)),
            response_modalities=("TEXT",),
            temperature=0.0,
        )
        kelvin: int | None = None
        error: str | None = None
        try:
            response = await self.orchestrator.with_timeout(self.backend.generate_content(request))
            kelvin = parse_kelvin(response.text)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
        if kelvin is None:
            kelvin = DEFAULT_COLOR_TEMPERATURE
        applied = self.session.set_color_temperature(kelvin)
        self.events.emit("temperature_probe", kelvin=applied, error=error)
        return applied

    # Generation

    async def generate_preset(self, name: str) -> Presentation:
        if self.session.primary is None and self.session.mode != Mode.CONCEPT:
            return self._finish(refused(PreconditionError("missing_image", MISSING_IMAGE_MESSAGE)))
        self.session.apply_preset(name)
        return await self.generate()

    async def generate(self) -> Presentation:
        if self.busy:
            return Presentation(kind=KIND_MESSAGE, message=BUSY_MESSAGE, is_error=True, error_code="busy")
        self.busy = True
        self.phase = PHASE_COMPOSING
        mode = self.session.mode
        try:
            try:
                composed = await self.composer.compose(self.session)
            except PreconditionError as exc:
                self.events.emit("generation_refused", mode=mode.value, code=exc.code, message=exc.message)
                return self._finish(refused(exc))

            retry = RetryPolicy.for_target(
                self.session.generation_count,
                multiplier=self.config.attempt_multiplier,
                backoff_ms=self.config.backoff_ms,
                response_kind=composed.response_kind,
            )
            self.events.emit(
                "generation_started",
                mode=mode.value,
                backend=composed.policy.backend,
                model=composed.request.model,
                target=retry.target_count,
                max_attempts=retry.max_attempts,
                request=composed.to_payload(),
            )
            self.phase = PHASE_DISPATCHING
            self.status_message = pending_message(retry.target_count)
            outcome = await self.orchestrator.run(composed, retry, on_progress=self._report_progress)

            self.phase = PHASE_RENDERING
            presentation = present(outcome, alt=self.session.prompt.strip())
            if outcome.response_kind == RESPONSE_IMAGE and outcome.artifacts:
                evicted = self.history.append(outcome.artifacts)
                self.events.emit(
                    "history_appended",
                    added=len(outcome.artifacts),
                    evicted=evicted,
                    size=len(self.history),
                )
            self.events.emit(
                "generation_finished",
                mode=mode.value,
                collected=outcome.collected,
                target=outcome.target_count,
                attempts=outcome.attempts,
                failures=outcome.failures,
            )
            return self._finish(presentation)
        except Exception as exc:
            self.events.emit("generation_error", mode=mode.value, error=f"{type(exc).__name__}: {exc}")
            return self._finish(failed())
        finally:
            if mode == Mode.LIGHTING and self.session.mode == Mode.LIGHTING:
                self.session.prompt = ""
                self.session.clear_markers()
            self.phase = PHASE_IDLE
            self.busy = False

    def _report_progress(self, collected: int, target: int) -> None:
        self.status_message = progress_message(collected, target)
        if self.on_progress is not None:
            self.on_progress(collected, target)

    def _finish(self, presentation: Presentation) -> Presentation:
        self.last_presentation = presentation
        self.status_message = presentation.message or self.status_message
        return presentation

    def snapshot(self) -> dict[str, Any]:
        session = self.session
        return {
            "session_id": self.session_id,
            "phase": self.phase,
            "mode": session.mode.value,
            "has_primary": session.primary is not None,
            "references": [ref.ref_id for ref in session.references],
            "markers": len(session.markers),
            "generation_count": session.generation_count,
            "history_size": len(self.history),
        }
