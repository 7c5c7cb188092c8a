"""Backend request shapes produced by the composer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Union

from ..runs.artifacts import Artifact
from .policy import ModePolicy


@dataclass(frozen=True)
class InlinePart:
    mime_type: str
    data: str

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> "InlinePart":
        return cls(mime_type=artifact.mime_type, data=artifact.data)

    def to_payload(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text}


Part = Union[InlinePart, TextPart]


@dataclass(frozen=True)
class ContentRequest:
    """Multi-part request; every call yields at most one result."""

    model: str
    parts: tuple[Part, ...]
    response_modalities: tuple[str, ...] = ("IMAGE",)
    temperature: float = 0.9
    aspect_ratio: str | None = None

    @property
    def image_parts(self) -> list[InlinePart]:
        return [part for part in self.parts if isinstance(part, InlinePart)]

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self.parts if isinstance(part, TextPart))

    def to_payload(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "responseModalities": list(self.response_modalities),
            "temperature": self.temperature,
        }
        if self.aspect_ratio:
            config["imageConfig"] = {"aspectRatio": self.aspect_ratio}
        return {
            "model": self.model,
            "contents": {"parts": [part.to_payload() for part in self.parts]},
            "config": config,
        }


@dataclass(frozen=True)
class ImagesRequest:
    """Text-to-image request that natively returns ``number_of_images`` results."""

    model: str
    prompt: str
    number_of_images: int = 1
    output_mime_type: str = "image/jpeg"
    aspect_ratio: str = "1:1"

    def with_count(self, count: int) -> "ImagesRequest":
        return replace(self, number_of_images=max(1, int(count)))

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": self.prompt,
            "config": {
                "numberOfImages": self.number_of_images,
                "outputMimeType": self.output_mime_type,
                "aspectRatio": self.aspect_ratio,
            },
        }


BackendRequest = Union[ContentRequest, ImagesRequest]


@dataclass(frozen=True)
class ComposedRequest:
    policy: ModePolicy
    prompt: str
    request: BackendRequest
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def response_kind(self) -> str:
        return self.policy.response_kind

    @property
    def natively_batched(self) -> bool:
        return isinstance(self.request, ImagesRequest)

    def to_payload(self) -> dict[str, Any]:
        return self.request.to_payload()
