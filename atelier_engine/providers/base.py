"""Backend base classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from ..compose.requests import ContentRequest, ImagesRequest
from ..runs.artifacts import Artifact


@dataclass
class BackendResponse:
    images: list[Artifact] = field(default_factory=list)
    text: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def first_image(self) -> Artifact | None:
        return self.images[0] if self.images else None


class GenerationBackend(Protocol):
    name: str

    async def generate_content(self, request: ContentRequest) -> BackendResponse:
        ...

    async def generate_images(self, request: ImagesRequest) -> BackendResponse:
        ...


class ProviderRegistry:
    def __init__(self, providers: Iterable[GenerationBackend]) -> None:
        self._providers = {provider.name: provider for provider in providers}

    def get(self, name: str) -> GenerationBackend | None:
        return self._providers.get(name)

    def list(self) -> list[str]:
        return sorted(self._providers.keys())
