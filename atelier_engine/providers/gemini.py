"""Gemini / Imagen backend over the google-genai async client."""

from __future__ import annotations

from google import genai
from google.genai import types

from ..compose.requests import ContentRequest, ImagesRequest
from ..runs.artifacts import Artifact
from .base import BackendResponse
from .google_utils import (
    IMAGEN_ASPECT_RATIOS,
    build_content_config,
    extract_inline_images,
    extract_text,
    make_client,
    summarize_response,
    to_genai_part,
)


class GeminiBackend:
    name = "gemini"

    def __init__(self, client: genai.Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = make_client()
        return self._client

    async def generate_content(self, request: ContentRequest) -> BackendResponse:
        contents = [types.Content(role="user", parts=[to_genai_part(part) for part in request.parts])]
        response = await self.client.aio.models.generate_content(
            model=request.model,
            contents=contents,
            config=build_content_config(request),
        )
        candidates = getattr(response, "candidates", None) or []
        images = extract_inline_images(candidates[:1])
        text = None if images else extract_text(response)
        return BackendResponse(images=images, text=text, raw=summarize_response(response, request.model))

    async def generate_images(self, request: ImagesRequest) -> BackendResponse:
        config_kwargs: dict[str, object] = {
            "number_of_images": request.number_of_images,
            "output_mime_type": request.output_mime_type,
        }
        if request.aspect_ratio in IMAGEN_ASPECT_RATIOS:
            config_kwargs["aspect_ratio"] = request.aspect_ratio
        response = await self.client.aio.models.generate_images(
            model=request.model,
            prompt=request.prompt,
            config=types.GenerateImagesConfig(**config_kwargs),
        )
        generated = getattr(response, "generated_images", None) or []
        images: list[Artifact] = []
        for item in generated:
            image = getattr(item, "image", None)
            image_bytes = getattr(image, "image_bytes", None) if image is not None else None
            if not image_bytes:
                continue
            mime_type = getattr(image, "mime_type", None) or request.output_mime_type
            images.append(Artifact.from_bytes(image_bytes, mime_type))
        return BackendResponse(
            images=images,
            raw={"model": request.model, "generated_images": len(generated), "returned": len(images)},
        )
