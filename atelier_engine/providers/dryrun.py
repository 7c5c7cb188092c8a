"""Dry-run backend (offline)."""

from __future__ import annotations

import asyncio
import hashlib
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from ..compose.requests import ContentRequest, ImagesRequest
from ..runs.artifacts import Artifact, image_size
from .base import BackendResponse

_ASPECT_SIZES = {
    "1:1": (512, 512),
    "3:4": (384, 512),
    "4:3": (512, 384),
    "9:16": (288, 512),
    "16:9": (512, 288),
}


class DryRunBackend:
    name = "dryrun"

    def __init__(self, latency_s: float = 0.0) -> None:
        self.latency_s = latency_s
        self._counter = 0

    async def generate_content(self, request: ContentRequest) -> BackendResponse:
        await asyncio.sleep(self.latency_s)
        self._counter += 1
        prompt = request.text
        if "TEXT" in request.response_modalities:
            text = f"dryrun analysis of {len(request.image_parts)} image(s): {prompt[:200]}"
            return BackendResponse(text=text, raw={"model": request.model, "dryrun": True})
        size = _ASPECT_SIZES.get(request.aspect_ratio or "1:1", (512, 512))
        if request.image_parts:
            first = request.image_parts[0]
            try:
                size = image_size(Artifact(mime_type=first.mime_type, data=first.data))
            except Exception:
                pass
        image = _render(prompt, self._counter, size, "image/png")
        return BackendResponse(images=[image], raw={"model": request.model, "dryrun": True})

    async def generate_images(self, request: ImagesRequest) -> BackendResponse:
        await asyncio.sleep(self.latency_s)
        size = _ASPECT_SIZES.get(request.aspect_ratio, (512, 512))
        images = []
        for _ in range(request.number_of_images):
            self._counter += 1
            images.append(_render(request.prompt, self._counter, size, request.output_mime_type))
        return BackendResponse(images=images, raw={"model": request.model, "dryrun": True})


def _render(prompt: str, seed: int, size: tuple[int, int], mime_type: str) -> Artifact:
    image = Image.new("RGB", size, _color_from_prompt(prompt, seed))
    draw = ImageDraw.Draw(image)
    draw.text((12, 12), f"dryrun #{seed}\n{prompt[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())
    buffer = BytesIO()
    image_format = "JPEG" if mime_type == "image/jpeg" else "PNG"
    image.save(buffer, format=image_format)
    return Artifact.from_bytes(buffer.getvalue(), "image/jpeg" if image_format == "JPEG" else "image/png")


def _color_from_prompt(prompt: str, seed: int) -> tuple[int, int, int]:
    digest = hashlib.sha256(f"{prompt}:{seed}".encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
