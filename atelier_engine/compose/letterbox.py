"""Letterbox reference images to the primary image's pixel dimensions."""

from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Sequence

from PIL import Image

from ..runs.artifacts import Artifact, ReferenceArtifact
from ..runs.events import EventWriter

PAD_COLOR = (128, 128, 128)


def fit_box(width: int, height: int, target_width: int, target_height: int) -> tuple[int, int, int, int]:
    """Return ``(scaled_w, scaled_h, offset_x, offset_y)`` for an aspect-preserving fit."""
    if width <= 0 or height <= 0 or target_width <= 0 or target_height <= 0:
        raise ValueError("Dimensions must be positive.")
    scale = min(target_width / width, target_height / height)
    scaled_w = min(target_width, max(1, round(width * scale)))
    scaled_h = min(target_height, max(1, round(height * scale)))
    return scaled_w, scaled_h, (target_width - scaled_w) // 2, (target_height - scaled_h) // 2


def letterbox(artifact: Artifact, target_width: int, target_height: int) -> Artifact:
    with Image.open(BytesIO(artifact.to_bytes())) as source:
        source.load()
        scaled_w, scaled_h, x, y = fit_box(source.width, source.height, target_width, target_height)
        content = source.convert("RGBA").resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", (target_width, target_height), PAD_COLOR + (255,))
    canvas.paste(content, (x, y), content)
    buffer = BytesIO()
    canvas.convert("RGB").save(buffer, format="PNG")
    return Artifact.from_bytes(buffer.getvalue(), "image/png")


async def letterbox_references(
    references: Sequence[ReferenceArtifact],
    target_size: tuple[int, int],
    events: EventWriter | None = None,
) -> list[Artifact]:
    """Letterbox every reference concurrently; a failing reference is sent as-is."""
    width, height = target_size
    results = await asyncio.gather(
        *(asyncio.to_thread(letterbox, ref.artifact, width, height) for ref in references),
        return_exceptions=True,
    )
    processed: list[Artifact] = []
    for ref, result in zip(references, results):
        if isinstance(result, Artifact):
            processed.append(result)
            continue
        if not isinstance(result, Exception):
            raise result
        if events is not None:
            events.emit("reference_letterbox_failed", ref_id=ref.ref_id, error=str(result))
        processed.append(ref.artifact)
    return processed
