"""Inpainting mask rasterization."""

from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image

from ..runs.artifacts import Artifact


def is_blank(rgba: np.ndarray | None) -> bool:
    if rgba is None:
        return True
    buffer = np.asarray(rgba)
    if buffer.size == 0:
        return True
    return not bool(buffer[..., 3].any())


def binarize(rgba: np.ndarray) -> np.ndarray:
    """Painted pixels (alpha > 0) become 255, everything else 0."""
    buffer = np.asarray(rgba)
    if buffer.ndim != 3 or buffer.shape[2] != 4:
        raise ValueError("Mask must be an RGBA buffer of shape (height, width, 4).")
    return np.where(buffer[..., 3] > 0, 255, 0).astype(np.uint8)


def rasterize_mask(rgba: np.ndarray | None, target_size: tuple[int, int]) -> Artifact | None:
    """Turn a display-resolution painted layer into a black/white PNG at ``target_size``.

    Returns None for a blank mask so the request carries no inpainting constraint.
    """
    if is_blank(rgba):
        return None
    width, height = target_size
    if width <= 0 or height <= 0:
        raise ValueError("Mask target size must be positive.")
    binary = Image.fromarray(binarize(rgba))
    scaled = binary.resize((width, height), Image.Resampling.NEAREST).convert("RGB")
    buffer = BytesIO()
    scaled.save(buffer, format="PNG")
    return Artifact.from_bytes(buffer.getvalue(), "image/png")
