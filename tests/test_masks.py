from __future__ import annotations

from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from atelier_engine.compose.masks import binarize, is_blank, rasterize_mask


def _mask(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 4), dtype=np.uint8)


def test_blank_mask_detection() -> None:
    mask = _mask(4, 4)
    mask[..., :3] = 255
    assert is_blank(mask)
    assert is_blank(None)
    mask[1, 1, 3] = 1
    assert not is_blank(mask)


def test_binarize_uses_alpha_only() -> None:
    mask = _mask(2, 1)
    mask[0, 0] = (10, 20, 30, 40)
    binary = binarize(mask)
    assert binary.tolist() == [[255, 0]]


def test_binarize_rejects_non_rgba() -> None:
    with pytest.raises(ValueError):
        binarize(np.zeros((2, 2), dtype=np.uint8))


def test_blank_mask_rasterizes_to_none() -> None:
    assert rasterize_mask(_mask(8, 8), (16, 16)) is None


def test_rasterize_scales_to_primary_resolution() -> None:
    mask = _mask(4, 4)
    mask[:2, :2, 3] = 128
    artifact = rasterize_mask(mask, (8, 6))
    assert artifact is not None
    assert artifact.mime_type == "image/png"
    with Image.open(BytesIO(artifact.to_bytes())) as image:
        assert image.size == (8, 6)
        assert image.mode == "RGB"
        assert image.getpixel((0, 0)) == (255, 255, 255)
        assert image.getpixel((7, 5)) == (0, 0, 0)
        colors = {color for _, color in image.getcolors()}
    assert colors <= {(255, 255, 255), (0, 0, 0)}
