from __future__ import annotations

import asyncio
from io import BytesIO

from PIL import Image

from atelier_engine.compose.letterbox import PAD_COLOR, fit_box, letterbox, letterbox_references
from atelier_engine.runs.artifacts import Artifact, ReferenceArtifact, image_size
from atelier_engine.runs.events import EventWriter


def _png(width: int, height: int, color: tuple[int, int, int] = (255, 0, 0)) -> Artifact:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return Artifact.from_bytes(buffer.getvalue(), "image/png")


def test_fit_box_wide_source_into_square() -> None:
    assert fit_box(200, 100, 100, 100) == (100, 50, 0, 25)


def test_fit_box_tall_source_into_wide_target() -> None:
    assert fit_box(50, 100, 200, 100) == (50, 100, 75, 0)


def test_letterbox_pads_with_grey() -> None:
    result = letterbox(_png(40, 20), 60, 60)
    assert result.mime_type == "image/png"
    with Image.open(BytesIO(result.to_bytes())) as image:
        assert image.size == (60, 60)
        assert image.getpixel((0, 0)) == PAD_COLOR
        assert image.getpixel((30, 30)) == (255, 0, 0)
        assert image.getpixel((30, 59)) == PAD_COLOR


def test_letterbox_references_matches_primary_dimensions() -> None:
    references = [ReferenceArtifact(_png(30, 90), 1), ReferenceArtifact(_png(120, 40), 2)]
    processed = asyncio.run(letterbox_references(references, (64, 48)))
    assert [image_size(artifact) for artifact in processed] == [(64, 48), (64, 48)]


def test_undecodable_reference_is_sent_unchanged() -> None:
    broken = Artifact.from_bytes(b"not an image", "image/png")
    events = EventWriter(None, "s1")
    references = [ReferenceArtifact(broken, 7), ReferenceArtifact(_png(10, 10), 8)]
    processed = asyncio.run(letterbox_references(references, (20, 20), events))
    assert processed[0] is broken
    assert image_size(processed[1]) == (20, 20)
    failures = events.recent("reference_letterbox_failed")
    assert [event["ref_id"] for event in failures] == [7]
