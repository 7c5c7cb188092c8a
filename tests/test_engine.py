from __future__ import annotations

import asyncio
import json
from io import BytesIO
from pathlib import Path

import numpy as np
from PIL import Image

from atelier_engine.compose.requests import ContentRequest, ImagesRequest
from atelier_engine.config import EngineConfig
from atelier_engine.engine import PHASE_IDLE, AtelierEngine, parse_kelvin
from atelier_engine.presentation import GENERIC_ERROR_MESSAGE, KIND_GALLERY, KIND_TEXT, NO_TEXT_MESSAGE
from atelier_engine.providers.base import BackendResponse
from atelier_engine.runs.artifacts import Artifact
from atelier_engine.session.state import Mode


def _png(width: int = 16, height: int = 16) -> Artifact:
    buffer = BytesIO()
    Image.new("RGB", (width, height), (40, 80, 120)).save(buffer, format="PNG")
    return Artifact.from_bytes(buffer.getvalue(), "image/png")


class RecordingBackend:
    name = "recording"

    def __init__(self, text: str = "analysis text") -> None:
        self.text = text
        self.content_calls: list[ContentRequest] = []
        self.images_calls: list[ImagesRequest] = []

    async def generate_content(self, request: ContentRequest) -> BackendResponse:
        self.content_calls.append(request)
        if "TEXT" in request.response_modalities:
            return BackendResponse(text=self.text)
        return BackendResponse(images=[_png()])

    async def generate_images(self, request: ImagesRequest) -> BackendResponse:
        self.images_calls.append(request)
        return BackendResponse(images=[_png() for _ in range(request.number_of_images)])

    @property
    def calls(self) -> int:
        return len(self.content_calls) + len(self.images_calls)


async def _no_sleep(_: float) -> None:
    return None


def _engine(backend: RecordingBackend, tmp_path: Path | None = None, **kwargs) -> AtelierEngine:
    events_path = tmp_path / "events.jsonl" if tmp_path else None
    config = EngineConfig(backend="dryrun", events_path=events_path)
    return AtelierEngine(config, backend=backend, sleep=_no_sleep, **kwargs)


def test_missing_image_is_refused_without_backend_calls(tmp_path: Path) -> None:
    backend = RecordingBackend()
    engine = _engine(backend, tmp_path)
    engine.session.prompt = "add a hat"
    presentation = asyncio.run(engine.generate())
    assert presentation.is_error
    assert "upload an image" in presentation.message
    assert presentation.error_code == "missing_image"
    assert backend.calls == 0
    assert len(engine.history) == 0
    events = [json.loads(line) for line in (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    types = [event["type"] for event in events]
    assert "generation_refused" in types
    assert "generation_started" not in types


def test_free_mode_text_to_image_batch(tmp_path: Path) -> None:
    backend = RecordingBackend()
    engine = _engine(backend, tmp_path)
    asyncio.run(engine.set_mode(Mode.FREE))
    engine.session.prompt = "a lighthouse at dusk"
    engine.session.set_generation_count(3)
    presentation = asyncio.run(engine.generate())
    assert len(backend.images_calls) == 1
    assert backend.images_calls[0].number_of_images == 3
    assert backend.content_calls == []
    assert presentation.kind == KIND_GALLERY
    assert len(presentation.entries) == 3
    assert presentation.entries[0].alt == "a lighthouse at dusk"
    assert len(engine.history) == 3
    assert engine.events.recent("history_appended")[0]["added"] == 3


def test_inpaint_blank_mask_is_not_sent() -> None:
    backend = RecordingBackend()
    engine = _engine(backend)
    asyncio.run(engine.set_mode("inpaint"))
    asyncio.run(engine.set_primary(_png(32, 32)))
    engine.set_mask(np.zeros((32, 32, 4), dtype=np.uint8))
    engine.session.prompt = "remove the vase"
    presentation = asyncio.run(engine.generate())
    assert presentation.kind == KIND_GALLERY
    assert len(backend.content_calls) == 1
    assert len(backend.content_calls[0].parts) == 2


def test_analysis_returns_text_and_leaves_history_alone() -> None:
    backend = RecordingBackend(text="Soft rim light, muted palette.")
    engine = _engine(backend)
    asyncio.run(engine.set_mode(Mode.ANALYZE))
    asyncio.run(engine.set_primary(_png()))
    engine.session.prompt = "describe the style"
    engine.session.set_generation_count(4)
    presentation = asyncio.run(engine.generate())
    assert presentation.kind == KIND_TEXT
    assert presentation.message == "Soft rim light, muted palette."
    assert len(backend.content_calls) == 1
    assert len(engine.history) == 0


def test_failed_analysis_is_attempted_once() -> None:
    class FailingBackend(RecordingBackend):
        async def generate_content(self, request: ContentRequest) -> BackendResponse:
            self.content_calls.append(request)
            raise RuntimeError("quota exhausted")

    backend = FailingBackend()
    engine = _engine(backend)
    asyncio.run(engine.set_mode(Mode.ANALYZE))
    asyncio.run(engine.set_primary(_png()))
    engine.session.prompt = "describe the style"
    engine.session.set_generation_count(4)
    presentation = asyncio.run(engine.generate())
    assert presentation.is_error
    assert presentation.message == NO_TEXT_MESSAGE
    assert backend.calls == 1


def test_history_is_capped_across_runs() -> None:
    backend = RecordingBackend()
    config = EngineConfig(backend="dryrun", history_cap=5)
    engine = AtelierEngine(config, backend=backend, sleep=_no_sleep)
    asyncio.run(engine.set_mode(Mode.FREE))
    engine.session.prompt = "tile"
    engine.session.set_generation_count(4)
    asyncio.run(engine.generate())
    asyncio.run(engine.generate())
    assert len(engine.history) == 5
    assert engine.events.recent("history_appended")[-1]["evicted"] == 3


def test_lighting_run_clears_prompt_and_markers() -> None:
    backend = RecordingBackend(text="4100")
    engine = _engine(backend)
    asyncio.run(engine.set_mode(Mode.LIGHTING))
    asyncio.run(engine.set_primary(_png()))
    engine.resize_canvas(300, 300)
    engine.session.place_light(150, 150)
    engine.session.prompt = "dramatic"
    presentation = asyncio.run(engine.generate())
    assert presentation.kind == KIND_GALLERY
    request = backend.content_calls[-1]
    assert request.temperature == 0.4
    assert "light source from the center" in request.text
    assert engine.session.prompt == ""
    assert engine.session.markers == []


def test_color_temperature_probe_on_lighting_primary() -> None:
    backend = RecordingBackend(text=" 3200 ")
    engine = _engine(backend)
    asyncio.run(engine.set_mode(Mode.LIGHTING))
    asyncio.run(engine.set_primary(_png()))
    assert engine.session.color_temperature == 3200
    probe = backend.content_calls[-1]
    assert probe.model == "gemini-2.5-flash"
    assert probe.temperature == 0.0
    assert probe.response_modalities == ("TEXT",)


def test_color_temperature_probe_clamps_and_falls_back() -> None:
    backend = RecordingBackend(text="20000")
    engine = _engine(backend)
    asyncio.run(engine.set_primary(_png()))
    assert backend.calls == 0
    asyncio.run(engine.set_mode(Mode.LIGHTING))
    assert engine.session.color_temperature == 10000
    backend.text = "about warm"
    assert asyncio.run(engine.estimate_color_temperature()) == 5000


def test_probe_can_be_disabled() -> None:
    backend = RecordingBackend(text="3000")
    engine = _engine(backend, auto_probe_temperature=False)
    asyncio.run(engine.set_mode(Mode.LIGHTING))
    asyncio.run(engine.set_primary(_png()))
    assert backend.calls == 0


def test_parse_kelvin() -> None:
    assert parse_kelvin("6500") == 6500
    assert parse_kelvin("Approximately 2700K") == 2700
    assert parse_kelvin("") is None
    assert parse_kelvin(None) is None


def test_unexpected_error_is_recovered(tmp_path: Path) -> None:
    backend = RecordingBackend()
    engine = _engine(backend, tmp_path)
    asyncio.run(engine.set_primary(_png()))
    engine.session.prompt = "add a scarf"

    async def explode(*args, **kwargs):
        raise RuntimeError("orchestrator exploded")

    engine.orchestrator.run = explode  # type: ignore[method-assign]
    presentation = asyncio.run(engine.generate())
    assert presentation.is_error
    assert presentation.message == GENERIC_ERROR_MESSAGE
    assert engine.phase == PHASE_IDLE
    assert engine.busy is False
    error = engine.events.recent("generation_error")[0]
    assert "orchestrator exploded" in error["error"]


def test_generate_preset_sets_prompt() -> None:
    backend = RecordingBackend()
    engine = _engine(backend)
    asyncio.run(engine.set_primary(_png()))
    presentation = asyncio.run(engine.generate_preset("pose-sit"))
    assert presentation.kind == KIND_GALLERY
    assert engine.session.prompt == "Change the character's pose - sitting"
    assert backend.content_calls[0].text == "Change the character's pose - sitting"


def test_generate_preset_requires_image() -> None:
    backend = RecordingBackend()
    engine = _engine(backend)
    presentation = asyncio.run(engine.generate_preset("pose-sit"))
    assert presentation.is_error
    assert engine.session.prompt == ""
    assert backend.calls == 0


def test_partial_results_warn() -> None:
    class FlakyBackend(RecordingBackend):
        async def generate_content(self, request: ContentRequest) -> BackendResponse:
            self.content_calls.append(request)
            if len(self.content_calls) == 1:
                return BackendResponse(images=[_png()])
            raise RuntimeError("rate limited")

    backend = FlakyBackend()
    engine = _engine(backend)
    asyncio.run(engine.set_primary(_png()))
    engine.session.prompt = "variations"
    engine.session.set_generation_count(2)
    presentation = asyncio.run(engine.generate())
    assert len(presentation.entries) == 1
    assert presentation.warning == "Could only generate 1 of the requested 2 images."
    assert len(backend.content_calls) == 6


def test_session_events_and_snapshot() -> None:
    backend = RecordingBackend()
    engine = _engine(backend)
    reference = engine.add_reference(_png())
    assert engine.remove_reference(reference.ref_id) is True
    assert engine.remove_reference(reference.ref_id) is False
    engine.clear_primary()
    types = [event["type"] for event in engine.events.recent()]
    assert types[:1] == ["session_started"]
    assert "reference_added" in types
    assert types.count("reference_removed") == 1
    assert "primary_cleared" in types
    snapshot = engine.snapshot()
    assert snapshot["phase"] == PHASE_IDLE
    assert snapshot["mode"] == "character"
    assert snapshot["references"] == []
