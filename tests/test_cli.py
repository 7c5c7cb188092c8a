from __future__ import annotations

import argparse
import math
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from atelier_engine.cli import _build_parser, _handle_presets, _handle_run, parse_canvas, parse_light


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("ATELIER_EVENTS_PATH", "ATELIER_BACKOFF_MS", "ATELIER_CALL_TIMEOUT_S"):
        monkeypatch.delenv(key, raising=False)


def _write_png(path: Path, size: tuple[int, int], mode: str = "RGB") -> Path:
    buffer = BytesIO()
    Image.new(mode, size).save(buffer, format="PNG")
    path.write_bytes(buffer.getvalue())
    return path


def test_parse_light() -> None:
    marker = parse_light("10, 20, cone, 40, 90")
    assert (marker.x, marker.y, marker.shape, marker.size) == (10.0, 20.0, "cone", 40.0)
    assert marker.rotation == pytest.approx(math.pi / 2)
    default = parse_light("5,6")
    assert (default.shape, default.size, default.rotation) == ("circle", 20.0, 0.0)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_light("5")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_light("5,6,star")


def test_parse_canvas() -> None:
    assert parse_canvas("300x200") == (300, 200)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_canvas("300")


def test_run_free_mode_writes_images(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out_dir = tmp_path / "out"
    args = _build_parser().parse_args(
        [
            "run",
            "--backend",
            "dryrun",
            "--mode",
            "free",
            "--prompt",
            "a paper boat",
            "--count",
            "2",
            "--out",
            str(out_dir),
            "--events",
            str(tmp_path / "events.jsonl"),
        ]
    )
    assert _handle_run(args) == 0
    assert sorted(path.name for path in out_dir.iterdir()) == ["image_1.jpg", "image_2.jpg"]
    assert "Saved" in capsys.readouterr().out
    assert (tmp_path / "events.jsonl").exists()


def test_run_lighting_with_markers(tmp_path: Path) -> None:
    image = _write_png(tmp_path / "subject.png", (120, 90))
    out_dir = tmp_path / "out"
    args = _build_parser().parse_args(
        [
            "run",
            "--backend",
            "dryrun",
            "--mode",
            "lighting",
            "--image",
            str(image),
            "--temperature",
            "3000",
            "--light",
            "60,45",
            "--light",
            "10,10,arrow,30,135",
            "--out",
            str(out_dir),
            "--prefix",
            "relit",
        ]
    )
    assert _handle_run(args) == 0
    assert [path.name for path in out_dir.iterdir()] == ["relit_1.png"]


def test_run_refused_without_image(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = _build_parser().parse_args(
        ["run", "--backend", "dryrun", "--prompt", "add a hat", "--out", str(tmp_path / "out")]
    )
    assert _handle_run(args) == 1
    assert "upload an image" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_run_unknown_backend(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = _build_parser().parse_args(["run", "--backend", "nope", "--prompt", "x", "--out", str(tmp_path)])
    assert _handle_run(args) == 1
    assert "Unknown backend" in capsys.readouterr().err


def test_run_analysis_prints_text(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    image = _write_png(tmp_path / "subject.png", (32, 32))
    args = _build_parser().parse_args(
        [
            "run",
            "--backend",
            "dryrun",
            "--mode",
            "analyze",
            "--image",
            str(image),
            "--prompt",
            "describe the style",
            "--out",
            str(tmp_path / "out"),
        ]
    )
    assert _handle_run(args) == 0
    assert "dryrun analysis of 1 image(s): describe the style" in capsys.readouterr().out


def test_presets_listing(capsys: pytest.CaptureFixture[str]) -> None:
    args = _build_parser().parse_args(["presets", "--mode", "inpaint"])
    assert _handle_presets(args) == 0
    output = capsys.readouterr().out
    assert "[inpaint]" in output
    assert "remove: remove the masked object" in output
    assert "[character]" not in output
