"""Atelier CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import math
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np
from PIL import Image

from .cli_progress import ProgressTicker
from .config import EngineConfig
from .engine import AtelierEngine
from .presentation import KIND_GALLERY, KIND_TEXT, Presentation
from .runs.artifacts import image_size, load_artifact
from .runs.export import write_artifacts
from .session.markers import SHAPES, LightMarker
from .session.state import ASPECT_RATIOS, Mode, presets_for
from .utils import load_dotenv


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atelier", description="Atelier image editing engine")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Single generation in one mode")
    run.add_argument("--mode", default=Mode.CHARACTER.value, help="Editing mode")
    run.add_argument("--image", help="Primary image path")
    run.add_argument("--ref", action="append", default=[], help="Reference image path (repeatable)")
    run.add_argument("--prompt", default="")
    run.add_argument("--negative", default="", help="Negative prompt")
    run.add_argument("--count", type=int, default=1, help="Images to generate (1-4)")
    run.add_argument("--aspect", default="1:1", choices=sorted(ASPECT_RATIOS))
    run.add_argument("--creativity", type=float)
    run.add_argument("--temperature", type=int, help="Lighting colour temperature in Kelvin")
    run.add_argument("--light-color", dest="light_color")
    run.add_argument("--mask", help="RGBA mask image; opaque pixels mark the edit region")
    run.add_argument(
        "--light",
        action="append",
        default=[],
        help="Light marker as x,y[,shape[,size[,rotation_degrees]]] (repeatable)",
    )
    run.add_argument("--canvas", help="Canvas size as WxH (defaults to the primary image size)")
    run.add_argument("--preset", help="Apply a mode preset instead of --prompt")
    run.add_argument("--out", default="out", help="Output directory")
    run.add_argument("--prefix", default="image")
    run.add_argument("--backend", help="Backend name (gemini or dryrun)")
    run.add_argument("--events", help="Path to events.jsonl")

    presets = sub.add_parser("presets", help="List mode presets")
    presets.add_argument("--mode", help="Only list presets for this mode")

    return parser


def parse_canvas(value: str) -> tuple[int, int]:
    width, sep, height = value.lower().partition("x")
    if not sep:
        raise argparse.ArgumentTypeError(f"Invalid canvas size '{value}'; expected WxH.")
    return int(width), int(height)


def parse_light(value: str) -> LightMarker:
    fields = [item.strip() for item in value.split(",")]
    if len(fields) < 2:
        raise argparse.ArgumentTypeError(f"Invalid light '{value}'; expected x,y[,shape[,size[,rotation]]].")
    shape = fields[2] if len(fields) > 2 and fields[2] else "circle"
    if shape not in SHAPES:
        raise argparse.ArgumentTypeError(f"Unknown light shape '{shape}'.")
    size = float(fields[3]) if len(fields) > 3 and fields[3] else 20.0
    rotation = math.radians(float(fields[4])) if len(fields) > 4 and fields[4] else 0.0
    return LightMarker(x=float(fields[0]), y=float(fields[1]), shape=shape, size=size, rotation=rotation)


def load_mask(path: Path) -> np.ndarray:
    with Image.open(path) as image:
        return np.asarray(image.convert("RGBA"), dtype=np.uint8)


def _make_engine(args: argparse.Namespace) -> AtelierEngine:
    config = EngineConfig.from_env()
    if args.backend:
        config = replace(config, backend=args.backend.strip().lower())
    if args.events:
        config = replace(config, events_path=Path(args.events))
    # An explicit --temperature wins over the probe.
    return AtelierEngine(config, auto_probe_temperature=args.temperature is None)


async def _prepare(engine: AtelierEngine, args: argparse.Namespace) -> None:
    session = engine.session
    await engine.set_mode(args.mode)
    if args.image:
        primary = await engine.load_primary(Path(args.image))
        if not args.canvas:
            engine.resize_canvas(*image_size(primary))
    if args.canvas:
        engine.resize_canvas(*parse_canvas(args.canvas))
    for ref_path in args.ref:
        engine.add_reference(load_artifact(Path(ref_path)))
    if args.mask:
        engine.set_mask(load_mask(Path(args.mask)))
    if args.light:
        if session.canvas_size is None:
            raise ValueError("Light markers need a canvas; pass --image or --canvas.")
        session.markers.extend(parse_light(item) for item in args.light)
    session.prompt = args.prompt
    session.negative_prompt = args.negative
    session.set_generation_count(args.count)
    session.set_aspect_ratio(args.aspect)
    if args.creativity is not None:
        session.set_creativity(args.creativity)
    if args.temperature is not None:
        session.set_color_temperature(args.temperature)
    if args.light_color:
        session.set_light_color(args.light_color)


async def _run(engine: AtelierEngine, args: argparse.Namespace) -> Presentation:
    await _prepare(engine, args)
    ticker = ProgressTicker(f"Generating in {engine.session.mode.value} mode")
    engine.on_progress = lambda collected, target: ticker.update_label(engine.status_message)
    ticker.start_ticking()
    try:
        if args.preset:
            return await engine.generate_preset(args.preset)
        return await engine.generate()
    finally:
        ticker.stop(done=True)


def _handle_run(args: argparse.Namespace) -> int:
    try:
        engine = _make_engine(args)
        presentation = asyncio.run(_run(engine, args))
    except (KeyError, ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if presentation.warning:
        print(presentation.warning)
    if presentation.kind == KIND_TEXT:
        print(presentation.message)
        return 0
    if presentation.kind == KIND_GALLERY:
        paths = write_artifacts(presentation.artifacts, Path(args.out), prefix=args.prefix)
        for path in paths:
            print(f"Saved {path}")
        return 0
    print(presentation.message, file=sys.stderr)
    return 1


def _handle_presets(args: argparse.Namespace) -> int:
    modes = [Mode.parse(args.mode)] if args.mode else list(Mode)
    for mode in modes:
        presets = presets_for(mode)
        if not presets:
            continue
        print(f"[{mode.value}]")
        for name, prompt in presets.items():
            print(f"  {name}: {prompt}")
    return 0


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    if args.command == "run":
        raise SystemExit(_handle_run(args))
    if args.command == "presets":
        raise SystemExit(_handle_presets(args))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
