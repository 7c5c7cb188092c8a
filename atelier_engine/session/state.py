"""Per-session editing state."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from ..runs.artifacts import Artifact, ReferenceArtifact
from .markers import SHAPES, LightMarker, MarkerTool, normalize_color


class Mode(str, Enum):
    CHARACTER = "character"
    MATCH3 = "match3"
    INPAINT = "inpaint"
    SKETCH = "sketch"
    FREE = "free"
    ANALYZE = "analyze"
    LIGHTING = "lighting"
    CONCEPT = "concept"

    @classmethod
    def parse(cls, value: "Mode | str") -> "Mode":
        if isinstance(value, Mode):
            return value
        normalized = str(value or "").strip().lower().replace("_", "-")
        aliases = {
            "character-edit": cls.CHARACTER,
            "match-3": cls.MATCH3,
            "match-3-texture": cls.MATCH3,
            "free-form": cls.FREE,
            "lighting-adjust": cls.LIGHTING,
            "concept-exploration": cls.CONCEPT,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError as exc:
            names = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown mode '{value}'. Expected one of {names}.") from exc


ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
MAX_GENERATION_COUNT = 4
MIN_COLOR_TEMPERATURE = 1000
MAX_COLOR_TEMPERATURE = 10000
DEFAULT_COLOR_TEMPERATURE = 5000

PRESETS: dict[Mode, dict[str, str]] = {
    Mode.CHARACTER: {
        "turn-side": "Change to a side view",
        "turn-34": "Change to a 3/4 view",
        "turn-back": "Change to a back view",
        "turn-front": "Change to a front view",
        "emotion-ref": "Change the character's emotion",
        "emotion-sad": "Change the character's emotion - sadness",
        "emotion-surprise": "Change the character's emotion - surprise",
        "emotion-joy": "Change the character's emotion - joy",
        "pose-sit": "Change the character's pose - sitting",
        "pose-dance": "Change the character's pose - dancing",
        "pose-gesture": "Change the character's pose - gesturing with hands",
        "pose-ref": "Change the character's pose to match the attached reference",
        "turn-360": (
            "Show how the character in this pose would look from each of the following angles: "
            "side view turned left, 3/4, back, side view turned right. Add 2 more angles of your "
            "choice. Generate these as separate images."
        ),
        "head-turns": (
            "Show the head turned in each of the following positions: side view turned left, 3/4, "
            "back, side view turned right. Add 2 more angles of your choice: 3/4 looking up, 3/4 "
            "looking down, looking up, looking down. Generate these as separate images."
        ),
    },
    Mode.MATCH3: {
        "shine-10": "Add plastic shine by 10%. Treat the plastic scale as 100% and add 10% shine",
        "shine-15": "Add plastic shine by 15%. Treat the plastic scale as 100% and add 15% shine",
        "shine-20": "Add plastic shine by 20%. Treat the plastic scale as 100% and add 20% shine",
        "shine-25": "Add plastic shine by 25%. Treat the plastic scale as 100% and add 25% shine",
        "shine-30": "Add plastic shine by 30%. Treat the plastic scale as 100% and add 30% shine",
        "metal-30": "Add a metal effect by 30%. Treat the metal scale as 100% and add 30% of the effect",
        "metal-40": "Add a metal effect by 40%. Treat the metal scale as 100% and add 40% of the effect",
        "metal-50": "Add a metal effect by 50%. Treat the metal scale as 100% and add 50% of the effect",
        "metal-70": "Add a metal effect by 70%. Treat the metal scale as 100% and add 70% of the effect",
        "remove-bg": "Remove the background. Return the image as a PNG with a transparent background.",
        "shadows": "Slightly strengthen the shadows with frontal lighting",
    },
    Mode.INPAINT: {
        "remove": "remove the masked object",
    },
    Mode.LIGHTING: {
        "golden-hour": "Relight the scene with warm golden hour sunlight coming from a low angle.",
        "studio": "Apply soft, even three-point studio lighting.",
        "neon": "Add vivid neon rim lighting in magenta and cyan.",
        "moonlight": "Relight the scene as cool blue moonlight at night.",
    },
    Mode.CONCEPT: {
        "variations": (
            "Explore a distinct design variation of this concept while keeping its core idea recognizable."
        ),
        "silhouettes": "Explore an alternative silhouette and proportions for this concept.",
        "palette": "Explore an alternative color palette for this concept.",
        "materials": "Explore alternative materials and surface finishes for this concept.",
        "combine": "Combine the key ideas of all provided images into one new concept.",
    },
}


def presets_for(mode: Mode | str) -> dict[str, str]:
    return dict(PRESETS.get(Mode.parse(mode), {}))


@dataclass(eq=False)
class SessionState:
    mode: Mode = Mode.CHARACTER
    primary: Artifact | None = None
    references: list[ReferenceArtifact] = field(default_factory=list)
    mask: np.ndarray | None = None
    canvas_size: tuple[int, int] | None = None
    markers: list[LightMarker] = field(default_factory=list)
    creativity: float = 0.9
    color_temperature: int = DEFAULT_COLOR_TEMPERATURE
    intensity: float = 1.0
    light_color: str = "#FFFFFF"
    light_size: float = 20
    light_shape: str = "circle"
    aspect_ratio: str = "1:1"
    generation_count: int = 1
    prompt: str = ""
    negative_prompt: str = ""
    saved_prompts: dict[Mode, str] = field(default_factory=dict)
    _ref_ids: Any = field(default_factory=lambda: itertools.count(1), init=False, repr=False)
    marker_tool: MarkerTool = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.mode = Mode.parse(self.mode)
        self.marker_tool = MarkerTool(self.markers)

    # Synchronization points: each one flushes the mask and any marker gesture.

    def set_mode(self, mode: Mode | str) -> bool:
        target = Mode.parse(mode)
        if target == self.mode:
            return False
        self.saved_prompts[self.mode] = self.prompt
        self.mode = target
        self.prompt = self.saved_prompts.get(target, "")
        self._invalidate_canvas()
        return True

    def set_primary(self, artifact: Artifact) -> None:
        self.primary = artifact
        self._invalidate_canvas()

    def clear_primary(self) -> None:
        self.primary = None
        self._invalidate_canvas()

    def resize_canvas(self, width: int, height: int) -> bool:
        if width <= 0 or height <= 0:
            raise ValueError("Canvas dimensions must be positive.")
        size = (int(width), int(height))
        if size == self.canvas_size:
            return False
        self.canvas_size = size
        self._invalidate_canvas()
        return True

    def _invalidate_canvas(self) -> None:
        self.marker_tool.cancel()
        self.mask = None
        self.markers.clear()

    # References

    def add_reference(self, artifact: Artifact) -> ReferenceArtifact:
        reference = ReferenceArtifact(artifact=artifact, ref_id=next(self._ref_ids))
        self.references.append(reference)
        return reference

    def remove_reference(self, ref_id: int) -> bool:
        before = len(self.references)
        self.references = [ref for ref in self.references if ref.ref_id != ref_id]
        return len(self.references) != before

    def clear_references(self) -> None:
        self.references = []

    # Mask and markers

    def set_mask(self, rgba: np.ndarray) -> None:
        buffer = np.asarray(rgba, dtype=np.uint8)
        if buffer.ndim != 3 or buffer.shape[2] != 4:
            raise ValueError("Mask must be an RGBA buffer of shape (height, width, 4).")
        height, width = buffer.shape[:2]
        if self.canvas_size is None:
            self.canvas_size = (width, height)
        elif self.canvas_size != (width, height):
            raise ValueError(
                f"Mask is {width}x{height} but the canvas is {self.canvas_size[0]}x{self.canvas_size[1]}."
            )
        self.mask = buffer

    def clear_mask(self) -> None:
        self.mask = None

    def place_light(self, x: float, y: float) -> LightMarker:
        if self.canvas_size is None:
            raise ValueError("Canvas size is unknown; resize the canvas before placing lights.")
        return self.marker_tool.press(x, y, shape=self.light_shape, size=self.light_size)

    def clear_markers(self) -> None:
        self.marker_tool.cancel()
        self.markers.clear()

    # Controls

    def set_light_shape(self, shape: str) -> None:
        if shape not in SHAPES:
            raise ValueError(f"Unknown light shape '{shape}'.")
        self.light_shape = shape

    def set_light_color(self, color: str) -> None:
        self.light_color = normalize_color(color)

    def set_generation_count(self, count: int) -> int:
        self.generation_count = max(1, min(MAX_GENERATION_COUNT, int(count)))
        return self.generation_count

    def set_aspect_ratio(self, ratio: str) -> str:
        normalized = str(ratio or "").strip()
        self.aspect_ratio = normalized if normalized in ASPECT_RATIOS else "1:1"
        return self.aspect_ratio

    def set_creativity(self, value: float) -> float:
        self.creativity = max(0.0, min(2.0, float(value)))
        return self.creativity

    def set_color_temperature(self, kelvin: int) -> int:
        self.color_temperature = max(MIN_COLOR_TEMPERATURE, min(MAX_COLOR_TEMPERATURE, int(kelvin)))
        return self.color_temperature

    def apply_preset(self, name: str) -> str:
        presets = PRESETS.get(self.mode, {})
        if name not in presets:
            available = ", ".join(sorted(presets)) or "none"
            raise KeyError(f"No preset '{name}' for mode '{self.mode.value}' (available: {available}).")
        self.prompt = presets[name]
        return self.prompt

    def reset(self) -> None:
        self.marker_tool.cancel()
        fresh = SessionState()
        for name in (
            "mode",
            "primary",
            "mask",
            "canvas_size",
            "creativity",
            "color_temperature",
            "intensity",
            "light_color",
            "light_size",
            "light_shape",
            "aspect_ratio",
            "generation_count",
            "prompt",
            "negative_prompt",
        ):
            setattr(self, name, getattr(fresh, name))
        self.references = []
        self.markers.clear()
        self.saved_prompts = {}
