"""Light markers: placement gestures and natural-language description."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

SHAPES = ("circle", "cone", "arrow")
DIRECTIONS = (
    "top",
    "top-right",
    "right",
    "bottom-right",
    "bottom",
    "bottom-left",
    "left",
    "top-left",
)
WHITE = "#FFFFFF"
SMALL_SIZE_LIMIT = 15
MEDIUM_SIZE_LIMIT = 35


@dataclass
class LightMarker:
    x: float
    y: float
    shape: str = "circle"
    size: float = 20
    # Radians in screen space: 0 points up, positive turns clockwise.
    rotation: float = 0.0
    path: list[tuple[float, float]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.shape not in SHAPES:
            raise ValueError(f"Unknown light shape '{self.shape}'. Expected one of {', '.join(SHAPES)}.")

    def contains(self, x: float, y: float) -> bool:
        dx = self.x - x
        dy = self.y - y
        return dx * dx + dy * dy < self.size * self.size

    def heading_degrees(self) -> float:
        if self.shape == "arrow" and len(self.path) >= 2:
            (x0, y0), (x1, y1) = self.path[0], self.path[-1]
            if (x0, y0) != (x1, y1):
                return vector_degrees(x1 - x0, y1 - y0)
        return math.degrees(self.rotation) % 360.0


def vector_degrees(dx: float, dy: float) -> float:
    """Compass bearing of a screen-space vector (y grows downward)."""
    return math.degrees(math.atan2(dx, -dy)) % 360.0


def compass_sector(degrees: float) -> str:
    """Map a bearing to one of eight 45° sectors centred on the compass points.

    A bearing exactly on a sector boundary belongs to the clockwise-next sector.
    """
    index = int(((degrees % 360.0) + 22.5) // 45.0) % 8
    return DIRECTIONS[index]


def compass_direction(rotation: float) -> str:
    return compass_sector(math.degrees(rotation))


def _location(marker: LightMarker, width: float, height: float) -> str:
    if marker.y < height / 3:
        row = "top"
    elif marker.y > height * 2 / 3:
        row = "bottom"
    else:
        row = "middle"
    if marker.x < width / 3:
        column = "left"
    elif marker.x > width * 2 / 3:
        column = "right"
    else:
        column = "center"
    if row == "middle" and column == "center":
        return "from the center"
    return f"from the {row} {column}"


def size_bucket(size: float) -> str:
    if size < SMALL_SIZE_LIMIT:
        return "small"
    if size < MEDIUM_SIZE_LIMIT:
        return "medium"
    return "large"


def normalize_color(value: str | None) -> str:
    raw = (value or WHITE).strip().upper()
    if not raw.startswith("#"):
        raw = f"#{raw}"
    if len(raw) == 4:
        raw = "#" + "".join(ch * 2 for ch in raw[1:])
    return raw


def describe_marker(marker: LightMarker, width: float, height: float, color: str | None = WHITE) -> str:
    size = size_bucket(marker.size)
    hex_color = normalize_color(color)
    color_clause = "" if hex_color == WHITE else f"with the color {hex_color} "
    location = _location(marker, width, height)
    if marker.shape == "cone":
        direction = compass_sector(marker.heading_degrees())
        return f"a {size} cone of light (spotlight) {color_clause}{location}, pointing towards the {direction}"
    if marker.shape == "arrow":
        direction = compass_sector(marker.heading_degrees())
        return f"a {size} directional light {color_clause}{location}, shining towards the {direction}"
    return f"a {size} circular (omni-directional) light source {color_clause}{location}"


def describe_markers(
    markers: Sequence[LightMarker],
    width: float,
    height: float,
    color: str | None = WHITE,
) -> str:
    if not markers:
        return ""
    clauses = [describe_marker(marker, width, height, color) for marker in markers]
    return f"Add specific light sources: {' and '.join(clauses)}."


class MarkerTool:
    """Pointer gestures over the lighting canvas.

    ``press`` grabs an existing cone under the pointer (to rotate it) or places a
    new marker; arrows record their drawn path until ``release``.
    """

    def __init__(self, markers: list[LightMarker]) -> None:
        self.markers = markers
        self.active: LightMarker | None = None

    def press(self, x: float, y: float, shape: str = "circle", size: float = 20) -> LightMarker:
        for marker in self.markers:
            if marker.shape == "cone" and marker.contains(x, y):
                self.active = marker
                return marker
        marker = LightMarker(x=x, y=y, shape=shape, size=size)
        if shape == "arrow":
            marker.path.append((x, y))
            self.active = marker
        self.markers.append(marker)
        return marker

    def drag(self, x: float, y: float) -> None:
        marker = self.active
        if marker is None:
            return
        if marker.shape == "arrow":
            marker.path.append((x, y))
            x0, y0 = marker.path[0]
            if (x, y) != (x0, y0):
                marker.rotation = math.radians(vector_degrees(x - x0, y - y0))
            return
        if (x, y) != (marker.x, marker.y):
            marker.rotation = math.radians(vector_degrees(x - marker.x, y - marker.y))

    def release(self) -> None:
        self.active = None

    cancel = release
