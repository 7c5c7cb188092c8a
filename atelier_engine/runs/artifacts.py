"""Artifact value types."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError


_SUFFIX_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


@dataclass(frozen=True)
class Artifact:
    mime_type: str
    data: str

    @classmethod
    def from_bytes(cls, payload: bytes, mime_type: str) -> "Artifact":
        return cls(mime_type=mime_type, data=base64.b64encode(payload).decode("ascii"))

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def extension(self) -> str:
        subtype = self.mime_type.split("/", 1)[1] if "/" in self.mime_type else ""
        return subtype or "png"


@dataclass(frozen=True)
class ReferenceArtifact:
    artifact: Artifact
    ref_id: int

    @property
    def mime_type(self) -> str:
        return self.artifact.mime_type

    @property
    def data(self) -> str:
        return self.artifact.data


def load_artifact(path: str | Path) -> Artifact:
    """Read an image file into an Artifact, rejecting non-image files."""
    source = Path(path).expanduser()
    payload = source.read_bytes()
    try:
        with Image.open(BytesIO(payload)) as image:
            mime_type = Image.MIME.get(image.format or "")
    except UnidentifiedImageError as exc:
        raise ValueError(f"{source} is not an image.") from exc
    if not mime_type:
        mime_type = _SUFFIX_MIME_TYPES.get(source.suffix.lower())
    if not mime_type:
        raise ValueError(f"Unsupported image type for {source}.")
    return Artifact.from_bytes(payload, mime_type)


def image_size(artifact: Artifact) -> tuple[int, int]:
    """Decode the artifact just far enough to read its pixel dimensions."""
    with Image.open(BytesIO(artifact.to_bytes())) as image:
        width, height = image.size
    if width <= 0 or height <= 0:
        raise ValueError("Image has no pixels.")
    return width, height
