"""Write history selections and run results to disk."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Sequence

from .artifacts import Artifact
from .history import HistoryStore


def _extension(artifact: Artifact) -> str:
    ext = artifact.extension
    return "jpg" if ext == "jpeg" else ext


def export_selection(history: HistoryStore, out_dir: Path, prefix: str = "image") -> Path:
    """Export the selected history items.

    One item is written as ``{prefix}.{ext}``. Several are packed into
    ``{prefix}.zip`` as ``{prefix}_{n}.{ext}`` numbered from 1.
    """
    selected = history.selected()
    if not selected:
        raise ValueError("Nothing selected for export.")
    prefix = prefix.strip() or "image"
    out_dir.mkdir(parents=True, exist_ok=True)
    if len(selected) == 1:
        artifact = selected[0]
        path = out_dir / f"{prefix}.{_extension(artifact)}"
        path.write_bytes(artifact.to_bytes())
        return path
    archive_path = out_dir / f"{prefix}.zip"
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for count, artifact in enumerate(selected, start=1):
            archive.writestr(f"{prefix}_{count}.{_extension(artifact)}", artifact.to_bytes())
    return archive_path


def write_artifacts(artifacts: Sequence[Artifact], out_dir: Path, prefix: str = "image") -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix.strip() or "image"
    paths: list[Path] = []
    for count, artifact in enumerate(artifacts, start=1):
        path = out_dir / f"{prefix}_{count}.{_extension(artifact)}"
        path.write_bytes(artifact.to_bytes())
        paths.append(path)
    return paths
