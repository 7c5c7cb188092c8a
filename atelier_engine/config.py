"""Engine configuration sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .utils import getenv_float, getenv_int

DEFAULT_EDIT_MODEL = "gemini-2.5-flash-image"
DEFAULT_TEXT_TO_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_ANALYSIS_MODEL = "gemini-3-pro-preview"
DEFAULT_PROBE_MODEL = "gemini-2.5-flash"


@dataclass
class EngineConfig:
    backend: str = "gemini"
    edit_model: str = DEFAULT_EDIT_MODEL
    text_to_image_model: str = DEFAULT_TEXT_TO_IMAGE_MODEL
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    probe_model: str = DEFAULT_PROBE_MODEL
    attempt_multiplier: int = 3
    backoff_ms: int = 500
    history_cap: int = 20
    call_timeout_s: float | None = None
    events_path: Path | None = None

    @classmethod
    def from_env(cls) -> "EngineConfig":
        events_raw = (os.getenv("ATELIER_EVENTS_PATH") or "").strip()
        timeout = getenv_float("ATELIER_CALL_TIMEOUT_S", None)
        return cls(
            backend=(os.getenv("ATELIER_BACKEND") or "gemini").strip().lower() or "gemini",
            edit_model=os.getenv("ATELIER_EDIT_MODEL") or DEFAULT_EDIT_MODEL,
            text_to_image_model=os.getenv("ATELIER_TEXT_TO_IMAGE_MODEL") or DEFAULT_TEXT_TO_IMAGE_MODEL,
            analysis_model=os.getenv("ATELIER_ANALYSIS_MODEL") or DEFAULT_ANALYSIS_MODEL,
            probe_model=os.getenv("ATELIER_PROBE_MODEL") or DEFAULT_PROBE_MODEL,
            attempt_multiplier=max(1, getenv_int("ATELIER_ATTEMPT_MULTIPLIER", 3)),
            backoff_ms=max(0, getenv_int("ATELIER_BACKOFF_MS", 500)),
            history_cap=max(1, getenv_int("ATELIER_HISTORY_CAP", 20)),
            call_timeout_s=timeout if timeout and timeout > 0 else None,
            events_path=Path(events_raw).expanduser() if events_raw else None,
        )
