"""Structured session events, optionally mirrored to a JSONL file."""

from __future__ import annotations

import json
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..utils import now_utc_iso, sanitize_payload


@dataclass
class EventWriter:
    path: Path | None
    session_id: str
    keep: int = 200
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)
    _recent: deque = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._recent = deque(maxlen=max(1, self.keep))

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event = {
            "type": event_type,
            "session_id": self.session_id,
            "ts": now_utc_iso(),
        }
        event.update(sanitize_payload(payload))
        with self._lock:
            self._recent.append(event)
            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(f"{json.dumps(event)}\n")
        return event

    def recent(self, event_type: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            events = list(self._recent)
        if event_type is None:
            return events
        return [event for event in events if event["type"] == event_type]
