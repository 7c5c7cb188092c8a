"""CLI progress helpers."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

_BOLD = "\x1b[1m"
_GREY = "\x1b[38;2;150;157;165m"
_RESET = "\x1b[0m"


def format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(max(0, seconds)), 60)
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def status_line(label: str, elapsed: float, done: bool = False) -> str:
    suffix = "done" if done else "ctrl-c to cancel"
    return f"• {label} ({format_elapsed(elapsed)} • {suffix})"


class ProgressTicker:
    """Redraw a single status line while a generation is in flight.

    On a terminal the line is rewritten in place every ``interval_s``; on any
    other stream each label change is written once on its own line.
    """

    def __init__(self, label: str, stream: TextIO | None = None, interval_s: float = 1.0) -> None:
        self.label = label
        self.stream = stream or sys.stdout
        self.interval_s = max(0.05, interval_s)
        self.start: float | None = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._tty = bool(getattr(self.stream, "isatty", lambda: False)())

    def start_ticking(self) -> None:
        self.start = time.monotonic()
        self._draw(newline=not self._tty)
        if self._tty:
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()

    def update_label(self, label: str) -> None:
        if label == self.label:
            return
        self.label = label
        if self.start is not None and not self._stop.is_set():
            self._draw(newline=not self._tty)

    def stop(self, done: bool = True) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        elapsed = self._elapsed()
        if done:
            line = f"{_GREY}── Finished in {format_elapsed(elapsed)} ──{_RESET}"
        else:
            line = f"{_BOLD}{status_line(self.label, elapsed)}{_RESET}"
        self._write(line, newline=True)

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self._draw(newline=False)

    def _elapsed(self) -> float:
        return time.monotonic() - (self.start or time.monotonic())

    def _draw(self, newline: bool) -> None:
        self._write(f"{_BOLD}{status_line(self.label, self._elapsed())}{_RESET}", newline=newline)

    def _write(self, line: str, newline: bool) -> None:
        with self._lock:
            if self._tty:
                self.stream.write("\r")
                self.stream.write(line)
                self.stream.write("\033[K")
            else:
                self.stream.write(line)
            if newline:
                self.stream.write("\n")
            self.stream.flush()
