"""Terminal spinner shown while waiting on the model."""

import itertools
import shutil
import sys
import threading
from typing import TextIO

SPINNER_FRAMES = ("|", "/", "-", "\\")
SPINNER_INTERVAL_SECONDS = 0.1


class WaitIndicator:
    """Render a lightweight TTY spinner while a blocking call is in flight."""

    def __init__(
        self,
        message: str = "Thinking...",
        stream: TextIO | None = None,
        interval: float = SPINNER_INTERVAL_SECONDS,
    ) -> None:
        self._message = message
        self._stream = stream if stream is not None else sys.stderr
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._enabled = hasattr(self._stream, "isatty") and self._stream.isatty()

    def __enter__(self) -> "WaitIndicator":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def start(self) -> None:
        if not self._enabled:
            return
        self._thread = threading.Thread(target=self._run, daemon=True, name="tern-spinner")
        self._thread.start()

    def stop(self) -> None:
        if not self._enabled:
            return
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
        self._clear_line()

    def _run(self) -> None:
        for frame in itertools.cycle(SPINNER_FRAMES):
            if self._stop_event.is_set():
                break
            self._write_line(f"{frame} {self._message}")
            self._stop_event.wait(self._interval)

    def _max_width(self) -> int:
        cols = shutil.get_terminal_size(fallback=(80, 24)).columns
        return max(cols - 1, 10)

    def _write_line(self, text: str) -> None:
        max_width = self._max_width()
        try:
            self._stream.write("\r" + text[:max_width].ljust(max_width))
            self._stream.flush()
        except OSError:
            self._enabled = False

    def _clear_line(self) -> None:
        max_width = self._max_width()
        try:
            self._stream.write("\r" + (" " * max_width) + "\r")
            self._stream.flush()
        except OSError:
            pass
