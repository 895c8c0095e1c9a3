"""Terminal state: raw mode, keyboard protocol detection, and the window title."""

import asyncio
import logging
import os
import re
import signal
import sys
import termios
import tty
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

from tern.cleanup import CleanupRegistry

log = logging.getLogger(__name__)

# Progressive enhancement query followed by a primary device attributes query.
# Terminals that speak the kitty keyboard protocol answer the first before the second.
KITTY_QUERY = b"\x1b[?u\x1b[c"
KITTY_ENABLE = b"\x1b[>1u"
KITTY_DISABLE = b"\x1b[<u"
KITTY_FLAGS_RE = re.compile(rb"\x1b\[\?(\d+)u")
DEVICE_ATTRS_RE = re.compile(rb"\x1b\[\?[\d;]*c")
KITTY_DETECTION_TIMEOUT_SECONDS = 0.2

RESTORED_SIGNALS = (signal.SIGINT, signal.SIGTERM)
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def _is_raw(attrs: list) -> bool:
    return not attrs[3] & termios.ICANON


def is_raw_mode(fd: int) -> bool:
    """Return whether fd is a tty that is already in raw (non-canonical) mode."""
    return os.isatty(fd) and _is_raw(termios.tcgetattr(fd))


class RawTerminal:
    """Put a tty into raw mode and guarantee the prior mode comes back.

    The prior mode is restored on normal exit, on exceptions, and synchronously
    from SIGINT/SIGTERM before the previously installed handler runs.
    """

    def __init__(self, fd: int | None = None) -> None:
        self._fd = fd if fd is not None else sys.stdin.fileno()
        self._old_attrs: list | None = None
        self._old_handlers: dict[int, object] = {}

    @property
    def active(self) -> bool:
        return self._old_attrs is not None

    def __enter__(self) -> "RawTerminal":
        if not os.isatty(self._fd):
            return self
        attrs = termios.tcgetattr(self._fd)
        if _is_raw(attrs):
            return self
        self._old_attrs = attrs
        for signum in RESTORED_SIGNALS:
            self._old_handlers[signum] = signal.signal(signum, self._on_signal)
        tty.setraw(self._fd, termios.TCSANOW)
        return self

    def __exit__(self, *exc_info) -> None:
        self.restore()

    def restore(self) -> None:
        """Put back the saved mode and signal handlers; safe to call repeatedly."""
        if self._old_attrs is None:
            return
        try:
            termios.tcsetattr(self._fd, termios.TCSAFLUSH, self._old_attrs)
        except termios.error as e:
            log.debug("could not restore terminal mode: %s", e)
        self._old_attrs = None
        for signum, handler in self._old_handlers.items():
            signal.signal(signum, handler)
        self._old_handlers = {}

    @contextmanager
    def suspended(self) -> Iterator[None]:
        """Temporarily return to the saved mode, e.g. to read a line of input."""
        if self._old_attrs is None:
            yield
            return
        raw_attrs = termios.tcgetattr(self._fd)
        termios.tcsetattr(self._fd, termios.TCSANOW, self._old_attrs)
        try:
            yield
        finally:
            if self._old_attrs is not None:
                termios.tcsetattr(self._fd, termios.TCSANOW, raw_attrs)

    def _on_signal(self, signum: int, frame) -> None:
        previous = self._old_handlers.get(signum, signal.SIG_DFL)
        self.restore()
        if callable(previous):
            previous(signum, frame)
            return
        if previous == signal.SIG_IGN:
            return
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)


def _kitty_supported(buffer: bytes) -> bool | None:
    """Return the detection verdict once the device attributes reply arrived."""
    attrs = DEVICE_ATTRS_RE.search(buffer)
    if attrs is None:
        return None
    flags = KITTY_FLAGS_RE.search(buffer)
    return flags is not None and flags.start() < attrs.start()


async def detect_and_enable_kitty_protocol(
    cleanup: CleanupRegistry,
    fd_in: int | None = None,
    fd_out: int | None = None,
    timeout: float = KITTY_DETECTION_TIMEOUT_SECONDS,
) -> bool:
    """Query the terminal for the kitty keyboard protocol and enable it when present.

    Always resolves to a bool; no reply within timeout means unsupported.
    """
    fd_in = fd_in if fd_in is not None else sys.stdin.fileno()
    fd_out = fd_out if fd_out is not None else sys.stdout.fileno()
    if not (os.isatty(fd_in) and os.isatty(fd_out)):
        return False

    loop = asyncio.get_running_loop()
    verdict: asyncio.Future[bool] = loop.create_future()
    buffer = bytearray()

    def _on_readable() -> None:
        if verdict.done():
            return
        try:
            chunk = os.read(fd_in, 1024)
        except OSError:
            verdict.set_result(False)
            return
        if not chunk:
            verdict.set_result(False)
            return
        buffer.extend(chunk)
        supported = _kitty_supported(bytes(buffer))
        if supported is not None:
            verdict.set_result(supported)

    loop.add_reader(fd_in, _on_readable)
    try:
        os.write(fd_out, KITTY_QUERY)
        supported = await asyncio.wait_for(verdict, timeout)
    except asyncio.TimeoutError:
        supported = False
    except OSError as e:
        log.debug("kitty protocol query failed: %s", e)
        supported = False
    finally:
        loop.remove_reader(fd_in)

    log.debug("kitty keyboard protocol supported=%s", supported)
    if supported:
        os.write(fd_out, KITTY_ENABLE)
        cleanup.register(lambda: os.write(fd_out, KITTY_DISABLE))
    return supported


def compute_window_title(folder_name: str) -> str:
    title = os.environ.get("CLI_TITLE") or f"tern - {folder_name}"
    return CONTROL_CHARS_RE.sub("", title)


def set_window_title(
    folder_name: str,
    cleanup: CleanupRegistry,
    hide: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Set the terminal title and reset it when the process cleans up."""
    if hide:
        return
    out = stream if stream is not None else sys.stdout

    def _write(text: str) -> None:
        try:
            out.write(text)
            out.flush()
        except OSError:
            pass

    _write(f"\x1b]2;{compute_window_title(folder_name)}\x07")
    cleanup.register(lambda: _write("\x1b]2;\x07"))
