"""Capture piped standard input and carry it across a process hand-off."""

import asyncio
import logging
import sys
from typing import TextIO

log = logging.getLogger(__name__)

MAX_STDIN_CHARS = 8 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024
PROMPT_FLAGS = ("--prompt", "-p")


class StdinCapture:
    """Reads a non-interactive stdin stream once and remembers what it read."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._data: str | None = None

    def is_tty(self) -> bool:
        return hasattr(self._stream, "isatty") and self._stream.isatty()

    @property
    def consumed(self) -> bool:
        return self._data is not None

    def _read_all(self) -> str:
        chunks: list[str] = []
        total = 0
        while True:
            chunk = self._stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            if total + len(chunk) > MAX_STDIN_CHARS:
                chunks.append(chunk[: MAX_STDIN_CHARS - total])
                log.warning(
                    "Warning: stdin input truncated to %d characters.", MAX_STDIN_CHARS
                )
                break
            chunks.append(chunk)
            total += len(chunk)
        return "".join(chunks)

    async def read(self) -> str:
        """Return all of stdin; later calls return the same text without reading."""
        if self._data is None:
            self._data = await asyncio.to_thread(self._read_all)
            log.debug("read %d chars from stdin", len(self._data))
        return self._data


def inject_stdin_into_args(args: list[str], stdin_data: str | None) -> list[str]:
    """Fold captured stdin into the prompt flag of an outgoing argument vector."""
    if not stdin_data:
        return args
    final_args = list(args)
    prompt_index = next(
        (i for i, arg in enumerate(final_args) if arg in PROMPT_FLAGS), -1
    )
    if prompt_index > -1 and len(final_args) > prompt_index + 1:
        final_args[prompt_index + 1] = f"{stdin_data}\n\n{final_args[prompt_index + 1]}"
    else:
        final_args.extend([PROMPT_FLAGS[0], stdin_data])
    return final_args
