"""Process-wide exit cleanup registry."""

import inspect
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

CleanupCallback = Callable[[], Awaitable[None] | None]


class CleanupRegistry:
    """Append-only list of callbacks run once, in order, before the process exits."""

    def __init__(self) -> None:
        self._callbacks: list[CleanupCallback] = []
        self._ran = False

    def register(self, callback: CleanupCallback) -> None:
        self._callbacks.append(callback)

    def __len__(self) -> int:
        return len(self._callbacks)

    async def run(self) -> None:
        """Invoke every callback once; a failing callback does not stop the rest."""
        if self._ran:
            return
        self._ran = True
        for callback in self._callbacks:
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.debug("cleanup callback %r failed: %s", callback, e)
