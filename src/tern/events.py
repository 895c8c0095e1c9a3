"""Application event bus and the handler for unobserved background errors."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

log = logging.getLogger("tern")

UNHANDLED_ERROR_BANNER = (
    "=========================================\n"
    "This is an unexpected error. Please file a bug report.\n"
    "CRITICAL: Unhandled exception in background task!\n"
    "========================================="
)


class AppEvent(Enum):
    LOG_ERROR = "log-error"
    OPEN_DEBUG_CONSOLE = "open-debug-console"


Listener = Callable[..., None]


class AppEvents:
    """Minimal synchronous event emitter shared by the bootstrap and the UI."""

    def __init__(self) -> None:
        self._listeners: dict[AppEvent, list[Listener]] = defaultdict(list)

    def on(self, event: AppEvent, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def emit(self, event: AppEvent, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            listener(*args)


def format_unhandled_error(context: dict[str, Any]) -> str:
    exc = context.get("exception")
    reason = exc if exc is not None else context.get("message", "unknown error")
    return f"{UNHANDLED_ERROR_BANNER}\nReason: {reason!r}"


def setup_unhandled_exception_handler(
    loop: asyncio.AbstractEventLoop, events: AppEvents
) -> None:
    """Route unobserved task errors to the event bus instead of crashing."""
    occurred = False

    def _handler(_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        nonlocal occurred
        message = format_unhandled_error(context)
        events.emit(AppEvent.LOG_ERROR, message)
        if not occurred:
            occurred = True
            events.emit(AppEvent.OPEN_DEBUG_CONSOLE)

    loop.set_exception_handler(_handler)


def log_error_events(events: AppEvents) -> None:
    """Forward LOG_ERROR payloads to the tern logger."""
    events.on(AppEvent.LOG_ERROR, lambda message: log.error("%s", message))
