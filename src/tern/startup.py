"""Background startup work and its join points."""

import asyncio
import logging

from tern.auth import AuthType, get_oauth_client
from tern.cleanup import CleanupRegistry
from tern.config import CliConfig
from tern.models import Settings
from tern.terminal import detect_and_enable_kitty_protocol

log = logging.getLogger(__name__)


class StartupTasks:
    """Owns the keyboard capability query issued early and joined before the UI."""

    def __init__(self, cleanup: CleanupRegistry) -> None:
        self._cleanup = cleanup
        self._keyboard_task: asyncio.Task[bool] | None = None
        self._keyboard_result: bool | None = None

    @property
    def started(self) -> bool:
        return self._keyboard_task is not None

    def begin_keyboard_detection(self, fd_in: int, fd_out: int) -> None:
        """Issue the query now; it runs while configuration keeps loading."""
        if self._keyboard_task is not None:
            return
        self._keyboard_task = asyncio.create_task(
            detect_and_enable_kitty_protocol(self._cleanup, fd_in, fd_out),
            name="tern-kitty-detection",
        )

    async def keyboard_ready(self) -> bool:
        """Wait for the query (once) and return whether the protocol is enabled."""
        if self._keyboard_result is not None:
            return self._keyboard_result
        if self._keyboard_task is None:
            self._keyboard_result = False
            return False
        try:
            self._keyboard_result = await self._keyboard_task
        except Exception as e:
            log.debug("keyboard detection failed: %s", e)
            self._keyboard_result = False
        return self._keyboard_result


def needs_credential_prefetch(settings: Settings, config: CliConfig) -> bool:
    return (
        settings.security.auth.selected_type == AuthType.LOGIN_WITH_OAUTH.value
        and config.browser_launch_suppressed
    )


async def prefetch_credentials(settings: Settings, config: CliConfig) -> bool:
    """Log in before the UI exists so the login link can be copied from the terminal."""
    if not needs_credential_prefetch(settings, config):
        return False
    creds = await get_oauth_client(AuthType.LOGIN_WITH_OAUTH.value, config)
    config.api_key = creds.access_token
    return True
