"""Runtime configuration assembled from settings, arguments, and extensions."""

import argparse
import logging
import os
from dataclasses import dataclass, field

from tern.auth import AuthType, find_api_key, get_oauth_client
from tern.models import ExecutionMode, Extension, Settings
from tern.models.settings import DnsResolutionOrder
from tern.net import DEFAULT_DNS_RESOLUTION_ORDER, validate_dns_resolution_order

log = logging.getLogger(__name__)

DEBUG_ENV_VALUES = {"1", "true"}


def is_debug_mode(args: argparse.Namespace, settings: Settings | None = None) -> bool:
    """Return whether debug output is requested by flag, environment, or settings."""
    if args.debug:
        return True
    if os.environ.get("DEBUG", "").lower() in DEBUG_ENV_VALUES:
        return True
    return bool(settings and settings.general.debug)


@dataclass
class CliConfig:
    """Finalized configuration for one run of tern."""

    session_id: str
    model: str
    question: str = ""
    interactive: bool = False
    debug_mode: bool = False
    api_key: str | None = None
    extensions: list[Extension] = field(default_factory=list)
    list_extensions: bool = False
    browser_launch_suppressed: bool = False
    auth_type: str | None = None
    dns_resolution_order: DnsResolutionOrder = DEFAULT_DNS_RESOLUTION_ORDER
    initialized: bool = False

    @property
    def is_interactive(self) -> bool:
        return self.interactive

    @property
    def execution_mode(self) -> ExecutionMode:
        if self.interactive:
            return ExecutionMode.INTERACTIVE
        return ExecutionMode.NON_INTERACTIVE

    async def refresh_auth(self, auth_type: str) -> None:
        """Resolve credentials for auth_type so later model calls can use them."""
        if auth_type == AuthType.LOGIN_WITH_OAUTH.value:
            creds = await get_oauth_client(auth_type, self)
            self.api_key = creds.access_token
        else:
            self.api_key = find_api_key(self.api_key)
        self.auth_type = auth_type
        log.debug("auth refreshed with %s", auth_type)

    async def initialize(self) -> None:
        if self.initialized:
            raise RuntimeError("Config was already initialized")
        self.initialized = True


def _browser_launch_suppressed() -> bool:
    if os.environ.get("NO_BROWSER"):
        return True
    # No display on Linux means there is nowhere to open a browser.
    if os.name == "posix" and os.uname().sysname == "Linux":
        return not (os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))
    return False


def load_cli_config(
    settings: Settings,
    extensions: list[Extension],
    session_id: str,
    args: argparse.Namespace,
    stdin_is_tty: bool,
) -> CliConfig:
    """Build the run configuration; pass no extensions for a partial config."""
    question = args.prompt_interactive or args.prompt or ""
    interactive = bool(args.prompt_interactive) or (stdin_is_tty and not question)
    return CliConfig(
        session_id=session_id,
        model=args.model or settings.model.name,
        question=question,
        interactive=interactive,
        debug_mode=is_debug_mode(args, settings),
        api_key=settings.model.api_key,
        extensions=extensions,
        list_extensions=args.list_extensions,
        browser_launch_suppressed=_browser_launch_suppressed(),
        dns_resolution_order=validate_dns_resolution_order(
            settings.advanced.dns_resolution_order
        ),
    )
