"""Interactive mode startup."""

import asyncio
import logging
import os
import sys
from pathlib import Path

from tern import __version__
from tern.cleanup import CleanupRegistry
from tern.config import CliConfig
from tern.events import AppEvents
from tern.initializer import InitializationResult
from tern.models import Settings
from tern.terminal import set_window_title
from tern.ui.repl import Repl
from tern.update_check import notify_if_update_available

log = logging.getLogger(__name__)


def _render_banner(
    config: CliConfig,
    startup_warnings: list[str],
    initialization: InitializationResult,
    kitty_enabled: bool,
) -> str:
    lines = [f"tern {__version__} ({config.model}). Type /help for commands."]
    lines.extend(f"! {warning}" for warning in startup_warnings)
    if initialization.auth_error:
        lines.append(f"! {initialization.auth_error}")
    elif initialization.should_open_auth_dialog:
        lines.append(
            "! No auth method selected. Set security.auth.selected_type in settings.json."
        )
    if config.debug_mode:
        lines.append(f"session: {config.session_id}  kitty keyboard: {kitty_enabled}")
    return "\n".join(lines) + "\n\n"


async def start_interactive_ui(
    config: CliConfig,
    settings: Settings,
    startup_warnings: list[str],
    initialization: InitializationResult,
    kitty_enabled: bool,
    cleanup: CleanupRegistry,
    events: AppEvents,
    workspace_root: Path | None = None,
) -> int:
    """Render the interactive UI and run it until the user leaves."""
    root = workspace_root if workspace_root is not None else Path.cwd()
    set_window_title(root.name or os.sep, cleanup, hide=settings.ui.hide_window_title)

    repl = Repl(config, events)
    sys.stdout.write(_render_banner(config, startup_warnings, initialization, kitty_enabled))
    sys.stdout.flush()

    if not settings.general.disable_update_check:
        update_task = asyncio.create_task(
            notify_if_update_available(
                __version__, config.debug_mode, order=config.dns_resolution_order
            ),
            name="tern-update-check",
        )
        cleanup.register(update_task.cancel)

    return await repl.run(config.question)
