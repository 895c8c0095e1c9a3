"""Unit tests for tern.ui.app."""

import asyncio
from unittest.mock import AsyncMock, patch

from tern.cleanup import CleanupRegistry
from tern.config import CliConfig
from tern.events import AppEvents
from tern.initializer import InitializationResult
from tern.models import GeneralSettings, Settings, UiSettings
from tern.ui.app import _render_banner, start_interactive_ui

_OK = InitializationResult(auth_error=None, should_open_auth_dialog=False)


def test_banner_lists_warnings_and_auth_error():
    config = CliConfig(session_id="s", model="m")
    failed = InitializationResult(auth_error="No API key found.", should_open_auth_dialog=True)

    banner = _render_banner(config, ["home dir"], failed, kitty_enabled=False)

    assert banner.startswith("tern ")
    assert "! home dir" in banner
    assert "! No API key found." in banner
    assert "session:" not in banner


def test_banner_debug_shows_session_and_keyboard():
    config = CliConfig(session_id="sess-9", model="m", debug_mode=True)

    banner = _render_banner(config, [], _OK, kitty_enabled=True)

    assert "session: sess-9  kitty keyboard: True" in banner


def test_banner_without_auth_method():
    config = CliConfig(session_id="s", model="m")
    unset = InitializationResult(auth_error=None, should_open_auth_dialog=True)

    assert "No auth method selected" in _render_banner(config, [], unset, False)


def test_start_interactive_ui_runs_repl_with_question(tmp_path, capsys):
    config = CliConfig(session_id="s", model="m", question="explain tar", interactive=True)
    settings = Settings(
        general=GeneralSettings(disable_update_check=True),
        ui=UiSettings(hide_window_title=True),
    )
    cleanup = CleanupRegistry()

    with patch("tern.ui.app.Repl") as mock_repl:
        mock_repl.return_value.run = AsyncMock(return_value=0)
        code = asyncio.run(
            start_interactive_ui(
                config, settings, [], _OK, False, cleanup, AppEvents(), workspace_root=tmp_path
            )
        )

    assert code == 0
    mock_repl.return_value.run.assert_awaited_once_with("explain tar")
    assert "Type /help" in capsys.readouterr().out
    assert len(cleanup) == 0


def test_update_check_is_cancelled_on_cleanup(tmp_path, capsys):
    config = CliConfig(session_id="s", model="m", interactive=True)
    settings = Settings(ui=UiSettings(hide_window_title=True))
    cleanup = CleanupRegistry()
    notify = AsyncMock()

    async def scenario():
        code = await start_interactive_ui(
            config, settings, [], _OK, False, cleanup, AppEvents(), workspace_root=tmp_path
        )
        await cleanup.run()
        return code

    with patch("tern.ui.app.Repl") as mock_repl, patch(
        "tern.ui.app.notify_if_update_available", notify
    ):
        mock_repl.return_value.run = AsyncMock(return_value=0)
        assert asyncio.run(scenario()) == 0

    assert len(cleanup) == 1
