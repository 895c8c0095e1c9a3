"""Unit tests for tern.bootstrap."""

import asyncio
import contextlib
import io
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tern.auth import API_KEY_ENV_VARS, AuthError
from tern.bootstrap import main, resolve_non_interactive_input
from tern.cleanup import CleanupRegistry
from tern.models import AuthSettings, SandboxConfig, SecuritySettings, Settings
from tern.stdin import StdinCapture


def _piped(text: str = "") -> StdinCapture:
    return StdinCapture(io.StringIO(text))


def _passthrough_auth():
    return AsyncMock(side_effect=lambda selected, external, config: config)


def _bootstrap_patches(**overrides):
    """Return a patch.multiple context with standard defaults plus overrides."""
    defaults = dict(
        load_settings=MagicMock(return_value=Settings()),
        load_extensions=MagicMock(return_value=[]),
        validate_non_interactive_auth=_passthrough_auth(),
        run_non_interactive=AsyncMock(return_value="answer"),
    )
    defaults.update(overrides)
    return patch.multiple("tern.bootstrap", **defaults)


@pytest.fixture
def relaunched_child(monkeypatch):
    """Behave like the child of a plain relaunch: no further hand-off."""
    monkeypatch.delenv("SANDBOX", raising=False)
    monkeypatch.delenv("TERN_SANDBOX", raising=False)
    monkeypatch.setenv("TERN_NO_RELAUNCH", "true")


def _run(argv, **kwargs) -> int:
    return asyncio.run(main(argv, **kwargs))


# ---------------------------------------------------------------------------
# flag-combination guard
# ---------------------------------------------------------------------------


class TestPromptInteractiveGuard:
    def test_piped_stdin_with_prompt_interactive_exits_one(self, capsys):
        mock_settings = MagicMock()
        with _bootstrap_patches(load_settings=mock_settings):
            assert _run(["-i", "hello"], stdin=_piped("data")) == 1

        err = capsys.readouterr().err
        assert "--prompt-interactive flag cannot be used when input is piped" in err
        mock_settings.assert_not_called()


# ---------------------------------------------------------------------------
# non-interactive mode
# ---------------------------------------------------------------------------


@pytest.mark.usefixtures("relaunched_child")
class TestNonInteractive:
    def test_prompt_flag_runs_pipeline_with_exact_input(self):
        cleanup = CleanupRegistry()
        callback = MagicMock()
        cleanup.register(callback)
        mock_pipeline = AsyncMock(return_value="answer")

        with _bootstrap_patches(run_non_interactive=mock_pipeline):
            assert _run(["--prompt", "hello"], stdin=_piped(""), cleanup=cleanup) == 0

        assert mock_pipeline.await_args.args[1] == "hello"
        callback.assert_called_once_with()

    def test_piped_input_is_prepended_to_prompt(self):
        mock_pipeline = AsyncMock(return_value="answer")
        with _bootstrap_patches(run_non_interactive=mock_pipeline):
            assert _run(["-p", "summarize"], stdin=_piped("some log")) == 0

        assert mock_pipeline.await_args.args[1] == "some log\n\nsummarize"

    def test_no_input_exits_one(self, capsys):
        mock_pipeline = AsyncMock()
        with _bootstrap_patches(run_non_interactive=mock_pipeline):
            assert _run([], stdin=_piped("")) == 1

        assert "No input provided via stdin" in capsys.readouterr().err
        mock_pipeline.assert_not_awaited()

    def test_auth_failure_exits_one_with_message(self, capsys):
        with _bootstrap_patches(
            validate_non_interactive_auth=AsyncMock(side_effect=AuthError("no key"))
        ):
            assert _run(["-p", "hello"], stdin=_piped("")) == 1

        assert "Error: no key" in capsys.readouterr().err

    def test_pipeline_error_exits_one(self, capsys):
        with _bootstrap_patches(
            run_non_interactive=AsyncMock(side_effect=RuntimeError("API failure"))
        ):
            assert _run(["-p", "hello"], stdin=_piped("")) == 1

        assert "API failure" in capsys.readouterr().err

    def test_list_extensions_prints_and_exits_zero(self, capsys):
        extension = MagicMock()
        extension.config.name = "git-helper"
        mock_pipeline = AsyncMock()
        with _bootstrap_patches(
            load_extensions=MagicMock(return_value=[extension]),
            run_non_interactive=mock_pipeline,
        ):
            assert _run(["--list-extensions"], stdin=_piped("")) == 0

        out = capsys.readouterr().out
        assert "Installed extensions:\n- git-helper\n" in out
        mock_pipeline.assert_not_awaited()


# ---------------------------------------------------------------------------
# hand-off to a child process
# ---------------------------------------------------------------------------


class TestHandOff:
    @pytest.fixture(autouse=True)
    def _outside_child(self, monkeypatch):
        for name in ("SANDBOX", "TERN_SANDBOX", "TERN_NO_RELAUNCH", *API_KEY_ENV_VARS):
            monkeypatch.delenv(name, raising=False)

    def test_plain_relaunch_returns_child_status_without_dispatch(self):
        mock_relaunch = AsyncMock(return_value=7)
        mock_pipeline = AsyncMock()
        with _bootstrap_patches(run_non_interactive=mock_pipeline):
            with patch("tern.bootstrap.relaunch_app_in_child_process", mock_relaunch):
                assert _run(["-p", "hello"], stdin=_piped("")) == 7

        mock_relaunch.assert_awaited_once_with([], ["-p", "hello"])
        mock_pipeline.assert_not_awaited()

    def test_sandbox_auth_failure_exits_before_sandbox(self, capsys):
        settings = Settings(
            security=SecuritySettings(auth=AuthSettings(selected_type="api-key"))
        )
        mock_start = AsyncMock()
        with _bootstrap_patches(load_settings=MagicMock(return_value=settings)):
            with (
                patch(
                    "tern.bootstrap.load_sandbox_config",
                    return_value=SandboxConfig(command="docker", image="img"),
                ),
                patch("tern.bootstrap.start_sandbox", mock_start),
            ):
                assert _run(["-p", "hello"], stdin=_piped("")) == 1

        assert "Error authenticating" in capsys.readouterr().err
        mock_start.assert_not_awaited()

    def test_sandbox_receives_injected_stdin_and_propagates_status(self):
        sandbox = SandboxConfig(command="docker", image="img")
        handle = MagicMock()
        handle.wait = AsyncMock(return_value=3)
        mock_start = AsyncMock(return_value=handle)
        mock_pipeline = AsyncMock()

        with _bootstrap_patches(run_non_interactive=mock_pipeline):
            with (
                patch("tern.bootstrap.load_sandbox_config", return_value=sandbox),
                patch("tern.bootstrap.start_sandbox", mock_start),
            ):
                assert _run(["-p", "hi"], stdin=_piped("ctx")) == 3

        config, memory_flags, partial_config, args = mock_start.await_args.args
        assert config == sandbox
        assert memory_flags == []
        assert partial_config.extensions == []
        assert args == ["-p", "ctx\n\nhi"]
        mock_pipeline.assert_not_awaited()

    def test_invalid_sandbox_setting_exits_one(self, capsys, monkeypatch):
        monkeypatch.setenv("TERN_SANDBOX", "chroot")
        with _bootstrap_patches():
            assert _run(["-p", "hello"], stdin=_piped("")) == 1

        assert "Invalid sandbox command 'chroot'" in capsys.readouterr().err


def test_resolve_input_without_pipe_keeps_question():
    stdin = MagicMock()
    stdin.is_tty.return_value = True

    assert asyncio.run(resolve_non_interactive_input("hello", stdin)) == "hello"


class TestPipedStdinSafety:
    @pytest.fixture(autouse=True)
    def _outside_child(self, monkeypatch):
        for name in ("SANDBOX", "TERN_SANDBOX", "TERN_NO_RELAUNCH", *API_KEY_ENV_VARS):
            monkeypatch.delenv(name, raising=False)

    def test_oauth_login_does_not_consume_piped_prompt(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("TERN_NO_RELAUNCH", "true")
        monkeypatch.setenv("NO_BROWSER", "1")
        monkeypatch.setattr("tern.auth.OAUTH_CREDS_FILE", tmp_path / "oauth_creds.json")
        piped = io.StringIO("line1\nline2\n")
        monkeypatch.setattr("sys.stdin", piped)
        settings = Settings(
            security=SecuritySettings(auth=AuthSettings(selected_type="oauth-personal"))
        )
        mock_pipeline = AsyncMock()

        with _bootstrap_patches(
            load_settings=MagicMock(return_value=settings), run_non_interactive=mock_pipeline
        ):
            assert _run(["-p", "q"], stdin=StdinCapture(piped)) == 1

        assert "requires a terminal" in capsys.readouterr().err
        assert piped.read() == "line1\nline2\n"
        assert not (tmp_path / "oauth_creds.json").exists()
        mock_pipeline.assert_not_awaited()

    def test_undecodable_stdin_before_sandbox_exits_one(self, capsys):
        undecodable = io.TextIOWrapper(io.BytesIO(b"\xff\xfe bad"), encoding="utf-8")
        mock_start = AsyncMock()
        with _bootstrap_patches():
            with (
                patch(
                    "tern.bootstrap.load_sandbox_config",
                    return_value=SandboxConfig(command="docker", image="img"),
                ),
                patch("tern.bootstrap.start_sandbox", mock_start),
            ):
                assert _run(["-p", "hi"], stdin=StdinCapture(undecodable)) == 1

        assert "could not read stdin" in capsys.readouterr().err
        mock_start.assert_not_awaited()

    def test_unknown_seatbelt_profile_exits_one(self, monkeypatch, capsys):
        monkeypatch.setenv("TERN_SANDBOX", "sandbox-exec")
        with _bootstrap_patches():
            with patch("tern.sandbox.config._resolve_executable", return_value="/usr/bin/x"):
                code = _run(["--sandbox-image", "foo", "-p", "hi"], stdin=_piped(""))

        assert code == 1
        assert "Unknown seatbelt profile 'foo'" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# interactive mode
# ---------------------------------------------------------------------------


class _Terminal:
    def isatty(self) -> bool:
        return True

    def fileno(self) -> int:
        return 0


class _RecordingRawTerminal:
    """Stands in for RawTerminal and records when the tty mode changes."""

    def __init__(self, record: list) -> None:
        self.record = record

    def __call__(self, fd: int) -> "_RecordingRawTerminal":
        return self

    def __enter__(self) -> "_RecordingRawTerminal":
        self.record.append("raw-on")
        return self

    def __exit__(self, *exc_info) -> None:
        self.record.append("raw-off")

    @contextlib.contextmanager
    def suspended(self):
        self.record.append("suspend")
        try:
            yield
        finally:
            self.record.append("resume")


def _oauth_settings() -> Settings:
    return Settings(security=SecuritySettings(auth=AuthSettings(selected_type="oauth-personal")))


@contextlib.contextmanager
def _interactive_session(record: list, settings: Settings, ui_result: dict):
    async def detect(cleanup, fd_in, fd_out):
        record.append("keyboard-detected")
        return True

    async def ui(config, settings, warnings, initialization, kitty_enabled, cleanup, events):
        record.append(("ui", kitty_enabled))
        ui_result.update(config=config, initialization=initialization)
        return 0

    fake_sys = SimpleNamespace(stdin=_Terminal(), stdout=SimpleNamespace(fileno=lambda: 1),
                               stderr=sys.stderr)
    with contextlib.ExitStack() as stack:
        stack.enter_context(_bootstrap_patches(load_settings=MagicMock(return_value=settings)))
        stack.enter_context(patch("tern.bootstrap.sys", fake_sys))
        stack.enter_context(patch("tern.bootstrap.is_raw_mode", return_value=False))
        stack.enter_context(patch("tern.bootstrap.RawTerminal", _RecordingRawTerminal(record)))
        stack.enter_context(patch("tern.startup.detect_and_enable_kitty_protocol", detect))
        stack.enter_context(patch("tern.bootstrap.start_interactive_ui", ui))
        yield


@pytest.mark.usefixtures("relaunched_child")
class TestInteractive:
    def test_keyboard_and_prefetch_complete_before_ui(self, monkeypatch):
        monkeypatch.setenv("NO_BROWSER", "1")
        record: list = []
        ui_result: dict = {}

        async def prefetch(settings, config):
            record.append("prefetch")
            config.api_key = "tok"
            return True

        async def refresh(auth_type, config):
            record.append("refresh")
            return SimpleNamespace(access_token="tok")

        with _interactive_session(record, _oauth_settings(), ui_result):
            with (
                patch("tern.bootstrap.prefetch_credentials", prefetch),
                patch("tern.config.get_oauth_client", refresh),
            ):
                assert _run([], stdin=StdinCapture(_Terminal())) == 0

        assert record == [
            "raw-on",
            "keyboard-detected",
            "suspend",
            "prefetch",
            "resume",
            "raw-off",
            "refresh",
            ("ui", True),
        ]

    def test_failed_prefetch_restores_terminal_and_exits_one(self, monkeypatch, capsys):
        monkeypatch.setenv("NO_BROWSER", "1")
        record: list = []

        async def prefetch(settings, config):
            record.append("prefetch")
            raise AuthError("login refused")

        with _interactive_session(record, _oauth_settings(), {}):
            with patch("tern.bootstrap.prefetch_credentials", prefetch):
                assert _run([], stdin=StdinCapture(_Terminal())) == 1

        assert record[-1] == "raw-off"
        assert ("ui", True) not in record
        assert "Error authenticating: login refused" in capsys.readouterr().err

    def test_oauth_with_browser_logs_in_before_repl(self, monkeypatch):
        monkeypatch.delenv("NO_BROWSER", raising=False)
        monkeypatch.setenv("DISPLAY", ":0")
        record: list = []
        ui_result: dict = {}
        login = AsyncMock(return_value=SimpleNamespace(access_token="browser-token"))

        with _interactive_session(record, _oauth_settings(), ui_result):
            with patch("tern.config.get_oauth_client", login):
                assert _run([], stdin=StdinCapture(_Terminal())) == 0

        login.assert_awaited_once()
        assert ui_result["config"].api_key == "browser-token"
        assert ui_result["initialization"].auth_error is None

    def test_interactive_login_failure_is_reported_in_ui(self, monkeypatch):
        monkeypatch.delenv("NO_BROWSER", raising=False)
        monkeypatch.setenv("DISPLAY", ":0")
        ui_result: dict = {}
        login = AsyncMock(side_effect=AuthError("denied"))

        with _interactive_session([], _oauth_settings(), ui_result):
            with patch("tern.config.get_oauth_client", login):
                assert _run([], stdin=StdinCapture(_Terminal())) == 0

        assert ui_result["initialization"].auth_error == "Error authenticating: denied"
        assert ui_result["initialization"].should_open_auth_dialog is True
