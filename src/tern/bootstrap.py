"""Startup orchestration: relaunch or sandbox hand-off, then mode dispatch.

Nothing with side effects beyond reading settings happens until the relaunch
decision has been made; a process that hands off to a child only waits for it
and returns the child's status.
"""

import argparse
import asyncio
import logging
import os
import secrets
import sys
import uuid
from contextlib import ExitStack, nullcontext

from tern.auth import AuthError, validate_auth_method, validate_non_interactive_auth
from tern.cleanup import CleanupRegistry
from tern.cli.args import parse_arguments
from tern.config import CliConfig, is_debug_mode, load_cli_config
from tern.events import AppEvents, log_error_events, setup_unhandled_exception_handler
from tern.extensions import load_extensions
from tern.initializer import InitializationResult, initialize_app
from tern.memory import apply_heap_limit, runtime_memory_flags
from tern.models import RelaunchDecision, SandboxConfig, Settings
from tern.pipeline import run_non_interactive
from tern.relaunch import (
    SANDBOX_ENV,
    decide_relaunch,
    relaunch_app_in_child_process,
    relaunch_on_exit_code,
)
from tern.sandbox import load_sandbox_config, start_sandbox
from tern.sandbox.config import SandboxError
from tern.settings import load_settings
from tern.startup import StartupTasks, needs_credential_prefetch, prefetch_credentials
from tern.startup_warnings import get_startup_warnings
from tern.stdin import StdinCapture, inject_stdin_into_args
from tern.terminal import RawTerminal, is_raw_mode
from tern.ui import start_interactive_ui

log = logging.getLogger("tern")

INTERACTIVE_WITH_PIPE_ERROR = (
    "Error: The --prompt-interactive flag cannot be used when input is piped from stdin."
)
NO_INPUT_ERROR = (
    "No input provided via stdin. Input can be provided by piping data into tern "
    "or using the --prompt option."
)


class FatalConfigError(Exception):
    """A startup error that ends the process with status 1."""


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )


async def main(
    argv: list[str],
    *,
    stdin: StdinCapture | None = None,
    cleanup: CleanupRegistry | None = None,
    events: AppEvents | None = None,
) -> int:
    """Run tern with argv (without the program name) and return the exit status."""
    args = parse_arguments(argv)
    stdin = stdin if stdin is not None else StdinCapture()
    if args.prompt_interactive and not stdin.is_tty():
        print(INTERACTIVE_WITH_PIPE_ERROR, file=sys.stderr)
        return 1

    cleanup = cleanup if cleanup is not None else CleanupRegistry()
    events = events if events is not None else AppEvents()
    setup_unhandled_exception_handler(asyncio.get_running_loop(), events)
    log_error_events(events)

    try:
        return await _bootstrap(args, argv, stdin, cleanup, events)
    except FatalConfigError as e:
        print(e, file=sys.stderr)
        return 1
    finally:
        await cleanup.run()


async def _bootstrap(
    args: argparse.Namespace,
    argv: list[str],
    stdin: StdinCapture,
    cleanup: CleanupRegistry,
    events: AppEvents,
) -> int:
    if args.max_heap_size:
        apply_heap_limit(args.max_heap_size)

    settings = load_settings()
    debug = is_debug_mode(args, settings)
    configure_logging(debug)
    session_id = str(uuid.uuid4())

    if not os.environ.get(SANDBOX_ENV):
        code = await _hand_off(args, argv, settings, session_id, stdin, debug)
        if code is not None:
            return code

    # Past this point no child process runs tern for us; expensive and
    # side-effecting initialization is safe.
    return await _proceed(args, settings, session_id, stdin, cleanup, events)


async def _hand_off(
    args: argparse.Namespace,
    argv: list[str],
    settings: Settings,
    session_id: str,
    stdin: StdinCapture,
    debug: bool,
) -> int | None:
    """Relaunch into a child when needed; return its status, or None to proceed."""
    memory_flags = runtime_memory_flags(debug) if settings.advanced.auto_configure_memory else []
    try:
        sandbox_config = load_sandbox_config(settings, args.sandbox, args.sandbox_image)
    except SandboxError as e:
        raise FatalConfigError(f"Error: {e}") from e

    decision = decide_relaunch(os.environ, sandbox_config)
    log.debug("relaunch decision: %s", decision.value)
    if decision is RelaunchDecision.SANDBOX_RELAUNCH and sandbox_config is not None:
        return await _enter_sandbox(
            sandbox_config, memory_flags, args, argv, settings, session_id, stdin
        )
    if decision is RelaunchDecision.MEMORY_RELAUNCH:
        return await relaunch_app_in_child_process(memory_flags, argv)
    return None


async def _enter_sandbox(
    sandbox_config: SandboxConfig,
    memory_flags: list[str],
    args: argparse.Namespace,
    argv: list[str],
    settings: Settings,
    session_id: str,
    stdin: StdinCapture,
) -> int:
    # Extensions are left out on purpose: they must not affect auth or sandbox setup.
    partial_config = load_cli_config(settings, [], session_id, args, stdin.is_tty())

    auth = settings.security.auth
    if auth.selected_type and not auth.use_external:
        # Browser-based login cannot complete from inside the sandbox.
        try:
            err = validate_auth_method(auth.selected_type, partial_config.api_key)
            if err:
                raise AuthError(err)
            await partial_config.refresh_auth(auth.selected_type)
        except (AuthError, OSError) as e:
            raise FatalConfigError(f"Error authenticating: {e}") from e

    try:
        stdin_data = "" if stdin.is_tty() else await stdin.read()
    except Exception as e:
        raise FatalConfigError(f"Error: could not read stdin: {e}") from e
    sandbox_args = inject_stdin_into_args(argv, stdin_data)

    return await relaunch_on_exit_code(
        lambda: start_sandbox(sandbox_config, memory_flags, partial_config, sandbox_args)
    )


async def _proceed(
    args: argparse.Namespace,
    settings: Settings,
    session_id: str,
    stdin: StdinCapture,
    cleanup: CleanupRegistry,
    events: AppEvents,
) -> int:
    extensions = load_extensions(args.extensions)
    config = load_cli_config(settings, extensions, session_id, args, stdin.is_tty())

    if config.list_extensions:
        print("Installed extensions:")
        for extension in extensions:
            print(f"- {extension.config.name}")
        return 0

    startup = StartupTasks(cleanup)
    with ExitStack() as terminal_scope:
        raw: RawTerminal | None = None
        if config.is_interactive and stdin.is_tty():
            stdin_fd = sys.stdin.fileno()
            if not is_raw_mode(stdin_fd):
                # Raw as early as possible so terminal query replies never echo.
                raw = terminal_scope.enter_context(RawTerminal(stdin_fd))
                startup.begin_keyboard_detection(stdin_fd, sys.stdout.fileno())

        initialization = initialize_app(config, settings)

        if needs_credential_prefetch(settings, config):
            await startup.keyboard_ready()
            try:
                with raw.suspended() if raw is not None else nullcontext():
                    await prefetch_credentials(settings, config)
            except (AuthError, OSError) as e:
                raise FatalConfigError(f"Error authenticating: {e}") from e

        if config.is_interactive:
            kitty_enabled = await startup.keyboard_ready()
            terminal_scope.close()
            initialization = await _resolve_interactive_auth(config, settings, initialization)
            return await start_interactive_ui(
                config,
                settings,
                get_startup_warnings(),
                initialization,
                kitty_enabled,
                cleanup,
                events,
            )

    return await _run_non_interactive(config, settings, session_id, stdin, cleanup)


async def _resolve_interactive_auth(
    config: CliConfig, settings: Settings, initialization: InitializationResult
) -> InitializationResult:
    """Load credentials for the selected auth method before the REPL makes calls."""
    auth = settings.security.auth
    if auth.selected_type is None or auth.use_external or initialization.auth_error:
        return initialization
    try:
        await config.refresh_auth(auth.selected_type)
    except (AuthError, OSError) as e:
        # Shown in the banner; the session still starts.
        return InitializationResult(
            auth_error=f"Error authenticating: {e}", should_open_auth_dialog=True
        )
    return initialization


async def resolve_non_interactive_input(question: str, stdin: StdinCapture) -> str:
    """Prepend piped stdin, if any, to the command-line question."""
    if stdin.is_tty():
        return question
    stdin_data = await stdin.read()
    if stdin_data:
        return f"{stdin_data}\n\n{question}"
    return question


async def _run_non_interactive(
    config: CliConfig,
    settings: Settings,
    session_id: str,
    stdin: StdinCapture,
    cleanup: CleanupRegistry,
) -> int:
    await config.initialize()

    try:
        user_input = await resolve_non_interactive_input(config.question, stdin)
    except Exception as e:
        raise FatalConfigError(f"Error: could not read stdin: {e}") from e
    if not user_input:
        raise FatalConfigError(NO_INPUT_ERROR)

    prompt_id = secrets.token_hex(6)
    log.debug(
        "user_prompt prompt_id=%s prompt_length=%d auth_type=%s",
        prompt_id,
        len(user_input),
        settings.security.auth.selected_type,
    )

    auth = settings.security.auth
    try:
        config = await validate_non_interactive_auth(auth.selected_type, auth.use_external, config)
    except Exception as e:
        raise FatalConfigError(f"Error: {e}") from e

    if config.debug_mode:
        print(f"Session ID: {session_id}", file=sys.stderr)

    try:
        await run_non_interactive(config, user_input, prompt_id)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    await cleanup.run()
    return 0
