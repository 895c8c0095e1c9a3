"""Exit-code relaunch protocol and the startup relaunch decision.

A child that exits with RELAUNCH_EXIT_CODE asks its parent to spawn it again
with the same arguments; any other code is adopted as the parent's status.
"""

import asyncio
import logging
import os
import sys
from collections.abc import Awaitable, Callable, Mapping

from tern.memory import NO_RELAUNCH_ENV
from tern.models import Exit, ProcessHandle, Relaunch, RelaunchDecision, SandboxConfig

log = logging.getLogger(__name__)

RELAUNCH_EXIT_CODE = 42
MAX_RELAUNCHES = 16
SANDBOX_ENV = "SANDBOX"

Launcher = Callable[[], Awaitable[ProcessHandle]]


def classify_exit_code(code: int) -> Relaunch | Exit:
    """Convert a raw child status into a protocol outcome."""
    if code == RELAUNCH_EXIT_CODE:
        return Relaunch()
    return Exit(code)


def decide_relaunch(
    env: Mapping[str, str], sandbox_config: SandboxConfig | None
) -> RelaunchDecision:
    """Decide once, at startup, whether this process hands off to a child."""
    if env.get(SANDBOX_ENV):
        return RelaunchDecision.PROCEED
    if sandbox_config is not None:
        return RelaunchDecision.SANDBOX_RELAUNCH
    if env.get(NO_RELAUNCH_ENV):
        return RelaunchDecision.PROCEED
    return RelaunchDecision.MEMORY_RELAUNCH


async def relaunch_on_exit_code(
    launcher: Launcher, max_relaunches: int = MAX_RELAUNCHES
) -> int:
    """Spawn via launcher until a child exits with something other than the sentinel."""
    spawns = 0
    while True:
        try:
            handle = await launcher()
            spawns += 1
            outcome = classify_exit_code(await handle.wait())
        except OSError as e:
            print(f"Fatal error: Failed to relaunch the CLI process. {e}", file=sys.stderr)
            return 1

        if isinstance(outcome, Exit):
            log.debug("child exited with %d after %d spawn(s)", outcome.code, spawns)
            return outcome.code
        if spawns > max_relaunches:
            log.error("child requested relaunch %d times in a row, giving up", spawns)
            return 1
        log.debug("child requested relaunch (spawn %d)", spawns)


def request_relaunch() -> None:
    """Ask the parent process to start this one again."""
    raise SystemExit(RELAUNCH_EXIT_CODE)


def build_child_argv(memory_flags: list[str], script_args: list[str]) -> list[str]:
    return [sys.executable, "-m", "tern", *memory_flags, *script_args]


async def spawn_child(argv: list[str], env: dict[str, str]) -> ProcessHandle:
    """Start a child that inherits this process's stdio."""
    log.debug("spawning %s", argv)
    process = await asyncio.create_subprocess_exec(argv[0], *argv[1:], env=env)
    return ProcessHandle(process=process, argv=argv, env=env)


async def relaunch_app_in_child_process(
    memory_flags: list[str], script_args: list[str] | None = None
) -> int | None:
    """Run this program again as a child so it can later restart itself.

    Returns the child's exit status, or None when this process is already the
    relaunched child.
    """
    if os.environ.get(NO_RELAUNCH_ENV):
        return None

    args = list(sys.argv[1:] if script_args is None else script_args)

    async def _launch() -> ProcessHandle:
        env = {**os.environ, NO_RELAUNCH_ENV: "true"}
        return await spawn_child(build_child_argv(memory_flags, args), env)

    return await relaunch_on_exit_code(_launch)
