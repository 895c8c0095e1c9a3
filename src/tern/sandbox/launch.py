"""Start the rest of the session inside a sandbox."""

import logging
import os
import sys
import tempfile

from tern.config import CliConfig
from tern.models import ProcessHandle, SandboxConfig
from tern.relaunch import spawn_child
from tern.sandbox.profiles import write_seatbelt_profile
from tern.settings import CONFIG_DIR

log = logging.getLogger(__name__)

# Environment passed through to the container.
PASSTHROUGH_ENV = (
    "TERN_API_KEY",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "NO_BROWSER",
    "DEBUG",
    "TERM",
    "COLORTERM",
)


def _container_argv(
    config: SandboxConfig, memory_flags: list[str], cli_config: CliConfig, args: list[str]
) -> list[str]:
    workdir = os.getcwd()
    argv = [config.command, "run", "-i", "--rm", "--init"]
    if sys.stdin.isatty():
        argv.append("-t")
    argv.extend(["--workdir", workdir, "--volume", f"{workdir}:{workdir}"])
    if CONFIG_DIR.is_dir():
        argv.extend(["--volume", f"{CONFIG_DIR}:/root/.tern"])
    env = {"SANDBOX": config.image, "TERN_SESSION_ID": cli_config.session_id}
    for key in PASSTHROUGH_ENV:
        value = os.environ.get(key)
        if value is not None:
            env[key] = value
    for key, value in env.items():
        argv.extend(["--env", f"{key}={value}"])
    argv.extend([config.image, "tern", *memory_flags, *args])
    return argv


def _seatbelt_argv(
    profile_path: str, memory_flags: list[str], args: list[str]
) -> list[str]:
    return [
        "sandbox-exec",
        "-D",
        f"TARGET_DIR={os.path.realpath(os.getcwd())}",
        "-D",
        f"TMP_DIR={os.path.realpath(tempfile.gettempdir())}",
        "-f",
        profile_path,
        sys.executable,
        "-m",
        "tern",
        *memory_flags,
        *args,
    ]


async def start_sandbox(
    config: SandboxConfig,
    memory_flags: list[str],
    cli_config: CliConfig,
    args: list[str],
) -> ProcessHandle:
    """Spawn a sandboxed copy of tern running `args` and return its handle."""
    cleanup_paths: list[str] = []
    if config.command == "sandbox-exec":
        profile_path = write_seatbelt_profile(config.image)
        cleanup_paths.append(profile_path)
        argv = _seatbelt_argv(profile_path, memory_flags, args)
        env = {**os.environ, "SANDBOX": "sandbox-exec"}
    else:
        argv = _container_argv(config, memory_flags, cli_config, args)
        env = dict(os.environ)

    print(f"Entering {config.command} sandbox ({config.image})...", file=sys.stderr)
    handle = await spawn_child(argv, env)
    handle.cleanup_paths = cleanup_paths
    return handle
