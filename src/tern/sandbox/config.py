"""Resolve which sandbox command and image to use, if any."""

import logging
import os
import shutil
import sys

from tern.models import SandboxConfig, Settings
from tern.sandbox.profiles import SEATBELT_PROFILES

log = logging.getLogger(__name__)

SANDBOX_COMMANDS = ("docker", "podman", "sandbox-exec")
DEFAULT_SANDBOX_IMAGE = "ghcr.io/tern-cli/tern-sandbox:latest"
DEFAULT_SEATBELT_PROFILE = "permissive-open"
TRUE_VALUES = {"1", "true"}
FALSE_VALUES = {"0", "false"}


class SandboxError(RuntimeError):
    """Raised when a requested sandbox cannot be used."""


def _resolve_executable(candidate: str) -> str | None:
    """Resolve an executable name or path to a runnable command path."""
    has_sep = os.path.sep in candidate or (
        os.path.altsep is not None and os.path.altsep in candidate
    )
    if has_sep:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        return None
    return shutil.which(candidate)


def _normalize(option: bool | str | None) -> bool | str | None:
    if isinstance(option, str):
        lowered = option.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES or not lowered:
            return False
        return lowered
    return option


def _autodetect_command() -> str | None:
    """Return the preferred available sandbox command for this platform."""
    candidates = ["sandbox-exec"] if sys.platform == "darwin" else []
    candidates.extend(["docker", "podman"])
    for candidate in candidates:
        if _resolve_executable(candidate):
            return candidate
    return None


def get_sandbox_command(option: bool | str | None) -> str | None:
    """Pick the sandbox command for an option value (env > flag > settings)."""
    if os.environ.get("SANDBOX"):
        # Already inside a sandbox; never nest.
        return None

    env_override = os.environ.get("TERN_SANDBOX", "").strip()
    value = _normalize(env_override) if env_override else _normalize(option)

    if not value:
        return None
    if value is True:
        command = _autodetect_command()
        if command is None:
            raise SandboxError(
                "Sandboxing was requested but no sandbox command was found. "
                "Install docker or podman, or disable sandboxing."
            )
        return command
    if value not in SANDBOX_COMMANDS:
        raise SandboxError(
            f"Invalid sandbox command '{value}'. "
            f"Must be one of {', '.join(SANDBOX_COMMANDS)}."
        )
    if not _resolve_executable(value):
        raise SandboxError(
            f"Missing sandbox command '{value}' (from TERN_SANDBOX or settings)."
        )
    return value


def load_sandbox_config(
    settings: Settings, sandbox: bool | str | None = None, image: str | None = None
) -> SandboxConfig | None:
    """Build the sandbox configuration from CLI flags, environment, and settings."""
    option = sandbox if sandbox is not None else settings.tools.sandbox
    command = get_sandbox_command(option)
    if command is None:
        return None

    if image is None:
        image = os.environ.get("TERN_SANDBOX_IMAGE")
    if image is None:
        image = DEFAULT_SEATBELT_PROFILE if command == "sandbox-exec" else DEFAULT_SANDBOX_IMAGE
    if command == "sandbox-exec" and image not in SEATBELT_PROFILES:
        raise SandboxError(
            f"Unknown seatbelt profile '{image}'. "
            f"Must be one of {', '.join(sorted(SEATBELT_PROFILES))}."
        )
    log.debug("sandbox command=%s image=%s", command, image)
    return SandboxConfig(command=command, image=image)
