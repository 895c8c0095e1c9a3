"""Check whether a newer tern version is available on PyPI."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex
import shutil
import sys
import tempfile
import time
from typing import TextIO
from urllib.error import HTTPError, URLError
from urllib.request import Request

from pydantic import BaseModel, ValidationError

from tern.models.settings import DnsResolutionOrder
from tern.net import DEFAULT_DNS_RESOLUTION_ORDER, build_ordered_opener
from tern.settings import CONFIG_DIR

log = logging.getLogger(__name__)

PYPI_JSON_URL = "https://pypi.org/pypi/tern-cli/json"
NETWORK_TIMEOUT_SECONDS = 1.5
UPDATE_CHECK_CACHE_TTL_SECONDS = 24 * 60 * 60
UPDATE_CHECK_CACHE_FILE = CONFIG_DIR / "update-check.json"


class UpdateCheckError(RuntimeError):
    """Raised when the package index cannot be queried."""


def _fetch_latest_version(order: DnsResolutionOrder = DEFAULT_DNS_RESOLUTION_ORDER) -> str:
    """Return the latest version published on PyPI."""
    request = Request(
        PYPI_JSON_URL,
        headers={"Accept": "application/json", "User-Agent": "tern update-check"},
    )
    try:
        opener = build_ordered_opener(order)
        with opener.open(request, timeout=NETWORK_TIMEOUT_SECONDS) as response:
            payload = json.load(response)
    except (HTTPError, URLError, TimeoutError, OSError, json.JSONDecodeError) as e:
        raise UpdateCheckError(f"could not reach {PYPI_JSON_URL}: {e}") from e

    info = payload.get("info") if isinstance(payload, dict) else None
    latest = info.get("version") if isinstance(info, dict) else None
    if not isinstance(latest, str) or not latest.strip():
        raise UpdateCheckError("package index returned no version")
    return latest.strip()


def _version_tuple(version: str) -> tuple[int, ...]:
    parts: list[int] = []
    for piece in version.split("."):
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


def _infer_installer() -> str | None:
    """Infer how tern was installed from runtime paths."""
    runtime = f"{sys.executable} {sys.prefix}".lower()
    if "pipx" in runtime:
        return "pipx"
    if "uv/tools" in runtime or ".local/share/uv" in runtime:
        return "uv"
    return None


def _update_command() -> list[str]:
    """Return the best update command for the current environment."""
    installer = _infer_installer()
    if installer == "pipx" and shutil.which("pipx"):
        return ["pipx", "upgrade", "tern-cli"]
    if installer == "uv" and shutil.which("uv"):
        return ["uv", "tool", "upgrade", "tern-cli"]
    return [sys.executable, "-m", "pip", "install", "--upgrade", "tern-cli"]


class UpdateCheckState(BaseModel):
    """Contents of the update-check cache file."""

    last_checked_epoch: float


def _load_state() -> UpdateCheckState | None:
    try:
        return UpdateCheckState.model_validate_json(UPDATE_CHECK_CACHE_FILE.read_bytes())
    except (OSError, ValidationError):
        return None


def _save_state(state: UpdateCheckState) -> None:
    """Write the cache atomically; a read-only config dir just means checking again."""
    try:
        os.makedirs(CONFIG_DIR, mode=0o700, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=".update-check.", dir=CONFIG_DIR)
        with os.fdopen(fd, "w") as f:
            f.write(state.model_dump_json())
        os.replace(temp_path, UPDATE_CHECK_CACHE_FILE)
    except OSError as e:
        log.debug("could not record update check: %s", e)


def _is_update_check_due(now_epoch: float) -> bool:
    state = _load_state()
    return state is None or now_epoch - state.last_checked_epoch >= UPDATE_CHECK_CACHE_TTL_SECONDS


async def check_for_updates(
    current_version: str, order: DnsResolutionOrder = DEFAULT_DNS_RESOLUTION_ORDER
) -> str | None:
    """Return an update message if PyPI has a newer release, else None.

    Raises UpdateCheckError when the index cannot be reached.
    """
    now_epoch = time.time()
    if not _is_update_check_due(now_epoch):
        return None
    _save_state(UpdateCheckState(last_checked_epoch=now_epoch))

    latest_version = await asyncio.to_thread(_fetch_latest_version, order)
    if _version_tuple(latest_version) <= _version_tuple(current_version):
        return None
    command_text = shlex.join(_update_command())
    return (
        f"tern update available: {current_version} -> {latest_version}. "
        f"Suggested command: {command_text}"
    )


async def notify_if_update_available(
    current_version: str,
    debug: bool,
    stream: TextIO | None = None,
    order: DnsResolutionOrder = DEFAULT_DNS_RESOLUTION_ORDER,
) -> None:
    """Print an update notice; failures are only reported in debug mode."""
    out = stream if stream is not None else sys.stderr
    try:
        message = await check_for_updates(current_version, order)
    except Exception as e:
        if debug:
            log.error("Update check failed: %s", e)
        return
    if message:
        print(message, file=out)
