"""Settings loading for tern."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tern.models import Settings

log = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("TERN_CONFIG_DIR", Path.home() / ".tern"))
SETTINGS_FILE = CONFIG_DIR / "settings.json"
WORKSPACE_SETTINGS_DIRNAME = ".tern"


def _read_settings_file(path: Path) -> dict[str, Any]:
    """Return the JSON object stored at path, or an empty dict."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        log.warning("ignoring unreadable settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        log.warning("ignoring settings file %s: top level must be an object", path)
        return {}
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge override into base; nested objects merge, everything else replaces."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_settings(current, value)
        else:
            merged[key] = value
    return merged


def workspace_settings_file(workspace: Path | None = None) -> Path:
    root = workspace if workspace is not None else Path.cwd()
    return root / WORKSPACE_SETTINGS_DIRNAME / "settings.json"


def load_settings(
    user_file: Path | None = None, workspace_file: Path | None = None
) -> Settings:
    """Load user settings, overlay workspace settings, and validate the result."""
    user_path = user_file if user_file is not None else SETTINGS_FILE
    workspace_path = workspace_file if workspace_file is not None else workspace_settings_file()

    raw = _read_settings_file(user_path)
    if workspace_path.resolve() != user_path.resolve():
        raw = merge_settings(raw, _read_settings_file(workspace_path))
    log.debug("merged settings keys: %s", sorted(raw))

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        log.warning("invalid settings, using defaults: %s", e)
        return Settings()
