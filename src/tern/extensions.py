"""Discover and filter installed extensions."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from tern.models import Extension, ExtensionConfig
from tern.settings import CONFIG_DIR

log = logging.getLogger(__name__)

EXTENSIONS_DIR = CONFIG_DIR / "extensions"
EXTENSION_MANIFEST = "tern-extension.json"


def _load_extension(ext_dir: Path) -> Extension | None:
    manifest = ext_dir / EXTENSION_MANIFEST
    try:
        with open(manifest, encoding="utf-8") as f:
            config = ExtensionConfig.model_validate(json.load(f))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        log.warning("Warning: skipping extension in %s: %s", ext_dir, e)
        return None
    return Extension(path=ext_dir, config=config)


def discover_extensions(extensions_dir: Path | None = None) -> list[Extension]:
    """Return every installed extension, sorted by directory name."""
    root = extensions_dir if extensions_dir is not None else EXTENSIONS_DIR
    if not root.is_dir():
        return []
    found: list[Extension] = []
    seen: set[str] = set()
    for ext_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        extension = _load_extension(ext_dir)
        if extension is None:
            continue
        key = extension.config.name.lower()
        if key in seen:
            continue
        seen.add(key)
        found.append(extension)
    return found


def filter_enabled(extensions: list[Extension], enabled: list[str] | None) -> list[Extension]:
    """Keep only the extensions named on the command line, if any were named."""
    if not enabled:
        return extensions
    names = {name.strip().lower() for value in enabled for name in value.split(",") if name.strip()}
    if names == {"none"}:
        return []
    selected = [ext for ext in extensions if ext.config.name.lower() in names]
    missing = names - {ext.config.name.lower() for ext in selected}
    for name in sorted(missing):
        log.warning("Extension not found: %s", name)
    return selected


def load_extensions(enabled: list[str] | None, extensions_dir: Path | None = None) -> list[Extension]:
    return filter_enabled(discover_extensions(extensions_dir), enabled)
