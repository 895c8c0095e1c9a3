"""Extension manifest models."""

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel


class ExtensionConfig(BaseModel):
    """Contents of a `tern-extension.json` manifest."""

    name: str
    version: str = "0.0.0"
    context_file_name: str | None = None


@dataclass
class Extension:
    """An installed extension and where it was loaded from."""

    path: Path
    config: ExtensionConfig
