"""Warnings shown once when the interactive UI starts."""

import os
from pathlib import Path


def get_startup_warnings(workspace_root: Path | None = None) -> list[str]:
    """Return warnings about the directory tern was started from."""
    root = (workspace_root if workspace_root is not None else Path.cwd()).resolve()
    warnings: list[str] = []
    if root == Path.home().resolve():
        warnings.append(
            "You are running tern in your home directory. It is recommended to "
            "run in a project-specific directory."
        )
    if root == Path(os.path.abspath(os.sep)):
        warnings.append(
            "Warning: You are running tern in the root directory. Your entire "
            "folder structure will be used for context."
        )
    return warnings
