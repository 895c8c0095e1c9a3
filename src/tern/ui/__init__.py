"""Interactive terminal UI."""

from tern.ui.app import start_interactive_ui

__all__ = ["start_interactive_ui"]
