"""Model package for tern."""

from tern.models.extension import Extension, ExtensionConfig
from tern.models.process import Exit, ProcessHandle, Relaunch
from tern.models.relaunch_decision import ExecutionMode, RelaunchDecision
from tern.models.sandbox_config import SandboxConfig
from tern.models.settings import (
    AdvancedSettings,
    AuthSettings,
    GeneralSettings,
    ModelSettings,
    SecuritySettings,
    Settings,
    ToolsSettings,
    UiSettings,
)

__all__ = [
    "AdvancedSettings",
    "AuthSettings",
    "ExecutionMode",
    "Exit",
    "Extension",
    "ExtensionConfig",
    "GeneralSettings",
    "ModelSettings",
    "ProcessHandle",
    "Relaunch",
    "RelaunchDecision",
    "SandboxConfig",
    "SecuritySettings",
    "Settings",
    "ToolsSettings",
    "UiSettings",
]
