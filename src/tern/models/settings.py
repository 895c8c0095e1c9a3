"""Settings model for tern."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

DEFAULT_MODEL = "gemini/gemini-3-flash-preview"


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class AuthSettings(_Section):
    selected_type: str | None = None
    use_external: bool = False


class SecuritySettings(_Section):
    auth: AuthSettings = AuthSettings()


class ToolsSettings(_Section):
    sandbox: bool | str | None = None


class AdvancedSettings(_Section):
    auto_configure_memory: bool = False
    dns_resolution_order: str | None = None


class GeneralSettings(_Section):
    debug: bool = False
    disable_update_check: bool = False


class UiSettings(_Section):
    hide_window_title: bool = False


class ModelSettings(_Section):
    name: str = DEFAULT_MODEL
    api_key: str | None = None


class Settings(_Section):
    """Merged user and workspace settings; read-only once loaded."""

    security: SecuritySettings = SecuritySettings()
    tools: ToolsSettings = ToolsSettings()
    advanced: AdvancedSettings = AdvancedSettings()
    general: GeneralSettings = GeneralSettings()
    ui: UiSettings = UiSettings()
    model: ModelSettings = ModelSettings()


DnsResolutionOrder = Literal["ipv4first", "verbatim"]
