"""Pre-UI initialization."""

import logging
from dataclasses import dataclass

from tern.auth import validate_auth_method
from tern.config import CliConfig
from tern.models import Settings

log = logging.getLogger(__name__)


@dataclass
class InitializationResult:
    auth_error: str | None
    should_open_auth_dialog: bool


def initialize_app(config: CliConfig, settings: Settings) -> InitializationResult:
    """Check the configured auth method before anything is rendered."""
    selected = settings.security.auth.selected_type
    if selected is None:
        return InitializationResult(auth_error=None, should_open_auth_dialog=True)
    auth_error = validate_auth_method(selected, config.api_key)
    if auth_error:
        log.debug("auth check failed: %s", auth_error)
    return InitializationResult(
        auth_error=auth_error, should_open_auth_dialog=auth_error is not None
    )
