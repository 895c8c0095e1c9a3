"""Authentication methods and credential pre-fetch."""

import asyncio
import json
import logging
import os
import secrets
import sys
import time
import webbrowser
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from pydantic import BaseModel, ValidationError

from tern.settings import CONFIG_DIR

if TYPE_CHECKING:
    from tern.config import CliConfig

log = logging.getLogger(__name__)

OAUTH_CREDS_FILE = CONFIG_DIR / "oauth_creds.json"
OAUTH_AUTHORIZE_URL = "https://auth.tern.dev/oauth/authorize"
OAUTH_CLIENT_ID = "tern-cli"
API_KEY_ENV_VARS = ("TERN_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")


class AuthType(str, Enum):
    API_KEY = "api-key"
    LOGIN_WITH_OAUTH = "oauth-personal"


class AuthError(RuntimeError):
    """Raised when the selected authentication method cannot be used."""


class OAuthCredentials(BaseModel):
    access_token: str
    expires_at: float | None = None

    def is_valid(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return True
        return (now if now is not None else time.time()) < self.expires_at


def find_api_key(configured: str | None = None) -> str | None:
    if configured:
        return configured
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def validate_auth_method(auth_type: str, api_key: str | None = None) -> str | None:
    """Return a user-facing error message if auth_type cannot be used, else None."""
    if auth_type == AuthType.LOGIN_WITH_OAUTH.value:
        return None
    if auth_type == AuthType.API_KEY.value:
        if find_api_key(api_key) is None:
            return (
                "No API key found. Set TERN_API_KEY (or the provider key "
                "environment variable for your model) or add model.api_key to "
                "your settings."
            )
        return None
    return f"Invalid auth method selected: {auth_type}"


def load_cached_credentials() -> OAuthCredentials | None:
    try:
        with open(OAUTH_CREDS_FILE, encoding="utf-8") as f:
            return OAuthCredentials.model_validate(json.load(f))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        log.debug("ignoring cached credentials: %s", e)
        return None


def save_credentials(creds: OAuthCredentials) -> None:
    os.makedirs(CONFIG_DIR, mode=0o700, exist_ok=True)
    fd = os.open(OAUTH_CREDS_FILE, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(creds.model_dump(), f)


def build_login_url(state: str) -> str:
    query = urlencode(
        {"client_id": OAUTH_CLIENT_ID, "response_type": "code", "state": state}
    )
    return f"{OAUTH_AUTHORIZE_URL}?{query}"


def _stdin_is_terminal() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _prompt_for_code(url: str) -> str:
    print(
        "\nOpen this URL in a browser to log in, then paste the code shown:\n\n"
        f"  {url}\n",
        file=sys.stderr,
    )
    print("Authorization code: ", end="", file=sys.stderr, flush=True)
    return sys.stdin.readline().strip()


async def get_oauth_client(auth_type: str, config: "CliConfig") -> OAuthCredentials:
    """Return usable OAuth credentials, asking the user to log in if needed."""
    cached = load_cached_credentials()
    if cached is not None and cached.is_valid():
        log.debug("using cached oauth credentials")
        return cached

    if not _stdin_is_terminal():
        # Piped stdin belongs to the prompt; never read a login code from it.
        raise AuthError(
            "Logging in requires a terminal. Run tern interactively once to log "
            "in, or use an API key for piped input."
        )

    url = build_login_url(secrets.token_urlsafe(16))
    if not config.browser_launch_suppressed:
        webbrowser.open(url)
    code = await asyncio.to_thread(_prompt_for_code, url)
    if not code:
        raise AuthError("Login was cancelled: no authorization code entered.")
    creds = OAuthCredentials(access_token=code)
    save_credentials(creds)
    return creds


async def validate_non_interactive_auth(
    selected_type: str | None, use_external: bool, config: "CliConfig"
) -> "CliConfig":
    """Make sure a one-shot run has working credentials; returns the config to use."""
    effective = selected_type
    if effective is None:
        if find_api_key(config.api_key) is None:
            raise AuthError(
                "Please set an Auth method in your settings.json or specify "
                "TERN_API_KEY before running in non-interactive mode."
            )
        effective = AuthType.API_KEY.value

    if not use_external:
        err = validate_auth_method(effective, config.api_key)
        if err is not None:
            raise AuthError(err)

    await config.refresh_auth(effective)
    return config
