"""LLM interaction for tern."""

import json
import logging

import litellm

from tern.config import CliConfig
from tern.prompt import LLMMessage

log = logging.getLogger(__name__)

# Suppress litellm's noisy logging
litellm.suppress_debug_info = True

MAX_TOKENS = 4096


def query_llm(messages: list[LLMMessage], config: CliConfig) -> str:
    """Send messages to the configured model and return the reply text."""
    log.debug("model=%s", config.model)
    log.debug("messages=%s", json.dumps(messages, indent=2))
    kwargs: dict[str, object] = {}
    if config.api_key:
        kwargs["api_key"] = config.api_key
    response = litellm.completion(
        model=config.model,
        messages=messages,
        max_tokens=MAX_TOKENS,
        **kwargs,
    )
    content = response.choices[0].message.content or ""
    log.debug("raw response: %d chars", len(content))
    return content.strip()
