"""One-shot request/response pipeline."""

import asyncio
import logging
import sys
from typing import TextIO

from tern.config import CliConfig
from tern.llm import query_llm
from tern.prompt import build_messages, get_system_info
from tern.wait_indicator import WaitIndicator

log = logging.getLogger("tern")


async def run_non_interactive(
    config: CliConfig,
    user_input: str,
    prompt_id: str,
    stream: TextIO | None = None,
) -> str:
    """Send one prompt to the model, print the answer, and return it."""
    out = stream if stream is not None else sys.stdout
    log.debug("prompt_id=%s model=%s prompt_length=%d", prompt_id, config.model, len(user_input))
    messages = build_messages(user_input, get_system_info(), config.extensions)
    with WaitIndicator():
        answer = await asyncio.to_thread(query_llm, messages, config)
    out.write(answer)
    if not answer.endswith("\n"):
        out.write("\n")
    out.flush()
    return answer
