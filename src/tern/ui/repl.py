"""Line-oriented chat loop for interactive mode."""

import asyncio
import logging
import os
import sys
from typing import TextIO

from tern.config import CliConfig
from tern.events import AppEvent, AppEvents
from tern.llm import query_llm
from tern.prompt import LLMMessage, build_messages, get_system_info
from tern.relaunch import request_relaunch
from tern.wait_indicator import WaitIndicator

log = logging.getLogger(__name__)

PROMPT = "> "
EXIT_COMMANDS = {"/quit", "/exit"}
HELP_TEXT = (
    "Commands:\n"
    "  /help     show this help\n"
    "  /clear    forget the conversation so far\n"
    "  /restart  start a fresh tern process (picks up changed settings)\n"
    "  /quit     leave tern (Ctrl-D also works)\n"
)


class Repl:
    """Read prompts from the terminal, send them to the model, print answers."""

    def __init__(
        self,
        config: CliConfig,
        events: AppEvents,
        stdin_fd: int | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._config = config
        self._stdin_fd = stdin_fd if stdin_fd is not None else sys.stdin.fileno()
        self._out = stream if stream is not None else sys.stdout
        self._history: list[LLMMessage] = []
        self._lines: list[str] = []
        self._partial = ""
        self._eof = False
        events.on(AppEvent.OPEN_DEBUG_CONSOLE, self._on_open_debug_console)

    @property
    def history(self) -> list[LLMMessage]:
        return self._history

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def _on_open_debug_console(self) -> None:
        self._write("\n[tern] A background error occurred. Run with --debug for details.\n")

    def _consume(self, data: bytes) -> None:
        if not data:
            self._eof = True
            if self._partial:
                self._lines.append(self._partial)
                self._partial = ""
            return
        text = self._partial + data.decode(errors="replace")
        *complete, self._partial = text.split("\n")
        self._lines.extend(complete)

    async def read_line(self) -> str | None:
        """Return the next input line, or None at end of input."""
        loop = asyncio.get_running_loop()
        while not self._lines and not self._eof:
            ready: asyncio.Future[bytes] = loop.create_future()

            def _on_readable() -> None:
                if ready.done():
                    return
                try:
                    ready.set_result(os.read(self._stdin_fd, 4096))
                except OSError:
                    ready.set_result(b"")

            loop.add_reader(self._stdin_fd, _on_readable)
            try:
                self._consume(await ready)
            finally:
                loop.remove_reader(self._stdin_fd)
        if self._lines:
            return self._lines.pop(0)
        return None

    async def ask(self, text: str) -> str:
        messages = build_messages(text, get_system_info(), self._config.extensions, self._history)
        with WaitIndicator():
            answer = await asyncio.to_thread(query_llm, messages, self._config)
        self._history.append({"role": "user", "content": text})
        self._history.append({"role": "assistant", "content": answer})
        return answer

    async def handle(self, line: str) -> bool:
        """Process one line of input; return False when the loop should stop."""
        text = line.strip()
        if not text:
            return True
        if text in EXIT_COMMANDS:
            return False
        if text == "/help":
            self._write(HELP_TEXT)
            return True
        if text == "/restart":
            self._write("Restarting tern...\n")
            request_relaunch()
        if text == "/clear":
            self._history.clear()
            self._write("Conversation cleared.\n")
            return True
        try:
            answer = await self.ask(text)
        except Exception as e:
            self._write(f"Error: {e}\n")
            return True
        self._write(f"{answer}\n\n")
        return True

    async def run(self, initial_prompt: str = "") -> int:
        if initial_prompt and not await self.handle(initial_prompt):
            return 0
        while True:
            self._write(PROMPT)
            line = await self.read_line()
            if line is None:
                self._write("\n")
                return 0
            if not await self.handle(line):
                return 0
