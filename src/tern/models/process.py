"""Child process handle and exit outcomes."""

import asyncio
import contextlib
import logging
import os
import shutil
import signal
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

# Ctrl-C reaches the child through the terminal's process group; the parent
# only has to outlive it. Termination requests are passed on.
ABSORBED_SIGNALS = (signal.SIGINT,)
FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


@dataclass(frozen=True)
class Relaunch:
    """The child asked its parent to spawn it again."""


@dataclass(frozen=True)
class Exit:
    """The child finished; `code` becomes the parent's exit status."""

    code: int


@contextlib.contextmanager
def _parent_signals(process: asyncio.subprocess.Process):
    """While the child runs, keep interrupts from tearing down the parent."""
    loop = asyncio.get_running_loop()
    installed: list[tuple[signal.Signals, object]] = []

    def _forward(sig: signal.Signals) -> None:
        if process.returncode is None:
            log.debug("forwarding %s to child %d", sig.name, process.pid)
            with contextlib.suppress(ProcessLookupError):
                process.send_signal(sig)

    for sig in (*ABSORBED_SIGNALS, *FORWARDED_SIGNALS):
        previous = signal.getsignal(sig)
        callback = _forward if sig in FORWARDED_SIGNALS else lambda _sig: None
        try:
            loop.add_signal_handler(sig, callback, sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not the main thread, or no signal support on this platform.
            continue
        installed.append((sig, previous))
    try:
        yield
    finally:
        for sig, previous in installed:
            loop.remove_signal_handler(sig)
            if previous is not None:
                signal.signal(sig, previous)


@dataclass
class ProcessHandle:
    """A spawned child process and the argv/env it was started with."""

    process: asyncio.subprocess.Process
    argv: list[str]
    env: dict[str, str] = field(repr=False)
    cleanup_paths: list[str] = field(default_factory=list)
    exit_code: int | None = None

    async def wait(self) -> int:
        """Wait for the child to exit, even if this task is cancelled meanwhile."""
        try:
            with _parent_signals(self.process):
                waiter = asyncio.ensure_future(self.process.wait())
                try:
                    code = await asyncio.shield(waiter)
                except asyncio.CancelledError:
                    await waiter
                    raise
        finally:
            # The child may still be reading these until it has exited.
            if self.process.returncode is not None:
                self._remove_cleanup_paths()
        # Negative return codes mean the child died from a signal.
        self.exit_code = 128 - code if code < 0 else code
        return self.exit_code

    def _remove_cleanup_paths(self) -> None:
        for cleanup_path in self.cleanup_paths:
            try:
                if os.path.isdir(cleanup_path):
                    shutil.rmtree(cleanup_path)
                else:
                    os.unlink(cleanup_path)
            except OSError:
                pass
