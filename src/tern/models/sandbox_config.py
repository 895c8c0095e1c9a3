"""Sandbox launch model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SandboxConfig:
    """How to isolate the rest of the session in a child process."""

    command: str
    image: str
