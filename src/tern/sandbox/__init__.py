"""Sandbox selection and hand-off."""

from tern.sandbox.config import load_sandbox_config
from tern.sandbox.launch import start_sandbox

__all__ = [
    "load_sandbox_config",
    "start_sandbox",
]
