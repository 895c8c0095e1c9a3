"""Startup decision enums."""

from enum import Enum


class RelaunchDecision(Enum):
    PROCEED = "proceed"
    MEMORY_RELAUNCH = "memory-relaunch"
    SANDBOX_RELAUNCH = "sandbox-relaunch"


class ExecutionMode(Enum):
    INTERACTIVE = "interactive"
    NON_INTERACTIVE = "non-interactive"
