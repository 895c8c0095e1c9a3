"""Heap budget for the relaunched child process."""

import logging
import math
import os
import resource

import psutil

log = logging.getLogger(__name__)

MB = 1024 * 1024
MAX_HEAP_FLAG = "--max-heap-size"
NO_RELAUNCH_ENV = "TERN_NO_RELAUNCH"


def get_memory_flags(
    total_memory_mb: float,
    current_max_mb: float,
    *,
    debug: bool = False,
    no_relaunch: bool = False,
) -> list[str]:
    """Return the flags that raise the heap ceiling to half of system memory."""
    target_mb = math.floor(total_memory_mb * 0.5)
    if debug:
        log.debug("Current heap size %.2f MB", current_max_mb)

    if no_relaunch:
        return []

    if target_mb > current_max_mb:
        if debug:
            log.debug("Need to relaunch with more memory: %.2f MB", target_mb)
        return [f"{MAX_HEAP_FLAG}={target_mb}"]
    return []


def total_memory_mb() -> float:
    """Return total physical memory in megabytes."""
    return psutil.virtual_memory().total / MB


def current_heap_limit_mb() -> float:
    """Return the soft address-space limit in megabytes (inf when unlimited)."""
    soft, _ = resource.getrlimit(resource.RLIMIT_AS)
    if soft == resource.RLIM_INFINITY:
        return math.inf
    return math.floor(soft / MB)


def runtime_memory_flags(debug: bool = False) -> list[str]:
    """Compute memory flags for this machine and process."""
    return get_memory_flags(
        total_memory_mb(),
        current_heap_limit_mb(),
        debug=debug,
        no_relaunch=bool(os.environ.get(NO_RELAUNCH_ENV)),
    )


def apply_heap_limit(limit_mb: int) -> None:
    """Set the soft address-space limit requested by a parent's memory flag."""
    soft, hard = resource.getrlimit(resource.RLIMIT_AS)
    target = limit_mb * MB
    if hard != resource.RLIM_INFINITY:
        target = min(target, hard)
    if soft != resource.RLIM_INFINITY and soft >= target:
        return
    try:
        resource.setrlimit(resource.RLIMIT_AS, (target, hard))
    except (ValueError, OSError) as e:
        log.warning("could not apply heap limit of %d MB: %s", limit_mb, e)
        return
    log.debug("heap limit set to %d MB", target // MB)
