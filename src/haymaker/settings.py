from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_HAYFILES = ("hayfile", "Hayfile", "makefile", "Makefile")


def _default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


def _workers(value: str | None) -> int:
    """A positive worker count, or the CPU-based default when unset or unusable."""
    try:
        workers = int(value or "0")
    except ValueError:
        logger.warning(f"Ignoring HAYMAKER_WORKERS={value!r}: not a number")
        return _default_workers()
    return workers if workers > 0 else _default_workers()


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


WORKERS = _workers(os.environ.get("HAYMAKER_WORKERS"))
KEEP_GOING = _flag(os.environ.get("HAYMAKER_KEEP_GOING"))
SHELL = os.environ.get("HAYMAKER_SHELL", "/bin/sh")
