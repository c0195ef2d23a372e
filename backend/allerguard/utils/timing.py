"""Timed spans for request-path steps (LLM calls, whole analyses)."""

import time
from contextlib import contextmanager
from typing import Iterator

from allerguard.logging import get_logger

logger = get_logger(__name__)

# Prefix for all timing logs so they are easy to grep
_TIMING_PREFIX = "[TIMING]"


def _format_duration(ms: int) -> str:
    """Return human-readable duration: e.g. 12500 -> '12.5s', 750 -> '750ms'."""
    if ms >= 1000:
        return f"{ms / 1000:.1f}s"
    return f"{ms}ms"


class Span:
    def __init__(self) -> None:
        self._start = time.perf_counter()
        self.elapsed_ms: int | None = None

    def stop(self) -> int:
        if self.elapsed_ms is None:
            self.elapsed_ms = int((time.perf_counter() - self._start) * 1000)
        return self.elapsed_ms


@contextmanager
def time_span(name: str, **extra: object) -> Iterator[Span]:
    """Log elapsed time of the wrapped block, with optional extra fields."""
    span = Span()
    try:
        yield span
    finally:
        elapsed = span.stop()
        parts = [f"elapsed_ms={elapsed}", f"({_format_duration(elapsed)})"] + [
            f"{k}={v}" for k, v in extra.items()
        ]
        logger.info("%s %s %s", _TIMING_PREFIX, name, " ".join(parts))
