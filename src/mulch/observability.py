"""In-process timing of store operations."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class TimingSummary:
    """Aggregated timings for one operation name."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0


class _TimingRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, TimingSummary] = {}

    def record(self, operation: str, duration_ms: float, ok: bool) -> None:
        with self._lock:
            summary = self._stats.setdefault(operation, TimingSummary())
            summary.count += 1
            summary.total_ms += duration_ms
            summary.max_ms = max(summary.max_ms, duration_ms)
            if not ok:
                summary.error_count += 1
        logger.debug("timing operation=%s duration_ms=%.3f ok=%s", operation, duration_ms, ok)

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                name: {
                    "count": s.count,
                    "error_count": s.error_count,
                    "avg_ms": round(s.total_ms / s.count, 3) if s.count else 0.0,
                    "max_ms": round(s.max_ms, 3),
                }
                for name, s in sorted(self._stats.items())
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_RECORDER = _TimingRecorder()


@contextmanager
def timed(operation: str) -> Iterator[None]:
    """Time the enclosed block under *operation*; a raised error counts as a failure."""
    start = perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        _RECORDER.record(operation, (perf_counter() - start) * 1000, ok)


def timing_snapshot() -> dict[str, dict[str, float | int]]:
    return _RECORDER.snapshot()


def reset_timings() -> None:
    """Clear all aggregates (test helper)."""
    _RECORDER.reset()
