"""In-process observability: per-operation latency and named event counts.

Latency samples come from MCP tools, response tasks and the generator.
Counters track discrete events such as cancellations, fallback stages and
idle skips.  Both live in process memory and reset together.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------


@dataclass
class LatencySummary:
    """Aggregated latency metrics for one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, duration_ms: float, ok: bool) -> None:
        first = self.count == 0
        self.count += 1
        self.error_count += 0 if ok else 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        self.min_ms = duration_ms if first else min(self.min_ms, duration_ms)
        self.max_ms = duration_ms if first else max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        avg = self.total_ms / self.count if self.count else 0.0
        return {
            "count": self.count,
            "error_count": self.error_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(avg, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class _LatencyRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, LatencySummary] = {}

    def record(self, operation: str, duration_ms: float, ok: bool) -> None:
        sample = max(float(duration_ms), 0.0)
        with self._lock:
            self._stats.setdefault(operation, LatencySummary()).add(sample, ok)
        logger.debug(
            "latency operation=%s duration_ms=%.3f ok=%s", operation, sample, ok
        )

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {op: s.as_dict() for op, s in sorted(self._stats.items())}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------


class _CounterRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counts: Counter[str] = Counter()

    def increment(self, name: str, amount: int) -> None:
        with self._lock:
            self._counts[name] += amount

    def snapshot(self, prefix: str | None) -> dict[str, int]:
        with self._lock:
            items = sorted(self._counts.items())
        if prefix is None:
            return dict(items)
        return {name: count for name, count in items if name.startswith(prefix)}

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


_LATENCY = _LatencyRecorder()
_COUNTERS = _CounterRecorder()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _LATENCY.record(operation, duration_ms, ok)


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current in-process latency aggregates."""
    return _LATENCY.snapshot()


def increment_counter(name: str, amount: int = 1) -> None:
    """Bump a named event counter (cancellations, fallback hits, skips)."""
    _COUNTERS.increment(name, amount)


def counter_snapshot(prefix: str | None = None) -> dict[str, int]:
    """Return event counters, optionally only those under *prefix*."""
    return _COUNTERS.snapshot(prefix)


def reset_latency_metrics() -> None:
    """Clear all latency aggregates and counters (test helper)."""
    _LATENCY.reset()
    _COUNTERS.reset()
