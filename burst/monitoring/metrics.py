"""
Completion Metrics
──────────────────
The flood loop never awaits its requests, so their outcomes are observed
through done-callbacks feeding a CompletionTracker. Each tracker keeps its
outcome counters and a bounded window of issue-to-completion times; the
orchestrator pools every account's window into one LatencySummary.
"""

from collections import deque
from typing import Deque, Iterable

from ..models import CompletionSummary, LatencySummary

NS_PER_MS = 1_000_000


def summarize_latencies(samples_ns: Iterable[int]) -> LatencySummary:
    """Nearest-rank percentiles over nanosecond samples, reported in ms."""
    ordered = sorted(samples_ns)
    if not ordered:
        return LatencySummary()

    n = len(ordered)

    def ms(ns: float) -> float:
        return round(ns / NS_PER_MS, 2)

    def rank(p: int) -> float:
        return ms(ordered[min(n * p // 100, n - 1)])

    return LatencySummary(
        count=n,
        avg_ms=ms(sum(ordered) / n),
        p50_ms=rank(50),
        p95_ms=rank(95),
        p99_ms=rank(99),
        max_ms=ms(ordered[-1]),
    )


class CompletionTracker:
    """Per-account side channel for request outcomes. Only touched from the event loop thread."""

    def __init__(self, name: str, max_samples: int = 100_000):
        self.name = name
        self.latencies_ns: Deque[int] = deque(maxlen=max_samples)
        self.acknowledged = 0
        self.failed = 0
        self.abandoned = 0
        self.last_error = ""

    def record_success(self, latency_ns: int):
        self.acknowledged += 1
        self.latencies_ns.append(latency_ns)

    def record_failure(self, error: BaseException):
        self.failed += 1
        self.last_error = str(error) or type(error).__name__

    def record_abandoned(self):
        self.abandoned += 1

    def summary(self) -> CompletionSummary:
        return CompletionSummary(
            acknowledged=self.acknowledged,
            failed=self.failed,
            abandoned=self.abandoned,
        )

    def latency(self) -> LatencySummary:
        return summarize_latencies(self.latencies_ns)
