"""
Throughput statistics.

Accounts fire concurrently over the same window, so system-wide QPS is
measured against the configured burst duration, not any account's elapsed
time. Everything here is pure and order-independent.
"""

import math
from typing import Iterable, Sequence

from ..models import AccountFailure, BatchResult, DispatchResult


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_qps(request_count: int, elapsed_ms: float) -> int:
    """Requests per second; 0 when no measurable time elapsed."""
    if elapsed_ms <= 0:
        return 0
    return round_half_up(request_count / (elapsed_ms / 1000))


def aggregate(
    results: Iterable[DispatchResult],
    duration_ms: int,
    failures: Sequence[AccountFailure] = (),
) -> BatchResult:
    results = tuple(results)
    total = sum(r.request_count for r in results)
    avg_qps = math.fsum(r.qps for r in results) / len(results) if results else 0.0
    return BatchResult(
        results=results,
        failures=tuple(failures),
        total_requests=total,
        avg_qps=avg_qps,
        system_qps=compute_qps(total, duration_ms),
        duration_ms=duration_ms,
    )
