"""
Burst Data Model
────────────────
Value types shared by the scheduler, the dispatchers and the stats reducer.
Everything here is immutable once built; a fresh set is created for every
batch and thrown away after the report is logged.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"


class TimeInForce(str, Enum):
    GTC = "GTC"   # Good-till-Cancel
    IOC = "IOC"   # Immediate-or-Cancel
    FOK = "FOK"   # Fill-or-Kill


@dataclass(frozen=True)
class Account:
    """Credential handle. Owned by the caller and never mutated."""
    name: str
    api_key: str
    secret_key: str = field(repr=False)
    mail: Optional[str] = None


@dataclass(frozen=True)
class OrderIntent:
    """
    One order shape, shared read-only by every request of a batch.
    Price and quantity stay strings so the wire value is exactly what was configured.
    """
    symbol: str
    side: Side
    price: str
    quantity: str
    order_type: OrderType = OrderType.LIMIT
    time_in_force: TimeInForce = TimeInForce.GTC

    def to_params(self) -> Dict[str, str]:
        params = {
            "symbol": self.symbol,
            "side": self.side.value,
            "type": self.order_type.value,
        }
        if self.order_type == OrderType.LIMIT:
            params["timeInForce"] = self.time_in_force.value
            params["quantity"] = self.quantity
            params["price"] = self.price
        else:
            params["quantity"] = self.quantity
        return params

    def describe(self) -> str:
        return f"{self.side.value} {self.quantity} {self.symbol} @ {self.price} ({self.order_type.value})"


@dataclass(frozen=True)
class DispatchWindow:
    target_ms: int
    start_ms: int
    end_ms: int

    def __post_init__(self):
        if not self.start_ms <= self.target_ms <= self.end_ms:
            raise ValueError(
                f"window must satisfy start <= target <= end, got {self.start_ms} / {self.target_ms} / {self.end_ms}"
            )

    @classmethod
    def around(cls, target_ms: int, start_offset_ms: int, duration_ms: int) -> "DispatchWindow":
        if start_offset_ms < 0 or duration_ms < 0:
            raise ValueError("start_offset_ms and duration_ms must be non-negative")
        return cls(
            target_ms=target_ms,
            start_ms=target_ms - start_offset_ms,
            end_ms=target_ms + duration_ms,
        )

    @property
    def start_offset_ms(self) -> int:
        return self.target_ms - self.start_ms

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.target_ms


@dataclass(frozen=True)
class PreWarmEntry:
    lead_seconds: float
    fire_at_ms: int


@dataclass(frozen=True)
class PreWarmPlan:
    target_ms: int
    entries: Tuple[PreWarmEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def fire_times(self) -> Tuple[int, ...]:
        return tuple(e.fire_at_ms for e in self.entries)


@dataclass(frozen=True)
class PreWarmOutcome:
    lead_seconds: float
    planned_at_ms: int
    fired_at_ms: int
    ok: bool
    error: str = ""

    @property
    def late_ms(self) -> int:
        return max(0, self.fired_at_ms - self.planned_at_ms)


@dataclass(frozen=True)
class PreWarmConfig:
    enabled: bool = True
    lead_seconds: Tuple[float, ...] = (30, 15, 5)


@dataclass(frozen=True)
class DispatchResult:
    account: str
    request_count: int
    elapsed_ms: int
    qps: int
    actual_start_ms: int
    actual_end_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "request_count": self.request_count,
            "elapsed_ms": self.elapsed_ms,
            "qps": self.qps,
            "actual_start_ms": self.actual_start_ms,
            "actual_end_ms": self.actual_end_ms,
        }


@dataclass(frozen=True)
class AccountFailure:
    account: str
    phase: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"account": self.account, "phase": self.phase, "error": self.error}


@dataclass(frozen=True)
class CompletionSummary:
    """Outcomes of flood-loop requests, observed after the fact."""
    acknowledged: int = 0
    failed: int = 0
    abandoned: int = 0

    def __add__(self, other: "CompletionSummary") -> "CompletionSummary":
        return CompletionSummary(
            acknowledged=self.acknowledged + other.acknowledged,
            failed=self.failed + other.failed,
            abandoned=self.abandoned + other.abandoned,
        )


@dataclass(frozen=True)
class LatencySummary:
    """Issue-to-completion times of acknowledged flood requests, in ms."""
    count: int = 0
    avg_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    max_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": self.avg_ms,
            "p50_ms": self.p50_ms,
            "p95_ms": self.p95_ms,
            "p99_ms": self.p99_ms,
            "max_ms": self.max_ms,
        }


@dataclass(frozen=True)
class BatchResult:
    results: Tuple[DispatchResult, ...]
    failures: Tuple[AccountFailure, ...]
    total_requests: int
    avg_qps: float
    system_qps: int
    duration_ms: int
    completions: CompletionSummary = CompletionSummary()
    latency: LatencySummary = LatencySummary()

    @property
    def succeeded(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "failures": [f.to_dict() for f in self.failures],
            "total_requests": self.total_requests,
            "avg_qps": round(self.avg_qps, 2),
            "system_qps": self.system_qps,
            "duration_ms": self.duration_ms,
            "completions": {
                "acknowledged": self.completions.acknowledged,
                "failed": self.completions.failed,
                "abandoned": self.completions.abandoned,
            },
            "latency": self.latency.to_dict(),
        }


@dataclass(frozen=True)
class SequentialOrder:
    """One awaited order of a sequential run. `elapsed_ms` is measured on the adjusted clock from run start."""
    index: int
    elapsed_ms: int
    order_id: str = ""
    venue_time_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"index": self.index, "ok": self.ok, "elapsed_ms": self.elapsed_ms}
        if self.ok:
            d["order_id"] = self.order_id
            d["venue_time_ms"] = self.venue_time_ms
        else:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class SequentialReport:
    account: str
    orders: Tuple[SequentialOrder, ...]
    total_elapsed_ms: int

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.orders if o.ok)

    @property
    def avg_ms_per_order(self) -> float:
        return round(self.total_elapsed_ms / len(self.orders), 2) if self.orders else 0.0

    @property
    def venue_times(self) -> Tuple[int, ...]:
        """Venue timestamps of accepted orders; acks without one are left out."""
        return tuple(o.venue_time_ms for o in self.orders if o.ok and o.venue_time_ms)

    @property
    def venue_span_ms(self) -> int:
        times = self.venue_times
        return max(times) - min(times) if times else 0

    @property
    def avg_venue_interval_ms(self) -> float:
        n = len(self.venue_times)
        return round(self.venue_span_ms / (n - 1), 2) if n > 1 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        times = self.venue_times
        return {
            "account": self.account,
            "orders": [o.to_dict() for o in self.orders],
            "succeeded": self.succeeded,
            "attempted": len(self.orders),
            "total_elapsed_ms": self.total_elapsed_ms,
            "avg_ms_per_order": self.avg_ms_per_order,
            "first_venue_time_ms": min(times) if times else None,
            "last_venue_time_ms": max(times) if times else None,
            "venue_span_ms": self.venue_span_ms,
            "avg_venue_interval_ms": self.avg_venue_interval_ms,
        }
