"""
Time-Synchronised Burst Dispatch
════════════════════════════════
Floods a trading venue with orders from many accounts inside a narrow
window pinned to the venue's clock:
  • Clock Sync — venue/local offset, adjusted time
  • Deadline Scheduler — venue-clock sleeps, long-wait progress, HH:MM targets
  • Pre-Warm Planner — keep-alive probes at T-30s / T-15s / T-5s
  • Burst Dispatcher — unawaited per-account flood loop
  • Batch Orchestrator — concurrent fan-out with per-account failure isolation
  • Stats — per-account and system-wide requests/second, order latency
  • Sequential Runner — awaited one-at-a-time baseline for a single account
"""

from .clock import ClockOffset, ClockSync
from .config import BurstConfig, DispatchConfig, ScheduleConfig, VenueConfig
from .errors import (
    AccountConfigError, AccountDispatchFailed, BurstError, ClockSyncFailed,
    OrderRequestFailed, PreWarmProbeFailed, VenueRequestError,
)
from .execution import BatchOrchestrator, BurstDispatcher, DispatchState, SequentialRunner
from .models import (
    Account, AccountFailure, BatchResult, CompletionSummary, DispatchResult, DispatchWindow,
    LatencySummary, OrderIntent, OrderType, PreWarmConfig, PreWarmPlan, SequentialReport, Side,
    TimeInForce,
)
from .monitoring import aggregate, compute_qps
from .scheduling import DeadlineScheduler, PreWarmPlanner, build_target_instant

__all__ = [
    "ClockOffset", "ClockSync",
    "BurstConfig", "DispatchConfig", "ScheduleConfig", "VenueConfig",
    "AccountConfigError", "AccountDispatchFailed", "BurstError", "ClockSyncFailed",
    "OrderRequestFailed", "PreWarmProbeFailed", "VenueRequestError",
    "BatchOrchestrator", "BurstDispatcher", "DispatchState", "SequentialRunner",
    "Account", "AccountFailure", "BatchResult", "CompletionSummary", "DispatchResult",
    "DispatchWindow", "LatencySummary", "OrderIntent", "OrderType", "PreWarmConfig", "PreWarmPlan",
    "SequentialReport", "Side", "TimeInForce",
    "aggregate", "compute_qps",
    "DeadlineScheduler", "PreWarmPlanner", "build_target_instant",
]
