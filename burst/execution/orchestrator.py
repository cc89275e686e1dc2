"""
Batch Orchestrator
══════════════════
Fans one BurstDispatcher per account out over the same window and intent:

  ClockSync (already synced)
      ↓
  [Dispatcher A]  [Dispatcher B]  …  [Dispatcher N]   ← concurrent, settled together
      ↓               ↓                   ↓
  DispatchResult | AccountFailure per account
      ↓
  drain in-flight requests (bounded)
      ↓
  StatsAggregator → BatchResult (throughput, completions, pooled latency)

One account failing before it fires never stops its siblings.
"""

import asyncio
import itertools
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from ..clock import ClockSync
from ..config import DispatchConfig
from ..errors import AccountDispatchFailed, ClockSyncFailed
from ..models import (
    Account, AccountFailure, BatchResult, CompletionSummary, DispatchResult,
    DispatchWindow, OrderIntent, PreWarmConfig,
)
from ..monitoring.metrics import summarize_latencies
from ..monitoring.stats import aggregate
from ..scheduling.deadline import DeadlineScheduler
from ..scheduling.prewarm import PreWarmPlanner
from ..venue.base import VenueClient
from .dispatcher import BurstDispatcher

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs a burst across every account and reduces the outcome to a BatchResult."""

    def __init__(
        self,
        client: VenueClient,
        clock: ClockSync,
        scheduler: DeadlineScheduler,
        config: Optional[DispatchConfig] = None,
        planner: Optional[PreWarmPlanner] = None,
    ):
        self.client = client
        self.clock = clock
        self.scheduler = scheduler
        self.config = config or DispatchConfig()
        self.planner = planner or PreWarmPlanner(client, scheduler)
        self.dispatchers: List[BurstDispatcher] = []

    def window_for(self, target_ms: int) -> DispatchWindow:
        return DispatchWindow.around(target_ms, self.config.start_offset_ms, self.config.duration_ms)

    def prewarm_config(self) -> PreWarmConfig:
        return PreWarmConfig(
            enabled=self.config.prewarm_enabled,
            lead_seconds=tuple(self.config.prewarm_lead_seconds),
        )

    async def run(
        self,
        accounts: Sequence[Account],
        intent: OrderIntent,
        window: DispatchWindow,
        prewarm: Optional[PreWarmConfig] = None,
    ) -> BatchResult:
        if not self.clock.is_synced:
            raise ClockSyncFailed("refusing to dispatch: clock not synchronised with the venue")

        prewarm = prewarm if prewarm is not None else self.prewarm_config()
        self._check_prewarm(prewarm, window)
        logger.info(
            f"[Orchestrator] batch start: {len(accounts)} accounts, {intent.describe()}, "
            f"target {self.scheduler.describe(window.target_ms)}, "
            f"window -{window.start_offset_ms}ms/+{window.duration_ms}ms, "
            f"pre-warm {'on ' + str(list(prewarm.lead_seconds)) if prewarm.enabled else 'off'}"
        )

        self.dispatchers = [
            BurstDispatcher(
                account=account,
                client=self.client,
                clock=self.clock,
                scheduler=self.scheduler,
                planner=self.planner,
                yield_every=self.config.yield_every,
            )
            for account in accounts
        ]

        outcomes = await asyncio.gather(
            *(d.run(intent, window, prewarm) for d in self.dispatchers),
            return_exceptions=True,
        )

        results: List[DispatchResult] = []
        failures: List[AccountFailure] = []
        for dispatcher, outcome in zip(self.dispatchers, outcomes):
            if isinstance(outcome, DispatchResult):
                results.append(outcome)
            elif isinstance(outcome, AccountDispatchFailed):
                failures.append(AccountFailure(outcome.account, outcome.phase, str(outcome.cause)))
            elif isinstance(outcome, Exception):
                failures.append(AccountFailure(dispatcher.account.name, dispatcher.state.value, str(outcome)))
            else:
                # CancelledError and friends: the host is shutting down
                raise outcome

        await self._drain()

        completions = CompletionSummary()
        for d in self.dispatchers:
            completions = completions + d.tracker.summary()

        latency = summarize_latencies(
            itertools.chain.from_iterable(d.tracker.latencies_ns for d in self.dispatchers)
        )

        batch = replace(
            aggregate(results, window.duration_ms, failures),
            completions=completions,
            latency=latency,
        )
        self._log_report(batch)
        return batch

    @staticmethod
    def _check_prewarm(prewarm: PreWarmConfig, window: DispatchWindow):
        """Leads shorter than the window's start offset would fire after the window opens."""
        if not prewarm.enabled or not prewarm.lead_seconds:
            return
        shortest = min(prewarm.lead_seconds)
        if shortest * 1000 < window.start_offset_ms:
            raise ValueError(
                f"pre-warm lead {shortest:g}s falls inside the dispatch window, which opens "
                f"{window.start_offset_ms}ms before target; use leads of at least "
                f"{window.start_offset_ms / 1000:g}s"
            )

    async def _drain(self):
        timeout = self.config.drain_timeout_s
        if timeout <= 0:
            for d in self.dispatchers:
                await d.drain(0)
            return
        in_flight = sum(d.in_flight for d in self.dispatchers)
        if in_flight:
            logger.info(f"[Orchestrator] waiting up to {timeout:g}s for {in_flight} in-flight requests")
        await asyncio.gather(*(d.drain(timeout) for d in self.dispatchers))

    def _log_report(self, batch: BatchResult):
        for r in batch.results:
            logger.info(
                f"[Orchestrator] {r.account}: {r.request_count} requests, "
                f"{r.elapsed_ms}ms, {r.qps} req/s"
            )
        for f in batch.failures:
            logger.warning(f"[Orchestrator] {f.account}: FAILED during {f.phase}: {f.error}")
        for d in self.dispatchers:
            if d.tracker.failed:
                logger.warning(
                    f"[Orchestrator] {d.account.name}: {d.tracker.failed} orders rejected, "
                    f"last error: {d.tracker.last_error}"
                )
        lat = batch.latency
        if lat.count:
            logger.info(
                f"[Orchestrator] order latency over {lat.count} acks: avg {lat.avg_ms}ms, "
                f"p50 {lat.p50_ms}ms, p95 {lat.p95_ms}ms, p99 {lat.p99_ms}ms, max {lat.max_ms}ms"
            )
        c = batch.completions
        logger.info(
            f"[Orchestrator] batch done: {batch.total_requests} requests, "
            f"avg {batch.avg_qps:.2f} req/s per account, system {batch.system_qps} req/s, "
            f"{batch.succeeded} ok / {len(batch.failures)} failed accounts, "
            f"completions {c.acknowledged} acked / {c.failed} failed / {c.abandoned} abandoned"
        )
