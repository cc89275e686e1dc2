"""
Burst Dispatcher
════════════════
Per-account flood loop. Lifecycle:

  IDLE → PRE_WARMING → WAITING_FOR_START → FIRING → DONE
                 ↘ FAILED (any error before FIRING)

While FIRING, every iteration spawns one order task and moves on without
awaiting it. The only rate limit is how fast the loop can spin and how much
the HTTP pool can carry. Completions land in a CompletionTracker via
done-callbacks; failures are counted and dropped, never retried.

By default the loop yields to the event loop after every spawn so the
spawned requests start writing while the window is still open and sibling
accounts get their turn. yield_every=0 disables yielding entirely.
"""

import asyncio
import functools
import logging
import time
from enum import Enum
from typing import List, Optional, Set

from ..clock import ClockSync
from ..errors import AccountDispatchFailed
from ..models import (
    Account, DispatchResult, DispatchWindow, OrderIntent, PreWarmConfig, PreWarmOutcome,
)
from ..monitoring.metrics import CompletionTracker
from ..monitoring.stats import compute_qps
from ..scheduling.deadline import DeadlineScheduler
from ..scheduling.prewarm import PreWarmPlanner
from ..venue.base import VenueClient

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    IDLE = "idle"
    PRE_WARMING = "pre_warming"
    WAITING_FOR_START = "waiting_for_start"
    FIRING = "firing"
    DONE = "done"
    FAILED = "failed"


class BurstDispatcher:

    def __init__(
        self,
        account: Account,
        client: VenueClient,
        clock: ClockSync,
        scheduler: DeadlineScheduler,
        planner: Optional[PreWarmPlanner] = None,
        yield_every: int = 1,
    ):
        self.account = account
        self.client = client
        self.clock = clock
        self.scheduler = scheduler
        self.planner = planner or PreWarmPlanner(client, scheduler)
        self.yield_every = max(0, yield_every)

        self.state = DispatchState.IDLE
        self.tracker = CompletionTracker(account.name)
        self.prewarm_outcomes: List[PreWarmOutcome] = []
        self.result: Optional[DispatchResult] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def run(
        self,
        intent: OrderIntent,
        window: DispatchWindow,
        prewarm: Optional[PreWarmConfig] = None,
    ) -> DispatchResult:
        prewarm = prewarm or PreWarmConfig(enabled=False)
        name = self.account.name

        try:
            if prewarm.enabled and prewarm.lead_seconds:
                self.state = DispatchState.PRE_WARMING
                logger.info(f"[Dispatcher] {name}: pre-warm start")
                plan = self.planner.plan(window.target_ms, prewarm.lead_seconds)
                self.prewarm_outcomes = await self.planner.execute(self.account, plan)
                logger.info(f"[Dispatcher] {name}: pre-warm end")

            self.state = DispatchState.WAITING_FOR_START
            remaining = self.scheduler.remaining_ms(window.start_ms)
            if remaining > 0:
                logger.info(
                    f"[Dispatcher] {name}: waiting {remaining / 1000:.3f}s for window start "
                    f"{self.scheduler.describe(window.start_ms)}"
                )
            await self.scheduler.wait_until(window.start_ms, label=f"{name} window start")
        except Exception as e:
            phase = self.state.value
            self.state = DispatchState.FAILED
            logger.error(f"[Dispatcher] {name}: failed during {phase}: {e}")
            raise AccountDispatchFailed(name, phase, e) from e

        self.state = DispatchState.FIRING
        result = await self._flood(intent, window)
        self.result = result
        self.state = DispatchState.DONE
        logger.info(
            f"[Dispatcher] {name}: firing end, {result.request_count} requests in "
            f"{result.elapsed_ms}ms ({result.qps} req/s)"
        )
        return result

    async def _flood(self, intent: OrderIntent, window: DispatchWindow) -> DispatchResult:
        adjusted_now = self.clock.adjusted_now
        end_ms = window.end_ms
        yield_every = self.yield_every
        issue = self._issue

        actual_start = adjusted_now()
        logger.info(f"[Dispatcher] {self.account.name}: firing start, {intent.describe()}")

        count = 0
        now = actual_start
        while now <= end_ms:
            issue(intent)
            count += 1
            if yield_every and count % yield_every == 0:
                await asyncio.sleep(0)
            now = adjusted_now()

        elapsed = now - actual_start
        return DispatchResult(
            account=self.account.name,
            request_count=count,
            elapsed_ms=elapsed,
            qps=compute_qps(count, elapsed),
            actual_start_ms=actual_start,
            actual_end_ms=now,
        )

    def _issue(self, intent: OrderIntent):
        task = asyncio.create_task(self.client.place_order(self.account, intent))
        self._in_flight.add(task)
        task.add_done_callback(functools.partial(self._on_complete, time.perf_counter_ns()))

    def _on_complete(self, issued_ns: int, task: asyncio.Task):
        self._in_flight.discard(task)
        if task.cancelled():
            self.tracker.record_abandoned()
            return
        exc = task.exception()
        if exc is not None:
            self.tracker.record_failure(exc)
            return
        self.tracker.record_success(time.perf_counter_ns() - issued_ns)
        if logger.isEnabledFor(logging.DEBUG):
            ack = task.result()
            logger.debug(f"[Dispatcher] {self.account.name}: order {ack.order_id} accepted at {ack.venue_time_ms}")

    async def drain(self, timeout: float) -> None:
        """Wait up to `timeout` seconds for in-flight requests, then abandon the rest."""
        pending = set(self._in_flight)
        if not pending:
            return
        if timeout > 0:
            _, pending = await asyncio.wait(pending, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.info(f"[Dispatcher] {self.account.name}: abandoned {len(pending)} unfinished requests")
