"""
Sequential Runner
═════════════════
Baseline measurement for one account: N orders placed back to back, each
awaited before the next is sent.

  [optional] warm the connection → wait for target → order 1 → … → order N

Per order it records the elapsed time on the adjusted clock since the run
started and the venue's own acceptance timestamp. The spread of those
timestamps shows how fast the venue takes orders from a single account
without the flood loop.
"""

import logging
from typing import List, Optional

from ..clock import ClockSync
from ..errors import BurstError, ClockSyncFailed
from ..models import Account, OrderIntent, SequentialOrder, SequentialReport
from ..scheduling.deadline import DeadlineScheduler
from ..venue.base import VenueClient

logger = logging.getLogger(__name__)


class SequentialRunner:

    def __init__(self, client: VenueClient, clock: ClockSync, scheduler: DeadlineScheduler):
        self.client = client
        self.clock = clock
        self.scheduler = scheduler

    async def run(
        self,
        account: Account,
        intent: OrderIntent,
        count: int,
        target_ms: Optional[int] = None,
    ) -> SequentialReport:
        if count < 1:
            raise ValueError(f"order count must be at least 1, got {count}")
        if not self.clock.is_synced:
            raise ClockSyncFailed("refusing to place orders: clock not synchronised with the venue")

        if target_ms is not None:
            await self._warm_up(account)
            await self.scheduler.wait_until(target_ms, label=f"{account.name} sequential start")

        logger.info(f"[Sequential] {account.name}: placing {count} orders, {intent.describe()}")
        started = self.clock.adjusted_now()
        orders: List[SequentialOrder] = []

        for index in range(1, count + 1):
            try:
                ack = await self.client.place_order(account, intent)
            except BurstError as e:
                elapsed = self.clock.adjusted_now() - started
                orders.append(SequentialOrder(index, elapsed, error=str(e)))
                logger.warning(f"[Sequential] #{index} failed after {elapsed}ms: {e}")
                continue
            elapsed = self.clock.adjusted_now() - started
            orders.append(SequentialOrder(index, elapsed, ack.order_id, ack.venue_time_ms))
            logger.info(f"[Sequential] #{index} accepted after {elapsed}ms, order {ack.order_id}")

        report = SequentialReport(account.name, tuple(orders), self.clock.adjusted_now() - started)
        self._log_report(report)
        return report

    async def _warm_up(self, account: Account):
        try:
            await self.client.ping(account)
        except BurstError as e:
            logger.warning(f"[Sequential] {account.name}: connection warm-up failed: {e}")

    def _log_report(self, report: SequentialReport):
        n = len(report.orders)
        logger.info(
            f"[Sequential] {report.account}: {report.succeeded}/{n} accepted "
            f"({report.succeeded * 100 / n:.1f}%), {report.total_elapsed_ms}ms total, "
            f"{report.avg_ms_per_order}ms per order"
        )
        if report.venue_times:
            logger.info(
                f"[Sequential] venue timestamps: first {self.scheduler.describe(min(report.venue_times))}, "
                f"last {self.scheduler.describe(max(report.venue_times))}, "
                f"span {report.venue_span_ms}ms, avg interval {report.avg_venue_interval_ms}ms"
            )
