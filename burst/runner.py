"""
Runners: a whole run from clock sync to report.

  sync clock → stamp requests with venue time → resolve target instant
  → (optional) clear stale open orders → orchestrate → report

run_sequential_test does the same for one account placing awaited orders
one at a time, clearing open orders afterwards when asked.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from .clock import ClockSync
from .config import BurstConfig
from .execution.orchestrator import BatchOrchestrator
from .execution.sequential import SequentialRunner
from .models import Account, BatchResult, OrderIntent, SequentialReport
from .scheduling.deadline import DeadlineScheduler
from .venue.base import VenueClient
from .venue.rest import SignedRestClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetTime:
    """A wall-clock time of day in the target timezone."""
    hour: int
    minute: int
    day_offset: int = 0
    tz_offset_minutes: Optional[int] = None

    def resolve(self, scheduler: DeadlineScheduler) -> int:
        return scheduler.build_target_instant(self.hour, self.minute, self.day_offset, self.tz_offset_minutes)


@dataclass(frozen=True)
class RelativeTarget:
    """A target `seconds` after the synced venue clock's now."""
    seconds: float

    def resolve(self, scheduler: DeadlineScheduler) -> int:
        if self.seconds < 0:
            raise ValueError(f"relative target must not be negative, got {self.seconds:g}s")
        return scheduler.clock.adjusted_now() + round(self.seconds * 1000)


Target = Union[TargetTime, RelativeTarget]


async def clear_open_orders(client: SignedRestClient, accounts: Sequence[Account], symbol: str):
    """Cancel leftover open orders so the burst starts from a clean book. Best effort."""
    for account in accounts:
        try:
            open_orders = await client.open_orders(account, symbol)
            if not open_orders:
                logger.info(f"[Runner] {account.name}: no open {symbol} orders")
                continue
            logger.info(f"[Runner] {account.name}: cancelling {len(open_orders)} open {symbol} orders")
            await client.cancel_open_orders(account, symbol)
        except Exception as e:
            logger.warning(f"[Runner] {account.name}: could not clear open orders: {e}")


async def _synced(config: BurstConfig, client: VenueClient) -> Tuple[ClockSync, DeadlineScheduler]:
    clock = ClockSync(client, display_tz_minutes=config.schedule.tz_offset_minutes)
    await clock.sync()
    if isinstance(client, SignedRestClient):
        client.bind_clock(clock)
    return clock, DeadlineScheduler(clock, config.schedule)


async def run_scheduled_burst(
    config: BurstConfig,
    accounts: Sequence[Account],
    intent: OrderIntent,
    target: Target,
    cancel_open_first: bool = False,
    client: Optional[VenueClient] = None,
) -> BatchResult:
    """
    Sync with the venue, then burst `intent` from every account around the
    target time. ClockSyncFailed propagates: nothing is sent without a sync.
    """
    owns_client = client is None
    if client is None:
        client = SignedRestClient(config.venue)

    try:
        clock, scheduler = await _synced(config, client)
        target_ms = target.resolve(scheduler)
        logger.info(f"[Runner] target time: {scheduler.describe(target_ms)}")
        logger.info(f"[Runner] adjusted now: {scheduler.describe(clock.adjusted_now())}")

        if cancel_open_first and isinstance(client, SignedRestClient):
            await clear_open_orders(client, accounts, intent.symbol)

        orchestrator = BatchOrchestrator(client, clock, scheduler, config.dispatch)
        window = orchestrator.window_for(target_ms)
        return await orchestrator.run(accounts, intent, window)
    finally:
        if owns_client:
            await client.aclose()


async def run_sequential_test(
    config: BurstConfig,
    account: Account,
    intent: OrderIntent,
    count: int,
    target: Optional[Target] = None,
    cancel_after: bool = False,
    client: Optional[VenueClient] = None,
) -> SequentialReport:
    """Place `count` awaited orders from one account, starting at `target` or right away."""
    owns_client = client is None
    if client is None:
        client = SignedRestClient(config.venue)

    try:
        clock, scheduler = await _synced(config, client)
        target_ms = target.resolve(scheduler) if target is not None else None
        if target_ms is not None:
            logger.info(f"[Runner] sequential start: {scheduler.describe(target_ms)}")

        report = await SequentialRunner(client, clock, scheduler).run(account, intent, count, target_ms)

        if cancel_after and isinstance(client, SignedRestClient):
            await clear_open_orders(client, [account], intent.symbol)
        return report
    finally:
        if owns_client:
            await client.aclose()
