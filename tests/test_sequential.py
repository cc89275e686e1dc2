"""
Tests for the one-order-at-a-time runner.
"""

import pytest

from burst.clock import ClockSync
from burst.errors import ClockSyncFailed, OrderRequestFailed
from burst.execution.sequential import SequentialRunner
from burst.venue.base import OrderAck

from .fakes import FakeVenue


class StampedVenue(FakeVenue):
    """Acks carry preset venue timestamps; orders listed in `reject` fail."""

    def __init__(self, time, stamps, reject=()):
        super().__init__(time)
        self.stamps = iter(stamps)
        self.reject = set(reject)

    async def place_order(self, account, intent):
        self.orders[account.name] += 1
        n = self.orders[account.name]
        if n in self.reject:
            raise OrderRequestFailed("price out of range", 400)
        return OrderAck(order_id=str(n), venue_time_ms=next(self.stamps))


class TestSequentialRunner:

    @pytest.mark.asyncio
    async def test_orders_are_awaited_in_turn(self, fake_time, synced_clock, scheduler, accounts, intent):
        venue = StampedVenue(fake_time, stamps=[1_000, 1_004, 1_010], reject={3})

        report = await SequentialRunner(venue, synced_clock, scheduler).run(accounts[0], intent, 4)

        assert [o.index for o in report.orders] == [1, 2, 3, 4]
        assert [o.ok for o in report.orders] == [True, True, False, True]
        assert "price out of range" in report.orders[2].error
        assert report.succeeded == 3
        assert report.venue_span_ms == 10
        assert report.avg_venue_interval_ms == 5.0

        elapsed = [o.elapsed_ms for o in report.orders]
        assert elapsed == sorted(elapsed)
        assert report.total_elapsed_ms >= elapsed[-1]
        assert report.avg_ms_per_order == round(report.total_elapsed_ms / 4, 2)

        d = report.to_dict()
        assert (d["first_venue_time_ms"], d["last_venue_time_ms"]) == (1_000, 1_010)
        assert (d["succeeded"], d["attempted"]) == (3, 4)
        assert d["orders"][2] == {"index": 3, "ok": False, "elapsed_ms": elapsed[2], "error": "price out of range"}

    @pytest.mark.asyncio
    async def test_waits_for_target_after_warm_up(self, venue, synced_clock, scheduler, accounts, intent):
        target = synced_clock.adjusted_now() + 60_000

        report = await SequentialRunner(venue, synced_clock, scheduler).run(accounts[0], intent, 2, target)

        assert len(venue.pings) == 1
        assert venue.pings[0][1] < target, "warm-up goes out before the wait"
        assert report.succeeded == 2
        assert report.orders[0].venue_time_ms >= target

    @pytest.mark.asyncio
    async def test_warm_up_failure_does_not_stop_run(self, fake_time, synced_clock, scheduler, accounts, intent):
        venue = FakeVenue(fake_time, fail_pings_for={"acct-1"})
        target = synced_clock.adjusted_now() + 1_000

        report = await SequentialRunner(venue, synced_clock, scheduler).run(accounts[0], intent, 3, target)

        assert report.succeeded == 3

    @pytest.mark.asyncio
    async def test_all_rejected(self, fake_time, synced_clock, scheduler, accounts, intent):
        venue = FakeVenue(fake_time, fail_orders=True)

        report = await SequentialRunner(venue, synced_clock, scheduler).run(accounts[0], intent, 3)

        assert report.succeeded == 0
        assert report.venue_span_ms == 0
        assert report.avg_venue_interval_ms == 0.0
        assert report.to_dict()["first_venue_time_ms"] is None
        assert venue.orders["acct-1"] == 3, "failures are not retried"

    @pytest.mark.asyncio
    async def test_zero_count_rejected(self, venue, synced_clock, scheduler, accounts, intent):
        with pytest.raises(ValueError):
            await SequentialRunner(venue, synced_clock, scheduler).run(accounts[0], intent, 0)
        assert sum(venue.orders.values()) == 0

    @pytest.mark.asyncio
    async def test_unsynced_clock_sends_nothing(self, fake_time, venue, scheduler, accounts, intent):
        clock = ClockSync(venue, time_source=fake_time)

        with pytest.raises(ClockSyncFailed):
            await SequentialRunner(venue, clock, scheduler).run(accounts[0], intent, 3)
        assert sum(venue.orders.values()) == 0
