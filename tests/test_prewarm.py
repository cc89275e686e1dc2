"""
Tests for pre-warm planning and execution.
"""

import pytest

from burst.clock import ClockSync
from burst.config import ScheduleConfig
from burst.errors import ClockSyncFailed
from burst.models import Account
from burst.scheduling.deadline import DeadlineScheduler
from burst.scheduling.prewarm import PreWarmPlanner

from .fakes import START_MS, FakeTime, FakeVenue

TARGET = START_MS + 60_000
ACCOUNT = Account(name="acct-1", api_key="k", secret_key="s")


@pytest.fixture
def t():
    return FakeTime(tick_ms=0)


def _planner(t: FakeTime, venue: FakeVenue, synced: bool = True) -> PreWarmPlanner:
    clock = ClockSync(venue, time_source=t)
    if synced:
        clock.set_offset(venue.venue_offset_ms)
    return PreWarmPlanner(venue, DeadlineScheduler(clock, ScheduleConfig(), sleep=t.sleep))


class TestPlan:

    def test_default_leads(self, t):
        plan = _planner(t, FakeVenue(t)).plan(TARGET, (30, 15, 5))
        assert plan.fire_times == (TARGET - 30_000, TARGET - 15_000, TARGET - 5_000)
        assert len(plan) == 3

    def test_unordered_leads_are_sorted(self, t):
        plan = _planner(t, FakeVenue(t)).plan(TARGET, [5, 30, 15])
        assert plan.fire_times == (TARGET - 30_000, TARGET - 15_000, TARGET - 5_000)

    def test_duplicate_leads_collapse(self, t):
        plan = _planner(t, FakeVenue(t)).plan(TARGET, [15, 5, 15.0])
        assert plan.fire_times == (TARGET - 15_000, TARGET - 5_000)

    def test_fractional_lead(self, t):
        plan = _planner(t, FakeVenue(t)).plan(TARGET, [0.25])
        assert plan.fire_times == (TARGET - 250,)

    def test_negative_lead_rejected(self, t):
        with pytest.raises(ValueError):
            _planner(t, FakeVenue(t)).plan(TARGET, [30, -1])

    def test_empty_plan(self, t):
        assert len(_planner(t, FakeVenue(t)).plan(TARGET, [])) == 0


class TestExecute:

    @pytest.mark.asyncio
    async def test_probes_fire_on_schedule(self, t):
        venue = FakeVenue(t, venue_offset_ms=1_200)
        planner = _planner(t, venue)
        plan = planner.plan(TARGET, (30, 15, 5))

        outcomes = await planner.execute(ACCOUNT, plan)

        assert [at for _, at in venue.pings] == [TARGET - 30_000, TARGET - 15_000, TARGET - 5_000]
        assert all(o.ok and o.late_ms == 0 for o in outcomes)

    @pytest.mark.asyncio
    async def test_late_start_fires_missed_probes_immediately(self, t):
        # venue clock already at T-10s: the 30s and 15s slots have passed
        venue = FakeVenue(t, venue_offset_ms=TARGET - 10_000 - START_MS)
        planner = _planner(t, venue)

        outcomes = await planner.execute(ACCOUNT, planner.plan(TARGET, (30, 15, 5)))

        assert len(venue.pings) == 3
        fired = [at for _, at in venue.pings]
        assert fired == [TARGET - 10_000, TARGET - 10_000, TARGET - 5_000]
        assert [o.late_ms for o in outcomes] == [20_000, 5_000, 0]
        assert all(o.ok for o in outcomes)

    @pytest.mark.asyncio
    async def test_probe_failures_do_not_stop_the_plan(self, t):
        venue = FakeVenue(t, fail_pings_for={ACCOUNT.name})
        planner = _planner(t, venue)

        outcomes = await planner.execute(ACCOUNT, planner.plan(TARGET, (30, 15, 5)))

        assert len(venue.pings) == 3
        assert [o.ok for o in outcomes] == [False, False, False]
        assert "ping refused" in outcomes[0].error

    @pytest.mark.asyncio
    async def test_first_probe_failure_is_isolated(self, t):
        class FlakyVenue(FakeVenue):
            async def ping(self, account):
                await super().ping(account)
                if len(self.pings) == 1:
                    raise ConnectionResetError("reset by peer")

        venue = FlakyVenue(t)
        planner = _planner(t, venue)

        outcomes = await planner.execute(ACCOUNT, planner.plan(TARGET, (30, 15, 5)))

        assert [o.ok for o in outcomes] == [False, True, True]
        assert outcomes[0].error == "reset by peer"

    @pytest.mark.asyncio
    async def test_unsynced_clock_propagates(self, t):
        venue = FakeVenue(t)
        planner = _planner(t, venue, synced=False)

        with pytest.raises(ClockSyncFailed):
            await planner.execute(ACCOUNT, planner.plan(TARGET, (5,)))
        assert venue.pings == []
