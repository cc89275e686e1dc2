"""
Tests for the multi-account batch run.
"""

import logging

import pytest

from burst.clock import ClockSync
from burst.config import DispatchConfig, ScheduleConfig
from burst.errors import ClockSyncFailed
from burst.execution.orchestrator import BatchOrchestrator
from burst.models import PreWarmConfig
from burst.monitoring.stats import compute_qps
from burst.scheduling.deadline import DeadlineScheduler
from burst.scheduling.prewarm import PreWarmPlanner

from .fakes import FakeVenue


class ExplodingPlanner(PreWarmPlanner):
    """Pre-warm that blows up for one account."""

    def __init__(self, client, scheduler, broken: str):
        super().__init__(client, scheduler)
        self.broken = broken

    async def execute(self, account, plan):
        if account.name == self.broken:
            raise RuntimeError("session pool exhausted")
        return await super().execute(account, plan)


def _config(**overrides):
    values = dict(start_offset_ms=1_000, duration_ms=500, prewarm_lead_seconds=(30, 15, 5), drain_timeout_s=1.0)
    values.update(overrides)
    return DispatchConfig(**values)


class TestBatchOrchestrator:

    @pytest.mark.asyncio
    async def test_all_accounts_fire(self, venue, synced_clock, scheduler, accounts, intent):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config())
        window = orchestrator.window_for(synced_clock.adjusted_now() + 40_000)

        batch = await orchestrator.run(accounts, intent, window)

        assert [r.account for r in batch.results] == [a.name for a in accounts]
        assert batch.failures == ()
        assert batch.total_requests == sum(r.request_count for r in batch.results)
        assert batch.total_requests == sum(venue.orders.values())
        assert batch.system_qps == compute_qps(batch.total_requests, 500)
        assert batch.duration_ms == 500
        assert batch.completions.acknowledged == batch.total_requests
        assert len(venue.pings) == 9

    @pytest.mark.asyncio
    async def test_prewarm_failure_isolated_to_one_account(self, venue, synced_clock, scheduler, accounts, intent):
        planner = ExplodingPlanner(venue, scheduler, broken="acct-2")
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config(), planner=planner)
        window = orchestrator.window_for(synced_clock.adjusted_now() + 40_000)

        batch = await orchestrator.run(accounts, intent, window)

        assert [r.account for r in batch.results] == ["acct-1", "acct-3"]
        assert all(r.request_count > 0 for r in batch.results)
        assert len(batch.failures) == 1
        failure = batch.failures[0]
        assert failure.account == "acct-2"
        assert failure.phase == "pre_warming"
        assert "session pool exhausted" in failure.error
        assert venue.orders["acct-2"] == 0
        assert batch.total_requests == sum(r.request_count for r in batch.results)

    @pytest.mark.asyncio
    async def test_unsynced_clock_sends_nothing(self, fake_time, venue, accounts, intent):
        clock = ClockSync(venue, time_source=fake_time)
        scheduler = DeadlineScheduler(clock, ScheduleConfig(), sleep=fake_time.sleep)
        orchestrator = BatchOrchestrator(venue, clock, scheduler, _config())
        window = orchestrator.window_for(fake_time.peek() + 40_000)

        with pytest.raises(ClockSyncFailed):
            await orchestrator.run(accounts, intent, window)

        assert venue.pings == []
        assert sum(venue.orders.values()) == 0

    @pytest.mark.asyncio
    async def test_no_accounts(self, venue, synced_clock, scheduler, intent):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config())
        window = orchestrator.window_for(synced_clock.adjusted_now() + 10_000)

        batch = await orchestrator.run([], intent, window)

        assert batch.results == ()
        assert batch.total_requests == 0
        assert batch.avg_qps == 0
        assert batch.system_qps == 0

    @pytest.mark.asyncio
    async def test_explicit_prewarm_overrides_config(self, venue, synced_clock, scheduler, accounts, intent):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config())
        window = orchestrator.window_for(synced_clock.adjusted_now() + 40_000)

        await orchestrator.run(accounts[:1], intent, window, PreWarmConfig(enabled=False))

        assert venue.pings == []

    @pytest.mark.asyncio
    async def test_zero_drain_timeout_abandons_in_flight(self, fake_time, synced_clock, scheduler, accounts, intent):
        slow = FakeVenue(fake_time, order_latency_s=30)
        orchestrator = BatchOrchestrator(
            slow, synced_clock, scheduler, _config(drain_timeout_s=0, prewarm_enabled=False, duration_ms=20)
        )
        window = orchestrator.window_for(synced_clock.adjusted_now() + 5_000)

        batch = await orchestrator.run(accounts[:2], intent, window)

        assert batch.total_requests > 0
        assert batch.completions.abandoned == batch.total_requests
        assert all(d.in_flight == 0 for d in orchestrator.dispatchers)

    def test_window_for_uses_config(self, venue, synced_clock, scheduler):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config())
        window = orchestrator.window_for(1_000_000)
        assert (window.start_ms, window.target_ms, window.end_ms) == (999_000, 1_000_000, 1_000_500)

    @pytest.mark.asyncio
    async def test_latency_pooled_across_accounts(self, venue, synced_clock, scheduler, accounts, intent, caplog):
        caplog.set_level(logging.INFO, logger="burst.execution.orchestrator")
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config(prewarm_enabled=False))
        window = orchestrator.window_for(synced_clock.adjusted_now() + 5_000)

        batch = await orchestrator.run(accounts[:2], intent, window)

        assert batch.latency.count == batch.completions.acknowledged > 0
        assert batch.latency.p50_ms <= batch.latency.p95_ms <= batch.latency.p99_ms <= batch.latency.max_ms
        assert set(batch.to_dict()["latency"]) == {"count", "avg_ms", "p50_ms", "p95_ms", "p99_ms", "max_ms"}
        assert any("p99" in r.getMessage() for r in caplog.records), "latency line missing from the report"

    @pytest.mark.asyncio
    async def test_rejections_reported_with_last_error(self, fake_time, synced_clock, scheduler, accounts, intent, caplog):
        caplog.set_level(logging.INFO, logger="burst.execution.orchestrator")
        rejecting = FakeVenue(fake_time, fail_orders=True)
        orchestrator = BatchOrchestrator(rejecting, synced_clock, scheduler, _config(prewarm_enabled=False))
        window = orchestrator.window_for(synced_clock.adjusted_now() + 5_000)

        batch = await orchestrator.run(accounts[:1], intent, window)

        assert batch.completions.failed == batch.total_requests > 0
        assert batch.latency.count == 0
        assert any(
            "orders rejected, last error: insufficient balance" in r.getMessage() for r in caplog.records
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("leads", [(5, 0.5), (0.2,)])
    async def test_lead_inside_window_rejected(self, venue, synced_clock, scheduler, accounts, intent, leads):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config(prewarm_lead_seconds=leads))
        window = orchestrator.window_for(synced_clock.adjusted_now() + 40_000)

        with pytest.raises(ValueError, match="inside the dispatch window"):
            await orchestrator.run(accounts, intent, window)

        assert venue.pings == []
        assert sum(venue.orders.values()) == 0

    @pytest.mark.asyncio
    async def test_lead_equal_to_start_offset_allowed(self, venue, synced_clock, scheduler, accounts, intent):
        orchestrator = BatchOrchestrator(venue, synced_clock, scheduler, _config(prewarm_lead_seconds=(1,)))
        window = orchestrator.window_for(synced_clock.adjusted_now() + 40_000)

        batch = await orchestrator.run(accounts[:1], intent, window)

        assert batch.succeeded == 1
        assert len(venue.pings) == 1
