"""
Pre-Warm Planner
────────────────
Fires a keep-alive probe per account at fixed lead times before the target
(30s, 15s, 5s by default) so TLS sessions and pooled connections are warm
when the window opens.

Every planned probe fires exactly once, in ascending time order. A probe
whose slot has already passed fires immediately instead of being skipped.
Probe failures are logged and the plan carries on; only a failure of the
wait itself (e.g. an unsynchronised clock) propagates.
"""

import logging
from typing import Iterable, List

from ..errors import PreWarmProbeFailed
from ..models import Account, PreWarmEntry, PreWarmOutcome, PreWarmPlan
from ..venue.base import VenueClient
from .deadline import DeadlineScheduler

logger = logging.getLogger(__name__)


class PreWarmPlanner:

    def __init__(self, client: VenueClient, scheduler: DeadlineScheduler):
        self.client = client
        self.scheduler = scheduler

    def plan(self, target_ms: int, lead_times_seconds: Iterable[float]) -> PreWarmPlan:
        leads = set()
        for lead in lead_times_seconds:
            if lead < 0:
                raise ValueError(f"pre-warm lead time must be >= 0, got {lead}")
            leads.add(lead)

        entries = tuple(
            PreWarmEntry(lead_seconds=lead, fire_at_ms=target_ms - int(round(lead * 1000)))
            for lead in sorted(leads, reverse=True)
        )
        return PreWarmPlan(target_ms=target_ms, entries=entries)

    async def execute(self, account: Account, plan: PreWarmPlan) -> List[PreWarmOutcome]:
        clock = self.scheduler.clock
        outcomes: List[PreWarmOutcome] = []
        logger.info(f"[PreWarm] {account.name}: {len(plan)} probes planned")

        for entry in plan:
            await self.scheduler.wait_until(entry.fire_at_ms, label=f"{account.name} pre-warm T-{entry.lead_seconds:g}s")
            fired_at = clock.adjusted_now()
            try:
                await self.client.ping(account)
            except Exception as e:
                failure = PreWarmProbeFailed(account.name, entry.lead_seconds, str(e) or type(e).__name__)
                logger.warning(f"[PreWarm] {failure.message}")
                outcomes.append(PreWarmOutcome(entry.lead_seconds, entry.fire_at_ms, fired_at, False, failure.cause))
                continue

            late = fired_at - entry.fire_at_ms
            suffix = f" ({late}ms late)" if late > 0 else ""
            logger.info(f"[PreWarm] {account.name}: T-{entry.lead_seconds:g}s probe ok{suffix}")
            outcomes.append(PreWarmOutcome(entry.lead_seconds, entry.fire_at_ms, fired_at, True))

        ok = sum(1 for o in outcomes if o.ok)
        logger.info(f"[PreWarm] {account.name}: done, {ok}/{len(outcomes)} probes succeeded")
        return outcomes
