"""
Deadline Scheduler
──────────────────
Turns venue-clock instants into local sleeps.

  remaining = target - adjusted_now()
    <= 0               → proceed immediately
    <= long threshold  → one bounded sleep
    >  long threshold  → same sleep, plus a periodic progress task so a
                         supervisor can see the process is alive

Target instants for "HH:MM in zone Z" are computed with plain UTC-offset
arithmetic; the host's local timezone is never consulted.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..clock import ClockSync, format_instant
from ..config import ScheduleConfig

logger = logging.getLogger(__name__)

DAY_MS = 86_400_000


def build_target_instant(
    now_ms: int,
    hour: int,
    minute: int,
    day_offset: int = 0,
    tz_offset_minutes: int = 480,
) -> int:
    """
    Epoch ms of HH:MM on (today + day_offset) in the UTC+tz_offset zone,
    where "today" is now_ms's date in that zone. With day_offset == 0 an
    instant already in the past rolls over to the next day.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be 0-23, got {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"minute must be 0-59, got {minute}")
    if day_offset < 0:
        raise ValueError(f"day_offset must be >= 0, got {day_offset}")

    tz_ms = tz_offset_minutes * 60_000
    wall_now = now_ms + tz_ms
    wall_midnight = wall_now - (wall_now % DAY_MS)
    target = wall_midnight + day_offset * DAY_MS + hour * 3_600_000 + minute * 60_000 - tz_ms

    if day_offset == 0 and target < now_ms:
        target += DAY_MS
    return target


class DeadlineScheduler:

    def __init__(
        self,
        clock: ClockSync,
        config: Optional[ScheduleConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        self.clock = clock
        self.config = config or ScheduleConfig()
        self._sleep = sleep
        self._on_progress = on_progress

    def remaining_ms(self, target_ms: int) -> int:
        return target_ms - self.clock.adjusted_now()

    def build_target_instant(
        self,
        hour: int,
        minute: int,
        day_offset: int = 0,
        tz_offset_minutes: Optional[int] = None,
    ) -> int:
        tz = self.config.tz_offset_minutes if tz_offset_minutes is None else tz_offset_minutes
        return build_target_instant(self.clock.adjusted_now(), hour, minute, day_offset, tz)

    def describe(self, epoch_ms: int) -> str:
        return format_instant(epoch_ms, self.config.tz_offset_minutes)

    async def wait_until(self, target_ms: int, label: str = "target") -> int:
        """Sleep until target_ms on the venue clock. Returns the wait that was needed, in ms."""
        remaining = self.remaining_ms(target_ms)
        if remaining <= 0:
            return 0

        threshold_ms = self.config.long_wait_threshold_s * 1000
        if remaining <= threshold_ms:
            await self._sleep_until(target_ms)
            return remaining

        logger.info(f"[Scheduler] long wait for {label}: {_human(remaining)} until {self.describe(target_ms)}")
        progress = asyncio.create_task(self._report_progress(target_ms, label))
        try:
            await self._sleep_until(target_ms)
        finally:
            progress.cancel()
            try:
                await progress
            except asyncio.CancelledError:
                pass
        return remaining

    async def _sleep_until(self, target_ms: int):
        remaining = self.remaining_ms(target_ms)
        # sleeps may return a little early; top up instead of firing before the deadline
        while remaining > 0:
            await self._sleep(remaining / 1000)
            remaining = self.remaining_ms(target_ms)

    async def _report_progress(self, target_ms: int, label: str):
        interval = max(self.config.progress_interval_s, 0.001)
        while True:
            await self._sleep(interval)
            remaining = self.remaining_ms(target_ms)
            if remaining <= 0:
                return
            logger.info(f"[Scheduler] {label}: {_human(remaining)} remaining")
            if self._on_progress:
                self._on_progress(remaining)


def _human(ms: int) -> str:
    seconds = ms / 1000
    if seconds < 120:
        return f"{seconds:.3f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m{secs:02d}s"
