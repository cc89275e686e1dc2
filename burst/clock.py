"""
Venue Clock Synchronisation
───────────────────────────
The venue enforces its own timestamps, so every deadline in the engine is
expressed on the venue's clock. ClockSync probes the venue once, keeps the
measured offset, and exposes "adjusted" time = local wall-clock + offset.

The offset lives on the ClockSync instance, which is handed explicitly to the
scheduler, the pre-warm planner and the dispatchers. It is written only by
sync(), before any dispatcher starts, so no locking is needed.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional

from .errors import ClockSyncFailed

if TYPE_CHECKING:
    from .venue.base import VenueClient

logger = logging.getLogger(__name__)


def local_ms() -> int:
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class ClockOffset:
    offset_ms: int
    measured_at_ms: int
    round_trip_ms: int = 0

    def __repr__(self) -> str:
        return f"ClockOffset({self.offset_ms:+d}ms, rtt={self.round_trip_ms}ms)"


class ClockSync:
    """
    Synchronisation context owning the venue clock offset.
    adjusted_now() refuses to answer until sync() (or set_offset()) succeeded.
    """

    def __init__(
        self,
        client: Optional["VenueClient"] = None,
        time_source: Callable[[], int] = local_ms,
        display_tz_minutes: int = 480,
    ):
        self._client = client
        self._time_source = time_source
        self._display_tz_minutes = display_tz_minutes
        self._offset: Optional[ClockOffset] = None

    @property
    def offset(self) -> Optional[ClockOffset]:
        return self._offset

    @property
    def is_synced(self) -> bool:
        return self._offset is not None

    def local_now(self) -> int:
        return self._time_source()

    async def sync(self) -> ClockOffset:
        if self._client is None:
            raise ClockSyncFailed("no venue client to probe")

        sent_at = self._time_source()
        try:
            venue_ms = await self._client.server_time()
        except Exception as e:
            logger.error(f"[ClockSync] time probe failed: {e}")
            raise ClockSyncFailed(f"venue time probe failed: {e}") from e
        received_at = self._time_source()

        if isinstance(venue_ms, bool) or not isinstance(venue_ms, (int, float)) or not math.isfinite(venue_ms):
            raise ClockSyncFailed(f"venue returned a malformed timestamp: {venue_ms!r}")

        offset = ClockOffset(
            offset_ms=int(venue_ms) - received_at,
            measured_at_ms=received_at,
            round_trip_ms=received_at - sent_at,
        )
        self._offset = offset

        logger.info(f"[ClockSync] venue time (UTC): {_utc(int(venue_ms)).isoformat()}")
        logger.info(f"[ClockSync] local time (UTC): {_utc(received_at).isoformat()}")
        logger.info(f"[ClockSync] offset {offset.offset_ms:+d}ms, probe round trip {offset.round_trip_ms}ms")
        logger.info(
            f"[ClockSync] adjusted now: "
            f"{format_instant(self.adjusted_now(), self._display_tz_minutes)}"
        )
        return offset

    def set_offset(self, offset_ms: int) -> ClockOffset:
        """Install a known offset without probing (replays, tests, manual override)."""
        now = self._time_source()
        self._offset = ClockOffset(offset_ms=int(offset_ms), measured_at_ms=now)
        return self._offset

    def adjusted_now(self) -> int:
        offset = self._offset
        if offset is None:
            raise ClockSyncFailed("clock not synchronised with the venue")
        return self._time_source() + offset.offset_ms

    def adjusted_date(self) -> datetime:
        return _utc(self.adjusted_now())


def _utc(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms // 1000, tz=timezone.utc) + timedelta(milliseconds=epoch_ms % 1000)


def format_instant(epoch_ms: int, tz_offset_minutes: int = 480) -> str:
    """Render an instant in a fixed UTC offset zone, e.g. '2025-03-01 18:00:00.000 UTC+08:00'."""
    tz = timezone(timedelta(minutes=tz_offset_minutes))
    dt = datetime.fromtimestamp(epoch_ms // 1000, tz=tz) + timedelta(milliseconds=epoch_ms % 1000)
    sign = "+" if tz_offset_minutes >= 0 else "-"
    hours, minutes = divmod(abs(tz_offset_minutes), 60)
    return f"{dt.strftime('%Y-%m-%d %H:%M:%S')}.{dt.microsecond // 1000:03d} UTC{sign}{hours:02d}:{minutes:02d}"
