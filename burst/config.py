"""
Burst Configuration
───────────────────
Centralizes all tunable parameters for clock sync, scheduling and the
flood loop. Defaults can be overridden from BURST_* environment variables
(a .env file next to the working directory is loaded first).
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


@dataclass
class VenueConfig:
    base_url: str = "https://api4.binance.com"
    time_path: str = "/api/v3/time"
    order_path: str = "/api/v3/order"
    open_orders_path: str = "/api/v3/openOrders"
    account_path: str = "/api/v3/account"
    api_key_header: str = "X-MBX-APIKEY"
    extra_headers: Dict[str, str] = field(default_factory=dict)
    recv_window_ms: Optional[int] = None
    timeout_s: float = 3.0
    # the flood loop spawns thousands of concurrent requests; a small pool serializes them
    max_connections: int = 1000
    max_keepalive: int = 200


@dataclass
class ScheduleConfig:
    long_wait_threshold_s: float = 3600.0
    progress_interval_s: float = 60.0
    tz_offset_minutes: int = 480  # UTC+8


@dataclass
class DispatchConfig:
    start_offset_ms: int = 1000
    duration_ms: int = 3000
    prewarm_enabled: bool = True
    prewarm_lead_seconds: Tuple[float, ...] = (30, 15, 5)
    drain_timeout_s: float = 5.0
    yield_every: int = 1


@dataclass
class BurstConfig:
    venue: VenueConfig = field(default_factory=VenueConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)

    accounts_file: str = "apis.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "BurstConfig":
        load_dotenv(env_file or Path.cwd() / ".env")
        env = os.environ

        venue = VenueConfig(
            base_url=env.get("BURST_BASE_URL", VenueConfig.base_url).rstrip("/"),
            api_key_header=env.get("BURST_API_KEY_HEADER", VenueConfig.api_key_header),
            recv_window_ms=_int_or_none(env.get("BURST_RECV_WINDOW_MS")),
            timeout_s=float(env.get("BURST_TIMEOUT_S", VenueConfig.timeout_s)),
            max_connections=int(env.get("BURST_MAX_CONNECTIONS", VenueConfig.max_connections)),
            max_keepalive=int(env.get("BURST_MAX_KEEPALIVE", VenueConfig.max_keepalive)),
        )
        schedule = ScheduleConfig(
            long_wait_threshold_s=float(env.get("BURST_LONG_WAIT_THRESHOLD_S", ScheduleConfig.long_wait_threshold_s)),
            progress_interval_s=float(env.get("BURST_PROGRESS_INTERVAL_S", ScheduleConfig.progress_interval_s)),
            tz_offset_minutes=int(env.get("BURST_TZ_OFFSET_MINUTES", ScheduleConfig.tz_offset_minutes)),
        )
        dispatch = DispatchConfig(
            start_offset_ms=int(env.get("BURST_START_OFFSET_MS", DispatchConfig.start_offset_ms)),
            duration_ms=int(env.get("BURST_DURATION_MS", DispatchConfig.duration_ms)),
            prewarm_enabled=_bool(env.get("BURST_PREWARM"), DispatchConfig.prewarm_enabled),
            prewarm_lead_seconds=parse_lead_seconds(env.get("BURST_PREWARM_LEADS", ""))
            or DispatchConfig.prewarm_lead_seconds,
            drain_timeout_s=float(env.get("BURST_DRAIN_TIMEOUT_S", DispatchConfig.drain_timeout_s)),
            yield_every=int(env.get("BURST_YIELD_EVERY", DispatchConfig.yield_every)),
        )
        return cls(
            venue=venue,
            schedule=schedule,
            dispatch=dispatch,
            accounts_file=env.get("BURST_ACCOUNTS_FILE", cls.accounts_file),
            log_level=env.get("BURST_LOG_LEVEL", cls.log_level).upper(),
        )


def parse_lead_seconds(raw: str) -> Tuple[float, ...]:
    """'30,15,5' -> (30.0, 15.0, 5.0). Empty input gives an empty tuple."""
    parts = [p.strip() for p in (raw or "").split(",")]
    return tuple(float(p) for p in parts if p)


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    return int(raw)


def _bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
