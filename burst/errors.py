"""
Error taxonomy for the burst engine.

Only ClockSyncFailed and AccountDispatchFailed ever reach a caller of the
orchestrator; probe and order failures are logged or counted and dropped.
"""

from typing import Any, Optional


class BurstError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ClockSyncFailed(BurstError):
    """The venue time probe failed, or the clock was used before syncing."""


class VenueRequestError(BurstError):
    """Raised when the venue answers non-2xx or the transport fails (status_code 0)."""

    def __init__(self, message: str, status_code: int = 0, body: Optional[Any] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class OrderRequestFailed(VenueRequestError):
    """A single order placement failed. Never retried inside the flood loop."""


class PreWarmProbeFailed(BurstError):
    """A keep-alive probe failed. Recoverable: the rest of the plan still runs."""

    def __init__(self, account: str, lead_seconds: float, cause: str):
        self.account = account
        self.lead_seconds = lead_seconds
        self.cause = cause
        super().__init__(f"{account} pre-warm probe T-{lead_seconds:g}s failed: {cause}")


class AccountDispatchFailed(BurstError):
    """A dispatcher failed before it reached the firing phase."""

    def __init__(self, account: str, phase: str, cause: BaseException):
        self.account = account
        self.phase = phase
        self.cause = cause
        super().__init__(f"{account} failed during {phase}: {cause}")


class AccountConfigError(BurstError):
    """The credential file is missing, unreadable or malformed."""
