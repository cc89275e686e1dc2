"""
Venue client interface.
The burst engine only needs a time probe, a keep-alive ping and order
placement; everything else a concrete client offers is for the operator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..models import Account, OrderIntent


@dataclass
class OrderAck:
    """Result of a successful order placement."""
    order_id: str
    venue_time_ms: int
    raw: Optional[Dict[str, Any]] = None


class VenueClient(ABC):
    """Abstract venue: clock probe, keep-alive ping, order placement."""

    @abstractmethod
    async def server_time(self) -> int:
        """Venue epoch milliseconds."""
        pass

    @abstractmethod
    async def ping(self, account: Account) -> None:
        """Lightweight request that keeps the account's connection warm."""
        pass

    @abstractmethod
    async def place_order(self, account: Account, intent: OrderIntent) -> OrderAck:
        """Place one order. Raises OrderRequestFailed on any failure."""
        pass

    async def aclose(self) -> None:
        """Release pooled connections. Default: nothing to release."""
        return None
