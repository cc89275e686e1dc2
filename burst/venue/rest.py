"""
Signed REST venue client.
Spot-style HMAC API (defaults point at https://api4.binance.com):
  GET    /api/v3/time        unsigned clock probe, also used as keep-alive
  POST   /api/v3/order       signed order placement
  GET    /api/v3/openOrders  signed open-order query
  DELETE /api/v3/openOrders  signed cancel-all for a symbol
  GET    /api/v3/account     signed balances

A single pooled httpx.AsyncClient is shared by every account so the flood
loop's requests are spread over warm keep-alive connections.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

import httpx

from ..clock import local_ms
from ..config import VenueConfig
from ..errors import OrderRequestFailed, VenueRequestError
from ..models import Account, OrderIntent
from .base import OrderAck, VenueClient
from .signing import signed_query

if TYPE_CHECKING:
    from ..clock import ClockSync

logger = logging.getLogger(__name__)


class SignedRestClient(VenueClient):

    def __init__(
        self,
        config: Optional[VenueConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timestamp_source: Callable[[], int] = local_ms,
    ):
        self.config = config or VenueConfig()
        self._timestamp_source = timestamp_source
        self._http = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_s,
            limits=httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_keepalive,
            ),
            headers=dict(self.config.extra_headers),
            transport=transport,
        )

    async def __aenter__(self) -> "SignedRestClient":
        return self

    async def __aexit__(self, *_):
        await self.aclose()

    def bind_clock(self, clock: "ClockSync"):
        """Stamp signed requests with venue-adjusted time from now on."""
        self._timestamp_source = clock.adjusted_now

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport ────────────────────────────────────────────────

    async def send(
        self,
        account: Optional[Account],
        method: str,
        path: str,
        params: Optional[Mapping[str, str]] = None,
        signed: bool = True,
    ) -> Any:
        params = dict(params or {})
        headers: Dict[str, str] = {}
        if account is not None:
            headers[self.config.api_key_header] = account.api_key

        if signed:
            if account is None:
                raise ValueError("signed requests need an account")
            if self.config.recv_window_ms is not None:
                params["recvWindow"] = str(self.config.recv_window_ms)
            params["timestamp"] = str(self._timestamp_source())
            query = signed_query(params, account.secret_key)
        else:
            query = urlencode(list(params.items()))

        url = f"{path}?{query}" if query else path
        who = account.name if account is not None else "anonymous"

        try:
            r = await self._http.request(method, url, headers=headers)
        except httpx.HTTPError as e:
            raise VenueRequestError(f"{who} {method} {path} transport error: {e!r}", 0) from e

        if not r.is_success:
            try:
                body = r.json()
                msg = body.get("msg") or body.get("message") or r.text
            except Exception:
                body = r.text
                msg = r.text or r.reason_phrase
            raise VenueRequestError(f"{who} {method} {path} HTTP {r.status_code}: {msg}", r.status_code, body)

        try:
            return r.json()
        except ValueError as e:
            raise VenueRequestError(f"{who} {method} {path} returned non-JSON body", r.status_code, r.text) from e

    # ── Engine-facing ────────────────────────────────────────────

    async def server_time(self) -> int:
        data = await self.send(None, "GET", self.config.time_path, signed=False)
        server_time = data.get("serverTime") if isinstance(data, dict) else None
        if isinstance(server_time, bool) or not isinstance(server_time, (int, float)):
            raise VenueRequestError(f"malformed time response: {data!r}", 200, data)
        return int(server_time)

    async def ping(self, account: Account) -> None:
        await self.send(account, "GET", self.config.time_path, signed=False)

    async def place_order(self, account: Account, intent: OrderIntent) -> OrderAck:
        try:
            data = await self.send(account, "POST", self.config.order_path, intent.to_params())
        except VenueRequestError as e:
            raise OrderRequestFailed(e.message, e.status_code, e.body) from e

        if not isinstance(data, dict) or "orderId" not in data:
            raise OrderRequestFailed(f"{account.name} order response without orderId: {data!r}", 200, data)
        return OrderAck(
            order_id=str(data["orderId"]),
            venue_time_ms=int(data.get("transactTime") or data.get("time") or 0),
            raw=data,
        )

    # ── Operator helpers ─────────────────────────────────────────

    async def open_orders(self, account: Account, symbol: str) -> List[Dict[str, Any]]:
        data = await self.send(account, "GET", self.config.open_orders_path, {"symbol": symbol})
        return data if isinstance(data, list) else []

    async def cancel_open_orders(self, account: Account, symbol: str) -> List[Dict[str, Any]]:
        data = await self.send(account, "DELETE", self.config.open_orders_path, {"symbol": symbol})
        return data if isinstance(data, list) else []

    async def balances(
        self, account: Account, assets: Optional[Iterable[str]] = None
    ) -> Dict[str, Dict[str, str]]:
        data = await self.send(account, "GET", self.config.account_path)
        wanted = {a.upper() for a in assets} if assets else None
        result: Dict[str, Dict[str, str]] = {}
        for b in data.get("balances", []) if isinstance(data, dict) else []:
            asset = b.get("asset", "")
            if wanted is None or asset in wanted:
                result[asset] = {"free": b.get("free", "0"), "locked": b.get("locked", "0")}
        if wanted:
            for asset in wanted - result.keys():
                result[asset] = {"free": "0", "locked": "0"}
        return result
