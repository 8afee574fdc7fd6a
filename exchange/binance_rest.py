"""
Binance USD-M Futures REST API Client.
Handles authentication, per-call timeouts, and the endpoints the guard needs.
"""

from __future__ import annotations
import asyncio
import hashlib
import hmac
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode
import aiohttp
import logging

logger = logging.getLogger(__name__)


class BinanceAPIError(Exception):
    """A Binance call failed: HTTP error, error payload, transport error or timeout."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class BinanceFuturesClient:
    """Async Binance USD-M futures REST wrapper."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        timeout_sec: float = 10.0,
        recv_window_ms: int = 5000,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._recv_window = recv_window_ms
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"X-MBX-APIKEY": self.api_key})
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    def _sign(self, query: str) -> str:
        """Generate HMAC-SHA256 signature of the query string."""
        return hmac.new(
            self.api_secret.encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _build_query(self, params: Optional[Dict], signed: bool) -> str:
        params = dict(params or {})
        if signed:
            params["timestamp"] = int(time.time() * 1000)
            params["recvWindow"] = self._recv_window
        query = urlencode(params)
        if signed:
            query = f"{query}&signature={self._sign(query)}"
        return query

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        signed: bool = False,
    ) -> Any:
        """Make an API request. Raises BinanceAPIError on any failure."""
        session = await self._get_session()
        query = self._build_query(params, signed)
        url = f"{self.base_url}{endpoint}"
        if query:
            url = f"{url}?{query}"

        try:
            async with session.request(method, url, timeout=self._timeout) as resp:
                data = await resp.json(content_type=None)
                status = resp.status
        except asyncio.TimeoutError:
            logger.error(f"[REST] {method} {endpoint} timed out")
            raise BinanceAPIError(f"{method} {endpoint} timed out") from None
        except (aiohttp.ClientError, ValueError) as e:
            logger.error(f"[REST] {method} {endpoint} Exception: {e}")
            raise BinanceAPIError(f"{method} {endpoint} failed: {e}") from e

        if status >= 400 or (isinstance(data, dict) and int(data.get("code", 0) or 0) < 0):
            code = data.get("code") if isinstance(data, dict) else None
            msg = data.get("msg") if isinstance(data, dict) else data
            logger.error(f"[REST] {method} {endpoint} Error: status={status}, code={code}, msg={msg}")
            raise BinanceAPIError(f"{method} {endpoint}: {msg}", status=status, code=code)

        return data

    # ==================== Account Endpoints ====================

    async def check_auth(self) -> Dict:
        """Verify the API key works. Returns account info."""
        data = await self._request("GET", "/fapi/v2/account", signed=True)
        if not data.get("canTrade", True):
            raise BinanceAPIError("API key is not allowed to trade futures")
        return data

    async def get_hedge_mode(self) -> bool:
        """True when the account uses dual-side (hedge) position mode."""
        data = await self._request("GET", "/fapi/v1/positionSide/dual", signed=True)
        return bool(data.get("dualSidePosition", False))

    async def get_positions(self) -> List[Dict]:
        """Get all position entries, flat ones included."""
        data = await self._request("GET", "/fapi/v2/positionRisk", signed=True)
        return data if isinstance(data, list) else []

    # ==================== Market Endpoints ====================

    async def get_exchange_symbols(self) -> List[Dict]:
        """Get symbol metadata (pricePrecision, quantityPrecision, ...)."""
        data = await self._request("GET", "/fapi/v1/exchangeInfo")
        return data.get("symbols", [])

    # ==================== Trading Endpoints ====================

    async def get_open_orders(self, symbol: str) -> List[Dict]:
        """Get open orders for a symbol."""
        data = await self._request("GET", "/fapi/v1/openOrders", {"symbol": symbol}, signed=True)
        return data if isinstance(data, list) else []

    async def cancel_order(self, symbol: str, order_id: str) -> Dict:
        """Cancel an order by id."""
        logger.info(f"[ORDER] Cancelling: {order_id} on {symbol}")
        return await self._request(
            "DELETE", "/fapi/v1/order",
            {"symbol": symbol, "orderId": order_id},
            signed=True,
        )

    async def place_protective_order(
        self,
        symbol: str,
        side: str,
        position_side: str,
        order_type: str,
        quantity: str,
        stop_price: str,
        time_in_force: str = "GTC",
        reduce_only: bool = False,
    ) -> Dict:
        """Place a STOP_MARKET or TAKE_PROFIT_MARKET order."""
        params = {
            "symbol": symbol,
            "side": side,
            "positionSide": position_side,
            "type": order_type,
            "quantity": quantity,
            "stopPrice": stop_price,
            "timeInForce": time_in_force,
            "workingType": "MARK_PRICE",
        }
        # reduceOnly is rejected in hedge mode
        if reduce_only:
            params["reduceOnly"] = "true"

        logger.info(f"[ORDER] Placing: {order_type} {side} {quantity} {symbol} @ {stop_price} ({position_side})")
        return await self._request("POST", "/fapi/v1/order", params, signed=True)
