"""
REST API client for OKX.

Provides async, signed access to the OKX v5 REST API endpoints the trading
gateway needs: account balance and positions, leverage, order placement,
position close, instrument metadata and pending algo orders.

The client only deals with transport. Every method returns the raw OKX
envelope ``{"code": "0", "msg": "", "data": [...]}`` and leaves the ``code``
check to the caller, because OKX reports business rejections inside a
successful HTTP 200 response.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import aiohttp

logger = logging.getLogger(__name__)


class OkxAPIError(Exception):
    """Base exception for OKX transport errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(OkxAPIError):
    """Rate limit exceeded."""
    pass


class InvalidResponseError(OkxAPIError):
    """Response body is not a JSON envelope."""
    pass


def _iso_timestamp() -> str:
    """OKX wants ISO-8601 UTC with millisecond precision, e.g. 2020-12-08T09:08:57.715Z."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def sign_request(
    secret_key: str,
    timestamp: str,
    method: str,
    request_path: str,
    body: str = "",
) -> str:
    """
    Compute the OK-ACCESS-SIGN header value.

    signature = Base64(HMAC_SHA256(secret, timestamp + METHOD + requestPath + body))

    ``request_path`` includes the query string for GET requests.
    """
    prehash = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(
        secret_key.encode("utf-8"),
        prehash.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("utf-8")


class OkxRestClient:
    """
    Async REST client for the OKX v5 API.

    Features:
        - HMAC-SHA256 request signing for private endpoints
        - Rate limiting to avoid API throttling
        - Automatic retries with exponential backoff (429, 5xx, timeouts)
        - Optional demo-trading header

    Usage:
        async with OkxRestClient(api_key, secret_key, passphrase) as client:
            resp = await client.get_balance()
            if resp["code"] == "0":
                details = resp["data"][0]
    """

    BASE_URL = "https://www.okx.com"

    def __init__(
        self,
        api_key: str = "",
        secret_key: str = "",
        passphrase: str = "",
        base_url: str = BASE_URL,
        simulated: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """
        Initialize the REST client.

        Args:
            api_key: OKX API key
            secret_key: OKX API secret
            passphrase: Passphrase chosen when the API key was created
            base_url: API host
            simulated: Send the demo-trading header on every request
            session: Optional aiohttp session (created if not provided)
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
            max_retries: Number of attempts for retryable failures
            retry_delay: Base delay between retries (exponential backoff)
        """
        self._api_key = api_key or ""
        self._secret_key = secret_key or ""
        self._passphrase = passphrase or ""
        self._base_url = base_url.rstrip("/")
        self._simulated = simulated

        self._session = session
        self._owns_session = session is None
        self._rate_limit = rate_limit
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        # Rate limiting
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "OkxRestClient":
        """Async context manager entry."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key and self._secret_key and self._passphrase)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def simulated(self) -> bool:
        return self._simulated

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()

            # Drop timestamps outside the 1-second window
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    def _auth_headers(self, method: str, request_path: str, body: str) -> dict[str, str]:
        timestamp = _iso_timestamp()
        return {
            "OK-ACCESS-KEY": self._api_key,
            "OK-ACCESS-SIGN": sign_request(
                self._secret_key, timestamp, method, request_path, body
            ),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self._passphrase,
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[Any] = None,
        signed: bool = True,
    ) -> dict:
        """
        Make an HTTP request with signing, rate limiting and retries.

        Args:
            method: HTTP method (GET or POST)
            path: Endpoint path, e.g. /api/v5/account/balance
            params: Query parameters (None values are dropped)
            body: JSON body for POST requests
            signed: Whether the endpoint is private

        Returns:
            Parsed OKX response envelope

        Raises:
            OkxAPIError: On transport or HTTP errors
            RateLimitError: When rate limited on the final attempt
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if signed and not self.has_credentials:
            raise OkxAPIError(f"OKX credentials are required for {method} {path}")

        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        query = {k: v for k, v in (params or {}).items() if v is not None}
        request_path = path
        if query:
            request_path = f"{path}?{urlencode(query)}"
        body_str = json.dumps(body) if body is not None else ""

        headers = {"Content-Type": "application/json"}
        if self._simulated:
            headers["x-simulated-trading"] = "1"

        url = f"{self._base_url}{request_path}"
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                await self._rate_limit_wait()

                # Timestamp is part of the signature, so sign per attempt
                request_headers = dict(headers)
                if signed:
                    request_headers.update(self._auth_headers(method, request_path, body_str))

                async with self._session.request(
                    method,
                    url,
                    data=body_str or None,
                    headers=request_headers,
                ) as response:
                    if response.status == 429:
                        raise RateLimitError("Rate limit exceeded", status_code=429)

                    # 4xx client errors (except 429) - don't retry
                    if 400 <= response.status < 500:
                        text = await response.text()
                        raise OkxAPIError(
                            f"API error: {response.status} - {text}",
                            status_code=response.status,
                        )

                    # 5xx server errors - retry
                    if response.status >= 500:
                        text = await response.text()
                        raise OkxAPIError(
                            f"Server error: {response.status} - {text}",
                            status_code=response.status,
                        )

                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        # HTML error pages from proxies arrive with status 200
                        raise InvalidResponseError(
                            f"Invalid JSON from {path}: {e}",
                            status_code=response.status,
                        ) from e

            except RateLimitError as e:
                delay = self._retry_delay * (2 ** attempt) * 2
                logger.warning(f"Rate limited on {path}, waiting {delay}s before retry")
                last_error = e
                await asyncio.sleep(delay)

            except OkxAPIError as e:
                if e.status_code and e.status_code >= 500:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Server error {e.status_code} on {path}, "
                        f"retry {attempt + 1}/{self._max_retries}"
                    )
                    last_error = e
                    await asyncio.sleep(delay)
                else:
                    raise

            except asyncio.TimeoutError:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(
                    f"Request timeout on {path}, retry {attempt + 1}/{self._max_retries}"
                )
                last_error = OkxAPIError(f"Request timed out: {method} {path}")
                await asyncio.sleep(delay)

            except asyncio.CancelledError:
                logger.debug(f"Request cancelled: {method} {path}")
                raise

            except aiohttp.ClientError as e:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(
                    f"Request failed on {path}: {e}, retry {attempt + 1}/{self._max_retries}"
                )
                last_error = OkxAPIError(str(e))
                await asyncio.sleep(delay)

        raise last_error or OkxAPIError(f"Request failed after retries: {method} {path}")

    # =========================================================================
    # Account
    # =========================================================================

    async def get_balance(self) -> dict:
        """Trading account balance (totalEq, availEq, upl, ...)."""
        return await self._request("GET", "/api/v5/account/balance")

    async def get_positions(self, inst_type: Optional[str] = None) -> dict:
        """Open positions, optionally filtered by instrument type."""
        return await self._request(
            "GET",
            "/api/v5/account/positions",
            params={"instType": inst_type},
        )

    async def set_leverage(self, inst_id: str, mgn_mode: str, lever: int) -> dict:
        return await self._request(
            "POST",
            "/api/v5/account/set-leverage",
            body={"instId": inst_id, "mgnMode": mgn_mode, "lever": str(lever)},
        )

    # =========================================================================
    # Trade
    # =========================================================================

    async def place_order(
        self,
        inst_id: str,
        td_mode: str,
        side: str,
        pos_side: str,
        ord_type: str,
        sz: Any,
        attach_algo_ords: Optional[list[dict]] = None,
    ) -> dict:
        """
        Place a single order.

        Args:
            inst_id: Instrument ID, e.g. BTC-USDT-SWAP
            td_mode: Trade mode ("cross" or "isolated")
            side: "buy" or "sell"
            pos_side: "long", "short" or "net"
            ord_type: "market", "limit", ...
            sz: Order size, sent as a decimal string
            attach_algo_ords: Attached take-profit/stop-loss orders
        """
        body: dict[str, Any] = {
            "instId": inst_id,
            "tdMode": td_mode,
            "side": side,
            "posSide": pos_side,
            "ordType": ord_type,
            "sz": str(sz),
        }
        if attach_algo_ords:
            body["attachAlgoOrds"] = attach_algo_ords
        return await self._request("POST", "/api/v5/trade/order", body=body)

    async def close_position(self, inst_id: str, mgn_mode: str, pos_side: str) -> dict:
        """Market-close the whole position on one side."""
        return await self._request(
            "POST",
            "/api/v5/trade/close-position",
            body={"instId": inst_id, "mgnMode": mgn_mode, "posSide": pos_side},
        )

    async def get_algo_orders(self, ord_type: str, inst_id: Optional[str] = None) -> dict:
        """Pending algo orders. ``ord_type`` may be comma-separated, e.g. "conditional,oco"."""
        return await self._request(
            "GET",
            "/api/v5/trade/orders-algo-pending",
            params={"ordType": ord_type, "instId": inst_id},
        )

    async def cancel_algo_orders(self, batch: list[dict]) -> dict:
        """Cancel algo orders given as [{"instId": ..., "algoId": ...}, ...]."""
        return await self._request("POST", "/api/v5/trade/cancel-algos", body=batch)

    # =========================================================================
    # Public data
    # =========================================================================

    async def get_instruments(self, inst_type: str, inst_id: Optional[str] = None) -> dict:
        """Instrument metadata (lotSz, ctVal, tickSz, ...)."""
        return await self._request(
            "GET",
            "/api/v5/public/instruments",
            params={"instType": inst_type, "instId": inst_id},
            signed=False,
        )

    async def get_ticker(self, inst_id: str) -> dict:
        """Latest ticker (last, bidPx, askPx, ...)."""
        return await self._request(
            "GET",
            "/api/v5/market/ticker",
            params={"instId": inst_id},
            signed=False,
        )
