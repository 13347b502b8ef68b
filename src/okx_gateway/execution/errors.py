"""
Error taxonomy for the trading gateway.

Fatal errors are raised. Advisory cleanup failures (pre-open and post-close
order cancellation) are never raised; they are returned as warnings on the
operation result.
"""
from __future__ import annotations

from typing import Any, Awaitable, Optional

from okx_gateway.exchange import OkxAPIError


class GatewayError(Exception):
    """Base class for every error the gateway raises."""

    pass


class TransportError(GatewayError):
    """Network, auth or HTTP failure talking to the exchange."""

    def __init__(self, operation: str, reason: str, status_code: Optional[int] = None):
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{operation} failed: {reason}")


class ExchangeRejectedError(GatewayError):
    """The exchange answered, but with a non-success code."""

    def __init__(self, operation: str, code: str, message: str = ""):
        self.operation = operation
        self.code = code
        self.message = message
        detail = f" ({message})" if message else ""
        super().__init__(f"{operation} rejected by exchange: code={code}{detail}")


class LeverageChangeFailedError(ExchangeRejectedError):
    """Leverage change was rejected or could not be sent."""

    def __init__(self, symbol: str, leverage: int, code: str, message: str = ""):
        self.symbol = symbol
        self.leverage = leverage
        super().__init__(f"set_leverage {symbol} {leverage}x", code, message)


class NoPositionFoundError(GatewayError):
    """Close requested with implicit quantity but nothing is open."""

    def __init__(self, symbol: str, side: str):
        self.symbol = symbol
        self.side = side
        super().__init__(f"No {side} position found for {symbol}")


class PrecisionUnavailableError(GatewayError):
    """
    Instrument precision could not be resolved.

    Never escapes the precision resolver's formatting path: callers of
    format_quantity get the default precision instead.
    """

    def __init__(self, symbol: str, reason: str):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"Precision unavailable for {symbol}: {reason}")


def _rejection_message(response: dict) -> str:
    message = response.get("msg") or ""
    if message:
        return message
    # Per-item failures (orders, leverage) carry the reason in sMsg
    for item in response.get("data") or []:
        if isinstance(item, dict) and item.get("sMsg"):
            return item["sMsg"]
    return ""


async def call_exchange(operation: str, request: Awaitable[Any]) -> dict:
    """
    Await an exchange client call and check the OKX envelope.

    Args:
        operation: Name used in error messages and logs
        request: Awaitable returned by an OkxRestClient method

    Returns:
        The response envelope (code == "0")

    Raises:
        TransportError: If the client could not complete the request
        ExchangeRejectedError: If the exchange answered with a non-zero code
    """
    try:
        response = await request
    except OkxAPIError as e:
        raise TransportError(operation, str(e), e.status_code) from e

    if not isinstance(response, dict):
        raise TransportError(operation, f"unexpected response: {response!r}")

    code = str(response.get("code", ""))
    if code != "0":
        raise ExchangeRejectedError(operation, code, _rejection_message(response))
    return response
