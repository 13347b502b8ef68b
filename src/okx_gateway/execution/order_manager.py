"""
Order Manager for the OKX position lifecycle.

Each operation is a fixed sequence of exchange calls. Nothing is retried and
nothing is rolled back: if an open fails after the leverage change, the
leverage change stays.

Two error tiers:
    - Fatal: leverage, order placement, position close and stop-loss /
      take-profit failures raise and abort the operation.
    - Advisory: the pre-open and post-close algo order cleanup. A failure
      there is logged and returned in the result's ``warnings``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from .account_state import AccountState
from .errors import (
    ExchangeRejectedError,
    GatewayError,
    NoPositionFoundError,
    call_exchange,
)
from .leverage import LeverageController
from .models import (
    CancelResult,
    CloseResult,
    OrderResult,
    OrderSide,
    PositionSide,
    parse_decimal,
)
from .precision import PrecisionResolver, Quantity, format_decimal

logger = logging.getLogger(__name__)


@dataclass
class OrderConfig:
    """Configuration for order submission."""

    margin_mode: str = "cross"  # position mode (long/short) is a caller precondition
    algo_order_types: str = "conditional,oco"  # what counts as a pending TP/SL
    cancel_batch_size: int = 10  # OKX cancel-algos limit per request
    trigger_price_type: str = "last"


def _trading_side(side: "str | PositionSide") -> PositionSide:
    parsed = PositionSide.parse(side)
    if parsed not in (PositionSide.LONG, PositionSide.SHORT):
        raise ValueError(f"Side must be long or short, got {side!r}")
    return parsed


def _opening_side(side: PositionSide) -> OrderSide:
    return OrderSide.BUY if side == PositionSide.LONG else OrderSide.SELL


def _closing_side(side: PositionSide) -> OrderSide:
    return OrderSide.SELL if side == PositionSide.LONG else OrderSide.BUY


def _price_str(price: Quantity) -> str:
    return format_decimal(price, 8)


class OrderManager:
    """
    Compound order operations on OKX.

    Handles:
    - Opening long/short positions (cleanup, leverage, market order)
    - Closing long/short positions (native close, cleanup)
    - Attaching stop-loss / take-profit triggers
    - Cancelling pending algo orders per symbol

    Usage:
        manager = OrderManager(client, account_state, leverage, precision)

        result = await manager.open_position("BTC-USDT-SWAP", Decimal("0.01"), 10, "long")
        await manager.set_stop_loss("BTC-USDT-SWAP", "long", Decimal("0.01"), Decimal("58000"))
        await manager.close_position("BTC-USDT-SWAP", 0, "long")
    """

    def __init__(
        self,
        client: Any,
        account_state: AccountState,
        leverage: LeverageController,
        precision: PrecisionResolver,
        config: Optional[OrderConfig] = None,
    ) -> None:
        """
        Initialize the order manager.

        Args:
            client: OKX REST client
            account_state: Cached positions (implicit close quantity)
            leverage: Leverage controller used before opening
            precision: Quantity formatter
            config: Order configuration
        """
        self._client = client
        self._account_state = account_state
        self._leverage = leverage
        self._precision = precision
        self._config = config or OrderConfig()

    @property
    def config(self) -> OrderConfig:
        """Get order configuration."""
        return self._config

    # =========================================================================
    # Open
    # =========================================================================

    async def open_position(
        self,
        symbol: str,
        quantity: Quantity,
        leverage: int,
        side: "str | PositionSide",
    ) -> OrderResult:
        """
        Open (or add to) a position with a market order.

        Steps:
            1. Cancel pending algo orders for the symbol (advisory)
            2. Ensure leverage (fatal)
            3. Format quantity (informational)
            4. Place the market order with the raw quantity (fatal)

        Cross margin is assumed to be configured by the caller.

        Raises:
            ValueError: If side or quantity is invalid
            LeverageChangeFailedError: If the leverage change was rejected
            ExchangeRejectedError: If the order was rejected
            TransportError: If OKX could not be reached
        """
        position_side = _trading_side(side)
        if parse_decimal(quantity) <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}")

        operation = f"open_{position_side.value}"
        warnings = await self._cleanup_orders(symbol, operation)

        await self._leverage.ensure_leverage(symbol, leverage)

        quantity_str = await self._precision.format_quantity(symbol, quantity)

        response = await call_exchange(
            operation,
            self._client.place_order(
                inst_id=symbol,
                td_mode=self._config.margin_mode,
                side=_opening_side(position_side).value,
                pos_side=position_side.value,
                ord_type="market",
                sz=quantity,
            ),
        )
        order = self._placed_order(operation, response)

        logger.info(
            f"Opened {position_side.value} {symbol} qty={quantity_str} "
            f"leverage={leverage}x order_id={order.get('ordId')}"
        )
        return OrderResult(
            order_id=str(order.get("ordId", "")),
            symbol=symbol,
            status=str(order.get("sCode", response.get("code"))),
            quantity=quantity_str,
            warnings=warnings,
        )

    async def open_long(self, symbol: str, quantity: Quantity, leverage: int) -> OrderResult:
        return await self.open_position(symbol, quantity, leverage, PositionSide.LONG)

    async def open_short(self, symbol: str, quantity: Quantity, leverage: int) -> OrderResult:
        return await self.open_position(symbol, quantity, leverage, PositionSide.SHORT)

    # =========================================================================
    # Close
    # =========================================================================

    async def close_position(
        self,
        symbol: str,
        quantity: Quantity,
        side: "str | PositionSide",
    ) -> CloseResult:
        """
        Close a position with OKX's native close-position call.

        A quantity of 0 means "whatever is open": the size is taken from the
        cached positions. OKX closes the whole side either way; the quantity
        is only reported.

        Raises:
            NoPositionFoundError: If quantity is 0 and nothing is open on that side
            ExchangeRejectedError: If the close was rejected
            TransportError: If OKX could not be reached
        """
        position_side = _trading_side(side)
        amount = parse_decimal(quantity)
        if amount < 0:
            raise ValueError(f"Quantity must not be negative, got {quantity}")

        if amount == 0:
            amount = await self._open_quantity(symbol, position_side)

        quantity_str = await self._precision.format_quantity(symbol, amount)

        operation = f"close_{position_side.value}"
        response = await call_exchange(
            operation,
            self._client.close_position(
                inst_id=symbol,
                mgn_mode=self._config.margin_mode,
                pos_side=position_side.value,
            ),
        )
        logger.info(f"Closed {position_side.value} {symbol} qty={quantity_str}")

        # TP/SL orders left behind by the closed position
        warnings = await self._cleanup_orders(symbol, operation)

        return CloseResult(
            symbol=symbol,
            status=str(response.get("code")),
            quantity=quantity_str,
            warnings=warnings,
        )

    async def close_long(self, symbol: str, quantity: Quantity = 0) -> CloseResult:
        return await self.close_position(symbol, quantity, PositionSide.LONG)

    async def close_short(self, symbol: str, quantity: Quantity = 0) -> CloseResult:
        return await self.close_position(symbol, quantity, PositionSide.SHORT)

    async def _open_quantity(self, symbol: str, side: PositionSide) -> Decimal:
        positions = await self._account_state.get_positions()
        for position in positions:
            if position.symbol == symbol and position.side == side:
                # Short sizes may be reported negative
                return position.quantity
        raise NoPositionFoundError(symbol, side.value)

    # =========================================================================
    # Stop-loss / take-profit
    # =========================================================================

    async def set_stop_loss(
        self,
        symbol: str,
        position_side: "str | PositionSide",
        quantity: Quantity,
        stop_price: Quantity,
    ) -> OrderResult:
        """Attach a stop-loss trigger at ``stop_price`` for the given position side."""
        return await self._place_trigger("stop_loss", "sl", symbol, position_side, quantity, stop_price)

    async def set_take_profit(
        self,
        symbol: str,
        position_side: "str | PositionSide",
        quantity: Quantity,
        take_profit_price: Quantity,
    ) -> OrderResult:
        """Attach a take-profit trigger at ``take_profit_price`` for the given position side."""
        return await self._place_trigger(
            "take_profit", "tp", symbol, position_side, quantity, take_profit_price
        )

    async def _place_trigger(
        self,
        kind: str,
        prefix: str,
        symbol: str,
        position_side: "str | PositionSide",
        quantity: Quantity,
        price: Quantity,
    ) -> OrderResult:
        side = _trading_side(position_side)
        quantity_str = await self._precision.format_quantity(symbol, quantity)
        price_str = _price_str(price)

        attached = {
            f"{prefix}TriggerPx": price_str,
            f"{prefix}OrdPx": price_str,
            f"{prefix}TriggerPxType": self._config.trigger_price_type,
            "sz": quantity_str,
        }

        operation = f"set_{kind} {symbol}"
        response = await call_exchange(
            operation,
            self._client.place_order(
                inst_id=symbol,
                td_mode=self._config.margin_mode,
                side=_closing_side(side).value,
                pos_side=side.value,
                ord_type="market",
                sz=quantity,
                attach_algo_ords=[attached],
            ),
        )
        order = self._placed_order(operation, response)

        logger.info(f"{kind.replace('_', ' ').capitalize()} set for {side.value} {symbol} @ {price_str}")
        return OrderResult(
            order_id=str(order.get("ordId", "")),
            symbol=symbol,
            status=str(order.get("sCode", response.get("code"))),
            quantity=quantity_str,
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    async def cancel_all_orders(self, symbol: str) -> CancelResult:
        """
        Cancel every pending algo (TP/SL) order on ``symbol``.

        Returns without any mutation when nothing is pending.

        Raises:
            ExchangeRejectedError: If listing or cancelling was rejected
            TransportError: If OKX could not be reached
        """
        response = await call_exchange(
            f"list_algo_orders {symbol}",
            self._client.get_algo_orders(
                ord_type=self._config.algo_order_types,
                inst_id=symbol,
            ),
        )

        batch = [
            {"instId": order["instId"], "algoId": order["algoId"]}
            for order in response.get("data") or []
            if order.get("instId") == symbol and order.get("algoId")
        ]
        if not batch:
            logger.debug(f"No pending algo orders for {symbol}")
            return CancelResult(symbol=symbol, cancelled=0)

        size = max(1, self._config.cancel_batch_size)
        for start in range(0, len(batch), size):
            await call_exchange(
                f"cancel_algo_orders {symbol}",
                self._client.cancel_algo_orders(batch[start:start + size]),
            )

        logger.info(f"Cancelled {len(batch)} pending algo orders for {symbol}")
        return CancelResult(symbol=symbol, cancelled=len(batch))

    async def _cleanup_orders(self, symbol: str, operation: str) -> list[str]:
        """Best-effort cancel; failures become warnings."""
        try:
            await self.cancel_all_orders(symbol)
        except GatewayError as e:
            logger.warning(f"{operation}: could not cancel pending orders for {symbol}: {e}")
            return [f"cancel_all_orders failed: {e}"]
        return []

    @staticmethod
    def _placed_order(operation: str, response: dict) -> dict:
        """First order entry of a place-order response; its sCode must be "0"."""
        data = response.get("data") or []
        if not data:
            raise ExchangeRejectedError(operation, str(response.get("code")), "no order returned")
        order = data[0]
        s_code = str(order.get("sCode", "0"))
        if s_code != "0":
            raise ExchangeRejectedError(operation, s_code, order.get("sMsg", ""))
        return order
