"""
TradingGateway - Facade over the OKX execution layer.

Coordinates AccountState, LeverageController, PrecisionResolver and
OrderManager around one OKX client. This is the only object a strategy needs;
it should not reach into the individual components.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from okx_gateway.exchange import OkxRestClient

from .account_state import AccountConfig, AccountState, Clock
from .errors import ExchangeRejectedError, call_exchange
from .leverage import LeverageConfig, LeverageController, LeverageState
from .models import (
    AccountBalance,
    CancelResult,
    CloseResult,
    OrderResult,
    Position,
    PositionSide,
    parse_decimal,
)
from .order_manager import OrderConfig, OrderManager
from .precision import PrecisionConfig, PrecisionResolver, Quantity

if TYPE_CHECKING:
    from okx_gateway.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class GatewayConfig:
    """Configuration for the trading gateway."""

    # Cached account state
    cache_ttl_seconds: float = 15.0

    # Leverage
    leverage_cooldown_seconds: float = 5.0

    # Venue conventions
    margin_mode: str = "cross"
    inst_type: str = "FUTURES"

    # Precision
    default_precision: int = 3

    @property
    def account_config(self) -> AccountConfig:
        """Get account cache configuration."""
        return AccountConfig(cache_ttl_seconds=self.cache_ttl_seconds)

    @property
    def leverage_config(self) -> LeverageConfig:
        """Get leverage configuration."""
        return LeverageConfig(
            margin_mode=self.margin_mode,
            cooldown_seconds=self.leverage_cooldown_seconds,
        )

    @property
    def precision_config(self) -> PrecisionConfig:
        """Get precision configuration."""
        return PrecisionConfig(
            inst_type=self.inst_type,
            default_precision=self.default_precision,
        )

    @property
    def order_config(self) -> OrderConfig:
        """Get order configuration."""
        return OrderConfig(margin_mode=self.margin_mode)


class TradingGateway:
    """
    Trading primitives on top of OKX.

    Usage:
        async with TradingGateway.from_settings(Settings()) as gateway:
            balance = await gateway.get_balance()

            result = await gateway.open_long("BTC-USDT-SWAP", Decimal("0.01"), 10)
            await gateway.set_stop_loss("BTC-USDT-SWAP", "LONG", Decimal("0.01"), Decimal("58000"))

            await gateway.close_long("BTC-USDT-SWAP")  # quantity from positions
    """

    def __init__(
        self,
        client: Any,
        config: Optional[GatewayConfig] = None,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            client: OKX REST client (OkxRestClient or compatible)
            config: Gateway configuration
            clock: Monotonic clock shared by the caches and leverage controller
            sleep: Cooldown sleep, injectable for tests
        """
        self._client = client
        self._config = config or GatewayConfig()
        self._owns_client = False

        self._account_state = AccountState(
            client,
            config=self._config.account_config,
            clock=clock,
        )
        self._leverage = LeverageController(
            client,
            self._account_state,
            config=self._config.leverage_config,
            clock=clock,
            sleep=sleep,
        )
        self._precision = PrecisionResolver(client, config=self._config.precision_config)
        self._order_manager = OrderManager(
            client,
            self._account_state,
            self._leverage,
            self._precision,
            config=self._config.order_config,
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TradingGateway":
        """Build a gateway that owns an OkxRestClient configured from settings."""
        client = OkxRestClient(
            api_key=settings.api_key,
            secret_key=settings.secret_key,
            passphrase=settings.passphrase,
            base_url=settings.base_url,
            simulated=settings.simulated,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )
        gateway = cls(client, config=settings.gateway_config)
        gateway._owns_client = True
        return gateway

    async def __aenter__(self) -> "TradingGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client if this gateway created it."""
        if self._owns_client:
            await self._client.close()

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def account_state(self) -> AccountState:
        """Access to cached account state."""
        return self._account_state

    @property
    def leverage_controller(self) -> LeverageController:
        """Access to the leverage controller."""
        return self._leverage

    @property
    def precision_resolver(self) -> PrecisionResolver:
        """Access to the precision resolver."""
        return self._precision

    @property
    def order_manager(self) -> OrderManager:
        """Access to the order manager."""
        return self._order_manager

    # =========================================================================
    # Account
    # =========================================================================

    async def get_balance(self) -> AccountBalance:
        return await self._account_state.get_balance()

    async def get_positions(self) -> tuple[Position, ...]:
        return await self._account_state.get_positions()

    async def refresh_balance(self) -> AccountBalance:
        return await self._account_state.refresh_balance()

    async def refresh_positions(self) -> tuple[Position, ...]:
        return await self._account_state.refresh_positions()

    # =========================================================================
    # Leverage / margin
    # =========================================================================

    async def set_leverage(self, symbol: str, leverage: int) -> LeverageState:
        return await self._leverage.ensure_leverage(symbol, leverage)

    async def set_margin_mode(self, symbol: str, is_cross_margin: bool) -> None:
        """
        Check the requested margin mode.

        OKX picks the margin mode per order (tdMode) and every order here is
        sent with the configured mode, so there is nothing to send. Asking for
        a different mode is a caller error.
        """
        requested = "cross" if is_cross_margin else "isolated"
        if requested != self._config.margin_mode:
            raise ValueError(
                f"Margin mode {requested} requested for {symbol}, "
                f"but orders are sent with {self._config.margin_mode}"
            )
        logger.info(f"{symbol} margin mode: {self._config.margin_mode}")

    # =========================================================================
    # Market data
    # =========================================================================

    async def get_market_price(self, symbol: str) -> Decimal:
        """Last traded price for ``symbol``."""
        operation = f"get_market_price {symbol}"
        response = await call_exchange(operation, self._client.get_ticker(inst_id=symbol))
        data = response.get("data") or []
        if not data or not data[0].get("last"):
            raise ExchangeRejectedError(operation, str(response.get("code")), "no ticker data")
        return parse_decimal(data[0]["last"])

    async def get_precision(self, symbol: str) -> int:
        return await self._precision.get_precision(symbol)

    async def format_quantity(self, symbol: str, quantity: Quantity) -> str:
        return await self._precision.format_quantity(symbol, quantity)

    # =========================================================================
    # Orders
    # =========================================================================

    async def open_position(
        self,
        symbol: str,
        quantity: Quantity,
        leverage: int,
        side: "str | PositionSide",
    ) -> OrderResult:
        return await self._order_manager.open_position(symbol, quantity, leverage, side)

    async def open_long(self, symbol: str, quantity: Quantity, leverage: int) -> OrderResult:
        return await self._order_manager.open_long(symbol, quantity, leverage)

    async def open_short(self, symbol: str, quantity: Quantity, leverage: int) -> OrderResult:
        return await self._order_manager.open_short(symbol, quantity, leverage)

    async def close_position(
        self,
        symbol: str,
        quantity: Quantity,
        side: "str | PositionSide",
    ) -> CloseResult:
        return await self._order_manager.close_position(symbol, quantity, side)

    async def close_long(self, symbol: str, quantity: Quantity = 0) -> CloseResult:
        return await self._order_manager.close_long(symbol, quantity)

    async def close_short(self, symbol: str, quantity: Quantity = 0) -> CloseResult:
        return await self._order_manager.close_short(symbol, quantity)

    async def set_stop_loss(
        self,
        symbol: str,
        position_side: "str | PositionSide",
        quantity: Quantity,
        stop_price: Quantity,
    ) -> OrderResult:
        return await self._order_manager.set_stop_loss(symbol, position_side, quantity, stop_price)

    async def set_take_profit(
        self,
        symbol: str,
        position_side: "str | PositionSide",
        quantity: Quantity,
        take_profit_price: Quantity,
    ) -> OrderResult:
        return await self._order_manager.set_take_profit(
            symbol, position_side, quantity, take_profit_price
        )

    async def cancel_all_orders(self, symbol: str) -> CancelResult:
        return await self._order_manager.cancel_all_orders(symbol)
