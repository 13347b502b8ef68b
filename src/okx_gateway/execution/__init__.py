"""
Execution Layer - OKX trading primitives.

This module provides:
    - TradingGateway: Main facade for trading (use this!)
    - GatewayConfig: Configuration for the gateway
    - AccountState: Read-through cached balance and positions
    - LeverageController: Idempotent leverage changes with cooldown
    - PrecisionResolver: Quantity precision from instrument lot size
    - OrderManager: Open/close, stop-loss/take-profit, cancel-all
    - Result types: OrderResult, CloseResult, CancelResult
    - Exceptions: GatewayError and subclasses

Venue conventions:
    - Cross margin on every order; configuring it is the caller's job
    - Long/short position mode is assumed, never switched here
    - Leverage changes are followed by a 5 second cooldown

Usage:
    from okx_gateway.execution import TradingGateway, GatewayConfig

    gateway = TradingGateway(client, GatewayConfig())
    result = await gateway.open_long("BTC-USDT-SWAP", Decimal("0.01"), 10)
"""

# Gateway facade (use this!)
from .service import (
    GatewayConfig,
    TradingGateway,
)

# Cached account state
from .account_state import (
    AccountConfig,
    AccountState,
    CacheEntry,
    ReadThroughCache,
    ReadWriteLock,
)

# Leverage
from .leverage import (
    LeverageConfig,
    LeverageController,
    LeverageState,
)

# Precision
from .precision import (
    PrecisionConfig,
    PrecisionResolver,
    format_decimal,
)

# Orders
from .order_manager import (
    OrderConfig,
    OrderManager,
)

# Models
from .models import (
    AccountBalance,
    CancelResult,
    CloseResult,
    InstrumentMetadata,
    OrderResult,
    OrderSide,
    Position,
    PositionSide,
)

# Errors
from .errors import (
    ExchangeRejectedError,
    GatewayError,
    LeverageChangeFailedError,
    NoPositionFoundError,
    PrecisionUnavailableError,
    TransportError,
)

__all__ = [
    # Gateway facade
    "GatewayConfig",
    "TradingGateway",
    # Cached account state
    "AccountConfig",
    "AccountState",
    "CacheEntry",
    "ReadThroughCache",
    "ReadWriteLock",
    # Leverage
    "LeverageConfig",
    "LeverageController",
    "LeverageState",
    # Precision
    "PrecisionConfig",
    "PrecisionResolver",
    "format_decimal",
    # Orders
    "OrderConfig",
    "OrderManager",
    # Models
    "AccountBalance",
    "CancelResult",
    "CloseResult",
    "InstrumentMetadata",
    "OrderResult",
    "OrderSide",
    "Position",
    "PositionSide",
    # Errors
    "ExchangeRejectedError",
    "GatewayError",
    "LeverageChangeFailedError",
    "NoPositionFoundError",
    "PrecisionUnavailableError",
    "TransportError",
]
