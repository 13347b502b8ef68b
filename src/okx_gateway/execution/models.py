"""
Data models for the execution layer.

These models represent:
- Account balance and open positions (parsed from OKX string fields)
- Instrument metadata used for quantity precision
- Results of the order lifecycle operations

All numeric exchange fields arrive as decimal strings. They are parsed
into Decimal here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional


class PositionSide(str, Enum):
    """Position side as reported by OKX ``posSide``."""
    LONG = "long"
    SHORT = "short"
    NET = "net"

    @classmethod
    def parse(cls, value: "str | PositionSide") -> "PositionSide":
        """Accept "LONG", "long" or a PositionSide."""
        if isinstance(value, PositionSide):
            return value
        return cls(str(value).strip().lower())


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


def parse_decimal(value: Any) -> Decimal:
    """Parse an OKX numeric string. Blank or missing values are zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal value: {value!r}")


def step_precision(step: Decimal) -> int:
    """
    Number of significant fractional digits in a lot-size step.

    0.001 -> 3, 0.0010 -> 3, 1 -> 0, 10 -> 0.
    """
    exponent = step.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        raise ValueError(f"Invalid step size: {step}")
    return max(0, -exponent)


@dataclass(frozen=True)
class AccountBalance:
    """
    Account-level balance snapshot.

    Attributes:
        total_equity: Total equity in USD (totalEq)
        available_balance: Equity available for trading (availEq)
        unrealized_pnl: Unrealized profit and loss (upl)
    """
    total_equity: Decimal
    available_balance: Decimal
    unrealized_pnl: Decimal

    def to_dict(self) -> dict:
        return {
            "total_equity": str(self.total_equity),
            "available_balance": str(self.available_balance),
            "unrealized_pnl": str(self.unrealized_pnl),
        }


@dataclass(frozen=True)
class Position:
    """
    An open derivatives position.

    ``position_amt`` keeps the exchange's sign; short positions may be
    negative. ``side`` always comes from the exchange's ``posSide``.
    """
    symbol: str
    side: PositionSide
    position_amt: Decimal
    entry_price: Decimal
    mark_price: Decimal
    unrealized_pnl: Decimal
    leverage: Decimal
    liquidation_price: Decimal

    @property
    def quantity(self) -> Decimal:
        """Position magnitude."""
        return abs(self.position_amt)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "position_amt": str(self.position_amt),
            "entry_price": str(self.entry_price),
            "mark_price": str(self.mark_price),
            "unrealized_pnl": str(self.unrealized_pnl),
            "leverage": str(self.leverage),
            "liquidation_price": str(self.liquidation_price),
        }


@dataclass(frozen=True)
class InstrumentMetadata:
    """Instrument trading rules relevant to order sizing."""
    symbol: str
    lot_size: Decimal
    contract_value: Decimal

    @property
    def precision(self) -> int:
        return step_precision(self.lot_size)


@dataclass
class OrderResult:
    """Result of a successful order placement."""
    order_id: str
    symbol: str
    status: str
    quantity: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "symbol": self.symbol,
            "status": self.status,
            "quantity": self.quantity,
            "warnings": list(self.warnings),
        }


@dataclass
class CloseResult:
    """Result of a successful position close."""
    symbol: str
    status: str
    quantity: str
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "status": self.status,
            "quantity": self.quantity,
            "warnings": list(self.warnings),
        }


@dataclass
class CancelResult:
    """Result of cancelling pending algo orders for a symbol."""
    symbol: str
    cancelled: int = 0

    def to_dict(self) -> dict:
        return {"symbol": self.symbol, "cancelled": self.cancelled}


def parse_balance(raw: dict) -> AccountBalance:
    """Parse one entry of /api/v5/account/balance ``data``."""
    available = raw.get("availEq")
    if available in (None, ""):
        # availEq is blank outside multi-currency/portfolio margin modes
        available = raw.get("adjEq")
    return AccountBalance(
        total_equity=parse_decimal(raw.get("totalEq")),
        available_balance=parse_decimal(available),
        unrealized_pnl=parse_decimal(raw.get("upl")),
    )


def parse_position(raw: dict) -> Optional[Position]:
    """
    Parse one entry of /api/v5/account/positions ``data``.

    Returns None for flat (zero quantity) positions.
    """
    amount = parse_decimal(raw.get("pos"))
    if amount == 0:
        return None
    return Position(
        symbol=raw.get("instId", ""),
        side=PositionSide.parse(raw.get("posSide") or "net"),
        position_amt=amount,
        entry_price=parse_decimal(raw.get("avgPx")),
        mark_price=parse_decimal(raw.get("markPx")),
        unrealized_pnl=parse_decimal(raw.get("upl")),
        leverage=parse_decimal(raw.get("lever")),
        liquidation_price=parse_decimal(raw.get("liqPx")),
    )


def parse_instrument(raw: dict) -> InstrumentMetadata:
    """Parse one entry of /api/v5/public/instruments ``data``."""
    lot_size = parse_decimal(raw.get("lotSz"))
    if lot_size <= 0:
        raise ValueError(f"Invalid lotSz for {raw.get('instId')}: {raw.get('lotSz')!r}")
    return InstrumentMetadata(
        symbol=raw.get("instId", ""),
        lot_size=lot_size,
        contract_value=parse_decimal(raw.get("ctVal")),
    )
