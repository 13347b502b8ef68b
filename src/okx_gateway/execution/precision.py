"""
Quantity precision from OKX instrument metadata.

The lot size (``lotSz``) of an instrument fixes how many fractional digits
an order quantity may carry. Metadata is fetched on every lookup; nothing is
cached across calls.

Formatting never fails: if the instrument cannot be resolved the default
precision is used, so a metadata outage degrades the display string instead
of blocking trading.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from .errors import GatewayError, PrecisionUnavailableError, call_exchange
from .models import InstrumentMetadata, parse_instrument

logger = logging.getLogger(__name__)

Quantity = Union[Decimal, float, int, str]


@dataclass
class PrecisionConfig:
    """Configuration for precision lookups."""

    inst_type: str = "FUTURES"
    default_precision: int = 3


def format_decimal(value: Quantity, precision: int) -> str:
    """Round half-up to exactly ``precision`` fractional digits."""
    quantum = Decimal(1).scaleb(-precision)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return format(rounded, "f")


class PrecisionResolver:
    """
    Resolves quantity precision per instrument.

    Usage:
        resolver = PrecisionResolver(client)

        await resolver.get_precision("BTC-USD-241227")           # 0 for lotSz "1"
        await resolver.format_quantity("ETH-USDT-SWAP", 1.23456) # "1.235" for lotSz "0.001"
    """

    def __init__(self, client: Any, config: Optional[PrecisionConfig] = None) -> None:
        self._client = client
        self._config = config or PrecisionConfig()

    @property
    def config(self) -> PrecisionConfig:
        return self._config

    async def get_instrument(self, symbol: str) -> InstrumentMetadata:
        """
        Fetch metadata for exactly ``symbol``.

        Raises:
            PrecisionUnavailableError: On any lookup failure or no exact match
        """
        try:
            response = await call_exchange(
                "get_instruments",
                self._client.get_instruments(inst_type=self._config.inst_type, inst_id=symbol),
            )
        except GatewayError as e:
            raise PrecisionUnavailableError(symbol, str(e)) from e

        for raw in response.get("data") or []:
            if raw.get("instId") != symbol:
                continue
            try:
                return parse_instrument(raw)
            except ValueError as e:
                raise PrecisionUnavailableError(symbol, str(e)) from e

        raise PrecisionUnavailableError(symbol, "instrument not found")

    async def get_precision(self, symbol: str) -> int:
        """Quantity precision for ``symbol``; the default on any failure."""
        try:
            instrument = await self.get_instrument(symbol)
        except PrecisionUnavailableError as e:
            logger.warning(
                f"{e}; using default precision {self._config.default_precision}"
            )
            return self._config.default_precision

        precision = instrument.precision
        logger.debug(f"{symbol} quantity precision: {precision} (lotSz: {instrument.lot_size})")
        return precision

    async def format_quantity(self, symbol: str, quantity: Quantity) -> str:
        """Format ``quantity`` to the instrument's precision."""
        precision = await self.get_precision(symbol)
        return format_decimal(quantity, precision)
