"""
Leverage controller.

OKX tracks leverage per instrument and margin mode, and rejects orders sent
right after a leverage change. The controller therefore only changes
leverage when it actually differs from the target, and waits out the
venue's cooldown after every real change.

States:
    UNKNOWN     No baseline: no position on the symbol, and no change applied
                since the snapshot was requested
    MATCHES     Baseline equals the target: no network write, no wait
    MISMATCHED  Baseline differs from the target: change, then cool down

The baseline is the leverage reported on the cached position snapshot,
unless this controller applied a change after that snapshot was requested,
in which case the applied value wins. Once a snapshot requested after the
change is cached, it is authoritative again, so changes made outside this
process are picked up within one cache TTL.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .account_state import AccountState, Clock
from .errors import (
    ExchangeRejectedError,
    GatewayError,
    LeverageChangeFailedError,
    call_exchange,
)

logger = logging.getLogger(__name__)


class LeverageState(str, Enum):
    """Comparison of observed vs. desired leverage."""

    UNKNOWN = "unknown"
    MATCHES = "matches"
    MISMATCHED = "mismatched"


@dataclass
class LeverageConfig:
    """Configuration for leverage changes."""

    margin_mode: str = "cross"
    cooldown_seconds: float = 5.0  # OKX rejects opens right after a change


@dataclass(frozen=True)
class AppliedLeverage:
    """A leverage change this controller sent and OKX accepted."""

    leverage: int
    applied_at: float


class LeverageController:
    """
    Ensures per-symbol leverage with idempotency and cooldown.

    Usage:
        controller = LeverageController(client, account_state)

        await controller.ensure_leverage("BTC-USDT-SWAP", 10)  # change + 5s wait
        await controller.ensure_leverage("BTC-USDT-SWAP", 10)  # no-op
    """

    def __init__(
        self,
        client: Any,
        account_state: AccountState,
        config: Optional[LeverageConfig] = None,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the leverage controller.

        Args:
            client: OKX REST client
            account_state: Cached positions used as the leverage baseline
            config: Leverage configuration
            clock: Monotonic clock (must match the account state's clock)
            sleep: Cooldown sleep, injectable for tests
        """
        self._client = client
        self._account_state = account_state
        self._config = config or LeverageConfig()
        self._clock = clock
        self._sleep = sleep
        self._applied: dict[str, AppliedLeverage] = {}

    @property
    def config(self) -> LeverageConfig:
        return self._config

    def last_applied(self, symbol: str) -> Optional[int]:
        """Leverage most recently applied by this controller, if any."""
        applied = self._applied.get(symbol)
        return applied.leverage if applied else None

    async def observe(self, symbol: str, desired: int) -> LeverageState:
        """Classify the current leverage of ``symbol`` against ``desired``."""
        baseline = await self._baseline(symbol)
        if baseline is None:
            return LeverageState.UNKNOWN
        if desired > 0 and baseline == Decimal(desired):
            return LeverageState.MATCHES
        return LeverageState.MISMATCHED

    async def ensure_leverage(self, symbol: str, leverage: int) -> LeverageState:
        """
        Make sure ``symbol`` trades at ``leverage`` under the configured margin mode.

        Args:
            symbol: Instrument ID
            leverage: Target leverage (> 0)

        Returns:
            The state observed before acting. MATCHES means nothing was sent.

        Raises:
            ValueError: If leverage is not positive
            LeverageChangeFailedError: If OKX rejected the change
            TransportError: If the change could not be sent
        """
        if leverage <= 0:
            raise ValueError(f"Leverage must be positive, got {leverage}")

        state = await self.observe(symbol, leverage)
        if state == LeverageState.MATCHES:
            logger.info(f"{symbol} leverage already {leverage}x, no change needed")
            return state

        try:
            await call_exchange(
                f"set_leverage {symbol}",
                self._client.set_leverage(
                    inst_id=symbol,
                    mgn_mode=self._config.margin_mode,
                    lever=leverage,
                ),
            )
        except ExchangeRejectedError as e:
            raise LeverageChangeFailedError(symbol, leverage, e.code, e.message) from e

        self._applied[symbol] = AppliedLeverage(leverage=leverage, applied_at=self._clock())
        logger.info(f"{symbol} leverage set to {leverage}x ({self._config.margin_mode})")

        logger.info(f"Waiting {self._config.cooldown_seconds:.0f}s leverage cooldown")
        await self._sleep(self._config.cooldown_seconds)
        return state

    async def _baseline(self, symbol: str) -> Optional[Decimal]:
        observed: Optional[Decimal] = None
        snapshot_at: Optional[float] = None
        try:
            positions = await self._account_state.get_positions()
            snapshot_at = self._account_state.positions_fetched_at
            for position in positions:
                if position.symbol == symbol and position.leverage > 0:
                    observed = position.leverage
                    break
        except GatewayError as e:
            # Treated as UNKNOWN: the change is sent anyway
            logger.warning(f"Could not read positions for {symbol} leverage: {e}")

        applied = self._applied.get(symbol)
        if applied is None:
            return observed
        if snapshot_at is not None and snapshot_at > applied.applied_at:
            # Requested after our change: authoritative, even with no position
            return observed
        return Decimal(applied.leverage)
