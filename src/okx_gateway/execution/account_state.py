"""
Cached account state for balance and positions.

OKX account endpoints are rate-limited and the strategy layer reads them on
every decision, so both are served through a read-through cache with a short
TTL. Each cache owns its own reader/writer lock; the two are never held
together.

Staleness rules:
    - A hit (age < TTL) never touches the network.
    - A miss fetches outside the lock and swaps the new entry in under the
      exclusive lock. Entries are aged from when the request was sent.
    - A failed refresh raises and leaves the old entry in place, but the old
      entry is NOT returned. The next read tries again.
    - Successful trades do not invalidate anything. Callers that need
      post-trade accuracy use refresh_balance() / refresh_positions().
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Optional, TypeVar

from .errors import ExchangeRejectedError, call_exchange
from .models import AccountBalance, Position, parse_balance, parse_position

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class ReadWriteLock:
    """
    Shared/exclusive lock for asyncio.

    Any number of readers may hold the lock together; a writer waits until
    all readers are gone and blocks new readers while it holds the lock.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def locked_for_write(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which its request was sent."""

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at


class ReadThroughCache(Generic[T]):
    """
    Single-value read-through cache with a TTL.

    Concurrent misses each fetch and each store their result (last writer
    wins). No request coalescing.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        ttl_seconds: float,
        clock: Clock = time.monotonic,
    ) -> None:
        self._name = name
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._entry: Optional[CacheEntry[T]] = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def fetched_at(self) -> Optional[float]:
        """Clock reading of the current entry, or None if empty."""
        entry = self._entry
        return entry.fetched_at if entry is not None else None

    async def get(self) -> T:
        """Return the cached value if fresh, otherwise fetch and store."""
        async with self._lock.read():
            entry = self._entry
            if entry is not None:
                age = entry.age(self._clock())
                if age < self._ttl:
                    logger.debug(f"Using cached {self._name} ({age:.1f}s old)")
                    return entry.value

        logger.info(f"{self._name} cache expired, fetching from OKX")
        # Stamped at request time: the value reflects state no newer than this
        requested_at = self._clock()
        value = await self._fetch()

        fresh = CacheEntry(value=value, fetched_at=requested_at)
        async with self._lock.write():
            self._entry = fresh
        return value

    async def invalidate(self) -> None:
        """Drop the current entry so the next get() refreshes."""
        async with self._lock.write():
            self._entry = None


@dataclass
class AccountConfig:
    """Configuration for cached account state."""

    cache_ttl_seconds: float = 15.0


class AccountState:
    """
    Read-through cached view of the OKX account.

    Usage:
        state = AccountState(client)

        balance = await state.get_balance()      # network
        balance = await state.get_balance()      # cache (within 15s)

        positions = await state.get_positions()  # independent cache
    """

    def __init__(
        self,
        client: Any,
        config: Optional[AccountConfig] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """
        Initialize account state.

        Args:
            client: OKX REST client (see OkxRestClient)
            config: Cache configuration
            clock: Monotonic clock, injectable for tests
        """
        self._client = client
        self._config = config or AccountConfig()

        ttl = self._config.cache_ttl_seconds
        self._balance_cache: ReadThroughCache[AccountBalance] = ReadThroughCache(
            "balance", self._fetch_balance, ttl, clock
        )
        self._positions_cache: ReadThroughCache[tuple[Position, ...]] = ReadThroughCache(
            "positions", self._fetch_positions, ttl, clock
        )

    @property
    def config(self) -> AccountConfig:
        return self._config

    @property
    def positions_fetched_at(self) -> Optional[float]:
        return self._positions_cache.fetched_at

    async def get_balance(self) -> AccountBalance:
        """
        Get account balance (cached).

        Raises:
            TransportError: If OKX could not be reached
            ExchangeRejectedError: If OKX rejected the request or returned no data
        """
        return await self._balance_cache.get()

    async def get_positions(self) -> tuple[Position, ...]:
        """
        Get open (non-zero) positions (cached).

        Raises:
            TransportError: If OKX could not be reached
            ExchangeRejectedError: If OKX rejected the request
        """
        return await self._positions_cache.get()

    async def refresh_balance(self) -> AccountBalance:
        """Force a fresh balance read."""
        await self._balance_cache.invalidate()
        return await self._balance_cache.get()

    async def refresh_positions(self) -> tuple[Position, ...]:
        """Force a fresh positions read."""
        await self._positions_cache.invalidate()
        return await self._positions_cache.get()

    async def _fetch_balance(self) -> AccountBalance:
        response = await call_exchange("get_balance", self._client.get_balance())

        data = response.get("data") or []
        if not data:
            raise ExchangeRejectedError("get_balance", "0", "response contained no balance data")

        try:
            balance = parse_balance(data[0])
        except ValueError as e:
            raise ExchangeRejectedError("get_balance", "0", f"malformed balance: {e}") from e

        logger.info(
            f"OKX balance: total={balance.total_equity}, "
            f"available={balance.available_balance}, upl={balance.unrealized_pnl}"
        )
        return balance

    async def _fetch_positions(self) -> tuple[Position, ...]:
        response = await call_exchange("get_positions", self._client.get_positions())

        # An empty list is a valid "no positions" answer; a missing key is not
        if response.get("data") is None:
            raise ExchangeRejectedError("get_positions", "0", "response contained no positions data")

        positions = []
        for raw in response["data"]:
            try:
                position = parse_position(raw)
            except ValueError as e:
                raise ExchangeRejectedError(
                    "get_positions", "0", f"malformed position: {e}"
                ) from e
            if position is not None:
                positions.append(position)

        logger.info(f"OKX positions: {len(positions)} open")
        return tuple(positions)
