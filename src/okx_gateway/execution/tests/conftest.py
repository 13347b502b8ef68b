"""
Execution layer test fixtures.

The execution layer talks to OKX through the REST client.
All API calls MUST be mocked in tests - never hit real APIs.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from okx_gateway.execution import (
    AccountState,
    AccountConfig,
    GatewayConfig,
    LeverageConfig,
    LeverageController,
    OrderManager,
    PrecisionResolver,
    TradingGateway,
)


def ok(data=None):
    """OKX success envelope."""
    return {"code": "0", "msg": "", "data": data if data is not None else []}


def rejected(code="51000", msg="Parameter error", data=None):
    """OKX business rejection envelope."""
    return {"code": code, "msg": msg, "data": data if data is not None else []}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Raw OKX payloads
# =============================================================================


BALANCE_DATA = {
    "totalEq": "10250.55",
    "availEq": "8000.10",
    "adjEq": "",
    "upl": "-12.5",
}


def position_data(inst_id="BTC-USDT-SWAP", pos_side="long", pos="2", lever="10"):
    return {
        "instId": inst_id,
        "instType": "SWAP",
        "posSide": pos_side,
        "pos": pos,
        "avgPx": "60000.1",
        "markPx": "60100.5",
        "upl": "200.8",
        "lever": lever,
        "liqPx": "54000",
    }


def instrument_data(inst_id="BTC-USDT-SWAP", lot_sz="0.001", ct_val="0.01"):
    return {"instId": inst_id, "instType": "SWAP", "lotSz": lot_sz, "ctVal": ct_val}


# =============================================================================
# Mock OKX Client Fixtures
# =============================================================================


@pytest.fixture
def mock_okx_client():
    """Mock OkxRestClient with successful default responses."""
    # Use spec to limit attributes to the methods the gateway calls
    class OkxClientSpec:
        async def get_balance(self): pass
        async def get_positions(self, inst_type=None): pass
        async def set_leverage(self, inst_id, mgn_mode, lever): pass
        async def place_order(self, inst_id, td_mode, side, pos_side, ord_type, sz, attach_algo_ords=None): pass
        async def close_position(self, inst_id, mgn_mode, pos_side): pass
        async def get_instruments(self, inst_type, inst_id=None): pass
        async def get_algo_orders(self, ord_type, inst_id=None): pass
        async def cancel_algo_orders(self, batch): pass
        async def get_ticker(self, inst_id): pass
        async def close(self): pass

    client = MagicMock(spec=OkxClientSpec)

    client.get_balance = AsyncMock(return_value=ok([BALANCE_DATA]))
    client.get_positions = AsyncMock(return_value=ok([
        position_data("BTC-USDT-SWAP", "long", "2", "10"),
        position_data("ETH-USDT-SWAP", "short", "-5", "3"),
        position_data("SOL-USDT-SWAP", "long", "0", "5"),  # flat, filtered out
    ]))
    client.set_leverage = AsyncMock(return_value=ok([{"lever": "20", "mgnMode": "cross"}]))
    client.place_order = AsyncMock(return_value=ok([{"ordId": "612345", "sCode": "0", "sMsg": ""}]))
    client.close_position = AsyncMock(return_value=ok([{"instId": "BTC-USDT-SWAP", "posSide": "long"}]))
    client.get_instruments = AsyncMock(side_effect=lambda inst_type, inst_id=None: ok(
        [instrument_data(inst_id or "BTC-USDT-SWAP")]
    ))
    client.get_algo_orders = AsyncMock(return_value=ok([]))
    client.cancel_algo_orders = AsyncMock(return_value=ok([{"algoId": "1", "sCode": "0"}]))
    client.get_ticker = AsyncMock(return_value=ok([{"instId": "BTC-USDT-SWAP", "last": "60123.4"}]))
    client.close = AsyncMock()

    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cooldown_sleep():
    """Replaces asyncio.sleep for the leverage cooldown."""
    return AsyncMock()


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def account_state(mock_okx_client, clock):
    return AccountState(mock_okx_client, config=AccountConfig(cache_ttl_seconds=15.0), clock=clock)


@pytest.fixture
def leverage_controller(mock_okx_client, account_state, clock, cooldown_sleep):
    return LeverageController(
        mock_okx_client,
        account_state,
        config=LeverageConfig(margin_mode="cross", cooldown_seconds=5.0),
        clock=clock,
        sleep=cooldown_sleep,
    )


@pytest.fixture
def precision_resolver(mock_okx_client):
    return PrecisionResolver(mock_okx_client)


@pytest.fixture
def order_manager(mock_okx_client, account_state, leverage_controller, precision_resolver):
    return OrderManager(mock_okx_client, account_state, leverage_controller, precision_resolver)


@pytest.fixture
def gateway(mock_okx_client, clock, cooldown_sleep):
    return TradingGateway(mock_okx_client, GatewayConfig(), clock=clock, sleep=cooldown_sleep)
