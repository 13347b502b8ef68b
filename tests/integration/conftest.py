"""
Integration test fixtures.

These fixtures build a gateway against the real OKX API from OKX_*
environment variables.
"""

import os

import pytest
import pytest_asyncio

from okx_gateway.config import Settings
from okx_gateway.execution import TradingGateway

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration

LIVE_ENV_VAR = "LIVE_TEST_ENABLED"


def _env_truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes"}


@pytest.fixture(scope="module")
def live_settings():
    """
    Settings for live tests.

    Skips unless LIVE_TEST_ENABLED is set and credentials are configured.
    """
    if not _env_truthy(os.getenv(LIVE_ENV_VAR, "")):
        pytest.skip(f"{LIVE_ENV_VAR} is not set to true; skipping live tests")

    settings = Settings()
    if not settings.has_credentials:
        pytest.skip("OKX_API_KEY, OKX_SECRET_KEY and OKX_PASSPHRASE are not configured")
    return settings


@pytest_asyncio.fixture
async def live_gateway(live_settings):
    """Gateway owning a real OKX client, closed after each test."""
    gateway = TradingGateway.from_settings(live_settings)
    yield gateway
    await gateway.close()


@pytest.fixture
def live_symbol(live_settings):
    """Instrument used by read-only live tests; must belong to OKX_INST_TYPE."""
    symbol = os.getenv("OKX_LIVE_SYMBOL", "")
    if not symbol:
        pytest.skip(f"OKX_LIVE_SYMBOL is not set (a {live_settings.inst_type} instrument ID)")
    return symbol
