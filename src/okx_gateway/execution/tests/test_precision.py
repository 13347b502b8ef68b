"""
Tests for quantity precision.

Precision resolution never fails: any lookup problem yields the default.
"""
import pytest
from decimal import Decimal

from okx_gateway.exchange import InvalidResponseError, OkxAPIError
from okx_gateway.execution import (
    PrecisionConfig,
    PrecisionResolver,
    PrecisionUnavailableError,
    format_decimal,
)


def ok(data):
    return {"code": "0", "msg": "", "data": data}


def instruments(lot_sz, inst_id="BTC-USDT-SWAP"):
    return ok([{"instId": inst_id, "lotSz": lot_sz, "ctVal": "0.01"}])


class TestFormatDecimal:
    """Tests for rounding."""

    @pytest.mark.parametrize("value,precision,expected", [
        ("1.23456", 3, "1.235"),
        ("1.2345", 3, "1.235"),   # half-up, not banker's
        ("1.2344", 3, "1.234"),
        ("0.5", 0, "1"),
        ("7", 2, "7.00"),
        (Decimal("0.0001"), 3, "0.000"),
    ])
    def test_rounds_half_up(self, value, precision, expected):
        assert format_decimal(value, precision) == expected

    def test_float_input_uses_its_repr(self):
        """1.005 is 1.00499... in binary; str() keeps the written value."""
        assert format_decimal(1.005, 2) == "1.01"


class TestGetPrecision:
    """Tests for lot size -> fractional digits."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lot_sz,expected", [
        ("0.001", 3),
        ("0.0010", 3),
        ("0.1", 1),
        ("1", 0),
        ("10", 0),
        ("0.00000001", 8),
    ])
    async def test_precision_from_lot_size(self, mock_okx_client, lot_sz, expected):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = instruments(lot_sz)
        resolver = PrecisionResolver(mock_okx_client)

        assert await resolver.get_precision("BTC-USDT-SWAP") == expected

    @pytest.mark.asyncio
    async def test_queries_configured_instrument_type(self, mock_okx_client):
        resolver = PrecisionResolver(mock_okx_client, PrecisionConfig(inst_type="SWAP"))

        await resolver.get_precision("BTC-USDT-SWAP")

        mock_okx_client.get_instruments.assert_awaited_once_with(
            inst_type="SWAP", inst_id="BTC-USDT-SWAP"
        )

    @pytest.mark.asyncio
    async def test_not_cached_across_calls(self, precision_resolver, mock_okx_client):
        await precision_resolver.get_precision("BTC-USDT-SWAP")
        await precision_resolver.get_precision("BTC-USDT-SWAP")

        assert mock_okx_client.get_instruments.await_count == 2


class TestPrecisionFallback:
    """Any failure resolves to the default precision."""

    @pytest.mark.asyncio
    async def test_unknown_symbol_uses_default(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = ok([])

        assert await precision_resolver.get_precision("NOPE-USDT-SWAP") == 3

    @pytest.mark.asyncio
    async def test_no_exact_match_uses_default(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = instruments("0.1", inst_id="BTC-USD-SWAP")

        assert await precision_resolver.get_precision("BTC-USDT-SWAP") == 3

    @pytest.mark.asyncio
    async def test_network_error_uses_default(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = OkxAPIError("timeout")

        assert await precision_resolver.get_precision("BTC-USDT-SWAP") == 3

    @pytest.mark.asyncio
    async def test_non_json_response_uses_default(self, precision_resolver, mock_okx_client):
        """An HTML error page still formats with the default precision."""
        mock_okx_client.get_instruments.side_effect = InvalidResponseError(
            "Invalid JSON from /api/v5/public/instruments", status_code=200
        )

        assert await precision_resolver.format_quantity("BTC-USDT-SWAP", 1.23456) == "1.235"

    @pytest.mark.asyncio
    async def test_rejection_uses_default(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = {
            "code": "51001", "msg": "Instrument ID does not exist", "data": []
        }

        assert await precision_resolver.get_precision("BTC-USDT-SWAP") == 3

    @pytest.mark.asyncio
    async def test_invalid_lot_size_uses_default(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = instruments("0")

        assert await precision_resolver.get_precision("BTC-USDT-SWAP") == 3

    @pytest.mark.asyncio
    async def test_configured_default(self, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = OkxAPIError("timeout")
        resolver = PrecisionResolver(mock_okx_client, PrecisionConfig(default_precision=4))

        assert await resolver.format_quantity("BTC-USDT-SWAP", "1.234567") == "1.2346"

    @pytest.mark.asyncio
    async def test_get_instrument_raises(self, precision_resolver, mock_okx_client):
        """The strict lookup surfaces the failure."""
        mock_okx_client.get_instruments.side_effect = OkxAPIError("timeout")

        with pytest.raises(PrecisionUnavailableError) as exc_info:
            await precision_resolver.get_instrument("BTC-USDT-SWAP")

        assert exc_info.value.symbol == "BTC-USDT-SWAP"


class TestFormatQuantity:
    """Tests for format_quantity."""

    @pytest.mark.asyncio
    async def test_formats_to_lot_precision(self, precision_resolver):
        assert await precision_resolver.format_quantity("ETH-USDT-SWAP", 1.23456) == "1.235"

    @pytest.mark.asyncio
    async def test_whole_contracts(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = None
        mock_okx_client.get_instruments.return_value = instruments("1")

        assert await precision_resolver.format_quantity("BTC-USDT-SWAP", Decimal("2.6")) == "3"

    @pytest.mark.asyncio
    async def test_never_raises(self, precision_resolver, mock_okx_client):
        mock_okx_client.get_instruments.side_effect = OkxAPIError("down")

        assert await precision_resolver.format_quantity("BTC-USDT-SWAP", "1.23456") == "1.235"

    @pytest.mark.asyncio
    async def test_instrument_metadata(self, precision_resolver):
        instrument = await precision_resolver.get_instrument("BTC-USDT-SWAP")

        assert instrument.lot_size == Decimal("0.001")
        assert instrument.contract_value == Decimal("0.01")
        assert instrument.precision == 3
