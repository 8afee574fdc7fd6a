"""
Unit tests for the symbol precision table.
"""
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from conftest import precision_entry
from core.precision import MissingPrecisionError, SymbolPrecisionTable
from exchange.models import SymbolPrecision

D = Decimal


@pytest.fixture
def table() -> SymbolPrecisionTable:
    return SymbolPrecisionTable.from_exchange_info([
        precision_entry("BTCUSDT", price=2, qty=3),
        precision_entry("DOGEUSDT", price=6, qty=0),
        {"symbol": "BROKEN", "pricePrecision": "x"},
    ])


def test_malformed_entries_are_skipped(table):
    assert len(table) == 2
    assert "BROKEN" not in table
    assert table.get("BTCUSDT") == SymbolPrecision(2, 3)


def test_missing_symbol(table):
    with pytest.raises(MissingPrecisionError):
        table.get("ETHUSDT")
    # Still a KeyError for callers that treat it as a plain lookup miss
    with pytest.raises(KeyError):
        table.format_price("ETHUSDT", D("1"))


def test_format_price_never_exceeds_precision(table):
    assert table.format_price("BTCUSDT", D("101.00005")) == "101.00"
    assert table.format_price("BTCUSDT", D("99")) == "99.00"
    assert table.format_price("BTCUSDT", D("101.005")) == "101.01"
    assert table.format_price("DOGEUSDT", D("0.12345678")) == "0.123457"


def test_format_price_has_no_exponent(table):
    assert table.format_price("DOGEUSDT", D("1E-7")) == "0.000000"
    assert table.format_price("BTCUSDT", D("1.2E+5")) == "120000.00"


def test_format_quantity_rounds_down(table):
    assert table.format_quantity("BTCUSDT", D("0.0019")) == "0.001"
    assert table.format_quantity("DOGEUSDT", D("1500.9")) == "1500"


@pytest.mark.asyncio
async def test_load_from_client():
    client = AsyncMock()
    client.get_exchange_symbols.return_value = [precision_entry("ETHUSDT", price=2, qty=3)]

    table = await SymbolPrecisionTable.load(client)

    assert "ETHUSDT" in table
    client.get_exchange_symbols.assert_awaited_once()
