"""
Symbol Precision Table — per-symbol price/quantity decimals from exchange info.
Loaded once per run. Values sent to the exchange must never carry more
decimals than declared, or the order is rejected.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Dict, List, Mapping, TYPE_CHECKING
from exchange.models import SymbolPrecision
import logging

if TYPE_CHECKING:
    from exchange.binance_rest import BinanceFuturesClient

logger = logging.getLogger(__name__)


class MissingPrecisionError(KeyError):
    """Symbol has no precision metadata."""


class SymbolPrecisionTable:
    """Read-only lookup of SymbolPrecision by symbol."""

    def __init__(self, entries: Mapping[str, SymbolPrecision]):
        self._entries: Dict[str, SymbolPrecision] = dict(entries)

    @classmethod
    def from_exchange_info(cls, symbols: List[Dict]) -> "SymbolPrecisionTable":
        """Build from the `symbols` list of /fapi/v1/exchangeInfo."""
        entries = {}
        for item in symbols:
            try:
                entries[item["symbol"]] = SymbolPrecision(
                    price_precision=int(item["pricePrecision"]),
                    quantity_precision=int(item["quantityPrecision"]),
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[PRECISION] Skipping malformed symbol entry {item.get('symbol')}: {e}")
        return cls(entries)

    @classmethod
    async def load(cls, client: "BinanceFuturesClient") -> "SymbolPrecisionTable":
        symbols = await client.get_exchange_symbols()
        table = cls.from_exchange_info(symbols)
        logger.info(f"[PRECISION] Loaded precision for {len(table)} symbols")
        return table

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._entries

    def get(self, symbol: str) -> SymbolPrecision:
        try:
            return self._entries[symbol]
        except KeyError:
            raise MissingPrecisionError(symbol) from None

    def format_price(self, symbol: str, price: Decimal) -> str:
        """Price as a decimal string at the symbol's price precision."""
        return _format(price, self.get(symbol).price_precision, ROUND_HALF_UP)

    def format_quantity(self, symbol: str, qty: Decimal) -> str:
        """Quantity rounded down, so a close order never exceeds the position."""
        return _format(qty, self.get(symbol).quantity_precision, ROUND_DOWN)


def _format(value: Decimal, places: int, rounding: str) -> str:
    quantum = Decimal(1).scaleb(-places)
    return f"{value.quantize(quantum, rounding=rounding):f}"
