"""
Pytest configuration and shared fixtures.
"""
from decimal import Decimal
from typing import Optional

import pytest

from config import RiskConfig
from core.risk_calculator import RiskCalculator
from core.risk_ladder import RiskLadder
from exchange.models import PositionSnapshot, RiskTargets, Side, SymbolPrecision


def make_snapshot(
    mark: str,
    side: Side = Side.LONG,
    entry: str = "100",
    leverage: str = "10",
    amount: str = "1",
    symbol: str = "BTCUSDT",
    position_side: str = "BOTH",
) -> PositionSnapshot:
    abs_amount = Decimal(amount)
    signed = abs_amount if side == Side.LONG else -abs_amount
    return PositionSnapshot(
        symbol=symbol,
        side=side,
        entry_price=Decimal(entry),
        mark_price=Decimal(mark),
        amount=signed,
        abs_amount=abs_amount,
        leverage=Decimal(leverage),
        position_side=position_side,
    )


def make_targets(
    snap: PositionSnapshot,
    stop: str,
    take: str,
    tier_index: int = -1,
) -> RiskTargets:
    """Targets with hand-picked prices; derived fields follow the snapshot."""
    stop_price = Decimal(stop)
    take_price = Decimal(take)
    stop_raw = snap.price_percent(stop_price)
    take_raw = snap.price_percent(take_price)
    return RiskTargets(
        tier_index=tier_index,
        stop_price=stop_price,
        stop_raw_pct=stop_raw,
        stop_leveraged_pct=stop_raw * snap.leverage,
        take_price=take_price,
        take_raw_pct=take_raw,
        take_leveraged_pct=take_raw * snap.leverage,
        potential_profit=Decimal("0"),
        potential_loss=Decimal("0"),
        risk_reward=Decimal("0"),
    )


@pytest.fixture
def ladder() -> RiskLadder:
    return RiskLadder.parse("150:0,300:100,500:250,800:500,1200:800")


@pytest.fixture
def risk_config(ladder) -> RiskConfig:
    return RiskConfig(default_sl_pct=Decimal("1.0"), tp_pct=Decimal("20.0"), ladder=ladder)


@pytest.fixture
def calculator(risk_config) -> RiskCalculator:
    return RiskCalculator(risk_config)


@pytest.fixture
def btc_precision() -> SymbolPrecision:
    return SymbolPrecision(price_precision=2, quantity_precision=3)


def open_order(
    order_id: int,
    order_type: str,
    stop_price: str,
    side: str = "SELL",
    position_side: str = "BOTH",
) -> dict:
    """Raw /fapi/v1/openOrders entry."""
    return {
        "orderId": order_id,
        "symbol": "BTCUSDT",
        "type": order_type,
        "origType": order_type,
        "side": side,
        "positionSide": position_side,
        "stopPrice": stop_price,
        "status": "NEW",
    }


def raw_position(
    symbol: str,
    amount: str,
    entry: str = "100",
    mark: str = "103",
    leverage: str = "10",
    position_side: str = "BOTH",
) -> dict:
    """Raw /fapi/v2/positionRisk entry."""
    return {
        "symbol": symbol,
        "positionAmt": amount,
        "entryPrice": entry,
        "markPrice": mark,
        "leverage": leverage,
        "positionSide": position_side,
        "unRealizedProfit": "0.0",
    }


def precision_entry(symbol: str, price: int = 2, qty: int = 3, extra: Optional[dict] = None) -> dict:
    """Raw /fapi/v1/exchangeInfo symbol entry."""
    entry = {"symbol": symbol, "pricePrecision": price, "quantityPrecision": qty, "status": "TRADING"}
    entry.update(extra or {})
    return entry
