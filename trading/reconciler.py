"""
Order Reconciler — decides what to do with a position's protective orders.

Pure: no exchange calls. Given the snapshot, the freshly computed targets and
the resting orders, returns a ReconciliationPlan for the OrderApplier.

SL is a ratchet. Order of checks matters:
  1. No resting SL               → CREATE_INITIAL
  2. New ladder tier > resting
     and new stop is tighter     → replace (stop moves forward)
  3. Resting more favorable, or
     within the noise floor      → keep resting
  4. Otherwise                   → replace

TP only changes when the target moved more than the churn threshold.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from exchange.models import (
    HUNDRED,
    OrderKind,
    PositionSnapshot,
    ReconciliationDecision,
    ReconciliationPlan,
    RestingOrder,
    RestingOrderState,
    RiskTargets,
    SymbolPrecision,
)
from core.risk_ladder import RiskLadder, TIER_MATCH_TOLERANCE_PCT
import logging

logger = logging.getLogger(__name__)

# SL moves smaller than this fraction of entry are mark-price jitter, not a new stop
STOP_NOISE_FLOOR = Decimal("0.0001")

# TP moves of at most this % of the resting price are not worth a cancel/create cycle
TP_CHURN_THRESHOLD_PCT = Decimal("0.5")

_ORDER_KINDS = {
    "STOP_MARKET": OrderKind.STOP_LOSS,
    "STOP": OrderKind.STOP_LOSS,
    "TAKE_PROFIT_MARKET": OrderKind.TAKE_PROFIT,
    "TAKE_PROFIT": OrderKind.TAKE_PROFIT,
}


def parse_resting_orders(snap: PositionSnapshot, open_orders: List[Dict]) -> RestingOrderState:
    """
    Pick the protective orders belonging to this position out of the
    symbol's open orders. Hedge mode matches positionSide; one-way mode
    matches the closing side, and keeps opposite-side STOP/TP orders
    (left over from a flipped position) as orphans.
    """
    state = RestingOrderState()
    for raw in open_orders:
        kind = _ORDER_KINDS.get(str(raw.get("type") or raw.get("origType") or "").upper())
        if kind is None:
            continue

        position_side = str(raw.get("positionSide") or "BOTH").upper()
        orphan = False
        if snap.hedge_mode:
            if position_side != snap.position_side:
                continue
        elif str(raw.get("side", "")).upper() != snap.side.close_side:
            orphan = True

        try:
            stop_price = Decimal(str(raw["stopPrice"]))
        except (KeyError, ArithmeticError):
            logger.warning(f"[RECON] {snap.symbol}: order {raw.get('orderId')} has no usable stopPrice")
            if not orphan:
                continue
            stop_price = Decimal("0")

        order = RestingOrder(
            order_id=str(raw.get("orderId")),
            kind=kind,
            stop_price=stop_price,
            position_side=position_side,
        )
        if orphan:
            state.orphans.append(order)
        elif kind == OrderKind.STOP_LOSS:
            state.stop_losses.append(order)
        else:
            state.take_profits.append(order)
    return state


def decide_stop_loss(
    snap: PositionSnapshot,
    targets: RiskTargets,
    resting_price: Optional[Decimal],
    ladder: RiskLadder,
    price_precision: Optional[int] = None,
) -> Tuple[bool, Decimal]:
    """Return (replace, final_price) for the stop-loss leg."""
    new_price = targets.stop_price
    if resting_price is None:
        return True, new_price

    resting_raw_pct = snap.price_percent(resting_price)
    resting_tier = ladder.tier_for_stop(
        resting_raw_pct,
        snap.leverage,
        _tier_tolerance_pct(snap, price_precision),
    )

    # Never force a looser stop, whatever tier the resting one reads as
    if targets.tier_index > resting_tier and targets.stop_raw_pct > resting_raw_pct:
        logger.info(
            f"[RECON] {snap.symbol}: tier advanced {resting_tier} → {targets.tier_index}, "
            f"SL {resting_price} → {new_price}"
        )
        return True, new_price

    if resting_raw_pct >= targets.stop_raw_pct:
        return False, resting_price
    if abs(resting_price - new_price) < STOP_NOISE_FLOOR * snap.entry_price:
        return False, resting_price

    return True, new_price


def _tier_tolerance_pct(snap: PositionSnapshot, price_precision: Optional[int]) -> Decimal:
    """Tier match window in raw %: at least one price tick, since stops are rounded to it."""
    if price_precision is None:
        return TIER_MATCH_TOLERANCE_PCT
    tick_pct = Decimal(1).scaleb(-price_precision) / snap.entry_price * HUNDRED
    return max(TIER_MATCH_TOLERANCE_PCT, tick_pct)


def decide_take_profit(
    targets: RiskTargets,
    resting_price: Optional[Decimal],
) -> Tuple[bool, Decimal]:
    """Return (replace, final_price) for the take-profit leg."""
    new_price = targets.take_price
    if resting_price is None or resting_price <= 0:
        return True, new_price

    drift_pct = abs(resting_price - new_price) / resting_price * HUNDRED
    if drift_pct > TP_CHURN_THRESHOLD_PCT:
        return True, new_price
    return False, resting_price


def decide(
    snap: PositionSnapshot,
    targets: RiskTargets,
    resting: RestingOrderState,
    ladder: RiskLadder,
    precision: Optional[SymbolPrecision] = None,
) -> ReconciliationPlan:
    """Combine both legs into one plan. `precision` widens tier matching to the symbol's tick."""
    if resting.stop_price is None:
        return ReconciliationPlan(
            decision=ReconciliationDecision.CREATE_INITIAL,
            stop_price=targets.stop_price,
            take_price=targets.take_price,
            place_stop=True,
            place_take=True,
        )

    replace_stop, stop_price = decide_stop_loss(
        snap, targets, resting.stop_price, ladder,
        precision.price_precision if precision is not None else None,
    )
    replace_take, take_price = decide_take_profit(targets, resting.take_price)

    if replace_stop and replace_take:
        decision = ReconciliationDecision.REPLACE_BOTH
    elif replace_stop:
        decision = ReconciliationDecision.REPLACE_STOP_LOSS
    elif replace_take:
        decision = ReconciliationDecision.REPLACE_TAKE_PROFIT
    else:
        decision = ReconciliationDecision.NO_CHANGE

    return ReconciliationPlan(
        decision=decision,
        stop_price=stop_price,
        take_price=take_price,
        place_stop=replace_stop,
        place_take=replace_take,
    )
