"""
Risk Parameter Calculator — target SL/TP prices for a position snapshot.

SL Logic:
  - Below the first ladder threshold → SL = entry ∓ default% of price (risk capped)
  - Tier with 0%                     → SL = entry (breakeven)
  - Tier with n%                     → SL = entry ± n/leverage % (n% of leveraged profit locked)

TP Logic:
  - TP = entry ± tp% of price
  - Mark already at/past TP → TP = mark ± 0.5%, so the trigger is never already crossed
"""

from __future__ import annotations
from decimal import Decimal, ROUND_DOWN, ROUND_UP
from typing import Optional, TYPE_CHECKING
from exchange.models import PositionSnapshot, RiskTargets, Side, SymbolPrecision, HUNDRED
from core.risk_ladder import FLOOR_TIER
import logging

if TYPE_CHECKING:
    from config import RiskConfig

logger = logging.getLogger(__name__)

ONE = Decimal("1")

# How far past mark a take-profit is pushed when mark already crossed the target
TP_NUDGE = Decimal("0.005")


class RiskCalculator:
    """Computes RiskTargets from a snapshot and the configured ladder."""

    def __init__(self, config: "RiskConfig"):
        self.config = config
        self.ladder = config.ladder

    def calculate(
        self,
        snap: PositionSnapshot,
        precision: Optional[SymbolPrecision] = None,
    ) -> RiskTargets:
        """
        Compute targets. With `precision`, prices are rounded to what the
        exchange will accept so they compare cleanly against resting orders.
        """
        tier_index, sl_pct = self.ladder.lookup(snap.leveraged_profit_pct, self.config.default_sl_pct)

        stop_price = self.stop_price(snap, tier_index, sl_pct)
        take_price = self.take_price(snap)
        if precision is not None:
            stop_price = round_stop_price(stop_price, precision.price_precision, snap.side)
            take_price = round_take_price(take_price, precision.price_precision, snap.side)
            take_price = _keep_beyond_mark(take_price, snap, precision.price_precision)

        stop_raw_pct = snap.price_percent(stop_price)
        take_raw_pct = snap.price_percent(take_price)

        potential_profit = (take_price - snap.entry_price) * snap.abs_amount
        potential_loss = (stop_price - snap.entry_price) * snap.abs_amount
        if snap.side == Side.SHORT:
            potential_profit = -potential_profit
            potential_loss = -potential_loss
        # A stop never books a gain in the loss column
        if potential_loss > 0:
            potential_loss = -potential_loss

        if potential_loss == 0:
            risk_reward = Decimal("0")
        else:
            risk_reward = abs(potential_profit / potential_loss)

        targets = RiskTargets(
            tier_index=tier_index,
            stop_price=stop_price,
            stop_raw_pct=stop_raw_pct,
            stop_leveraged_pct=stop_raw_pct * snap.leverage,
            take_price=take_price,
            take_raw_pct=take_raw_pct,
            take_leveraged_pct=take_raw_pct * snap.leverage,
            potential_profit=potential_profit,
            potential_loss=potential_loss,
            risk_reward=risk_reward,
        )
        logger.debug(
            f"[RISK] {snap.symbol} {snap.side.value}: profit={snap.leveraged_profit_pct:.2f}% "
            f"tier={tier_index} SL={stop_price} TP={take_price}"
        )
        return targets

    def stop_price(self, snap: PositionSnapshot, tier_index: int, sl_pct: Decimal) -> Decimal:
        entry = snap.entry_price

        if sl_pct == 0:
            return entry

        if tier_index != FLOOR_TIER:
            # Locked profit: de-leverage the tier percent back to a price delta
            offset = sl_pct / snap.leverage / HUNDRED
            if snap.side == Side.LONG:
                return entry * (ONE + offset)
            return entry * (ONE - offset)

        offset = sl_pct / HUNDRED
        if snap.side == Side.LONG:
            return entry * (ONE - offset)
        return entry * (ONE + offset)

    def take_price(self, snap: PositionSnapshot) -> Decimal:
        offset = self.config.tp_pct / HUNDRED
        mark = snap.mark_price

        if snap.side == Side.LONG:
            target = snap.entry_price * (ONE + offset)
            if mark >= target:
                target = mark * (ONE + TP_NUDGE)
        else:
            target = snap.entry_price * (ONE - offset)
            if mark <= target:
                target = mark * (ONE - TP_NUDGE)
        return target


def round_stop_price(price: Decimal, places: int, side: Side) -> Decimal:
    """Round SL toward the position (tighter stop)."""
    quantum = Decimal(1).scaleb(-places)
    # For longs: SL below mark → round UP
    # For shorts: SL above mark → round DOWN
    rounding = ROUND_UP if side == Side.LONG else ROUND_DOWN
    return price.quantize(quantum, rounding=rounding)


def round_take_price(price: Decimal, places: int, side: Side) -> Decimal:
    """Round TP toward the position (easier to hit)."""
    quantum = Decimal(1).scaleb(-places)
    rounding = ROUND_DOWN if side == Side.LONG else ROUND_UP
    return price.quantize(quantum, rounding=rounding)


def _keep_beyond_mark(take_price: Decimal, snap: PositionSnapshot, places: int) -> Decimal:
    """Coarse ticks can round a nudged TP back onto mark; push it one tick past."""
    quantum = Decimal(1).scaleb(-places)
    if snap.side == Side.LONG and take_price <= snap.mark_price:
        return snap.mark_price.quantize(quantum, rounding=ROUND_DOWN) + quantum
    if snap.side == Side.SHORT and take_price >= snap.mark_price:
        return snap.mark_price.quantize(quantum, rounding=ROUND_UP) - quantum
    return take_price
