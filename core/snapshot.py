"""
Position Snapshot Builder — normalizes raw /fapi/v2/positionRisk entries.

Side comes from the exchange position mode:
  - Hedge mode: positionSide is LONG or SHORT
  - One-way mode: positionSide is BOTH, side follows the sign of positionAmt
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple
from exchange.models import PositionSnapshot, Side
import logging

logger = logging.getLogger(__name__)


class PositionParseError(ValueError):
    """A raw position could not be turned into a snapshot."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"{symbol}: {reason}")
        self.symbol = symbol


def _decimal(raw: Dict, key: str, symbol: str) -> Decimal:
    try:
        value = Decimal(str(raw[key]))
    except (KeyError, InvalidOperation):
        raise PositionParseError(symbol, f"bad {key}={raw.get(key)!r}") from None
    if not value.is_finite():
        raise PositionParseError(symbol, f"bad {key}={raw.get(key)!r}")
    return value


def build_snapshot(raw: Dict, hedge_mode: bool) -> Optional[PositionSnapshot]:
    """
    Build a snapshot from one raw position.
    Returns None for flat (zero amount) positions.
    """
    symbol = str(raw.get("symbol", "?"))
    amount = _decimal(raw, "positionAmt", symbol)
    if amount == 0:
        return None

    position_side = str(raw.get("positionSide") or "BOTH").upper()
    if hedge_mode and position_side in ("LONG", "SHORT"):
        side = Side(position_side)
    else:
        side = Side.LONG if amount > 0 else Side.SHORT
        position_side = "BOTH"

    entry = _decimal(raw, "entryPrice", symbol)
    if entry <= 0:
        raise PositionParseError(symbol, f"entry price must be positive, got {entry}")

    mark = _decimal(raw, "markPrice", symbol)
    if mark <= 0:
        raise PositionParseError(symbol, f"mark price must be positive, got {mark}")

    leverage = _decimal(raw, "leverage", symbol)
    if leverage <= 0:
        raise PositionParseError(symbol, f"leverage must be positive, got {leverage}")

    return PositionSnapshot(
        symbol=symbol,
        side=side,
        entry_price=entry,
        mark_price=mark,
        amount=amount,
        abs_amount=abs(amount),
        leverage=leverage,
        position_side=position_side,
    )


def build_snapshots(
    raw_positions: List[Dict],
    hedge_mode: bool,
) -> Tuple[List[PositionSnapshot], List[PositionParseError]]:
    """Build snapshots for all open positions, collecting parse failures separately."""
    snapshots: List[PositionSnapshot] = []
    errors: List[PositionParseError] = []

    for raw in raw_positions:
        try:
            snap = build_snapshot(raw, hedge_mode)
        except PositionParseError as e:
            logger.error(f"[SNAPSHOT] {e}")
            errors.append(e)
            continue
        if snap is not None:
            snapshots.append(snap)

    logger.info(
        f"[SNAPSHOT] {len(snapshots)} open positions "
        f"({len(raw_positions)} reported, {len(errors)} unparseable)"
    )
    return snapshots, errors
