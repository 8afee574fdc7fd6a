"""
Data models for Futures Guard.
Uses Decimal for all monetary/price calculations, prices and quantities alike.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, List

HUNDRED = Decimal("100")


class Side(Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def close_side(self) -> str:
        """Order side that reduces a position of this side."""
        return "SELL" if self is Side.LONG else "BUY"


class OrderKind(Enum):
    STOP_LOSS = "STOP_MARKET"
    TAKE_PROFIT = "TAKE_PROFIT_MARKET"


class ReconciliationDecision(Enum):
    NO_CHANGE = "NO_CHANGE"
    REPLACE_STOP_LOSS = "REPLACE_STOP_LOSS"
    REPLACE_TAKE_PROFIT = "REPLACE_TAKE_PROFIT"
    REPLACE_BOTH = "REPLACE_BOTH"
    CREATE_INITIAL = "CREATE_INITIAL"


@dataclass(frozen=True)
class SymbolPrecision:
    """Decimal places the exchange accepts for a symbol."""
    price_precision: int
    quantity_precision: int


@dataclass(frozen=True)
class PositionSnapshot:
    """One exchange position as of this run."""
    symbol: str
    side: Side
    entry_price: Decimal
    mark_price: Decimal
    amount: Decimal             # Signed, as reported by the exchange
    abs_amount: Decimal
    leverage: Decimal
    position_side: str = "BOTH"  # LONG/SHORT in hedge mode, BOTH in one-way mode

    @property
    def hedge_mode(self) -> bool:
        return self.position_side != "BOTH"

    def price_percent(self, price: Decimal) -> Decimal:
        """
        Signed raw percent of `price` relative to entry.
        Positive means the price is on the profit side of entry.
        """
        delta = (price - self.entry_price) / self.entry_price * HUNDRED
        return delta if self.side == Side.LONG else -delta

    @property
    def raw_profit_pct(self) -> Decimal:
        return self.price_percent(self.mark_price)

    @property
    def leveraged_profit_pct(self) -> Decimal:
        return self.raw_profit_pct * self.leverage


@dataclass(frozen=True)
class RiskTargets:
    """Calculator output for one snapshot."""
    tier_index: int
    stop_price: Decimal
    stop_raw_pct: Decimal
    stop_leveraged_pct: Decimal
    take_price: Decimal
    take_raw_pct: Decimal
    take_leveraged_pct: Decimal
    potential_profit: Decimal
    potential_loss: Decimal
    risk_reward: Decimal


@dataclass(frozen=True)
class RestingOrder:
    """A protective order currently open on the exchange."""
    order_id: str
    kind: OrderKind
    stop_price: Decimal
    position_side: str = "BOTH"


@dataclass
class RestingOrderState:
    """Resting protective orders of one position, split by leg."""
    stop_losses: List[RestingOrder] = field(default_factory=list)
    take_profits: List[RestingOrder] = field(default_factory=list)
    orphans: List[RestingOrder] = field(default_factory=list)  # One-way mode, wrong closing side

    @property
    def stop_price(self) -> Optional[Decimal]:
        return self.stop_losses[0].stop_price if self.stop_losses else None

    @property
    def take_price(self) -> Optional[Decimal]:
        return self.take_profits[0].stop_price if self.take_profits else None

    @property
    def all_orders(self) -> List[RestingOrder]:
        """Every protective order to clear before placing both legs fresh."""
        return self.stop_losses + self.take_profits + self.orphans


@dataclass(frozen=True)
class ReconciliationPlan:
    """What to do with a position's protective orders, and at which prices."""
    decision: ReconciliationDecision
    stop_price: Decimal
    take_price: Decimal
    place_stop: bool = False
    place_take: bool = False

    @property
    def cancel_all(self) -> bool:
        return self.decision in (
            ReconciliationDecision.REPLACE_BOTH,
            ReconciliationDecision.CREATE_INITIAL,
        )


@dataclass
class PositionOutcome:
    """Result of processing a single position."""
    symbol: str
    side: Optional[Side] = None
    decision: Optional[ReconciliationDecision] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class RunSummary:
    """Aggregate of one engine run."""
    positions_seen: int = 0
    outcomes: List[PositionOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[PositionOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failures
