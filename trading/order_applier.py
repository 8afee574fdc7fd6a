"""
Order Applier — carries out a ReconciliationPlan on the exchange.

  REPLACE_BOTH / CREATE_INITIAL → cancel every STOP/TP order on the symbol (hedge mode:
                                  only this positionSide), place both
  REPLACE_STOP_LOSS             → cancel SL orders only, place SL
  REPLACE_TAKE_PROFIT           → cancel TP orders only, place TP

Best effort: a failed cancel is logged and creation still goes ahead.
Whatever is left half-done gets fixed on the next run.
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, TYPE_CHECKING
from exchange.models import (
    OrderKind,
    PositionSnapshot,
    ReconciliationDecision,
    ReconciliationPlan,
    RestingOrder,
    RestingOrderState,
)
from exchange.binance_rest import BinanceAPIError
import logging

if TYPE_CHECKING:
    from exchange.binance_rest import BinanceFuturesClient
    from core.precision import SymbolPrecisionTable
    from config import ExecutionConfig

logger = logging.getLogger(__name__)


class OrderApplier:
    """Applies order mutations for one position at a time."""

    def __init__(
        self,
        client: "BinanceFuturesClient",
        precision: "SymbolPrecisionTable",
        config: "ExecutionConfig",
    ):
        self.client = client
        self.precision = precision
        self.config = config

    async def apply(
        self,
        snap: PositionSnapshot,
        plan: ReconciliationPlan,
        resting: RestingOrderState,
    ) -> List[str]:
        """
        Execute the plan. Returns the errors hit along the way (empty on success).
        """
        if plan.decision == ReconciliationDecision.NO_CHANGE:
            return []

        if plan.cancel_all:
            to_cancel = resting.all_orders
        else:
            to_cancel = []
            if plan.place_stop:
                to_cancel += resting.stop_losses
            if plan.place_take:
                to_cancel += resting.take_profits

        if self.config.dry_run:
            logger.info(
                f"[ORDER] {snap.symbol}: DRY RUN {plan.decision.value} — would cancel "
                f"{[o.order_id for o in to_cancel]}, SL={plan.stop_price if plan.place_stop else '-'}, "
                f"TP={plan.take_price if plan.place_take else '-'}"
            )
            return []

        errors: List[str] = []
        for order in to_cancel:
            await self._cancel(snap, order, errors)

        if plan.place_stop:
            await self._place(snap, OrderKind.STOP_LOSS, plan.stop_price, errors)
        if plan.place_take:
            await self._place(snap, OrderKind.TAKE_PROFIT, plan.take_price, errors)

        if errors:
            logger.warning(f"[ORDER] {snap.symbol}: {plan.decision.value} finished with {len(errors)} error(s)")
        else:
            logger.info(f"[ORDER] {snap.symbol}: {plan.decision.value} applied ✓")
        return errors

    async def _cancel(self, snap: PositionSnapshot, order: RestingOrder, errors: List[str]):
        try:
            await self.client.cancel_order(snap.symbol, order.order_id)
        except BinanceAPIError as e:
            logger.error(f"[ORDER] {snap.symbol}: Failed to cancel {order.kind.name} {order.order_id}: {e}")
            errors.append(f"cancel {order.order_id}: {e}")

    async def _place(self, snap: PositionSnapshot, kind: OrderKind, price: Decimal, errors: List[str]):
        try:
            await self.client.place_protective_order(
                symbol=snap.symbol,
                side=snap.side.close_side,
                position_side=snap.position_side,
                order_type=kind.value,
                quantity=self.precision.format_quantity(snap.symbol, snap.abs_amount),
                stop_price=self.precision.format_price(snap.symbol, price),
                reduce_only=not snap.hedge_mode,
            )
        except BinanceAPIError as e:
            logger.error(f"[ORDER] {snap.symbol}: Failed to place {kind.name} @ {price}: {e}")
            errors.append(f"place {kind.name}: {e}")
