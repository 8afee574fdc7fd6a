"""
Position Runner — one guard pass over every open position.

Setup is sequential and fatal on failure (position mode, precision, position list).
After that each position gets its own task; a failing position never stops the others.
"""

from __future__ import annotations
import asyncio
from typing import TYPE_CHECKING
from exchange.models import PositionOutcome, PositionSnapshot, RunSummary
from exchange.binance_rest import BinanceAPIError
from core.precision import MissingPrecisionError, SymbolPrecisionTable
from core.risk_calculator import RiskCalculator
from core.snapshot import build_snapshots
from trading.order_applier import OrderApplier
from trading.reconciler import decide, parse_resting_orders
import logging

if TYPE_CHECKING:
    from config import BotConfig
    from exchange.binance_rest import BinanceFuturesClient
    from notifications.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


class PositionRunner:
    """Fans reconciliation out across all open positions."""

    def __init__(
        self,
        config: "BotConfig",
        client: "BinanceFuturesClient",
        notifier: "TelegramNotifier",
    ):
        self.config = config
        self.client = client
        self.notifier = notifier
        self.calculator = RiskCalculator(config.risk)

    async def run(self) -> RunSummary:
        """
        Run one pass. Exchange errors during setup propagate to the caller;
        per-position errors end up in the returned summary.
        """
        hedge_mode = await self.client.get_hedge_mode()
        precision = await SymbolPrecisionTable.load(self.client)
        raw_positions = await self.client.get_positions()

        snapshots, parse_errors = build_snapshots(raw_positions, hedge_mode)
        summary = RunSummary(positions_seen=len(snapshots) + len(parse_errors))
        for err in parse_errors:
            summary.outcomes.append(PositionOutcome(symbol=err.symbol, errors=[str(err)]))

        logger.info(
            f"[RUN] Guarding {len(snapshots)} positions "
            f"({'hedge' if hedge_mode else 'one-way'} mode)"
        )

        applier = OrderApplier(self.client, precision, self.config.execution)
        results = await asyncio.gather(
            *(self._process(snap, precision, applier) for snap in snapshots),
            return_exceptions=True,
        )

        for snap, result in zip(snapshots, results):
            if isinstance(result, BaseException):
                # Anything _process did not anticipate still counts against this position only
                logger.error(f"[RUN] {snap.symbol}: Unhandled error: {result!r}")
                result = PositionOutcome(symbol=snap.symbol, side=snap.side, errors=[repr(result)])
            summary.outcomes.append(result)

        for failed in summary.failures:
            logger.error(f"[RUN] {failed.symbol}: FAILED — {'; '.join(failed.errors)}")
        logger.info(
            f"[RUN] Done. {len(summary.outcomes) - len(summary.failures)}/{summary.positions_seen} "
            f"positions OK, {len(summary.failures)} failed"
        )
        return summary

    async def _process(
        self,
        snap: PositionSnapshot,
        precision: SymbolPrecisionTable,
        applier: OrderApplier,
    ) -> PositionOutcome:
        outcome = PositionOutcome(symbol=snap.symbol, side=snap.side)

        try:
            symbol_precision = precision.get(snap.symbol)
        except MissingPrecisionError:
            logger.error(f"[RUN] {snap.symbol}: No precision metadata, skipping")
            outcome.errors.append("missing precision metadata")
            return outcome

        targets = self.calculator.calculate(snap, symbol_precision)

        try:
            open_orders = await self.client.get_open_orders(snap.symbol)
        except BinanceAPIError as e:
            logger.error(f"[RUN] {snap.symbol}: Failed to fetch open orders: {e}")
            outcome.errors.append(f"open orders: {e}")
            return outcome

        resting = parse_resting_orders(snap, open_orders)
        plan = decide(snap, targets, resting, self.config.risk.ladder, symbol_precision)
        outcome.decision = plan.decision

        logger.info(
            f"[RECON] {snap.symbol} {snap.side.value}: profit={snap.leveraged_profit_pct:.2f}% lev, "
            f"tier={targets.tier_index}, SL {resting.stop_price} → {plan.stop_price}, "
            f"TP {resting.take_price} → {plan.take_price}: {plan.decision.value}"
        )

        outcome.errors.extend(await applier.apply(snap, plan, resting))
        await self.notifier.send_position_summary(snap, targets, plan)
        return outcome
