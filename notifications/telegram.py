"""
Telegram Notifier — Sends per-position risk summaries and run status.
"""

from __future__ import annotations
import asyncio
import html
import aiohttp
from decimal import Decimal
from typing import Optional
from exchange.models import (
    PositionSnapshot,
    ReconciliationDecision,
    ReconciliationPlan,
    RiskTargets,
    RunSummary,
    Side,
)
import logging

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org"


class TelegramNotifier:
    """Posts guard reports to one Telegram chat. Disabled when token or chat id is missing."""

    def __init__(self, bot_token: str, chat_id: str, enabled: bool = True, timeout_sec: float = 10.0):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.enabled = enabled and bool(bot_token) and bool(chat_id)
        self._timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def send(self, message: str, parse_mode: str = "HTML"):
        """
        Deliver one guard report to the operator chat.
        Delivery problems are logged and swallowed: a lost report never
        affects the orders already placed for the run.
        """
        if not self.enabled:
            logger.debug(f"[TG] Notifications off, report dropped ({len(message)} chars)")
            return

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        try:
            session = await self._get_session()
            async with session.post(f"{API_URL}/bot{self.bot_token}/sendMessage", json=payload) as resp:
                body = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"[TG] Report not delivered: {e!r}")
            return

        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else body
            logger.warning(f"[TG] Report rejected by Bot API: {description}")
        else:
            logger.debug(f"[TG] Report delivered to {self.chat_id}")

    async def send_position_summary(
        self,
        snap: PositionSnapshot,
        targets: RiskTargets,
        plan: ReconciliationPlan,
    ):
        await self.send(format_position_summary(snap, targets, plan))

    async def send_run_summary(self, summary: RunSummary):
        await self.send(format_run_summary(summary))


def format_position_summary(
    snap: PositionSnapshot,
    targets: RiskTargets,
    plan: ReconciliationPlan,
) -> str:
    """
    Summary of one position. SL/TP shown are the resolved prices, which
    may be the resting orders rather than the fresh targets.
    """
    emoji = "🟢" if snap.side == Side.LONG else "🔴"
    stop_pct = snap.price_percent(plan.stop_price)
    take_pct = snap.price_percent(plan.take_price)
    action = "unchanged" if plan.decision == ReconciliationDecision.NO_CHANGE else plan.decision.value

    return (
        f"{emoji} <b>{snap.symbol} — {snap.side.value} {_num(snap.leverage)}x</b>\n\n"
        f"Entry: <code>{_num(snap.entry_price)}</code>\n"
        f"Mark: <code>{_num(snap.mark_price)}</code>\n"
        f"Profit: <code>{snap.raw_profit_pct:+.2f}%</code> "
        f"(<code>{snap.leveraged_profit_pct:+.2f}%</code> lev)\n\n"
        f"SL: <code>{_num(plan.stop_price)}</code> "
        f"({stop_pct:+.2f}% / {stop_pct * snap.leverage:+.2f}% lev)\n"
        f"TP: <code>{_num(plan.take_price)}</code> "
        f"({take_pct:+.2f}% / {take_pct * snap.leverage:+.2f}% lev)\n"
        f"R/R: <code>{targets.risk_reward:.2f}</code>\n"
        f"Potential: <code>${targets.potential_profit:+.2f}</code> / "
        f"<code>${targets.potential_loss:+.2f}</code>\n\n"
        f"Orders: {action}"
    )


def format_run_summary(summary: RunSummary) -> str:
    emoji = "✅" if summary.ok else "⚠️"
    lines = [
        f"{emoji} <b>GUARD RUN</b>",
        f"Positions: {summary.positions_seen}",
        f"Processed: {len(summary.outcomes) - len(summary.failures)}",
        f"Failed: {len(summary.failures)}",
    ]
    for outcome in summary.failures:
        lines.append(f"• <code>{outcome.symbol}</code>: {html.escape('; '.join(outcome.errors)[:200])}")
    return "\n".join(lines)


def _num(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    return f"{value.normalize():f}"
