"""
Futures Guard — Main entry point.
One pass: check credentials, sync every open position's SL/TP, report, exit.
Re-running on a schedule (cron, systemd timer, container restart) is up to the host.

Exit codes:
  0: every position processed cleanly
  1: fatal error before positions were touched (config, auth, metadata, position list)
  2: run completed but some positions failed
"""

from __future__ import annotations
import asyncio
import os
import sys
import logging

from dotenv import load_dotenv

from config import BotConfig, ConfigError
from exchange.binance_rest import BinanceFuturesClient, BinanceAPIError
from notifications.telegram import TelegramNotifier
from trading.position_runner import PositionRunner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


def setup_logging(level: str = "INFO", log_file: str = ""):
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        # Create log dir before FileHandler
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


class Guard:
    """Wires the exchange client, notifier and runner for one pass."""

    def __init__(self, config: BotConfig):
        self.config = config
        self.client = BinanceFuturesClient(
            api_key=config.exchange.api_key,
            api_secret=config.exchange.api_secret,
            base_url=config.exchange.base_url,
            timeout_sec=config.exchange.request_timeout_sec,
            recv_window_ms=config.exchange.recv_window_ms,
        )
        self.notifier = TelegramNotifier(
            bot_token=config.notifications.telegram_bot_token,
            chat_id=config.notifications.telegram_chat_id,
            enabled=config.notifications.enabled,
            timeout_sec=config.exchange.request_timeout_sec,
        )
        self.runner = PositionRunner(config, self.client, self.notifier)

    async def run(self) -> int:
        logger.info("=" * 60)
        logger.info("   FUTURES GUARD — RUN")
        logger.info("=" * 60)
        logger.info(
            f"[BOOT] {'TESTNET' if self.config.exchange.testnet else 'MAINNET'}, "
            f"SL={self.config.risk.default_sl_pct}%, TP={self.config.risk.tp_pct}%, "
            f"ladder={self.config.risk.ladder}"
            f"{', DRY RUN' if self.config.execution.dry_run else ''}"
        )
        if self.config.risk.sl_mode == "mark":
            logger.warning("[BOOT] STOP_LOSS_MODE=mark is superseded by the risk ladder and has no effect")

        try:
            await self.client.check_auth()
            logger.info("[BOOT] API credentials OK")
            summary = await self.runner.run()
        except BinanceAPIError as e:
            logger.critical(f"[BOOT] Fatal exchange error, no positions touched: {e}")
            await self.notifier.send(f"🚨 <b>GUARD</b>: run aborted — {e}")
            return EXIT_FATAL

        await self.notifier.send_run_summary(summary)
        return EXIT_OK if summary.ok else EXIT_PARTIAL

    async def close(self):
        await self.client.close()
        await self.notifier.close()


async def main() -> int:
    """Entry point."""
    load_dotenv()

    try:
        config = BotConfig.from_env()
        setup_logging(config.log_level, config.log_file)
        config.validate()
    except ConfigError as e:
        if not logging.getLogger().handlers:
            setup_logging()
        logger.critical(f"Configuration error: {e}")
        return EXIT_FATAL

    guard = Guard(config)
    try:
        return await guard.run()
    finally:
        await guard.close()


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
