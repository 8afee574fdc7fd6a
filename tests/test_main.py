"""
Tests for the entry point: exit codes for fatal, partial and clean runs.
"""
from unittest.mock import AsyncMock

import pytest

import main
from config import BotConfig, ExchangeConfig
from exchange.binance_rest import BinanceAPIError
from exchange.models import PositionOutcome, RunSummary


@pytest.fixture
def guard():
    config = BotConfig(exchange=ExchangeConfig(api_key="key", api_secret="secret", testnet=True))
    guard = main.Guard(config)
    guard.client = AsyncMock()
    guard.notifier = AsyncMock()
    guard.runner = AsyncMock()
    return guard


@pytest.mark.asyncio
async def test_missing_credentials_exit_fatal(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    monkeypatch.delenv("BINANCE_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_API_SECRET", raising=False)
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "guard.log"))

    assert await main.main() == main.EXIT_FATAL
    assert (tmp_path / "logs").is_dir()


@pytest.mark.asyncio
async def test_auth_failure_exit_fatal(guard):
    guard.client.check_auth.side_effect = BinanceAPIError("Invalid API-key", status=401, code=-2015)

    assert await guard.run() == main.EXIT_FATAL
    guard.runner.run.assert_not_awaited()
    guard.notifier.send.assert_awaited_once()


@pytest.mark.asyncio
async def test_setup_failure_exit_fatal(guard):
    guard.runner.run.side_effect = BinanceAPIError("GET /fapi/v1/exchangeInfo timed out")

    assert await guard.run() == main.EXIT_FATAL
    guard.notifier.send_run_summary.assert_not_awaited()


@pytest.mark.asyncio
async def test_partial_failure_exit_code(guard):
    guard.runner.run.return_value = RunSummary(
        positions_seen=2,
        outcomes=[PositionOutcome("BTCUSDT"), PositionOutcome("ETHUSDT", errors=["open orders: timed out"])],
    )

    assert await guard.run() == main.EXIT_PARTIAL
    guard.notifier.send_run_summary.assert_awaited_once()


@pytest.mark.asyncio
async def test_clean_run_exit_ok(guard):
    guard.runner.run.return_value = RunSummary(positions_seen=1, outcomes=[PositionOutcome("BTCUSDT")])

    assert await guard.run() == main.EXIT_OK


@pytest.mark.asyncio
async def test_close_releases_sessions(guard):
    await guard.close()
    guard.client.close.assert_awaited_once()
    guard.notifier.close.assert_awaited_once()
