"""
Futures Guard — Configuration
All tunable parameters in one place. Built once from the environment
and passed around as immutable values.
"""

import os
from decimal import Decimal, InvalidOperation
from dataclasses import dataclass, field

from core.risk_ladder import RiskLadder, LadderError

DEFAULT_LADDER = "150:0,300:100,500:250,800:500,1200:800"


class ConfigError(Exception):
    """Configuration is missing or malformed. Fatal before any position is touched."""


@dataclass(frozen=True)
class RiskConfig:
    default_sl_pct: Decimal = Decimal("1.0")    # Raw price % below the first ladder tier
    tp_pct: Decimal = Decimal("20.0")           # Raw price % from entry
    ladder: RiskLadder = field(default_factory=lambda: RiskLadder.parse(DEFAULT_LADDER))
    sl_mode: str = "fixed"                      # "fixed" | "mark" (superseded by the ladder)


@dataclass(frozen=True)
class ExecutionConfig:
    dry_run: bool = False               # Log intended mutations, place nothing


@dataclass(frozen=True)
class ExchangeConfig:
    api_key: str = ""
    api_secret: str = ""
    testnet: bool = False
    request_timeout_sec: float = 10.0   # Per HTTP call
    recv_window_ms: int = 5000
    base_url_mainnet: str = "https://fapi.binance.com"
    base_url_testnet: str = "https://testnet.binancefuture.com"

    @property
    def base_url(self) -> str:
        return self.base_url_testnet if self.testnet else self.base_url_mainnet


@dataclass(frozen=True)
class NotificationConfig:
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    enabled: bool = True


@dataclass(frozen=True)
class BotConfig:
    risk: RiskConfig = field(default_factory=RiskConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log_level: str = "INFO"
    log_file: str = "./data/guard.log"

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load config from environment variables, falling back to defaults."""
        sl_mode = os.getenv("STOP_LOSS_MODE", "fixed").strip().lower()
        if sl_mode not in ("fixed", "mark"):
            raise ConfigError(f"STOP_LOSS_MODE must be 'fixed' or 'mark', got {sl_mode!r}")

        try:
            ladder = RiskLadder.parse(os.getenv("RISK_LADDER", DEFAULT_LADDER))
        except LadderError as e:
            raise ConfigError(f"RISK_LADDER: {e}") from e

        risk = RiskConfig(
            default_sl_pct=_env_decimal("STOP_LOSS_PERCENT", "1.0"),
            tp_pct=_env_decimal("TAKE_PROFIT_PERCENT", "20.0"),
            ladder=ladder,
            sl_mode=sl_mode,
        )
        if risk.default_sl_pct < 0:
            raise ConfigError("STOP_LOSS_PERCENT must not be negative")
        if risk.tp_pct <= 0:
            raise ConfigError("TAKE_PROFIT_PERCENT must be positive")

        exchange = ExchangeConfig(
            api_key=os.getenv("BINANCE_API_KEY", ""),
            api_secret=os.getenv("BINANCE_API_SECRET", ""),
            testnet=_env_bool("BINANCE_TESTNET", False),
            request_timeout_sec=float(_env_decimal("REQUEST_TIMEOUT_SEC", "10")),
            recv_window_ms=int(_env_decimal("RECV_WINDOW_MS", "5000")),
        )
        notifications = NotificationConfig(
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID", ""),
        )
        return cls(
            risk=risk,
            execution=ExecutionConfig(dry_run=_env_bool("DRY_RUN", False)),
            exchange=exchange,
            notifications=notifications,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE", "./data/guard.log"),
        )

    def validate(self):
        """Raise ConfigError when credentials needed for trading are absent."""
        if not self.exchange.api_key or not self.exchange.api_secret:
            raise ConfigError("BINANCE_API_KEY and BINANCE_API_SECRET must be set!")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name) or default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
