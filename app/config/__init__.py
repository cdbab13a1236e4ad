"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # ======================
    # Keeper identity
    # ======================
    KEEPER_KEYPAIR_PATH: str = "keeper-keypair.json"
    PROGRAM_ID: str = "5urWt3YZS2aXYPhr7LbkQxTHB9o9FDPevV8N1PEeYkYu"
    INITIAL_STRATEGY: str = "Kamino"
    # Comma separated base58 pubkeys seeded into the tracked set at startup
    TRACKED_ACCOUNTS: str = ""

    # ======================
    # Rate feeds
    # ======================
    KAMINO_API_BASE: str = "https://api.kamino.finance"
    KAMINO_MARKET: str = "7u3HeHxYDLhnCoErrtycNokbQYbWGzLs6JSDqGAv5PfF"
    KAMINO_RESERVE: str = "D6q6wuQSrifJKZYpR1M8R4YawnLDtDsMmWM1NbBmgJ59"
    KAMINO_LOOKBACK_HOURS: int = 12
    MARGINFI_API_BASE: str = "https://app.marginfi.com/api"
    MARGINFI_BANK: str = "2s37akK2eyBbp8DZgCm7RtsaEz8eJP3Nxd4urLHQv7yB"
    RATE_FETCH_TIMEOUT_SECONDS: float = 10.0

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_ENABLED: bool = True
    REBALANCE_INTERVAL_SECONDS: int = 3600
    REBALANCE_MISFIRE_GRACE_SECONDS: int = 30
    TIMEZONE: str = "UTC"

    # ======================
    # Ledger
    # ======================
    LEDGER_MODE: str = "paper"  # paper | http
    LEDGER_URL: str = "http://127.0.0.1:8899"
    LEDGER_TIMEOUT_SECONDS: float = 60.0
    LEDGER_WORKERS: int = 4

    # ======================
    # Database
    # ======================
    DATABASE_URL: str = "sqlite+aiosqlite:///./keeper.db"
    AUTO_CREATE_TABLES: bool = True

    # ======================
    # Telegram
    # ======================
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_ENABLED: bool = False

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )

    def tracked_account_seed(self) -> list[str]:
        return [item.strip() for item in self.TRACKED_ACCOUNTS.split(",") if item.strip()]


settings = Settings()
