"""Runtime settings loaded once from the environment or a .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from gmail_txn_sync import constants


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # -----------------------------
    # Google OAuth client
    # -----------------------------
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # -----------------------------
    # Bank sender allow-list (comma-separated)
    # -----------------------------
    BANK_DOMAINS: str = constants.DEFAULT_BANK_DOMAINS

    # -----------------------------
    # Classification service (blank key disables the AI fallback)
    # -----------------------------
    GEMINI_API_URL: str = constants.GEMINI_API_URL
    GEMINI_API_KEY: str = ""
    AI_COOLDOWN_DEFAULT_SECONDS: int = constants.AI_COOLDOWN_DEFAULT_SECONDS
    HTTP_TIMEOUT: float = 10.0

    # -----------------------------
    # Sync
    # -----------------------------
    INITIAL_SYNC_DAYS: int = constants.INITIAL_SYNC_DAYS
    WATERMARK_MARGIN_DAYS: int = constants.WATERMARK_MARGIN_DAYS
    SYNC_WORKERS: int = constants.SYNC_WORKERS
    SWEEP_INTERVAL_SECONDS: int = constants.SWEEP_INTERVAL_SECONDS
    TIMEZONE: str = "UTC"

    # -----------------------------
    # Storage / app
    # -----------------------------
    DATABASE_PATH: Path = constants.DATABASE_PATH
    LOG_LEVEL: str = "info"

    @property
    def bank_domains(self) -> frozenset[str]:
        return frozenset(
            d.strip().lower() for d in self.BANK_DOMAINS.split(",") if d.strip()
        )

    @property
    def ai_enabled(self) -> bool:
        return bool(self.GEMINI_API_KEY.strip())


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance to avoid reloading .env repeatedly"""
    return Settings()
