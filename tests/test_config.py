"""Tests for settings loading."""

from pathlib import Path

from gmail_txn_sync.config import Settings, get_settings


def test_defaults():
    """Defaults apply when nothing is configured."""
    settings = Settings(_env_file=None)
    assert "hdfcbank.net" in settings.bank_domains
    assert settings.INITIAL_SYNC_DAYS == 30
    assert settings.WATERMARK_MARGIN_DAYS == 1
    assert settings.AI_COOLDOWN_DEFAULT_SECONDS == 60
    assert settings.SWEEP_INTERVAL_SECONDS == 1800
    assert settings.TIMEZONE == "UTC"


def test_environment_overrides(monkeypatch, tmp_path):
    """Environment variables override defaults."""
    monkeypatch.setenv("BANK_DOMAINS", " HDFCBank.net , , sbi.co.in ")
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "x.db"))
    settings = Settings(_env_file=None)

    assert settings.bank_domains == frozenset({"hdfcbank.net", "sbi.co.in"})
    assert settings.ai_enabled
    assert settings.DATABASE_PATH == Path(tmp_path / "x.db")


def test_blank_key_disables_ai(monkeypatch):
    """A whitespace-only Gemini key counts as unset."""
    monkeypatch.setenv("GEMINI_API_KEY", "   ")
    assert not Settings(_env_file=None).ai_enabled


def test_get_settings_is_cached():
    """get_settings returns one shared instance."""
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
