import pytest
from pydantic import ValidationError

from overwatch.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("DATABASE_URL", "PRC_MAX_ATTEMPTS", "GAME_REPLY_PREFIX", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite+aiosqlite:///./overwatch.db"
    assert settings.prc_base_url == "https://api.policeroleplay.community/v1"
    assert settings.prc_request_timeout == 8.0
    assert settings.prc_max_attempts == 3
    assert settings.prc_default_rate_budget == 35
    assert settings.prc_reset_buffer_seconds == 0.1
    assert settings.prc_default_retry_after == 5.0
    assert settings.recent_leave_window_minutes == 30
    assert settings.game_reply_prefix == "[POW]"
    assert settings.log_format == "text"


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/overwatch")
    monkeypatch.setenv("PRC_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("INTERNAL_SYNC_SECRET", "s3cret")
    monkeypatch.setenv("LOG_FORMAT", " JSON ")

    settings = Settings(_env_file=None)

    assert settings.database_url == "postgresql+asyncpg://u:p@db/overwatch"
    assert settings.prc_max_attempts == 5
    assert settings.internal_sync_secret == "s3cret"
    assert settings.log_format == "json"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PRC_REQUEST_TIMEOUT", "0"),
        ("PRC_DEFAULT_RETRY_AFTER", "-1"),
        ("PRC_MAX_ATTEMPTS", "0"),
        ("PRC_DEFAULT_RATE_BUDGET", "0"),
        ("RECENT_LEAVE_WINDOW_MINUTES", "0"),
        ("LOG_FORMAT", "xml"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
