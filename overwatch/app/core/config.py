from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Include exception details in 500 responses
    debug: bool = False

    # Database (async SQLAlchemy URL)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./overwatch.db", validation_alias="DATABASE_URL"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle: int = 300  # Recycle every 5 minutes
    db_pool_pre_ping: bool = True

    # PRC private server API
    prc_base_url: str = "https://api.policeroleplay.community/v1"
    prc_request_timeout: float = 8.0  # Per physical attempt
    prc_max_attempts: int = 3  # Total attempts when the API answers 429
    prc_default_rate_budget: int = 35  # Bucket size documented by PRC
    prc_reset_buffer_seconds: float = 0.1
    prc_default_retry_after: float = 5.0

    # Rate limit alerting
    prc_rate_limit_webhook: str = ""
    prc_alert_cooldown_seconds: float = 120.0  # Between 429 alerts
    prc_long_wait_alert_seconds: float = 60.0  # Proactive waits longer than this alert
    prc_long_wait_alert_cooldown_seconds: float = 300.0

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 5.0
    httpx_write_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 50
    httpx_max_keepalive_connections: int = 10

    # In-game commands
    recent_leave_window_minutes: int = 30
    game_reply_prefix: str = "[POW]"

    # Feature flags
    raid_detection_enabled: bool = True

    # Internal trigger API
    internal_sync_secret: str = ""

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator(
        "prc_request_timeout",
        "prc_default_retry_after",
        "httpx_connect_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("prc_max_attempts", "prc_default_rate_budget")
    @classmethod
    def validate_budget_positive(cls, v: int) -> int:
        """Validate attempt and rate budgets are at least 1."""
        if v < 1:
            raise ValueError("Budget values must be at least 1")
        return v

    @field_validator("recent_leave_window_minutes")
    @classmethod
    def validate_leave_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError("recent_leave_window_minutes must be at least 1")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
