"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    log_file: str | None = "logs/affiliate_engine.log"
    health_check_port: int = Field(
        default=8081, ge=1, le=65535, description="Health check HTTP server port"
    )

    # Settlement batch
    settlement_batch_size: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum referrals released per settlement run",
    )
    settlement_concurrency: int = Field(
        default=10,
        gt=0,
        description="Referrals settled concurrently within one batch",
    )

    # Fraud guard
    velocity_window_minutes: int = Field(
        default=5, gt=0, description="Rolling window for the velocity check"
    )
    velocity_max_conversions: int = Field(
        default=10,
        gt=0,
        description="Pending conversions inside the window that trigger a block",
    )
    self_referral_ip_window_days: int = Field(
        default=30,
        gt=0,
        description="How far back affiliate clicks are matched against buyer IP",
    )
    risk_activity_window_hours: int = Field(
        default=24,
        gt=0,
        description="Click activity window for nightly risk recomputation",
    )
    risk_auto_suspend_score: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Risk score at which an affiliate is auto-suspended",
    )

    # Program configuration cache
    config_cache_ttl_seconds: int = Field(
        default=300, ge=0, description="Config snapshot cache lifetime"
    )

    # Schedule (UTC hours)
    settlement_cron_hour: int = Field(default=2, ge=0, le=23)
    tier_upgrade_cron_hour: int = Field(default=3, ge=0, le=23)
    fraud_analysis_cron_hour: int = Field(default=4, ge=0, le=23)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        level = v.upper()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return level

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Require an async driver in the database URL."""
        if "+" not in v.split("://", 1)[0]:
            raise ValueError(
                "database_url must use an async driver, "
                "e.g. postgresql+asyncpg://"
            )
        return v


settings = Settings()
