"""Application settings and configuration management using Pydantic."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Main application settings combining all configuration sections."""

    # Environment and deployment
    environment: str = "development"
    debug: bool = False

    # Upstream price-data provider
    upstream_base_url: str = "https://api.pricedata.example.com/v1"
    upstream_api_key: Optional[str] = None
    upstream_timeout_seconds: float = 10.0
    upstream_requests_per_day: int = 10000
    upstream_burst_limit: int = 10

    # Alert engine
    alert_check_interval_minutes: int = 5
    alert_default_interval_minutes: int = 60
    prediction_refresh_hour: int = 2
    market_open_hour: int = 9
    market_close_hour: int = 17
    market_timezone: str = "Asia/Tokyo"

    # Sync scheduling
    sync_rebuild_interval_minutes: int = 15
    predictive_cache_interval_minutes: int = 10
    predictive_cache_max_items: int = 10
    predictive_cache_max_jitter_seconds: float = 5.0
    scheduler_max_workers: int = 3

    # Cache TTLs (seconds)
    analysis_cache_ttl: int = 7200
    profit_cache_ttl: int = 3600
    predictive_cache_ttl: int = 3600
    sync_lease_ttl: int = 600

    # Notification gateways
    email_gateway_url: Optional[str] = None
    sms_gateway_url: Optional[str] = None
    push_gateway_url: Optional[str] = None
    webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 5.0

    # Database settings
    database_url: Optional[str] = None
    data_directory: str = "data"
    database_echo_sql: bool = False
    database_pool_pre_ping: bool = True
    database_pool_recycle: int = 3600

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "structured"  # 'structured' or 'plain'
    log_file_enabled: bool = True
    log_file_path: str = "data/beacon.log"
    log_max_file_size: str = "10MB"
    log_backup_count: int = 5

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        valid_environments = ["development", "testing", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator(
        "alert_check_interval_minutes",
        "alert_default_interval_minutes",
        "sync_rebuild_interval_minutes",
        "predictive_cache_interval_minutes",
    )
    @classmethod
    def validate_interval(cls, v):
        """Validate job intervals are between one minute and one day."""
        if v < 1 or v > 1440:
            raise ValueError("Interval must be between 1 and 1440 minutes")
        return v

    @field_validator("prediction_refresh_hour", "market_open_hour", "market_close_hour")
    @classmethod
    def validate_hour(cls, v):
        """Validate hour-of-day settings."""
        if v < 0 or v > 23:
            raise ValueError("Hour must be between 0 and 23")
        return v

    @field_validator("upstream_requests_per_day", "upstream_burst_limit")
    @classmethod
    def validate_quota(cls, v):
        """Validate upstream quota settings are positive."""
        if v < 1:
            raise ValueError("Upstream quota values must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        valid_formats = ["structured", "plain"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    def get_database_url(self) -> str:
        """Get the complete database URL."""
        if self.database_url:
            return self.database_url

        db_dir = Path(self.data_directory)
        db_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_dir / 'beacon.db'}"

    def notification_gateways(self) -> dict:
        """Configured gateway URL per notification channel name."""
        return {
            "email": self.email_gateway_url,
            "sms": self.sms_gateway_url,
            "push": self.push_gateway_url,
            "webhook": self.webhook_url,
        }

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()


def get_required_env_vars() -> list[str]:
    """
    Get list of required environment variables.

    Returns:
        list: List of required environment variable names
    """
    return ["UPSTREAM_API_KEY"]


def get_missing_env_vars() -> list[str]:
    """Return the required variables that have no value in the current settings."""
    settings = get_settings()
    return [
        name for name in get_required_env_vars() if not getattr(settings, name.lower())
    ]
