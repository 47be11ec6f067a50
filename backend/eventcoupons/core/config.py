from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Kidz Events Coupons API"
    app_version: str = "0.1.0"
    environment: str = "local"
    log_json: bool = False

    cors_origins: list[str] = ["http://localhost:5173"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.0
    sentry_profiles_sample_rate: float = 0.0
    sentry_enable_logs: bool = False
    sentry_log_level: str = "error"

    money_rounding: str = "half_up"
    default_currency: str = "AED"

    service_fee_enabled: bool = True
    service_fee_percent: Decimal = Decimal("5.00")
    tax_rate_percent: Decimal = Decimal("5.00")

    expiring_soon_days: int = 3
    featured_min_value: Decimal = Decimal("20")
    recent_usage_days: int = 7


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
