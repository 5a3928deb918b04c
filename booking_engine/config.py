# booking_engine/config.py

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOOKING_",
        env_file=".env",
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"

    # SQLite database (file-based) by default
    database_url: str = "sqlite:///./barber.db"
    database_echo: bool = False

    secret_key: str = "change-me-later"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Shared secret for the payment processor webhook and the cron sweep
    internal_api_key: str = "internal-dev-key"

    slot_granularity_minutes: int = Field(default=30, gt=0)
    enforce_slot_alignment: bool = True

    # Booking fee policy (cents). Not confirmed per provider yet.
    booking_fee_cents: int = Field(default=338, ge=0)
    platform_share_percent: int = Field(default=60, ge=0, le=100)

    pending_expiry_minutes: int = Field(default=15, gt=0)

    retry_max_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.05, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
