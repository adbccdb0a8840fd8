"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This ensures:
1. Type validation at startup
2. Centralized configuration
3. Documentation of available settings
4. Proper defaults
"""

from functools import lru_cache
from typing import List, Literal
from zoneinfo import ZoneInfo

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path for Docker, override via env for local dev
    database_url: str = "sqlite:///./data/promotions.db"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Restaurant-local timezone: "today" for device limits and recurring
    # happy-hour windows are evaluated in this zone.
    timezone: str = "Europe/Paris"

    # ==========================================================================
    # Campaign validation limits
    # ==========================================================================
    campaign_name_max: int = 100
    reward_description_max: int = 200
    banner_text_max: int = 200
    campaign_min_validity_days: int = 1
    campaign_max_validity_days: int = 365

    # ==========================================================================
    # Coupon issuance
    # ==========================================================================
    coupon_code_prefix: str = "PROMO"
    coupon_code_length: int = 5
    coupon_code_max_attempts: int = 5
    max_coupons_per_device_per_day: int = 5  # Advisory anti-abuse cap
    coupon_same_day_use_allowed: bool = False
    coupon_expiry_sweep_minutes: int = 60

    # ==========================================================================
    # Redemption / orders
    # ==========================================================================
    redemption_max_attempts: int = 3
    redemption_backoff_seconds: float = 0.05
    rejection_reason_max: int = 200
    order_max_items: int = 50

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        ZoneInfo(v)  # raises ZoneInfoNotFoundError on unknown zones
        return v

    @field_validator("coupon_code_prefix")
    @classmethod
    def validate_code_prefix(cls, v: str) -> str:
        v = v.strip().upper()
        if not v or not v.isalnum():
            raise ValueError("coupon_code_prefix must be a non-empty alphanumeric string")
        return v

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject inconsistent limit pairs at startup."""
        if self.campaign_min_validity_days < 1:
            raise ValueError("campaign_min_validity_days must be at least 1")
        if self.campaign_max_validity_days < self.campaign_min_validity_days:
            raise ValueError(
                "campaign_max_validity_days must be >= campaign_min_validity_days"
            )
        if self.redemption_max_attempts < 1:
            raise ValueError("redemption_max_attempts must be at least 1")
        if self.coupon_code_max_attempts < 1:
            raise ValueError("coupon_code_max_attempts must be at least 1")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
