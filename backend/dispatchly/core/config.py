# backend/dispatchly/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = "development"
    log_level: str = Field(default="INFO", description="Root log level for the API process")

    database_url: str = Field(
        default="sqlite+pysqlite:///./dispatchly.db",
        description="SQLAlchemy URL for the scheduling store",
    )
    database_echo: bool = False

    # Assignment scoring weights. Tests assert ordering, not exact values.
    assignment_rating_weight: float = Field(
        default=0.5, ge=0, description="Multiplier applied to the 0-100 normalized rating"
    )
    assignment_workload_weight: float = Field(
        default=10.0, ge=0, description="Penalty per active booking on the same date"
    )
    assignment_week_workload_factor: float = Field(
        default=0.25,
        ge=0,
        description="Fraction of the same-day penalty applied per booking elsewhere in the week",
    )
    assignment_specialization_bonus: float = Field(
        default=20.0, ge=0, description="Bonus when a primary skill matches the service category"
    )

    # Spot limits used when a business has never saved its own
    default_max_bookings_per_day: int = 10
    default_max_bookings_per_week: int = 50
    default_max_bookings_per_month: int = 200
    default_max_advance_booking_days: int = 90

    # Caps applied when a business turns its spot limits off
    fallback_max_bookings_per_day: int = 999
    fallback_max_bookings_per_week: int = 9999
    fallback_max_bookings_per_month: int = 99999
    fallback_max_advance_booking_days: int = 365

    series_horizon_days: int = Field(
        default=56, ge=1, description="How far ahead extend-all fills recurring series"
    )
    holiday_skip_max_attempts: int = 31
    slot_step_minutes: int = Field(default=30, ge=5, le=240)

    # Notification channels
    notifications_enabled: bool = True
    admin_notification_email: Optional[str] = None
    resend_api_key: Optional[SecretStr] = None
    from_email: str = f"{BRAND_NAME} <scheduling@dispatchly.app>"
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[SecretStr] = None
    twilio_phone_number: Optional[str] = None
    sms_enabled: bool = False

    prometheus_cache_ttl_seconds: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = (v or "INFO").upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    def get_database_url(self) -> str:
        """Get the database URL for the runtime engine."""
        if is_running_tests() and self.environment == "production":
            raise RuntimeError("Refusing to use the production database under pytest")
        return self.database_url

    @property
    def resend_configured(self) -> bool:
        return bool(self.resend_api_key and self.resend_api_key.get_secret_value())

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.sms_enabled
            and self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_phone_number
        )


settings = Settings()
