# backend/tutorlink/core/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


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
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


PROD_SITE_MODES = {"prod", "production", "live"}


class Settings(BaseSettings):
    # Environment (derived from SITE_MODE)
    environment: str = (
        "production"
        if os.getenv("SITE_MODE", "local").strip().lower() in PROD_SITE_MODES
        else "development"
    )

    database_url: str = Field(
        default="sqlite:///./tutorlink.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements to the log")
    auto_create_schema: bool = Field(
        default=True,
        description="Create missing tables on application startup",
    )
    redis_url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Broker URL for the Celery worker and beat",
    )

    # Scheduling is done in one operating timezone; stored datetimes are
    # naive wall-clock values in this zone.
    operating_timezone: str = Field(
        default="Asia/Kuala_Lumpur",
        alias="OPERATING_TIMEZONE",
        description="IANA timezone all session times are expressed in",
    )

    # Booking rules
    booking_safety_margin_minutes: int = Field(
        default=5, description="Minimum lead time between now and a new session start"
    )
    booking_min_duration_minutes: int = Field(default=15, description="Shortest bookable session")
    booking_max_duration_minutes: int = Field(default=180, description="Longest bookable session")
    default_duration_minutes: int = Field(default=60, description="Duration used when omitted")

    # Slot enumeration bounds
    slot_min_duration_minutes: int = 15
    slot_max_duration_minutes: int = 180
    slot_min_window_days: int = 1
    slot_max_window_days: int = 14
    slot_default_window_days: int = 7
    slot_min_step_minutes: int = 5
    slot_max_step_minutes: int = 60
    slot_default_step_minutes: int = 30
    slot_result_cap: int = Field(default=120, description="Maximum slots returned per query")

    # Tutor selection
    load_window_days: int = Field(
        default=7, description="Horizon used to count a tutor's upcoming active sessions"
    )

    # Background maintenance
    auto_complete_grace_minutes: int = Field(
        default=15, description="Minutes after a session ends before it is auto-completed"
    )
    auto_complete_batch_size: int = Field(
        default=25, description="Maximum sessions auto-completed per sweep"
    )
    reminder_window_seconds: int = Field(
        default=60, description="Width of the window in which a reminder is due"
    )

    # Calendar invites
    calendar_organizer_name: str = Field(default="TutorLink")
    calendar_organizer_email: str = Field(default="no-reply@tutorlink.local")
    calendar_uid_domain: str = Field(default="tutorlink.local")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("operating_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "Settings":
        """Reject inverted min/max pairs."""
        pairs = (
            ("booking_min_duration_minutes", "booking_max_duration_minutes"),
            ("slot_min_duration_minutes", "slot_max_duration_minutes"),
            ("slot_min_window_days", "slot_max_window_days"),
            ("slot_min_step_minutes", "slot_max_step_minutes"),
        )
        for low, high in pairs:
            if getattr(self, low) > getattr(self, high):
                raise ValueError(f"{low} must not exceed {high}")
        return self


settings = Settings()
