"""
Back-Office Configuration.

Loads all settings from .env and validates them at import time.
Every other module reads configuration through the `settings` singleton.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from backoffice/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, list):
        return v
    if isinstance(v, str) and v.strip():
        return [item.strip() for item in v.split(",") if item.strip()]
    return []


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite document store
    DATABASE_PATH: str = "data/backoffice.db"

    # All reminder times and dates are evaluated in this zone
    TIMEZONE: str = "Asia/Jerusalem"

    # Fixed set of restaurant locations
    LOCATION_IDS: list[str] = ["isgav", "frankfurt"]
    DEFAULT_LOCATION: str = "isgav"

    # CORS
    ALLOWED_ORIGINS: list[str] = [
        "https://lirancha.github.io",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
        "null",
    ]

    # Shrink guard: reject when previous > MIN_PREVIOUS and new < MAX_REMAINING
    SHRINK_GUARD_MIN_PREVIOUS: int = 10
    SHRINK_GUARD_MAX_REMAINING: int = 3

    # Retention
    SENT_MARKER_TTL_DAYS: int = 7
    BACKUP_RETENTION_DAYS: int = 90
    BACKUP_LIST_LIMIT: int = 50

    # Reminder tick
    REMINDER_CHECK_ENABLED: bool = True

    # Fallback Telegram credentials, used when none are saved via the API
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""

    # HTTP server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    @field_validator("LOCATION_IDS", "ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_csv(cls, v: str | list[str]) -> list[str]:
        return _split_csv(v)

    @field_validator("REMINDER_CHECK_ENABLED", mode="before")
    @classmethod
    def parse_flag(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() not in ("0", "false", "no", "off", "")


def _load_settings() -> Settings:
    """Load settings from environment, validating the keys startup depends on."""
    timezone = os.getenv("TIMEZONE", "Asia/Jerusalem")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"ERROR: TIMEZONE '{timezone}' is not a known IANA zone", file=sys.stderr)
        sys.exit(1)

    location_ids = os.getenv("LOCATION_IDS", "isgav,frankfurt")
    if not _split_csv(location_ids):
        print("ERROR: LOCATION_IDS must list at least one location", file=sys.stderr)
        sys.exit(1)

    kwargs: dict = {}
    if os.getenv("ALLOWED_ORIGINS"):
        kwargs["ALLOWED_ORIGINS"] = os.getenv("ALLOWED_ORIGINS")

    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/backoffice.db"),
        TIMEZONE=timezone,
        LOCATION_IDS=location_ids,
        DEFAULT_LOCATION=os.getenv("DEFAULT_LOCATION", "isgav"),
        SHRINK_GUARD_MIN_PREVIOUS=os.getenv("SHRINK_GUARD_MIN_PREVIOUS", "10"),
        SHRINK_GUARD_MAX_REMAINING=os.getenv("SHRINK_GUARD_MAX_REMAINING", "3"),
        SENT_MARKER_TTL_DAYS=os.getenv("SENT_MARKER_TTL_DAYS", "7"),
        BACKUP_RETENTION_DAYS=os.getenv("BACKUP_RETENTION_DAYS", "90"),
        BACKUP_LIST_LIMIT=os.getenv("BACKUP_LIST_LIMIT", "50"),
        REMINDER_CHECK_ENABLED=os.getenv("REMINDER_CHECK_ENABLED", "true"),
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        TELEGRAM_CHAT_ID=os.getenv("TELEGRAM_CHAT_ID", ""),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=os.getenv("API_PORT", "8000"),
        **kwargs,
    )


# Singleton, imported by all other modules as:
#   from backoffice.config import settings
settings = _load_settings()
