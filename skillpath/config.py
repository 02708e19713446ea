from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "SkillPath"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'skillpath.db'}"
    request_retention: float = 0.9
    maximum_interval: float = 36500.0  # days
    study_queue_limit: int = 10
    upcoming_activities_limit: int = 10
    max_write_retries: int = 3
    log_level: str = "INFO"
    debug: bool = False

    model_config = {"env_prefix": "SKILLPATH_", "env_file": ".env"}


settings = Settings()
