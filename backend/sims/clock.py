"""Time helpers shared by models and services."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Current time as a timezone-naive UTC datetime.

    SQLite hands back naive datetimes, so every timestamp the application
    stores or compares is kept naive UTC to avoid "can't compare
    offset-naive and offset-aware datetimes" errors.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
