import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(dt_value, default_now: bool = True) -> Optional[datetime]:
    """
    Parse a timestamp from a backend payload to an aware UTC datetime.

    Handles:
    - ISO string with timezone (e.g., "2024-01-01T00:00:00Z")
    - ISO string without timezone (assumed UTC)
    - datetime object with or without timezone
    - None or invalid -> current UTC time (if default_now=True) or None
    """
    if dt_value is None or dt_value == "":
        return utc_now() if default_now else None

    if isinstance(dt_value, str):
        try:
            dt = datetime.fromisoformat(dt_value.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            logger.warning(f"Failed to parse datetime string: {dt_value}")
            return utc_now() if default_now else None
        return ensure_aware_utc(dt)

    if isinstance(dt_value, datetime):
        return ensure_aware_utc(dt_value)

    logger.warning(f"Unexpected datetime type: {type(dt_value)}")
    return utc_now() if default_now else None


def ensure_aware_utc(dt_value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def relative_time(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human readable age of a timestamp ("Just now", "5 minutes ago", ...)."""
    if timestamp is None:
        return "Never"

    now = now or utc_now()
    diff_secs = int((ensure_aware_utc(now) - ensure_aware_utc(timestamp)).total_seconds())

    if diff_secs < 10:
        return "Just now"
    if diff_secs < 60:
        return f"{diff_secs} seconds ago"
    if diff_secs < 3600:
        return f"{diff_secs // 60} minutes ago"
    if diff_secs < 86400:
        return f"{diff_secs // 3600} hours ago"
    return f"{diff_secs // 86400} days ago"
