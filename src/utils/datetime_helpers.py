"""
Standardized Date/Time Handling Utilities

CRITICAL RULES:
- All stored timestamps are timezone-aware UTC (use now_utc())
- Quest dates are YYYY-MM-DD strings in the player's timezone
- Never mix naive and aware datetimes
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(ZoneInfo("UTC"))


def get_safe_timezone(tz_name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name, falling back to the default

    Args:
        tz_name: IANA timezone (e.g., "America/New_York")

    Returns:
        ZoneInfo object
    """
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Invalid timezone '{tz_name}', using {DEFAULT_TIMEZONE}: {e}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_utc(dt: datetime) -> datetime:
    """Convert an aware datetime to UTC; naive datetimes are assumed to be UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo("UTC"))


def today_for_timezone(now: datetime, tz_name: str) -> str:
    """
    Calendar date (YYYY-MM-DD) of `now` in the given timezone

    Args:
        now: Current instant
        tz_name: IANA timezone name

    Returns:
        Date string used as quest_date / log_date
    """
    return to_utc(now).astimezone(get_safe_timezone(tz_name)).date().isoformat()


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string"""
    return date.fromisoformat(value)


def previous_dates(day: str, days: int) -> List[str]:
    """The `days` dates before `day`, most recent first"""
    start = parse_date(day)
    return [(start - timedelta(days=i)).isoformat() for i in range(1, days + 1)]
