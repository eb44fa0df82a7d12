"""Timezone and calendar helpers shared by scheduling and analytics."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flexbook.core.config import settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_timezone(name: str | None) -> ZoneInfo:
    """Get a ZoneInfo timezone with safe fallback to the configured default."""
    tz_name = name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', defaulting to {settings.DEFAULT_TIMEZONE}")
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


def sunday_weekday(day: date) -> int:
    """Day of week with Sunday=0 ... Saturday=6."""
    return day.isoweekday() % 7


def combine_local(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Compose a wall-clock date/time in ``tz`` and return it in UTC."""
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants for [00:00:00, 23:59:59] of ``day`` in ``tz``."""
    start = combine_local(day, time(0, 0, 0), tz)
    end = combine_local(day, time(23, 59, 59), tz)
    return start, end


def week_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Sunday-start week containing ``day``: Sunday 00:00:00 to Saturday 23:59:59."""
    week_start = day - timedelta(days=sunday_weekday(day))
    week_end = week_start + timedelta(days=6)
    return combine_local(week_start, time(0, 0, 0), tz), combine_local(week_end, time(23, 59, 59), tz)


def month_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """First day 00:00:00 to last day 23:59:59 of ``day``'s month."""
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    last = next_first - timedelta(days=1)
    return combine_local(first, time(0, 0, 0), tz), combine_local(last, time(23, 59, 59), tz)
