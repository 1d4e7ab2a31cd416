"""
ISO week helpers for the weekly leaderboard.

Weeks run Monday 00:00:00 UTC to Sunday 23:59:59 UTC and are keyed as
``YYYY-W##`` using ISO-8601 numbering, so the first days of January can belong
to the last week of the previous year.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

WEEK_KEY_PATTERN = re.compile(r"^\d{4}-W\d{2}$")


def _utc(dt: Optional[datetime]) -> datetime:
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_week_key(dt: Optional[datetime] = None) -> str:
    """Return the ISO week key (e.g. ``2026-W09``) for ``dt`` (default: now)."""
    iso_year, iso_week, _ = _utc(dt).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def is_week_key(value: str) -> bool:
    return bool(WEEK_KEY_PATTERN.match(value or ""))


def get_week_boundaries(dt: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Get the first and last instant of the week containing ``dt``.

    Returns:
        (monday 00:00:00, sunday 23:59:59) as aware UTC datetimes
    """
    current = _utc(dt)
    monday = (current - timedelta(days=current.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    sunday = monday + timedelta(days=6, hours=23, minutes=59, seconds=59)
    return monday, sunday


def seconds_until_next_week(dt: Optional[datetime] = None) -> int:
    """Seconds remaining until the next Monday 00:00 UTC."""
    current = _utc(dt)
    monday, _ = get_week_boundaries(current)
    next_monday = monday + timedelta(days=7)
    return int((next_monday - current).total_seconds())


def week_info(dt: Optional[datetime] = None) -> dict:
    """Summary of the current week for dashboards."""
    current = _utc(dt)
    start, end = get_week_boundaries(current)
    return {
        "currentWeek": get_week_key(current),
        "weekStart": start.isoformat(),
        "weekEnd": end.isoformat(),
        "secondsUntilReset": seconds_until_next_week(current),
    }
