"""Unit tests for ISO week keys and boundaries."""
from datetime import datetime, timezone

from fruitmerge.weeks import (
    get_week_boundaries,
    get_week_key,
    is_week_key,
    seconds_until_next_week,
    week_info,
)


def test_week_key_format():
    assert get_week_key(datetime(2026, 2, 25, 12, tzinfo=timezone.utc)) == "2026-W09"
    assert is_week_key(get_week_key())


def test_week_key_uses_iso_year():
    # 3 January 2021 is a Sunday in the last ISO week of 2020
    assert get_week_key(datetime(2021, 1, 3, tzinfo=timezone.utc)) == "2020-W53"
    assert get_week_key(datetime(2021, 1, 4, tzinfo=timezone.utc)) == "2021-W01"


def test_naive_datetimes_are_utc():
    assert get_week_key(datetime(2026, 3, 2, 0, 0)) == "2026-W10"


def test_monday_to_sunday_share_a_key():
    mon = datetime(2026, 2, 23, 0, 0, tzinfo=timezone.utc)
    sun = datetime(2026, 3, 1, 23, 59, 59, tzinfo=timezone.utc)
    next_mon = datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)
    assert get_week_key(mon) == get_week_key(sun)
    assert get_week_key(sun) != get_week_key(next_mon)


def test_week_boundaries():
    start, end = get_week_boundaries(datetime(2026, 2, 25, 12, tzinfo=timezone.utc))
    assert start == datetime(2026, 2, 23, 0, 0, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 1, 23, 59, 59, tzinfo=timezone.utc)


def test_seconds_until_next_week():
    assert seconds_until_next_week(datetime(2026, 3, 1, 23, 59, 0, tzinfo=timezone.utc)) == 60
    assert seconds_until_next_week(datetime(2026, 2, 23, 0, 0, 0, tzinfo=timezone.utc)) == 7 * 24 * 3600


def test_week_info():
    info = week_info(datetime(2026, 2, 25, 12, tzinfo=timezone.utc))
    assert info["currentWeek"] == "2026-W09"
    assert info["weekStart"].startswith("2026-02-23T00:00:00")
    assert info["secondsUntilReset"] == 4 * 24 * 3600 + 12 * 3600
