"""Facility time zone helpers.

All persisted datetimes are aware UTC values. Day, week and month boundaries
are computed in the facility's IANA zone and converted back to UTC.
"""

from __future__ import annotations

import os
import re
from datetime import UTC, date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIME_ZONE = os.getenv("DEFAULT_TIMEZONE", "America/New_York")

_DATE_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


def resolve_time_zone(time_zone: Optional[str] = None) -> str:
    """Return a valid IANA zone name, falling back to the default zone."""
    if not time_zone:
        return DEFAULT_TIME_ZONE
    try:
        ZoneInfo(time_zone.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return DEFAULT_TIME_ZONE
    return time_zone.strip()


def _zone(time_zone: Optional[str]) -> ZoneInfo:
    return ZoneInfo(resolve_time_zone(time_zone))


def now_utc() -> datetime:
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC (naive values are treated as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_iso_datetime(value) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into aware UTC.

    Returns None for blank or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    except ValueError:
        return None
    return as_utc(parsed)


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """Format as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if value is None:
        return None
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def to_zoned(value: datetime, time_zone: Optional[str] = None) -> datetime:
    return as_utc(value).astimezone(_zone(time_zone))


def js_weekday(value: datetime) -> int:
    """Weekday index with Sunday as 0."""
    return value.isoweekday() % 7


def zoned_datetime_to_utc(year: int, month: int, day: int, time_zone: Optional[str] = None,
                          hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    local = datetime(year, month, day, hour, minute, second, tzinfo=_zone(time_zone))
    return local.astimezone(UTC)


def start_of_zoned_day(value: datetime, time_zone: Optional[str] = None) -> datetime:
    local = to_zoned(value, time_zone)
    return zoned_datetime_to_utc(local.year, local.month, local.day, time_zone)


def add_zoned_days(value: datetime, time_zone: Optional[str], days: int) -> datetime:
    local = to_zoned(value, time_zone)
    shifted = date(local.year, local.month, local.day) + timedelta(days=days)
    return zoned_datetime_to_utc(shifted.year, shifted.month, shifted.day, time_zone)


def end_of_zoned_day(value: datetime, time_zone: Optional[str] = None) -> datetime:
    start = start_of_zoned_day(value, time_zone)
    return add_zoned_days(start, time_zone, 1) - timedelta(milliseconds=1)


def start_of_zoned_week(value: datetime, time_zone: Optional[str] = None, week_starts_on: int = 1) -> datetime:
    local = to_zoned(value, time_zone)
    diff = (js_weekday(local) - (week_starts_on % 7) + 7) % 7
    day = date(local.year, local.month, local.day) - timedelta(days=diff)
    return zoned_datetime_to_utc(day.year, day.month, day.day, time_zone)


def end_of_zoned_week(value: datetime, time_zone: Optional[str] = None, week_starts_on: int = 1) -> datetime:
    start = start_of_zoned_week(value, time_zone, week_starts_on)
    return add_zoned_days(start, time_zone, 7) - timedelta(milliseconds=1)


def start_of_zoned_month(value: datetime, time_zone: Optional[str] = None) -> datetime:
    local = to_zoned(value, time_zone)
    return zoned_datetime_to_utc(local.year, local.month, 1, time_zone)


def start_of_zoned_month_shift(value: datetime, time_zone: Optional[str], month_delta: int) -> datetime:
    local = to_zoned(value, time_zone)
    index = local.year * 12 + (local.month - 1) + month_delta
    return zoned_datetime_to_utc(index // 12, index % 12 + 1, 1, time_zone)


def zoned_date_key(value: datetime, time_zone: Optional[str] = None) -> str:
    return to_zoned(value, time_zone).strftime("%Y-%m-%d")


def zoned_date_string_to_utc_start(date_key: str, time_zone: Optional[str] = None) -> Optional[datetime]:
    """Return the UTC instant of local midnight for ``YYYY-MM-DD``, or None."""
    match = _DATE_KEY_RE.match((date_key or "").strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return zoned_datetime_to_utc(year, month, day, time_zone)
    except ValueError:
        return None


def parse_month_key(month_key: Optional[str], time_zone: Optional[str] = None,
                    now: Optional[datetime] = None) -> tuple[str, datetime, datetime]:
    """Resolve ``YYYY-MM`` to ``(key, start, next_month_start)``.

    Missing or malformed keys resolve to the current month in the zone.
    """
    match = _MONTH_KEY_RE.match((month_key or "").strip())
    if match and 1 <= int(match.group(2)) <= 12:
        start = zoned_datetime_to_utc(int(match.group(1)), int(match.group(2)), 1, time_zone)
    else:
        start = start_of_zoned_month(now or now_utc(), time_zone)
    end = start_of_zoned_month_shift(start, time_zone, 1)
    return to_zoned(start, time_zone).strftime("%Y-%m"), start, end


def format_in_time_zone(value: datetime, time_zone: Optional[str], fmt: str) -> str:
    """strftime in the facility zone; ``%-d`` style flags are avoided for portability."""
    local = to_zoned(value, time_zone)
    return local.strftime(fmt).replace("{day}", str(local.day)).replace("{hour12}", str(local.hour % 12 or 12))


def subtract_days(value: datetime, days: int) -> datetime:
    return as_utc(value) - timedelta(days=days)
