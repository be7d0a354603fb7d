"""RRULE subset used by recurring activity series.

Supports FREQ=DAILY|WEEKLY|MONTHLY with INTERVAL, COUNT, UNTIL and BYDAY.
Occurrences are computed in UTC from the series ``dtstart``; every occurrence
is identified by its ISO start instant (the occurrence key).
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from typing import Any, Iterable, List, Optional

from actify.utils.timezones import as_utc, iso_utc, js_weekday, parse_iso_datetime

WEEKDAY_TOKEN_TO_INDEX = {"SU": 0, "MO": 1, "TU": 2, "WE": 3, "TH": 4, "FR": 5, "SA": 6}
FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY")
SAFETY_LIMIT = 10_000

_UNTIL_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_UNTIL_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")


@dataclass
class ParsedRRule:
    freq: str = "WEEKLY"
    interval: int = 1
    by_day: List[int] = field(default_factory=list)
    count: Optional[int] = None
    until: Optional[datetime] = None


@dataclass
class Occurrence:
    series_id: Any
    start_at: datetime
    end_at: datetime
    occurrence_key: str


def make_occurrence_key(start_at: datetime) -> str:
    return iso_utc(start_at)


def _positive_int(value: Optional[str], fallback: int) -> int:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if parsed != parsed or parsed <= 0 or parsed == float("inf"):
        return fallback
    return int(parsed)


def _parse_until(value: Optional[str]) -> Optional[datetime]:
    text = (value or "").strip()
    if not text:
        return None
    match = _UNTIL_DATE_RE.match(text)
    if match:
        try:
            year, month, day = (int(part) for part in match.groups())
            return datetime(year, month, day, 23, 59, 59, 999000, tzinfo=UTC)
        except ValueError:
            return None
    match = _UNTIL_DATETIME_RE.match(text)
    if match:
        try:
            return datetime(*(int(part) for part in match.groups()), tzinfo=UTC)
        except ValueError:
            return None
    return parse_iso_datetime(text)


def _parse_by_day(value: Optional[str]) -> List[int]:
    if not value:
        return []
    days = {
        WEEKDAY_TOKEN_TO_INDEX[token]
        for token in (part.strip().upper() for part in value.split(","))
        if token in WEEKDAY_TOKEN_TO_INDEX
    }
    return sorted(days)


def parse_rrule(rrule: str, dtstart: datetime) -> ParsedRRule:
    values = {}
    for segment in (rrule or "").split(";"):
        segment = segment.strip()
        if not segment or "=" not in segment:
            continue
        key, _, raw = segment.partition("=")
        if key:
            values[key.upper()] = raw.strip()

    freq = (values.get("FREQ") or "").upper()
    if freq not in FREQUENCIES:
        freq = "WEEKLY"

    count = _positive_int(values["COUNT"], 0) if values.get("COUNT") else None
    parsed = ParsedRRule(
        freq=freq,
        interval=_positive_int(values.get("INTERVAL"), 1),
        count=count if count else None,
        until=_parse_until(values.get("UNTIL")),
    )
    if freq == "WEEKLY":
        parsed.by_day = _parse_by_day(values.get("BYDAY")) or [js_weekday(as_utc(dtstart))]
    return parsed


def build_rrule(freq: str, interval: int = 1, by_day: Optional[Iterable[str]] = None,
                count: Optional[int] = None, until: Optional[datetime] = None) -> str:
    parts = [f"FREQ={freq}", f"INTERVAL={interval}"]
    by_day = list(by_day or [])
    if by_day:
        parts.append("BYDAY=" + ",".join(by_day))
    if count:
        parts.append(f"COUNT={count}")
    if until:
        parts.append("UNTIL=" + as_utc(until).strftime("%Y%m%dT%H%M%SZ"))
    return ";".join(parts)


def normalize_exdates(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]


def _effective_until(parsed: ParsedRRule, series_until: Optional[datetime]) -> Optional[datetime]:
    series_until = as_utc(series_until)
    if parsed.until and series_until:
        return min(parsed.until, series_until)
    return parsed.until or series_until


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _stepped(series, range_start, range_end, parsed, step) -> List[Occurrence]:
    occurrences = []
    duration = timedelta(minutes=series.duration_min)
    until = _effective_until(parsed, series.until)
    cursor = as_utc(series.dtstart)
    emitted = 0
    while cursor <= range_end and emitted < SAFETY_LIMIT:
        if until and cursor > until:
            break
        if parsed.count and emitted >= parsed.count:
            break
        if cursor >= range_start:
            occurrences.append(Occurrence(series.id, cursor, cursor + duration, make_occurrence_key(cursor)))
        emitted += 1
        cursor = step(cursor)
    return occurrences


def _expand_weekly(series, range_start, range_end, parsed) -> List[Occurrence]:
    occurrences = []
    duration = timedelta(minutes=series.duration_min)
    until = _effective_until(parsed, series.until)
    dtstart = as_utc(series.dtstart)
    offsets = sorted((day + 6) % 7 for day in parsed.by_day)
    week_start = (dtstart - timedelta(days=(js_weekday(dtstart) + 6) % 7)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    time_of_day = dtstart - dtstart.replace(hour=0, minute=0, second=0, microsecond=0)

    emitted = 0
    guard = 0
    while week_start <= range_end and guard < SAFETY_LIMIT:
        if parsed.count and emitted >= parsed.count:
            break
        for offset in offsets:
            if parsed.count and emitted >= parsed.count:
                break
            candidate = week_start + timedelta(days=offset) + time_of_day
            if candidate < dtstart or candidate > range_end:
                continue
            if until and candidate > until:
                continue
            if candidate >= range_start:
                occurrences.append(Occurrence(series.id, candidate, candidate + duration, make_occurrence_key(candidate)))
            emitted += 1
        week_start += timedelta(weeks=parsed.interval)
        guard += 1
    return occurrences


def expand_series_to_range(series, range_start: datetime, range_end: datetime) -> List[Occurrence]:
    """Expand ``series`` (dtstart, duration_min, rrule, until, exdates) into a window.

    COUNT limits are counted from dtstart, so occurrences before the window
    still consume the count.
    """
    range_start, range_end = as_utc(range_start), as_utc(range_end)
    if range_end < range_start:
        return []
    parsed = parse_rrule(series.rrule, series.dtstart)
    if parsed.freq == "DAILY":
        generated = _stepped(series, range_start, range_end, parsed,
                             lambda cursor: cursor + timedelta(days=parsed.interval))
    elif parsed.freq == "MONTHLY":
        # steps from the previous occurrence, so a clamped day-31 start stays clamped
        generated = _stepped(series, range_start, range_end, parsed,
                             lambda cursor: add_months(cursor, parsed.interval))
    else:
        generated = _expand_weekly(series, range_start, range_end, parsed)

    skip = set(normalize_exdates(series.exdates))
    if not skip:
        return generated
    return [occurrence for occurrence in generated if occurrence.occurrence_key not in skip]


def merge_occurrences_with_overrides(generated: List[Occurrence], overrides: Iterable) -> List[Occurrence]:
    """Replace generated start/end with those of overridden rows sharing the key."""
    override_map = {override.occurrence_key: override for override in overrides}
    if not generated or not override_map:
        return list(generated)
    merged = []
    for occurrence in generated:
        override = override_map.get(occurrence.occurrence_key)
        if override is None:
            merged.append(occurrence)
        else:
            merged.append(Occurrence(occurrence.series_id, as_utc(override.start_at), as_utc(override.end_at),
                                     occurrence.occurrence_key))
    return merged
