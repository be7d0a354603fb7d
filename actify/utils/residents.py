"""Resident status values, labels and list helpers."""

import math
import re
from datetime import datetime
from typing import Iterable, List, Optional

from actify.utils.timezones import as_utc, now_utc

RESIDENT_STATUS_OPTIONS = (
    "ACTIVE",
    "BED_BOUND",
    "DISCHARGED",
    "HOSPITALIZED",
    "ON_LEAVE",
    "TRANSFERRED",
    "DECEASED",
    "OTHER",
)

# Statuses accepted by the resident create/update endpoints.
WRITABLE_RESIDENT_STATUSES = ("ACTIVE", "BED_BOUND", "HOSPITALIZED", "DISCHARGED")

# Residents in these statuses are no longer on the floor.
INACTIVE_RESIDENT_STATUSES = ("DISCHARGED", "TRANSFERRED", "DECEASED")

_ROOM_RE = re.compile(r"^(\d+)\s*([A-Z]*)")


def format_label(value: str) -> str:
    """``BED_BOUND`` -> ``Bed Bound``."""
    return " ".join(word.capitalize() for word in (value or "").replace("_", " ").lower().split())


def status_label(status: str) -> str:
    if status == "HOSPITALIZED":
        return "Hospital"
    if status in RESIDENT_STATUS_OPTIONS and status != "ACTIVE":
        return format_label(status)
    return "Active"


def is_active_status(status: str) -> bool:
    return status in ("ACTIVE", "BED_BOUND")


def room_sort_key(room: str, last_name: str = "", first_name: str = ""):
    normalized = (room or "").strip().upper()
    match = _ROOM_RE.match(normalized)
    numeric = int(match.group(1)) if match else math.inf
    suffix = match.group(2) if match else normalized
    return (numeric, suffix, normalized, (last_name or "").lower(), (first_name or "").lower())


def sort_residents_by_room(residents: Iterable) -> List:
    return sorted(residents, key=lambda r: room_sort_key(r.room, r.last_name, r.first_name))


def parse_resident_tags(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [entry.strip() for entry in value.split(",") if entry.strip()]


def serialize_resident_tags(tags: Iterable[str]) -> str:
    return ", ".join(tag.strip() for tag in tags if tag and tag.strip())


def normalize_status_for_import(value: str) -> Optional[str]:
    normalized = (value or "").strip().upper()
    if normalized == "ACTIVE":
        return "ACTIVE"
    if normalized in ("BED BOUND", "BED_BOUND"):
        return "BED_BOUND"
    if normalized in ("HOSPITAL", "HOSPITALIZED"):
        return "HOSPITALIZED"
    if normalized == "DISCHARGED":
        return "DISCHARGED"
    return None


def get_resident_tag_icon_keys(tags: Iterable[str]) -> List[str]:
    normalized = [tag.strip().lower() for tag in tags]
    keys = []
    if any("bed" in tag and "bound" in tag for tag in normalized):
        keys.append("BED_BOUND")
    if any("non" in tag and "verbal" in tag for tag in normalized):
        keys.append("NON_VERBAL")
    if any("trach" in tag for tag in normalized):
        keys.append("TRACH")
    return keys


def days_since(last: Optional[datetime], today: Optional[datetime] = None) -> Optional[int]:
    if last is None:
        return None
    delta = (as_utc(today) if today else now_utc()) - as_utc(last)
    return max(0, math.floor(delta.total_seconds() / 86400))


def is_needs_one_on_one(last: Optional[datetime], today: Optional[datetime] = None, threshold_days: int = 7) -> bool:
    if last is None:
        return True
    delta = (as_utc(today) if today else now_utc()) - as_utc(last)
    return math.floor(delta.total_seconds() / 86400) >= threshold_days


def get_resident_age(birth_date: Optional[datetime], today: Optional[datetime] = None) -> Optional[int]:
    if birth_date is None:
        return None
    birth = as_utc(birth_date)
    current = as_utc(today) if today else now_utc()
    age = current.year - birth.year
    if (current.month, current.day) < (birth.month, birth.day):
        age -= 1
    return age if age >= 0 else None
