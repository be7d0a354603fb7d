"""Facility settings coercion.

Settings are stored as one JSON document on the facility row. Every reader
goes through the ``as_*`` helpers so malformed or partial documents always
resolve to a complete structure.
"""

from __future__ import annotations

import copy
import math
from typing import Any, Dict, List, Mapping

from actify.utils.module_flags import as_module_flags
from actify.utils.timezones import resolve_time_zone

WEEKDAY_TOKENS = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")

DEFAULT_BUSINESS_HOURS: Dict[str, Any] = {"start": "08:00", "end": "17:00", "days": [1, 2, 3, 4, 5]}

DEFAULT_ATTENDANCE_RULES: Dict[str, Any] = {
    "engagementWeights": {"present": 1, "active": 2, "leading": 3},
    "requireBarrierNoteFor": ["PAIN", "ISOLATION_PRECAUTIONS"],
    "groupMinutes": 45,
    "oneToOneMinutes": 20,
    "locations": ["Main Lounge", "Activity Room", "Courtyard"],
    "warnTherapyOverlap": True,
    "warnOutsideBusinessHours": True,
    "useBusinessHoursDefaults": True,
}

DEFAULT_INVENTORY: Dict[str, Any] = {
    "enabled": True,
    "categories": ["Snacks", "Drinks", "Craft Supplies"],
    "budgetTracking": {"enabled": True, "monthlyBudget": 500},
    "lowStockAlerts": {"enabled": True},
}

DEFAULT_NOTIFICATIONS: Dict[str, Any] = {
    "channels": {"inApp": True, "email": False, "push": False},
    "digest": {"mode": "WEEKLY", "time": "09:00"},
    "triggers": {
        "oneToOneDueToday": True,
        "newAdmitAdded": True,
        "dischargePendingDocs": True,
        "lowInventory": True,
        "carePlanReviewDue": True,
        "noteNeedsCosign": True,
    },
    "quietHours": {"enabled": False, "start": "22:00", "end": "06:00"},
    "weeklyDigestDay": "MON",
}

SETTINGS_SECTIONS = ("businessHours", "attendanceRules", "inventory", "notifications", "moduleFlags")


def _record(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _str(value: Any, fallback: str) -> str:
    return value if isinstance(value, str) else fallback


def _bool(value: Any, fallback: bool) -> bool:
    return fallback if value is None else bool(value)


def _number(value: Any, fallback: float):
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return int(parsed) if parsed.is_integer() else parsed


def _str_list(value: Any, fallback: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(fallback)
    return [str(item).strip() for item in value if str(item).strip()]


def as_business_hours(value: Any) -> Dict[str, Any]:
    raw = _record(value)
    days = raw.get("days")
    if isinstance(days, list):
        parsed_days = []
        for day in days:
            number = _number(day, None)
            if isinstance(number, int) and not isinstance(number, bool) and 0 <= number <= 6:
                parsed_days.append(number)
    else:
        parsed_days = list(DEFAULT_BUSINESS_HOURS["days"])
    return {
        "start": _str(raw.get("start"), DEFAULT_BUSINESS_HOURS["start"]),
        "end": _str(raw.get("end"), DEFAULT_BUSINESS_HOURS["end"]),
        "days": parsed_days,
    }


def as_attendance_rules(value: Any) -> Dict[str, Any]:
    raw = _record(value)
    fallback = DEFAULT_ATTENDANCE_RULES
    weights = _record(raw.get("engagementWeights"))
    return {
        "engagementWeights": {
            key: _number(weights.get(key), fallback["engagementWeights"][key])
            for key in ("present", "active", "leading")
        },
        "requireBarrierNoteFor": _str_list(raw.get("requireBarrierNoteFor"), fallback["requireBarrierNoteFor"]),
        "groupMinutes": _number(raw.get("groupMinutes"), fallback["groupMinutes"]),
        "oneToOneMinutes": _number(raw.get("oneToOneMinutes"), fallback["oneToOneMinutes"]),
        "locations": _str_list(raw.get("locations"), fallback["locations"]),
        "warnTherapyOverlap": _bool(raw.get("warnTherapyOverlap"), fallback["warnTherapyOverlap"]),
        "warnOutsideBusinessHours": _bool(raw.get("warnOutsideBusinessHours"), fallback["warnOutsideBusinessHours"]),
        "useBusinessHoursDefaults": _bool(raw.get("useBusinessHoursDefaults"), fallback["useBusinessHoursDefaults"]),
    }


def as_inventory_defaults(value: Any) -> Dict[str, Any]:
    raw = _record(value)
    budget = _record(raw.get("budgetTracking"))
    alerts = _record(raw.get("lowStockAlerts"))
    return {
        "enabled": _bool(raw.get("enabled"), True),
        "categories": _str_list(raw.get("categories"), DEFAULT_INVENTORY["categories"]),
        "budgetTracking": {
            "enabled": _bool(budget.get("enabled"), True),
            "monthlyBudget": _number(budget.get("monthlyBudget"), DEFAULT_INVENTORY["budgetTracking"]["monthlyBudget"]),
        },
        "lowStockAlerts": {"enabled": _bool(alerts.get("enabled"), True)},
    }


def as_notification_defaults(value: Any) -> Dict[str, Any]:
    raw = _record(value)
    fallback = DEFAULT_NOTIFICATIONS
    channels = _record(raw.get("channels"))
    digest = {**fallback["digest"], **_record(raw.get("digest"))}
    triggers = _record(raw.get("triggers"))
    quiet = _record(raw.get("quietHours"))
    weekly_day = _str(raw.get("weeklyDigestDay"), fallback["weeklyDigestDay"]).upper()
    return {
        "channels": {key: _bool(channels.get(key), default) for key, default in fallback["channels"].items()},
        "digest": {
            "mode": digest.get("mode") if digest.get("mode") in ("DAILY", "WEEKLY") else "OFF",
            "time": _str(digest.get("time"), fallback["digest"]["time"]),
        },
        "triggers": {key: _bool(triggers.get(key), default) for key, default in fallback["triggers"].items()},
        "quietHours": {
            "enabled": _bool(quiet.get("enabled"), fallback["quietHours"]["enabled"]),
            "start": _str(quiet.get("start"), fallback["quietHours"]["start"]),
            "end": _str(quiet.get("end"), fallback["quietHours"]["end"]),
        },
        "weeklyDigestDay": weekly_day if weekly_day in WEEKDAY_TOKENS else fallback["weeklyDigestDay"],
    }


def merge_notification_overrides(base: Mapping[str, Any], overrides: Any) -> Dict[str, Any]:
    """Apply a user's personal notification overrides on top of facility defaults."""
    merged = copy.deepcopy(dict(base))
    raw = _record(overrides)
    for section in ("channels", "triggers", "quietHours", "digest"):
        values = raw.get(section)
        if isinstance(values, Mapping):
            merged[section] = {**merged.get(section, {}), **values}
    return as_notification_defaults(merged)


def facility_settings_view(organization) -> Dict[str, Any]:
    """Return the fully-resolved settings document for a facility row."""
    raw = _record(getattr(organization, "settings", None))
    return {
        "timezone": resolve_time_zone(getattr(organization, "timezone", None)),
        "moduleFlags": as_module_flags(raw.get("moduleFlags")),
        "businessHours": as_business_hours(raw.get("businessHours")),
        "attendanceRules": as_attendance_rules(raw.get("attendanceRules")),
        "inventory": as_inventory_defaults(raw.get("inventory")),
        "notifications": as_notification_defaults(raw.get("notifications")),
    }


def deep_merge(base: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested mappings merge key by key."""
    merged = copy.deepcopy(_record(base))
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_settings_patch(current: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge known sections from ``patch`` into the stored document."""
    stored = _record(current)
    for section in SETTINGS_SECTIONS:
        if section in patch and isinstance(patch[section], Mapping):
            stored[section] = deep_merge(stored.get(section), patch[section])
    return stored
