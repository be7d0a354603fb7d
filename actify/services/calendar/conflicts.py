"""Scheduling overlap and business-hours checks."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from actify.db import models
from actify.utils.timezones import as_utc, iso_utc, js_weekday, to_zoned

_HH_MM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass
class SchedulingWarningPolicy:
    warn_therapy_overlap: bool
    warn_outside_business_hours: bool
    business_hours: Dict[str, Any]
    timezone: str


def has_time_overlap(candidate_start: datetime, candidate_end: datetime,
                     existing_start: datetime, existing_end: datetime) -> bool:
    return as_utc(candidate_start) < as_utc(existing_end) and as_utc(candidate_end) > as_utc(existing_start)


def parse_minutes(value: str) -> Optional[int]:
    match = _HH_MM_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour * 60 + minute


def is_outside_business_hours(start_at: datetime, end_at: datetime, time_zone: str,
                              business_hours: Dict[str, Any]) -> bool:
    allowed_start = parse_minutes(business_hours.get("start"))
    allowed_end = parse_minutes(business_hours.get("end"))
    if allowed_start is None or allowed_end is None:
        return False

    local_start = to_zoned(start_at, time_zone)
    local_end = to_zoned(end_at, time_zone)
    days = business_hours.get("days") or []
    start_day, end_day = js_weekday(local_start), js_weekday(local_end)
    if start_day not in days or end_day not in days:
        return True
    if start_day != end_day:
        return True
    start_minutes = local_start.hour * 60 + local_start.minute
    end_minutes = local_end.hour * 60 + local_end.minute
    return start_minutes < allowed_start or end_minutes > allowed_end


def warning_policy(settings: Dict[str, Any]) -> SchedulingWarningPolicy:
    """Build the policy from a resolved facility settings view."""
    rules = settings["attendanceRules"]
    return SchedulingWarningPolicy(
        warn_therapy_overlap=rules["warnTherapyOverlap"],
        warn_outside_business_hours=rules["warnOutsideBusinessHours"],
        business_hours=settings["businessHours"],
        timezone=settings["timezone"],
    )


def find_conflicts(db: Session, facility_id, start_at: datetime, end_at: datetime,
                   location: Optional[str] = None, exclude_activity_id=None,
                   location_scoped: bool = False) -> List[models.ActivityInstance]:
    query = db.query(models.ActivityInstance).filter(
        models.ActivityInstance.organization_id == facility_id,
        models.ActivityInstance.start_at < end_at,
        models.ActivityInstance.end_at > start_at,
    )
    if exclude_activity_id:
        query = query.filter(models.ActivityInstance.id != exclude_activity_id)
    if location_scoped and location:
        query = query.filter(models.ActivityInstance.location == location)
    return query.order_by(models.ActivityInstance.start_at.asc()).all()


def conflict_summary(activity: models.ActivityInstance) -> Dict[str, Any]:
    return {
        "id": str(activity.id),
        "title": activity.title,
        "startAt": iso_utc(activity.start_at),
        "endAt": iso_utc(activity.end_at),
        "location": activity.location,
    }
