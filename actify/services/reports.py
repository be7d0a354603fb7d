"""
Monthly activity report and printable calendar schedule.

The monthly report feeds the JSON, CSV and PDF exports; the schedule builder
groups calendar activities into per-day sections for the calendar PDF.
"""
import logging
import re
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, joinedload

from actify.db import models
from actify.services.attendance import _csv_text
from actify.utils.facility_settings import as_attendance_rules
from actify.utils.residents import format_label
from actify.utils.timezones import (
    add_zoned_days,
    as_utc,
    end_of_zoned_week,
    format_in_time_zone,
    iso_utc,
    now_utc,
    parse_iso_datetime,
    start_of_zoned_day,
    start_of_zoned_week,
    zoned_date_key,
    zoned_date_string_to_utc_start,
)

logger = logging.getLogger(__name__)

TOP_PROGRAMS_LIMIT = 8
NOTABLE_OUTCOMES_LIMIT = 12
MAX_SCHEDULE_DAYS = 62

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def get_monthly_report(
    db: Session,
    facility_id: uuid.UUID,
    time_zone: str,
    attendance_rules: Dict[str, Any],
    month_key: str,
    month_start: datetime,
    month_end: datetime,
) -> Dict[str, Any]:
    """Aggregate one facility month.

    Attendance is attributed to the month its activity started in; notes to
    the month they were written in.
    """
    attendance = (
        db.query(models.Attendance)
        .join(models.ActivityInstance, models.Attendance.activity_instance_id == models.ActivityInstance.id)
        .options(joinedload(models.Attendance.activity_instance))
        .filter(
            models.ActivityInstance.organization_id == facility_id,
            models.ActivityInstance.start_at >= as_utc(month_start),
            models.ActivityInstance.start_at <= as_utc(month_end),
        )
        .all()
    )
    notes = (
        db.query(models.ProgressNote)
        .options(joinedload(models.ProgressNote.resident))
        .filter(
            models.ProgressNote.organization_id == facility_id,
            models.ProgressNote.created_at >= as_utc(month_start),
            models.ProgressNote.created_at <= as_utc(month_end),
        )
        .order_by(models.ProgressNote.created_at.desc())
        .all()
    )

    weights = as_attendance_rules(attendance_rules)["engagementWeights"]
    scores = {"PRESENT": weights["present"], "ACTIVE": weights["active"], "LEADING": weights["leading"]}
    statuses = Counter(row.status for row in attendance)
    engagement = round(sum(scores.get(row.status, 0) for row in attendance) / max(len(attendance), 1), 2)

    programs: Dict[str, Dict[str, Any]] = {}
    for row in attendance:
        if row.status in ("REFUSED", "NO_SHOW"):
            continue
        title = row.activity_instance.title
        entry = programs.setdefault(title, {"title": title, "sessions": set(), "attended": 0})
        entry["sessions"].add(row.activity_instance_id)
        entry["attended"] += 1
    top_programs = sorted(programs.values(), key=lambda p: -p["attended"])[:TOP_PROGRAMS_LIMIT]

    barriers = Counter(row.barrier_reason for row in attendance if row.barrier_reason)
    outcomes = [note for note in notes if (note.narrative or "").strip()][:NOTABLE_OUTCOMES_LIMIT]

    logger.info("monthly_report_built: facility=%s month=%s attendance=%s notes=%s",
                facility_id, month_key, len(attendance), len(notes))
    return {
        "monthKey": month_key,
        "monthLabel": format_in_time_zone(month_start, time_zone, "%B %Y"),
        "range": {"start": iso_utc(month_start), "end": iso_utc(month_end)},
        "attendance": {
            "present": statuses.get("PRESENT", 0),
            "active": statuses.get("ACTIVE", 0),
            "leading": statuses.get("LEADING", 0),
            "refused": statuses.get("REFUSED", 0),
            "noShow": statuses.get("NO_SHOW", 0),
        },
        "engagementAverage": engagement,
        "topPrograms": [
            {"title": p["title"], "sessions": len(p["sessions"]), "attended": p["attended"]} for p in top_programs
        ],
        "barriers": [{"label": format_label(label), "count": count} for label, count in barriers.most_common()],
        "oneOnOneTotal": sum(1 for note in notes if note.type == "ONE_TO_ONE"),
        "notableOutcomes": [
            {
                "residentName": f"{note.resident.first_name} {note.resident.last_name}",
                "date": zoned_date_key(note.created_at, time_zone),
                "text": note.narrative.strip(),
            }
            for note in outcomes
        ],
    }


def monthly_report_csv(report: Dict[str, Any]) -> str:
    counts = report["attendance"]
    rows: List[Sequence[Any]] = [
        ["Section", "Metric", "Value"],
        ["Attendance", "Present/Active", counts["present"] + counts["active"]],
        ["Attendance", "Leading", counts["leading"]],
        ["Attendance", "Refused", counts["refused"]],
        ["Attendance", "No Show", counts["noShow"]],
        ["Attendance", "Engagement Avg", report["engagementAverage"]],
        ["Notes", "1:1 Totals", report["oneOnOneTotal"]],
    ]
    rows.extend(["Top Program", program["title"], program["attended"]] for program in report["topPrograms"])
    rows.extend(["Barrier", barrier["label"], barrier["count"]] for barrier in report["barriers"])
    rows.extend(["Outcome", outcome["residentName"], outcome["text"]] for outcome in report["notableOutcomes"])
    return _csv_text(rows)


def _parse_boundary(value: Optional[str], time_zone: str) -> Optional[datetime]:
    if not value:
        return None
    value = value.strip()
    if _DATE_KEY_RE.match(value):
        return zoned_date_string_to_utc_start(value, time_zone)
    return parse_iso_datetime(value)


def resolve_schedule_range(
    start: Optional[str], end: Optional[str], time_zone: str, now: Optional[datetime] = None
) -> Optional[Tuple[datetime, datetime]]:
    """Resolve ``start``/``end`` (date keys or ISO datetimes) to a day-aligned window.

    Missing values default to the current week. Returns None when a value
    cannot be parsed or the end precedes the start.
    """
    now = now or now_utc()
    range_start = _parse_boundary(start, time_zone) if start else start_of_zoned_week(now, time_zone, 1)
    if start and range_start is None:
        return None
    if end:
        end_day = _parse_boundary(end, time_zone)
        if end_day is None:
            return None
        range_end = add_zoned_days(start_of_zoned_day(end_day, time_zone), time_zone, 1)
    else:
        range_end = add_zoned_days(start_of_zoned_day(end_of_zoned_week(range_start, time_zone, 1), time_zone),
                                   time_zone, 1)
    range_start = start_of_zoned_day(range_start, time_zone)
    if range_end <= range_start:
        return None
    return range_start, range_end


def build_schedule_days(activities: Sequence[models.ActivityInstance], range_start: datetime,
                        range_end: datetime, time_zone: str) -> List[Dict[str, Any]]:
    by_day: Dict[str, List[models.ActivityInstance]] = {}
    for activity in activities:
        by_day.setdefault(zoned_date_key(activity.start_at, time_zone), []).append(activity)

    days = []
    cursor = range_start
    while cursor < range_end and len(days) < MAX_SCHEDULE_DAYS:
        day_activities = sorted(by_day.get(zoned_date_key(cursor, time_zone), []),
                                key=lambda a: as_utc(a.start_at))
        days.append({
            "label": format_in_time_zone(cursor, time_zone, "%A, %B {day}"),
            "activities": [
                {
                    "time": f"{format_in_time_zone(a.start_at, time_zone, '{hour12}:%M %p')} - "
                            f"{format_in_time_zone(a.end_at, time_zone, '{hour12}:%M %p')}",
                    "title": a.title,
                    "location": a.location,
                }
                for a in day_activities
            ],
        })
        cursor = add_zoned_days(cursor, time_zone, 1)
    return days


def schedule_range_label(range_start: datetime, range_end: datetime, time_zone: str) -> str:
    last_day = add_zoned_days(range_end, time_zone, -1)
    first = format_in_time_zone(range_start, time_zone, "%b {day}, %Y")
    if zoned_date_key(last_day, time_zone) == zoned_date_key(range_start, time_zone):
        return first
    return f"{first} - {format_in_time_zone(last_day, time_zone, '%b {day}, %Y')}"
