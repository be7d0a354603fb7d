"""
Attendance tracking.

Staff record attendance with a small set of quick statuses. Each one maps onto
the stored ``(status, barrier_reason, notes)`` triple of an Attendance row, and
the reverse mapping is used to read rows back as quick statuses.
"""
from __future__ import annotations

import csv
import io
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from actify.db import models
from actify.errors import NotFoundError
from actify.utils.residents import INACTIVE_RESIDENT_STATUSES, sort_residents_by_room
from actify.utils.timezones import (
    as_utc,
    end_of_zoned_day,
    format_in_time_zone,
    iso_utc,
    now_utc,
    start_of_zoned_day,
    zoned_date_key,
    zoned_date_string_to_utc_start,
)

QUICK_ATTENDANCE_CYCLE = (
    "CLEAR",
    "PRESENT",
    "REFUSED",
    "ASLEEP",
    "OUT_OF_ROOM",
    "ONE_TO_ONE",
    "NOT_APPLICABLE",
)

QUICK_STATUS_LABELS = {
    "PRESENT": "Present",
    "REFUSED": "Refused",
    "ASLEEP": "Asleep",
    "OUT_OF_ROOM": "Out of Room",
    "ONE_TO_ONE": "1:1 Completed",
    "NOT_APPLICABLE": "Not Applicable",
    "CLEAR": "Clear",
}

NOT_APPLICABLE_NOTE = "Not applicable"
RESIDENT_HISTORY_LIMIT = 120
TOP_ACTIVITY_LIMIT = 5
DEFAULT_HISTORY_DAYS = 30


def cycle_attendance_status(current: Optional[str]) -> str:
    """Return the next quick status; CLEAR and the last entry wrap to PRESENT."""
    try:
        index = QUICK_ATTENDANCE_CYCLE.index(current)
    except ValueError:
        index = -1
    if index < 0 or index == len(QUICK_ATTENDANCE_CYCLE) - 1:
        return QUICK_ATTENDANCE_CYCLE[1]
    return QUICK_ATTENDANCE_CYCLE[index + 1]


def quick_status_label(status: str) -> str:
    return QUICK_STATUS_LABELS.get(status, QUICK_STATUS_LABELS["CLEAR"])


def from_attendance_record(status: str, barrier_reason: Optional[str] = None,
                           notes: Optional[str] = None) -> str:
    if status == "REFUSED" or barrier_reason == "REFUSED":
        return "REFUSED"
    if status == "PRESENT":
        return "PRESENT"
    if status in ("ACTIVE", "LEADING"):
        return "ONE_TO_ONE"
    if status == "NO_SHOW":
        if barrier_reason == "ASLEEP":
            return "ASLEEP"
        if barrier_reason in ("AT_APPOINTMENT", "NOT_INFORMED"):
            return "OUT_OF_ROOM"
        if barrier_reason == "OTHER" or "not applicable" in (notes or "").lower():
            return "NOT_APPLICABLE"
        if barrier_reason == "BED_BOUND":
            return "ASLEEP"
    return "NOT_APPLICABLE"


def to_attendance_record(quick: str, resident_status: Optional[str] = None,
                         notes: Optional[str] = None) -> Optional[Dict[str, Optional[str]]]:
    """Map a quick status to the stored triple, or None when the entry is cleared."""
    trimmed = (notes or "").strip() or None
    if quick == "CLEAR":
        if resident_status == "BED_BOUND":
            return {"status": "NO_SHOW", "barrier_reason": "BED_BOUND", "notes": trimmed}
        return None
    if quick == "PRESENT":
        return {"status": "PRESENT", "barrier_reason": None, "notes": trimmed}
    if quick == "REFUSED":
        return {"status": "REFUSED", "barrier_reason": "REFUSED", "notes": trimmed}
    if quick == "ASLEEP":
        return {"status": "NO_SHOW", "barrier_reason": "ASLEEP", "notes": trimmed}
    if quick == "OUT_OF_ROOM":
        return {"status": "NO_SHOW", "barrier_reason": "AT_APPOINTMENT", "notes": trimmed}
    if quick == "ONE_TO_ONE":
        return {"status": "ACTIVE", "barrier_reason": None, "notes": trimmed}
    return {"status": "NO_SHOW", "barrier_reason": "OTHER", "notes": trimmed or NOT_APPLICABLE_NOTE}


def empty_counts() -> Dict[str, int]:
    return {
        "present": 0,
        "refused": 0,
        "asleep": 0,
        "outOfRoom": 0,
        "oneToOne": 0,
        "notApplicable": 0,
        "totalEntries": 0,
    }


_COUNT_KEYS = {
    "PRESENT": "present",
    "REFUSED": "refused",
    "ASLEEP": "asleep",
    "OUT_OF_ROOM": "outOfRoom",
    "ONE_TO_ONE": "oneToOne",
    "NOT_APPLICABLE": "notApplicable",
}


def count_from_attendance_rows(rows: Iterable[models.Attendance]) -> Dict[str, Any]:
    """Tally quick statuses over Attendance rows; also report whether any row has notes."""
    counts = empty_counts()
    has_notes = False
    for row in rows:
        quick = from_attendance_record(row.status, row.barrier_reason, row.notes)
        counts[_COUNT_KEYS[quick]] += 1
        counts["totalEntries"] += 1
        if (row.notes or "").strip():
            has_notes = True
    return {"counts": counts, "hasNotes": has_notes}


def parse_date_key(date_key: Optional[str], time_zone: str) -> datetime:
    parsed = zoned_date_string_to_utc_start(date_key, time_zone) if date_key else None
    return parsed or start_of_zoned_day(now_utc(), time_zone)


def get_attendance_residents(db: Session, facility_id: uuid.UUID) -> List[models.Resident]:
    residents = (
        db.query(models.Resident)
        .filter(
            models.Resident.organization_id == facility_id,
            models.Resident.status.notin_(INACTIVE_RESIDENT_STATUSES),
        )
        .all()
    )
    return sort_residents_by_room(residents)


def serialize_attendance_resident(resident: models.Resident) -> Dict[str, Any]:
    return {
        "id": str(resident.id),
        "firstName": resident.first_name,
        "lastName": resident.last_name,
        "room": resident.room,
        "unitName": None,
        "residentStatus": resident.status,
    }


def _session_summary(activity: models.ActivityInstance, time_zone: str,
                     active_residents: int) -> Dict[str, Any]:
    tally = count_from_attendance_rows(activity.attendance)
    total = tally["counts"]["totalEntries"]
    completion = round(total / active_residents * 100, 1) if active_residents else 0
    return {
        "id": str(activity.id),
        "title": activity.title,
        "dateKey": zoned_date_key(activity.start_at, time_zone),
        "startAt": iso_utc(activity.start_at),
        "endAt": iso_utc(activity.end_at),
        "location": activity.location,
        "counts": tally["counts"],
        "completionPercent": completion,
        "hasNotes": tally["hasNotes"],
        "updatedAt": iso_utc(activity.created_at),
    }


def get_attendance_sessions_for_day(db: Session, facility_id: uuid.UUID, time_zone: str,
                                    date_key: Optional[str] = None,
                                    active_residents: Optional[int] = None) -> List[Dict[str, Any]]:
    day_start = parse_date_key(date_key, time_zone)
    day_end = end_of_zoned_day(day_start, time_zone)
    if active_residents is None:
        active_residents = len(get_attendance_residents(db, facility_id))
    activities = (
        db.query(models.ActivityInstance)
        .filter(
            models.ActivityInstance.organization_id == facility_id,
            models.ActivityInstance.start_at >= as_utc(day_start),
            models.ActivityInstance.start_at <= as_utc(day_end),
        )
        .order_by(models.ActivityInstance.start_at.asc())
        .all()
    )
    return [_session_summary(activity, time_zone, active_residents) for activity in activities]


def get_attendance_session_detail(db: Session, facility_id: uuid.UUID,
                                  session_id: uuid.UUID) -> Optional[models.ActivityInstance]:
    return (
        db.query(models.ActivityInstance)
        .filter(
            models.ActivityInstance.id == session_id,
            models.ActivityInstance.organization_id == facility_id,
        )
        .first()
    )


def get_attendance_quick_take_payload(db: Session, facility_id: uuid.UUID, time_zone: str,
                                      date_key: Optional[str] = None,
                                      session_id: Optional[str] = None) -> Dict[str, Any]:
    day_start = parse_date_key(date_key, time_zone)
    residents = get_attendance_residents(db, facility_id)
    sessions = get_attendance_sessions_for_day(
        db, facility_id, time_zone, zoned_date_key(day_start, time_zone), active_residents=len(residents)
    )

    session_ids = [session["id"] for session in sessions]
    if session_id and session_id in session_ids:
        selected = session_id
    else:
        selected = session_ids[0] if session_ids else None

    entries: Dict[str, Dict[str, Any]] = {}
    if selected:
        rows = (
            db.query(models.Attendance)
            .filter(models.Attendance.activity_instance_id == uuid.UUID(selected))
            .all()
        )
        for row in rows:
            entries[str(row.resident_id)] = {
                "status": from_attendance_record(row.status, row.barrier_reason, row.notes),
                "notes": row.notes,
            }

    return {
        "dateKey": zoned_date_key(day_start, time_zone),
        "sessions": sessions,
        "selectedSessionId": selected,
        "residents": [serialize_attendance_resident(resident) for resident in residents],
        "entriesByResidentId": entries,
    }


def save_attendance_batch(db: Session, facility_id: uuid.UUID, session_id: uuid.UUID,
                          entries: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    """Apply quick-take entries to a session.

    Entries are deduplicated by resident with the last one winning. Residents
    outside the facility are ignored.

    Raises:
        NotFoundError: If the session does not belong to the facility.
    """
    session = get_attendance_session_detail(db, facility_id, session_id)
    if session is None:
        raise NotFoundError("Attendance session not found.")

    latest: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        latest[str(entry["residentId"])] = entry

    result = {"created": 0, "updated": 0, "deleted": 0, "unchanged": 0}
    if not latest:
        return result

    resident_ids = [uuid.UUID(key) for key in latest]
    residents = {
        str(resident.id): resident
        for resident in db.query(models.Resident).filter(
            models.Resident.organization_id == facility_id,
            models.Resident.id.in_(resident_ids),
        )
    }
    existing = {
        str(row.resident_id): row
        for row in db.query(models.Attendance).filter(
            models.Attendance.activity_instance_id == session.id,
            models.Attendance.resident_id.in_(resident_ids),
        )
    }

    for resident_id, entry in latest.items():
        resident = residents.get(resident_id)
        if resident is None:
            continue
        record = to_attendance_record(entry["status"], resident.status, entry.get("notes"))
        current = existing.get(resident_id)
        if record is None:
            if current is not None:
                db.delete(current)
                result["deleted"] += 1
            else:
                result["unchanged"] += 1
            continue
        if current is None:
            db.add(models.Attendance(
                activity_instance_id=session.id,
                resident_id=resident.id,
                status=record["status"],
                barrier_reason=record["barrier_reason"],
                notes=record["notes"],
            ))
            result["created"] += 1
        elif (current.status, current.barrier_reason, current.notes) == (
            record["status"], record["barrier_reason"], record["notes"]
        ):
            result["unchanged"] += 1
        else:
            current.status = record["status"]
            current.barrier_reason = record["barrier_reason"]
            current.notes = record["notes"]
            result["updated"] += 1

    db.commit()
    return result


def get_attendance_sessions_history(db: Session, facility_id: uuid.UUID, time_zone: str, *,
                                    from_key: Optional[str] = None, to_key: Optional[str] = None,
                                    activity: Optional[str] = None, location: Optional[str] = None,
                                    has_notes: str = "all") -> Dict[str, Any]:
    if to_key and zoned_date_string_to_utc_start(to_key, time_zone):
        range_end = end_of_zoned_day(zoned_date_string_to_utc_start(to_key, time_zone), time_zone)
    else:
        range_end = end_of_zoned_day(now_utc(), time_zone)
    if from_key and zoned_date_string_to_utc_start(from_key, time_zone):
        range_start = zoned_date_string_to_utc_start(from_key, time_zone)
    else:
        range_start = start_of_zoned_day(range_end - timedelta(days=DEFAULT_HISTORY_DAYS), time_zone)

    query = db.query(models.ActivityInstance).filter(
        models.ActivityInstance.organization_id == facility_id,
        models.ActivityInstance.start_at >= as_utc(range_start),
        models.ActivityInstance.start_at <= as_utc(range_end),
    )
    if location and location.strip() and location.strip().lower() != "all":
        query = query.filter(func.lower(models.ActivityInstance.location) == location.strip().lower())
    if activity and activity.strip():
        query = query.filter(models.ActivityInstance.title.ilike(f"%{activity.strip()}%"))
    activities = query.order_by(models.ActivityInstance.start_at.desc()).all()

    active_residents = len(get_attendance_residents(db, facility_id))
    sessions = [_session_summary(item, time_zone, active_residents) for item in activities]
    if has_notes == "yes":
        sessions = [session for session in sessions if session["hasNotes"]]
    elif has_notes == "no":
        sessions = [session for session in sessions if not session["hasNotes"]]

    locations = (
        db.query(models.ActivityInstance.location)
        .filter(models.ActivityInstance.organization_id == facility_id)
        .distinct()
        .all()
    )
    return {
        "sessions": sessions,
        "locations": sorted({row[0] for row in locations if row[0]}),
    }


def _summary_since(rows: Sequence[models.Attendance], since: datetime) -> Dict[str, int]:
    return count_from_attendance_rows(row for row in rows if as_utc(row.created_at) >= since)["counts"]


def get_resident_attendance_summary(db: Session, facility_id: uuid.UUID, resident_id: uuid.UUID,
                                    time_zone: str) -> Optional[Dict[str, Any]]:
    resident = (
        db.query(models.Resident)
        .filter(models.Resident.id == resident_id, models.Resident.organization_id == facility_id)
        .first()
    )
    if resident is None:
        return None

    rows = (
        db.query(models.Attendance)
        .join(models.ActivityInstance, models.Attendance.activity_instance_id == models.ActivityInstance.id)
        .filter(
            models.Attendance.resident_id == resident.id,
            models.ActivityInstance.organization_id == facility_id,
        )
        .order_by(models.Attendance.created_at.desc())
        .limit(RESIDENT_HISTORY_LIMIT)
        .all()
    )

    now = now_utc()
    top = Counter(row.activity_instance.title for row in rows if row.activity_instance)
    sessions = []
    for row in rows:
        activity = row.activity_instance
        sessions.append({
            "id": str(row.id),
            "sessionId": str(row.activity_instance_id),
            "title": activity.title if activity else "Unknown activity",
            "location": activity.location if activity else None,
            "dateLabel": format_in_time_zone(
                activity.start_at if activity else row.created_at, time_zone, "%b {day}, %Y, {hour12}:%M %p"
            ),
            "status": from_attendance_record(row.status, row.barrier_reason, row.notes),
            "notes": row.notes,
        })

    return {
        "resident": {
            "id": str(resident.id),
            "name": resident.full_name,
            "room": resident.room,
            "status": resident.status,
        },
        "summary7": _summary_since(rows, now - timedelta(days=7)),
        "summary30": _summary_since(rows, now - timedelta(days=30)),
        "topActivities": [
            {"title": title, "count": count} for title, count in top.most_common(TOP_ACTIVITY_LIMIT)
        ],
        "sessions": sessions,
    }


def get_monthly_attendance_report(db: Session, facility_id: uuid.UUID, time_zone: str,
                                  month_start: datetime, month_end: datetime) -> Dict[str, Any]:
    rows = (
        db.query(models.Attendance, models.ActivityInstance)
        .join(models.ActivityInstance, models.Attendance.activity_instance_id == models.ActivityInstance.id)
        .filter(
            and_(
                models.ActivityInstance.organization_id == facility_id,
                models.ActivityInstance.start_at >= as_utc(month_start),
                models.ActivityInstance.start_at <= as_utc(month_end),
            )
        )
        .all()
    )

    totals = count_from_attendance_rows(attendance for attendance, _ in rows)["counts"]
    daily: Dict[str, int] = {}
    sessions: Dict[str, Dict[str, Any]] = {}
    for attendance, activity in rows:
        date_key = zoned_date_key(activity.start_at, time_zone)
        daily[date_key] = daily.get(date_key, 0) + 1
        session = sessions.setdefault(str(activity.id), {
            "title": activity.title,
            "dateKey": date_key,
            "present": 0,
            "refused": 0,
            "noShowLike": 0,
            "oneToOne": 0,
        })
        quick = from_attendance_record(attendance.status, attendance.barrier_reason, attendance.notes)
        if quick == "PRESENT":
            session["present"] += 1
        elif quick == "REFUSED":
            session["refused"] += 1
        elif quick == "ONE_TO_ONE":
            session["oneToOne"] += 1
        else:
            session["noShowLike"] += 1

    return {
        "monthKey": format_in_time_zone(month_start, time_zone, "%Y-%m"),
        "totalEntries": totals["totalEntries"],
        "totals": {key: value for key, value in totals.items() if key != "totalEntries"},
        "daily": [{"dateKey": key, "total": daily[key]} for key in sorted(daily)],
        "sessions": sorted(sessions.values(), key=lambda item: (item["dateKey"], item["title"])),
    }


def _csv_text(rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def resident_summary_csv(summary: Dict[str, Any]) -> str:
    s7, s30 = summary["summary7"], summary["summary30"]
    rows: List[Sequence[Any]] = [
        ["Resident", summary["resident"]["name"]],
        ["Room", summary["resident"]["room"]],
        ["Status", summary["resident"]["status"]],
        [],
        ["Metric", "Last 7 Days", "Last 30 Days"],
        ["Present", s7["present"], s30["present"]],
        ["Refused", s7["refused"], s30["refused"]],
        ["Asleep", s7["asleep"], s30["asleep"]],
        ["Out of Room", s7["outOfRoom"], s30["outOfRoom"]],
        ["1:1 Completed", s7["oneToOne"], s30["oneToOne"]],
        ["Not Applicable", s7["notApplicable"], s30["notApplicable"]],
        [],
        ["Recent Sessions"],
        ["Date", "Activity", "Location", "Status", "Notes"],
    ]
    for row in summary["sessions"]:
        rows.append([row["dateLabel"], row["title"], row["location"] or "", row["status"], row["notes"] or ""])
    return _csv_text(rows)


def monthly_report_csv(report: Dict[str, Any]) -> str:
    totals = report["totals"]
    rows: List[Sequence[Any]] = [
        ["Month", report["monthKey"]],
        ["Total Entries", report["totalEntries"]],
        ["Present", totals["present"]],
        ["Refused", totals["refused"]],
        ["Asleep", totals["asleep"]],
        ["Out of Room", totals["outOfRoom"]],
        ["1:1 Completed", totals["oneToOne"]],
        ["Not Applicable", totals["notApplicable"]],
        [],
        ["Daily Totals"],
        ["Date", "Total"],
    ]
    rows.extend([day["dateKey"], day["total"]] for day in report["daily"])
    rows.extend([[], ["Session Breakdown"], ["Date", "Title", "Present", "Refused", "No Show-like", "1:1 Completed"]])
    rows.extend(
        [session["dateKey"], session["title"], session["present"], session["refused"],
         session["noShowLike"], session["oneToOne"]]
        for session in report["sessions"]
    )
    return _csv_text(rows)


def resident_export_filename(name: str) -> str:
    slug = "-".join((name or "").lower().split())
    return f"attendance-resident-{slug}.csv"
