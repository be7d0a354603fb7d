"""
Volunteer directory, shifts, and hour approvals.

Volunteer profiles keep their structured data as free-form requirement lines
("tag: music, crafts", "availability: weekday mornings", "background check
exp 2026-03-01", ...). Everything on the hub is derived from those lines and
the visit log.
"""
import logging
import math
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from actify.db import models
from actify.errors import NotFoundError, ValidationError
from actify.utils.timezones import (
    as_utc,
    iso_utc,
    now_utc,
    parse_iso_datetime,
    start_of_zoned_month,
    start_of_zoned_month_shift,
)

logger = logging.getLogger(__name__)

HOURS_PAGE_DEFAULT = 30
HOURS_PAGE_MIN = 10
HOURS_PAGE_MAX = 100
DETAIL_HOURS_LIMIT = 80
LAST_VISIT_SCAN_LIMIT = 1500

VISIT_ACTIONS = ("signOut", "reassign", "approve", "deny", "update")

_EXPIRY_RE = re.compile(r"(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{2,4})")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HASHTAG_RE = re.compile(r"#([a-z0-9\-_]+)", re.IGNORECASE)
_DONE_RE = re.compile(r"\b(done|complete|completed)\b", re.IGNORECASE)
_PENDING_RE = re.compile(r"\b(pending|todo|missing|incomplete)\b", re.IGNORECASE)
_PROFILE_PREFIX_RE = re.compile(r"^((tag|availability|permission|onboarding|check|status)\s*:)", re.IGNORECASE)
_APPROVAL_PREFIX_RE = re.compile(r"^\[(approved|denied)\]\s*", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Requirement line parsing
# ---------------------------------------------------------------------------

def _normalized(value: str) -> str:
    return value.strip().lower()


def _after_colon(line: str) -> str:
    return line.split(":", 1)[1] if ":" in line else ""


def requirement_lines(value: Any) -> List[str]:
    """Coerce the stored JSON column into trimmed, non-empty strings."""
    if not isinstance(value, list):
        return []
    lines = []
    for item in value:
        text = str(item if item is not None else "").strip()
        if text:
            lines.append(text)
    return lines


def serialize_requirements(value: Union[List[str], str, None]) -> List[str]:
    """Accept a list or a newline-separated string from the client."""
    if value is None:
        return []
    items = value if isinstance(value, list) else value.split("\n")
    return [item.strip() for item in items if item and item.strip()]


def parse_requirement_date(line: str) -> Optional[datetime]:
    match = _EXPIRY_RE.search(line)
    if not match:
        return None
    token = match.group(1)
    try:
        if _ISO_DATE_RE.match(token):
            return datetime.strptime(token, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        month, day, year = (int(part) for part in token.split("/"))
        if year < 100:
            year += 2000
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def days_until(start: datetime, end: datetime) -> int:
    return math.ceil((as_utc(end) - as_utc(start)).total_seconds() / 86400)


def extract_tags(lines: Iterable[str]) -> List[str]:
    tags = set()
    for line in lines:
        if _normalized(line).startswith("tag:"):
            tags.update(part.strip() for part in line[line.index(":") + 1:].split(",") if part.strip())
            continue
        tags.update(_HASHTAG_RE.findall(line))
    return sorted(tags, key=str.lower)


def extract_availability(lines: Iterable[str]) -> Optional[str]:
    for line in lines:
        if _normalized(line).startswith("availability:"):
            return _after_colon(line).strip() or None
    return None


def extract_capabilities(lines: Iterable[str]) -> List[str]:
    capabilities = []
    for line in lines:
        if _normalized(line).startswith("permission:"):
            capabilities.extend(part.strip() for part in _after_colon(line).split(",") if part.strip())
    return capabilities


def extract_onboarding_checklist(lines: Iterable[str]) -> List[Dict[str, Any]]:
    checklist = []
    for line in lines:
        normalized = _normalized(line)
        if not (normalized.startswith("onboarding:") or normalized.startswith("check:")):
            continue
        label = _after_colon(line).strip()
        if label:
            checklist.append({"label": label, "done": bool(_DONE_RE.search(label))})
    return checklist


def compliance_status(delta_days: int) -> str:
    if delta_days < 0:
        return "EXPIRED"
    if delta_days <= 30:
        return "EXPIRING_30"
    if delta_days <= 60:
        return "EXPIRING_60"
    return "OK"


def extract_compliance_items(lines: Iterable[str], now: datetime) -> List[Dict[str, Any]]:
    """Background checks and trainings, with their expiry window when a date is present."""
    items = []
    for line in lines:
        normalized = _normalized(line)
        if "background" not in normalized and "training" not in normalized and "check" not in normalized:
            continue
        expires_at = parse_requirement_date(line)
        if expires_at is None:
            items.append({"label": line, "expiresAt": None, "daysUntilExpiry": None, "status": "OK"})
            continue
        delta = days_until(now, expires_at)
        items.append({
            "label": line,
            "expiresAt": iso_utc(expires_at),
            "daysUntilExpiry": delta,
            "status": compliance_status(delta),
        })
    return items


def count_pending_onboarding(lines: Iterable[str]) -> int:
    return sum(1 for line in lines if _PENDING_RE.search(line))


def profile_notes(lines: Iterable[str]) -> List[str]:
    return [line for line in lines if not _PROFILE_PREFIX_RE.match(line)]


# ---------------------------------------------------------------------------
# Visit helpers
# ---------------------------------------------------------------------------

def visit_status(start_at: datetime, end_at: Optional[datetime], now: datetime) -> str:
    start_at, end_at, now = as_utc(start_at), as_utc(end_at), as_utc(now)
    if end_at is not None and end_at <= now:
        return "COMPLETE"
    if start_at <= now and (end_at is None or end_at > now):
        return "IN_PROGRESS"
    return "SCHEDULED"


def hour_approval(notes: Optional[str], end_at: Optional[datetime]) -> str:
    normalized = _normalized(notes or "")
    if normalized.startswith("[denied]"):
        return "DENIED"
    if normalized.startswith("[approved]") or end_at is not None:
        return "APPROVED"
    return "PENDING"


def duration_hours(start_at: datetime, end_at: Optional[datetime]) -> float:
    if end_at is None:
        return 0
    seconds = (as_utc(end_at) - as_utc(start_at)).total_seconds()
    if seconds <= 0:
        return 0
    return round(seconds / 3600, 2)


def mark_approved_notes(notes: Optional[str]) -> str:
    base = _APPROVAL_PREFIX_RE.sub("", notes or "", count=1).strip()
    return f"[APPROVED] {base}" if base else "[APPROVED]"


def mark_denied_notes(notes: Optional[str], reason: Optional[str] = None) -> str:
    base = _APPROVAL_PREFIX_RE.sub("", notes or "", count=1).strip()
    reason_text = (reason or "").strip()
    if reason_text and base:
        return f"[DENIED] {reason_text} - {base}"
    if reason_text:
        return f"[DENIED] {reason_text}"
    if base:
        return f"[DENIED] {base}"
    return "[DENIED]"


def serialize_shift(visit: models.VolunteerVisit, now: datetime) -> Dict[str, Any]:
    return {
        "id": str(visit.id),
        "volunteerId": str(visit.volunteer_id),
        "volunteerName": visit.volunteer.name,
        "volunteerPhone": visit.volunteer.phone,
        "startAt": iso_utc(visit.start_at),
        "endAt": iso_utc(visit.end_at),
        "assignedLocation": visit.assigned_location,
        "notes": visit.notes,
        "status": visit_status(visit.start_at, visit.end_at, now),
    }


def serialize_hour_entry(visit: models.VolunteerVisit) -> Dict[str, Any]:
    return {
        "id": str(visit.id),
        "volunteerId": str(visit.volunteer_id),
        "volunteerName": visit.volunteer.name,
        "startAt": iso_utc(visit.start_at),
        "endAt": iso_utc(visit.end_at),
        "assignedLocation": visit.assigned_location,
        "notes": visit.notes,
        "durationHours": duration_hours(visit.start_at, visit.end_at),
        "approval": hour_approval(visit.notes, visit.end_at),
    }


def serialize_volunteer(volunteer: models.Volunteer) -> Dict[str, Any]:
    return {
        "id": str(volunteer.id),
        "facilityId": str(volunteer.organization_id),
        "name": volunteer.name,
        "phone": volunteer.phone,
        "requirements": requirement_lines(volunteer.requirements),
        "createdAt": iso_utc(volunteer.created_at),
        "updatedAt": iso_utc(volunteer.updated_at),
    }


def serialize_visit(visit: models.VolunteerVisit) -> Dict[str, Any]:
    return {
        "id": str(visit.id),
        "volunteerId": str(visit.volunteer_id),
        "startAt": iso_utc(visit.start_at),
        "endAt": iso_utc(visit.end_at),
        "assignedLocation": visit.assigned_location,
        "notes": visit.notes,
        "signedInByUserId": str(visit.signed_in_by_user_id) if visit.signed_in_by_user_id else None,
        "signedOutByUserId": str(visit.signed_out_by_user_id) if visit.signed_out_by_user_id else None,
    }


def build_volunteer_summary(
    volunteer: models.Volunteer,
    *,
    monthly_hours: float,
    next_shift_at: Optional[datetime],
    last_visit_at: Optional[datetime],
    has_active_shift: bool,
    now: datetime,
) -> Dict[str, Any]:
    lines = requirement_lines(volunteer.requirements)
    compliance = extract_compliance_items(lines, now)

    explicit_status = None
    for line in lines:
        if _normalized(line).startswith("status:"):
            explicit_status = _normalized(line.split(":", 1)[1])
            break

    status = "ACTIVE"
    if has_active_shift:
        status = "ON_SHIFT"
    elif explicit_status and ("inactive" in explicit_status or "paused" in explicit_status):
        status = "INACTIVE"

    return {
        "id": str(volunteer.id),
        "name": volunteer.name,
        "phone": volunteer.phone,
        "status": status,
        "tags": extract_tags(lines),
        "availability": extract_availability(lines),
        "requirements": lines,
        "lastVisitAt": iso_utc(last_visit_at),
        "nextShiftAt": iso_utc(next_shift_at),
        "monthlyHours": monthly_hours,
        "pendingOnboardingCount": count_pending_onboarding(lines),
        "expiringChecksCount": sum(1 for item in compliance if item["status"] in ("EXPIRING_30", "EXPIRING_60")),
    }


def clamp_hours_limit(value: Optional[int]) -> int:
    if value is None:
        return HOURS_PAGE_DEFAULT
    return min(HOURS_PAGE_MAX, max(HOURS_PAGE_MIN, int(value)))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _facility_visits(db: Session, facility_id: uuid.UUID):
    return (
        db.query(models.VolunteerVisit)
        .join(models.Volunteer, models.VolunteerVisit.volunteer_id == models.Volunteer.id)
        .filter(models.Volunteer.organization_id == facility_id)
    )


def _active_filter(now: datetime):
    return [
        models.VolunteerVisit.start_at <= now,
        or_(models.VolunteerVisit.end_at.is_(None), models.VolunteerVisit.end_at > now),
    ]


def get_hub(
    db: Session,
    facility_id: uuid.UUID,
    time_zone: str,
    *,
    hours_offset: Optional[int] = None,
    hours_limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = as_utc(now or now_utc())
    offset = max(0, hours_offset or 0)
    limit = clamp_hours_limit(hours_limit)
    month_start = start_of_zoned_month(now, time_zone)
    month_end = start_of_zoned_month_shift(now, time_zone, 1)
    next_7_days = now + timedelta(days=7)
    next_14_days = now + timedelta(days=14)

    volunteers = (
        db.query(models.Volunteer)
        .filter(models.Volunteer.organization_id == facility_id)
        .order_by(models.Volunteer.name.asc())
        .all()
    )
    upcoming = (
        _facility_visits(db, facility_id)
        .options(joinedload(models.VolunteerVisit.volunteer))
        .filter(models.VolunteerVisit.start_at >= now, models.VolunteerVisit.start_at <= next_14_days)
        .order_by(models.VolunteerVisit.start_at.asc())
        .all()
    )
    month_visits = (
        _facility_visits(db, facility_id)
        .filter(models.VolunteerVisit.start_at >= month_start, models.VolunteerVisit.start_at < month_end)
        .all()
    )
    latest_hours = (
        _facility_visits(db, facility_id)
        .options(joinedload(models.VolunteerVisit.volunteer))
        .order_by(models.VolunteerVisit.start_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    total_visits = _facility_visits(db, facility_id).with_entities(func.count(models.VolunteerVisit.id)).scalar()
    active_ids = {
        row[0]
        for row in _facility_visits(db, facility_id)
        .with_entities(models.VolunteerVisit.volunteer_id)
        .filter(*_active_filter(now))
        .all()
    }
    past_visits = (
        _facility_visits(db, facility_id)
        .with_entities(models.VolunteerVisit.volunteer_id, models.VolunteerVisit.start_at)
        .filter(models.VolunteerVisit.start_at <= now)
        .order_by(models.VolunteerVisit.start_at.desc())
        .limit(LAST_VISIT_SCAN_LIMIT)
        .all()
    )

    monthly_hours: Dict[uuid.UUID, float] = {}
    total_hours = 0.0
    for visit in month_visits:
        hours = duration_hours(visit.start_at, visit.end_at)
        total_hours += hours
        monthly_hours[visit.volunteer_id] = round(monthly_hours.get(visit.volunteer_id, 0) + hours, 2)

    next_shift: Dict[uuid.UUID, datetime] = {}
    for visit in upcoming:
        next_shift.setdefault(visit.volunteer_id, visit.start_at)

    last_visit: Dict[uuid.UUID, datetime] = {}
    for volunteer_id, start_at in past_visits:
        last_visit.setdefault(volunteer_id, start_at)

    summaries = [
        build_volunteer_summary(
            volunteer,
            monthly_hours=monthly_hours.get(volunteer.id, 0),
            next_shift_at=next_shift.get(volunteer.id),
            last_visit_at=last_visit.get(volunteer.id),
            has_active_shift=volunteer.id in active_ids,
            now=now,
        )
        for volunteer in volunteers
    ]

    pending_onboarding = expiring_30 = expiring_60 = 0
    for summary in summaries:
        if summary["pendingOnboardingCount"] > 0:
            pending_onboarding += 1
        statuses = {item["status"] for item in extract_compliance_items(summary["requirements"], now)}
        if "EXPIRING_30" in statuses:
            expiring_30 += 1
        elif "EXPIRING_60" in statuses:
            expiring_60 += 1

    shifts = [serialize_shift(visit, now) for visit in upcoming]
    consumed = offset + len(latest_hours)
    return {
        "kpis": {
            "activeVolunteers": sum(1 for summary in summaries if summary["status"] != "INACTIVE"),
            "scheduledNext7Days": sum(1 for visit in upcoming if as_utc(visit.start_at) <= next_7_days),
            "hoursThisMonth": round(total_hours, 2),
            "pendingOnboarding": pending_onboarding,
            "expiringChecks30Days": expiring_30,
            "expiringChecks60Days": expiring_60,
        },
        "volunteers": summaries,
        "shifts": shifts,
        "hours": [serialize_hour_entry(visit) for visit in latest_hours],
        "hoursPagination": {"offset": consumed, "limit": limit, "hasMore": consumed < (total_visits or 0)},
    }


def get_volunteer(db: Session, facility_id: uuid.UUID, volunteer_id: uuid.UUID) -> models.Volunteer:
    volunteer = (
        db.query(models.Volunteer)
        .filter(models.Volunteer.id == volunteer_id, models.Volunteer.organization_id == facility_id)
        .first()
    )
    if volunteer is None:
        raise NotFoundError("Volunteer not found.")
    return volunteer


def get_volunteer_detail(
    db: Session,
    facility_id: uuid.UUID,
    volunteer_id: uuid.UUID,
    time_zone: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = as_utc(now or now_utc())
    volunteer = get_volunteer(db, facility_id, volunteer_id)
    month_start = start_of_zoned_month(now, time_zone)
    month_end = start_of_zoned_month_shift(now, time_zone, 1)
    past_30 = now - timedelta(days=30)

    visits_q = db.query(models.VolunteerVisit).filter(models.VolunteerVisit.volunteer_id == volunteer.id)
    recent = (
        visits_q.options(joinedload(models.VolunteerVisit.volunteer))
        .order_by(models.VolunteerVisit.start_at.desc())
        .limit(DETAIL_HOURS_LIMIT)
        .all()
    )
    month_visits = visits_q.filter(
        models.VolunteerVisit.start_at >= month_start, models.VolunteerVisit.start_at < month_end
    ).all()
    last_visit = (
        visits_q.filter(models.VolunteerVisit.start_at <= now)
        .order_by(models.VolunteerVisit.start_at.desc())
        .first()
    )
    next_visit = (
        visits_q.filter(models.VolunteerVisit.start_at >= now)
        .order_by(models.VolunteerVisit.start_at.asc())
        .first()
    )
    active_visit = visits_q.filter(*_active_filter(now)).first()

    lines = requirement_lines(volunteer.requirements)
    month_hours = round(sum(duration_hours(v.start_at, v.end_at) for v in month_visits), 2)
    summary = build_volunteer_summary(
        volunteer,
        monthly_hours=month_hours,
        next_shift_at=next_visit.start_at if next_visit else None,
        last_visit_at=last_visit.start_at if last_visit else None,
        has_active_shift=active_visit is not None,
        now=now,
    )
    hours_30_days = round(
        sum(duration_hours(v.start_at, v.end_at) for v in recent if as_utc(v.start_at) >= past_30), 2
    )

    return {
        "volunteer": summary,
        "profile": {
            "notes": profile_notes(lines),
            "onboardingChecklist": extract_onboarding_checklist(lines),
        },
        "compliance": {"items": extract_compliance_items(lines, now)},
        "hours": {
            "entries": [serialize_hour_entry(visit) for visit in recent],
            "totalHours30Days": hours_30_days,
            "totalHoursMonth": month_hours,
        },
        "permissions": {"capabilities": extract_capabilities(lines)},
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def create_volunteer(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> models.Volunteer:
    volunteer = models.Volunteer(
        organization_id=facility_id,
        name=data["name"],
        phone=(data.get("phone") or "").strip() or None,
        requirements=serialize_requirements(data.get("requirements")),
    )
    db.add(volunteer)
    db.commit()
    db.refresh(volunteer)
    logger.info("volunteer_created: facility=%s volunteer=%s", facility_id, volunteer.id)
    return volunteer


def update_volunteer(
    db: Session, facility_id: uuid.UUID, volunteer_id: uuid.UUID, changes: Dict[str, Any]
) -> models.Volunteer:
    volunteer = get_volunteer(db, facility_id, volunteer_id)
    if changes.get("name"):
        volunteer.name = changes["name"]
    if "phone" in changes:
        volunteer.phone = (changes["phone"] or "").strip() or None
    if "requirements" in changes:
        volunteer.requirements = serialize_requirements(changes["requirements"])
    db.commit()
    db.refresh(volunteer)
    return volunteer


def delete_volunteer(db: Session, facility_id: uuid.UUID, volunteer_id: uuid.UUID) -> None:
    volunteer = get_volunteer(db, facility_id, volunteer_id)
    db.delete(volunteer)
    db.commit()
    logger.info("volunteer_deleted: facility=%s volunteer=%s", facility_id, volunteer_id)


def _parse_time(value: str, field_name: str) -> datetime:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise ValidationError(f"Invalid {field_name}.")
    return parsed


def create_visit(
    db: Session, facility_id: uuid.UUID, user_id: uuid.UUID, data: Dict[str, Any]
) -> models.VolunteerVisit:
    volunteer = get_volunteer(db, facility_id, data["volunteerId"])
    start_at = _parse_time(data["startAt"], "start time")
    end_at = _parse_time(data["endAt"], "end time") if data.get("endAt") else None
    if end_at is not None and end_at <= start_at:
        raise ValidationError("End time must be after start time.")

    visit = models.VolunteerVisit(
        volunteer_id=volunteer.id,
        start_at=start_at,
        end_at=end_at,
        assigned_location=data["assignedLocation"],
        notes=(data.get("notes") or "").strip() or None,
        signed_in_by_user_id=user_id,
        signed_out_by_user_id=user_id if end_at is not None else None,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    return visit


def get_visit(db: Session, facility_id: uuid.UUID, visit_id: uuid.UUID) -> models.VolunteerVisit:
    visit = _facility_visits(db, facility_id).filter(models.VolunteerVisit.id == visit_id).first()
    if visit is None:
        raise NotFoundError("Visit not found.")
    return visit


def update_visit(
    db: Session,
    facility_id: uuid.UUID,
    visit_id: uuid.UUID,
    user_id: uuid.UUID,
    action: str,
    changes: Dict[str, Any],
) -> models.VolunteerVisit:
    """Apply one of the visit actions (``signOut``, ``reassign``, ``approve``, ``deny``, ``update``)."""
    visit = get_visit(db, facility_id, visit_id)

    if action == "signOut":
        visit.end_at = now_utc()
        visit.signed_out_by_user_id = user_id
    elif action == "reassign":
        target_id = changes.get("volunteerId")
        if not target_id:
            raise ValidationError("Volunteer id is required for reassignment.")
        target = (
            db.query(models.Volunteer)
            .filter(models.Volunteer.id == target_id, models.Volunteer.organization_id == facility_id)
            .first()
        )
        if target is None:
            raise NotFoundError("Target volunteer not found.")
        visit.volunteer_id = target.id
    elif action == "approve":
        visit.notes = mark_approved_notes(visit.notes)
    elif action == "deny":
        visit.notes = mark_denied_notes(visit.notes, changes.get("denialReason"))
    elif action == "update":
        if changes.get("assignedLocation") is not None:
            visit.assigned_location = changes["assignedLocation"]
        if "notes" in changes:
            visit.notes = (changes["notes"] or "").strip() or None
        if changes.get("endAt"):
            visit.end_at = _parse_time(changes["endAt"], "end time")
    else:
        raise ValidationError("Invalid visit update payload.")

    db.commit()
    db.refresh(visit)
    logger.info("volunteer_visit_updated: facility=%s visit=%s action=%s", facility_id, visit.id, action)
    return visit


def delete_visit(db: Session, facility_id: uuid.UUID, visit_id: uuid.UUID) -> None:
    visit = get_visit(db, facility_id, visit_id)
    db.delete(visit)
    db.commit()
