"""
Resident council meetings, minutes, and action items.

Meeting minutes are stored as a plain-text sheet in ``notes``; action item
section and due date ride along in the ``follow_up`` text as ``Section:`` and
``Due:`` lines.
"""
from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from actify.db import models
from actify.errors import NotFoundError, ValidationError
from actify.utils.residents import room_sort_key
from actify.utils.timezones import (
    add_zoned_days,
    as_utc,
    format_in_time_zone,
    iso_utc,
    now_utc,
    parse_iso_datetime,
    parse_month_key,
    resolve_time_zone,
    start_of_zoned_month_shift,
    zoned_date_key,
    zoned_date_string_to_utc_start,
)

logger = logging.getLogger(__name__)

COUNCIL_CATEGORY_OPTIONS = (
    "Activities",
    "Nursing",
    "Therapy",
    "Dietary",
    "Housekeeping",
    "Laundry",
    "Maintenance",
    "Social Services",
    "Administration",
    "Other",
)

COUNCIL_TOPIC_TEMPLATES = (
    {
        "id": "tmpl-activities-engagement",
        "title": "Activity Engagement Barriers",
        "section": "OLD",
        "category": "Activities",
        "prompt": "Residents requested more variety and clearer daily activity communication.",
    },
    {
        "id": "tmpl-nursing-care-followup",
        "title": "Nursing Follow-up",
        "section": "OLD",
        "category": "Nursing",
        "prompt": "Residents requested nursing follow-up on prior concerns and communication clarity.",
    },
    {
        "id": "tmpl-dietary-menu",
        "title": "Dietary Menu Feedback",
        "section": "NEW",
        "category": "Dietary",
        "prompt": "Residents discussed menu preferences and requested additional healthy snack options.",
    },
    {
        "id": "tmpl-housekeeping-rounds",
        "title": "Housekeeping Requests",
        "section": "NEW",
        "category": "Housekeeping",
        "prompt": "Residents requested more predictable cleaning rounds and restocking updates.",
    },
    {
        "id": "tmpl-maintenance-safety",
        "title": "Maintenance & Safety",
        "section": "NEW",
        "category": "Maintenance",
        "prompt": "Residents identified maintenance concerns impacting comfort and unit safety.",
    },
    {
        "id": "tmpl-social-services-support",
        "title": "Social Services Support",
        "section": "OLD",
        "category": "Social Services",
        "prompt": "Residents requested additional emotional support check-ins and discharge planning communication.",
    },
    {
        "id": "tmpl-admin-communication",
        "title": "Administration Communication",
        "section": "NEW",
        "category": "Administration",
        "prompt": "Residents requested clearer communication around policy updates and schedule changes.",
    },
)

# Request keys for per-department minutes, in sheet order.
DEPARTMENT_FIELDS = (
    ("activities", "Activities"),
    ("nursing", "Nursing"),
    ("therapy", "Therapy"),
    ("dietary", "Dietary"),
    ("housekeeping", "Housekeeping"),
    ("laundry", "Laundry"),
    ("maintenance", "Maintenance"),
    ("socialServices", "Social Services"),
    ("administrator", "Administrator"),
)

MINUTE_SECTIONS = (
    ("activities", "Activities"),
    ("nursing", "Nursing"),
    ("therapy", "Therapy"),
    ("dietary", "Dietary"),
    ("housekeeping", "Housekeeping"),
    ("laundry", "Laundry"),
    ("maintenance", "Maintenance"),
    ("socialServices", "Social Services"),
    ("administration", "Administration"),
    ("other", "Other"),
)

SHEET_HEADINGS = {
    "Summary:": "summary",
    "Residents in Attendance:": "residents",
    "Department Updates:": "departments",
    "Old Business:": "oldBusiness",
    "New Business:": "newBusiness",
    "Additional Notes:": "additional",
}

DUE_PREFIX = "Due:"
SECTION_PREFIX = "Section:"
SNIPPET_LIMIT = 120
MAX_ROW_DEPARTMENTS = 5

_BULLET_RE = re.compile(r"^[\-•]\s*")
_DEPARTMENT_LINE_RE = re.compile(r"^([^:]{2,40}):\s*(.+)$")
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# -- minutes sheet ---------------------------------------------------------

def _collapse(lines: Sequence[str]) -> Optional[str]:
    value = "\n".join(lines).strip()
    if not value or value.lower() in ("not discussed.", "none.", "no summary provided."):
        return None
    return value


def parse_meeting_sheet(notes: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse a minutes sheet back into fields. Free-form legacy notes return None."""
    if not notes:
        return None
    normalized = notes.replace("\r\n", "\n")
    if not all(heading in normalized for heading in ("Summary:", "Residents in Attendance:", "Department Updates:")):
        return None

    buckets: Dict[str, List[str]] = {"summary": [], "oldBusiness": [], "newBusiness": [], "additional": []}
    residents: List[str] = []
    departments: List[Dict[str, str]] = []
    section = None
    for line in normalized.split("\n"):
        trimmed = line.strip()
        if trimmed in SHEET_HEADINGS:
            section = SHEET_HEADINGS[trimmed]
            continue
        if section == "residents":
            if trimmed.startswith("- "):
                value = trimmed[2:].strip()
                if value and value.lower() != "none listed":
                    residents.append(value)
            continue
        if section == "departments":
            if trimmed.startswith("- "):
                value = trimmed[2:].strip()
                if value.lower() != "no department updates recorded.":
                    label, sep, text = value.partition(":")
                    if sep and label.strip() and text.strip():
                        departments.append({"label": label.strip(), "notes": text.strip()})
            continue
        if section in buckets:
            buckets[section].append(line)

    return {
        "summary": _collapse(buckets["summary"]),
        "residentsInAttendance": residents,
        "departmentUpdates": departments,
        "oldBusiness": _collapse(buckets["oldBusiness"]),
        "newBusiness": _collapse(buckets["newBusiness"]),
        "additionalNotes": _collapse(buckets["additional"]),
    }


def build_meeting_sheet(summary: Optional[str], residents_in_attendance: Sequence[str],
                        department_updates: Sequence[Dict[str, str]], old_business: Optional[str] = None,
                        new_business: Optional[str] = None, additional_notes: Optional[str] = None) -> str:
    lines = ["Summary:", summary or "No summary provided.", "", "Residents in Attendance:"]
    if residents_in_attendance:
        lines.extend(f"- {resident}" for resident in residents_in_attendance)
    else:
        lines.append("- None listed")
    lines.extend(["", "Department Updates:"])
    if department_updates:
        lines.extend(f"- {update['label']}: {update['notes']}" for update in department_updates)
    else:
        lines.append("- No department updates recorded.")
    lines.extend([
        "", "Old Business:", old_business or "Not discussed.",
        "", "New Business:", new_business or "Not discussed.",
        "", "Additional Notes:", additional_notes or "None.",
    ])
    return "\n".join(lines)


# -- follow-up metadata ----------------------------------------------------

def _follow_up_lines(value: Optional[str]) -> List[str]:
    return [line.strip() for line in re.split(r"\n+", value or "") if line.strip()]


def parse_due_date(follow_up: Optional[str]) -> Optional[str]:
    for line in _follow_up_lines(follow_up):
        if line.lower().startswith(DUE_PREFIX.lower()):
            candidate = line[len(DUE_PREFIX):].strip()
            if _DATE_KEY_RE.match(candidate):
                return candidate
    return None


def parse_section(follow_up: Optional[str]) -> Optional[str]:
    for line in _follow_up_lines(follow_up):
        if line.lower().startswith(SECTION_PREFIX.lower()):
            candidate = line[len(SECTION_PREFIX):].strip().upper()
            if candidate in ("OLD", "NEW"):
                return candidate
    return None


def strip_follow_up_meta(follow_up: Optional[str]) -> Optional[str]:
    lines = [
        line for line in _follow_up_lines(follow_up)
        if not line.lower().startswith(DUE_PREFIX.lower())
        and not line.lower().startswith(SECTION_PREFIX.lower())
    ]
    return "\n".join(lines) if lines else None


def merge_follow_up(section: str, due_date: Optional[str], follow_up: Optional[str]) -> str:
    body = strip_follow_up_meta(follow_up)
    merged = body
    if due_date:
        merged = f"{DUE_PREFIX} {due_date}\n{body}" if body else f"{DUE_PREFIX} {due_date}"
    return f"{SECTION_PREFIX} {section}\n{merged}" if merged else f"{SECTION_PREFIX} {section}"


def normalize_department_label(value: Optional[str]) -> str:
    normalized = (value or "").strip().lower()
    if not normalized:
        return "Other"
    for needle, label in (
        ("admin", "Administration"),
        ("social", "Social Services"),
        ("therap", "Therapy"),
        ("diet", "Dietary"),
        ("house", "Housekeeping"),
        ("laundr", "Laundry"),
        ("maint", "Maintenance"),
        ("nurs", "Nursing"),
        ("activit", "Activities"),
    ):
        if needle in normalized:
            return label
    for option in COUNCIL_CATEGORY_OPTIONS:
        if option.lower() == normalized:
            return option
    return "Other"


def _department_business(text: Optional[str]) -> Dict[str, List[str]]:
    by_department: Dict[str, List[str]] = {label: [] for _, label in MINUTE_SECTIONS}
    for line in _follow_up_lines(text):
        cleaned = _BULLET_RE.sub("", line)
        match = _DEPARTMENT_LINE_RE.match(cleaned)
        if not match:
            by_department["Other"].append(cleaned)
            continue
        by_department[normalize_department_label(match.group(1))].append(match.group(2).strip())
    return by_department


def _snippet(value: Optional[str], fallback: str = "No summary provided yet.") -> str:
    source = " ".join((value or "").split())
    if not source:
        return fallback
    if len(source) <= SNIPPET_LIMIT:
        return source
    return f"{source[:SNIPPET_LIMIT - 3]}..."


# -- serializers -----------------------------------------------------------

def _unresolved(items: Iterable[models.ResidentCouncilItem]) -> int:
    return sum(1 for item in items if item.status == "UNRESOLVED")


def _meeting_departments(parsed: Optional[Dict[str, Any]], items: Iterable[models.ResidentCouncilItem]) -> List[str]:
    departments: Dict[str, None] = {}
    for update in (parsed or {}).get("departmentUpdates", []):
        departments.setdefault(normalize_department_label(update["label"]))
    for item in items:
        departments.setdefault(normalize_department_label(item.category))
    return list(departments)


def serialize_meeting_row(meeting: models.ResidentCouncilMeeting, time_zone: str) -> Dict[str, Any]:
    parsed = parse_meeting_sheet(meeting.notes)
    unresolved = _unresolved(meeting.items)
    summary_line = ((parsed or {}).get("summary") or "").split("\n")[0].strip()
    title = summary_line or f"Resident Council • {format_in_time_zone(meeting.held_at, time_zone, '%b {day}, %Y')}"
    snippet_source = None
    if parsed:
        snippet_source = parsed["summary"] or parsed["newBusiness"]
    return {
        "id": str(meeting.id),
        "heldAt": iso_utc(meeting.held_at),
        "title": title,
        "snippet": _snippet(snippet_source if parsed else meeting.notes),
        "departments": _meeting_departments(parsed, meeting.items)[:MAX_ROW_DEPARTMENTS],
        "attendanceCount": meeting.attendance_count,
        "unresolvedCount": unresolved,
        "actionItemsCount": len(meeting.items),
        "status": "DRAFT" if unresolved else "FINAL",
    }


def serialize_action_item(item: models.ResidentCouncilItem, meeting: models.ResidentCouncilMeeting,
                          row_status: bool = True) -> Dict[str, Any]:
    """Serialize an action item; ``row_status`` maps storage statuses to OPEN/DONE."""
    status = item.status
    if row_status:
        status = "DONE" if item.status == "RESOLVED" else "OPEN"
    return {
        "id": str(item.id),
        "meetingId": str(meeting.id),
        "meetingHeldAt": iso_utc(meeting.held_at),
        "section": parse_section(item.follow_up) or "NEW",
        "category": item.category,
        "concern": item.concern,
        "followUp": strip_follow_up_meta(item.follow_up),
        "owner": item.owner,
        "dueDate": parse_due_date(item.follow_up),
        "status": status,
        "updatedAt": iso_utc(item.updated_at),
    }


# -- queries ---------------------------------------------------------------

def _meetings_query(db: Session, facility_id: uuid.UUID):
    return (
        db.query(models.ResidentCouncilMeeting)
        .options(selectinload(models.ResidentCouncilMeeting.items))
        .filter(models.ResidentCouncilMeeting.organization_id == facility_id)
    )


def active_residents(db: Session, facility_id: uuid.UUID) -> List[models.Resident]:
    residents = (
        db.query(models.Resident)
        .filter(models.Resident.organization_id == facility_id, models.Resident.is_active.is_(True))
        .all()
    )
    residents.sort(key=lambda r: room_sort_key(r.room, r.last_name, r.first_name))
    return residents


def get_snapshot(db: Session, facility_id: uuid.UUID) -> Dict[str, Any]:
    meetings = _meetings_query(db, facility_id).order_by(models.ResidentCouncilMeeting.held_at.desc()).all()
    items = [item for meeting in meetings for item in meeting.items]
    topics = 0
    for meeting in meetings:
        parsed = parse_meeting_sheet(meeting.notes) or {}
        topics += len(parsed.get("departmentUpdates", []))
        for key in ("oldBusiness", "newBusiness"):
            body = (parsed.get(key) or "").strip()
            if body:
                topics += max(1, len([line for line in _follow_up_lines(body) if _BULLET_RE.sub("", line)]))
        topics += len(meeting.items)
    average = round(sum(m.attendance_count for m in meetings) / len(meetings), 1) if meetings else 0
    return {
        "generatedAt": iso_utc(now_utc()),
        "stats": {
            "meetingsCount": len(meetings),
            "openItemsCount": _unresolved(items),
            "resolvedItemsCount": sum(1 for item in items if item.status == "RESOLVED"),
            "averageAttendance": average,
            "topicsCount": topics,
        },
        "templates": list(COUNCIL_TOPIC_TEMPLATES),
        "categories": list(COUNCIL_CATEGORY_OPTIONS),
        "activeResidents": [
            {"id": str(r.id), "firstName": r.first_name, "lastName": r.last_name, "room": r.room, "status": r.status}
            for r in active_residents(db, facility_id)
        ],
    }


def _clamp_page(page: Optional[int]) -> int:
    return max(1, int(page)) if page else 1


def clamp_page_size(page_size: Optional[int]) -> int:
    if not page_size:
        return 20
    return min(40, max(10, int(page_size)))


def _paginate(rows: List[Dict[str, Any]], page: Optional[int], page_size: Optional[int]) -> Dict[str, Any]:
    page = _clamp_page(page)
    size = clamp_page_size(page_size)
    total = len(rows)
    return {
        "rows": rows[(page - 1) * size:page * size],
        "total": total,
        "page": page,
        "pageSize": size,
        "pageCount": max(1, math.ceil(total / size)),
    }


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def list_meetings(db: Session, facility_id: uuid.UUID, time_zone: str, *, page: Optional[int] = None,
                  page_size: Optional[int] = None, search: Optional[str] = None, status: str = "ALL",
                  has_open_action_items: bool = False, department: Optional[str] = None,
                  from_key: Optional[str] = None, to_key: Optional[str] = None,
                  sort: str = "newest") -> Dict[str, Any]:
    tz = resolve_time_zone(time_zone)
    query = _meetings_query(db, facility_id)
    if from_key:
        start = zoned_date_string_to_utc_start(from_key, tz)
        if start:
            query = query.filter(models.ResidentCouncilMeeting.held_at >= as_utc(start))
    if to_key:
        end = zoned_date_string_to_utc_start(to_key, tz)
        if end:
            query = query.filter(models.ResidentCouncilMeeting.held_at < as_utc(add_zoned_days(end, tz, 1)))
    meetings = query.order_by(models.ResidentCouncilMeeting.held_at.desc()).all()

    if status == "DRAFT" or has_open_action_items:
        meetings = [m for m in meetings if _unresolved(m.items)]
    elif status == "FINAL":
        meetings = [m for m in meetings if not _unresolved(m.items)]
    if department and department != "ALL":
        meetings = [
            m for m in meetings
            if _contains(m.notes, department) or any(_contains(i.category, department) for i in m.items)
        ]
    needle = (search or "").strip()
    if needle:
        meetings = [
            m for m in meetings
            if _contains(m.notes, needle)
            or any(_contains(i.concern, needle) or _contains(i.category, needle) for i in m.items)
        ]

    if sort == "oldest":
        meetings.sort(key=lambda m: as_utc(m.held_at))
    elif sort in ("most_action_items", "most_departments"):
        meetings.sort(key=lambda m: (len(m.items), as_utc(m.held_at)), reverse=True)

    rows = [serialize_meeting_row(meeting, tz) for meeting in meetings]
    if sort == "most_departments":
        rows.sort(key=lambda r: (len(r["departments"]), r["heldAt"]), reverse=True)
    return _paginate(rows, page, page_size)


def list_action_items(db: Session, facility_id: uuid.UUID, *, page: Optional[int] = None,
                      page_size: Optional[int] = None, search: Optional[str] = None, status: str = "ALL",
                      department: Optional[str] = None, owner: Optional[str] = None,
                      meeting_id: Optional[uuid.UUID] = None, sort: str = "newest") -> Dict[str, Any]:
    query = (
        db.query(models.ResidentCouncilItem, models.ResidentCouncilMeeting)
        .join(models.ResidentCouncilMeeting, models.ResidentCouncilItem.meeting_id == models.ResidentCouncilMeeting.id)
        .filter(models.ResidentCouncilMeeting.organization_id == facility_id)
    )
    if meeting_id:
        query = query.filter(models.ResidentCouncilItem.meeting_id == meeting_id)
    if status == "OPEN":
        query = query.filter(models.ResidentCouncilItem.status == "UNRESOLVED")
    elif status == "DONE":
        query = query.filter(models.ResidentCouncilItem.status == "RESOLVED")
    if sort == "oldest":
        query = query.order_by(models.ResidentCouncilMeeting.held_at.asc(), models.ResidentCouncilItem.updated_at.asc())
    else:
        query = query.order_by(models.ResidentCouncilItem.updated_at.desc())
    pairs = query.all()

    if department and department != "ALL":
        pairs = [(i, m) for i, m in pairs if _contains(i.category, department)]
    if owner and owner != "ALL":
        pairs = [(i, m) for i, m in pairs if (i.owner or "").lower() == owner.lower()]
    needle = (search or "").strip()
    if needle:
        pairs = [
            (i, m) for i, m in pairs
            if any(_contains(value, needle) for value in (i.concern, i.follow_up, i.category, i.owner))
        ]

    rows = [serialize_action_item(item, meeting) for item, meeting in pairs]
    if sort == "due_soon":
        rows.sort(key=lambda r: r["dueDate"] or "9999-12-31")
    return _paginate(rows, page, page_size)


def get_overview(db: Session, facility_id: uuid.UUID, time_zone: str, month: Optional[str] = None) -> Dict[str, Any]:
    tz = resolve_time_zone(time_zone)
    month_key, month_start, month_end = parse_month_key(month, tz)
    six_months_ago = start_of_zoned_month_shift(month_start, tz, -5)
    meetings = _meetings_query(db, facility_id).order_by(models.ResidentCouncilMeeting.held_at.asc()).all()
    items = [item for meeting in meetings for item in meeting.items]
    now = now_utc()

    upcoming = [m for m in meetings if as_utc(m.held_at) >= now]
    open_items = [item for item in items if item.status == "UNRESOLVED"]
    department_counts: Dict[str, int] = {}
    for item in open_items:
        label = normalize_department_label(item.category)
        department_counts[label] = department_counts.get(label, 0) + 1
    top_departments = sorted(department_counts.items(), key=lambda pair: -pair[1])[:2]

    trends: Dict[str, Dict[str, int]] = {}
    for meeting in meetings:
        if as_utc(meeting.held_at) < six_months_ago:
            continue
        key = zoned_date_key(meeting.held_at, tz)[:7]
        bucket = trends.setdefault(key, {"meetings": 0, "attendance": 0, "open": 0, "resolved": 0})
        bucket["meetings"] += 1
        bucket["attendance"] += meeting.attendance_count
        bucket["open"] += _unresolved(meeting.items)
        bucket["resolved"] += sum(1 for item in meeting.items if item.status == "RESOLVED")

    return {
        "month": month_key,
        "totalMeetings": len(meetings),
        "totalResolvedActionItems": sum(1 for item in items if item.status == "RESOLVED"),
        "nextMeeting": serialize_meeting_row(upcoming[0], tz) if upcoming else None,
        "meetingsThisMonth": sum(1 for m in meetings if as_utc(month_start) <= as_utc(m.held_at) < as_utc(month_end)),
        "openActionItems": len(open_items),
        "topDepartments": [{"department": label, "count": count} for label, count in top_departments],
        "recentMeetings": list_meetings(db, facility_id, tz, page=1, page_size=10, sort="newest")["rows"][:8],
        "openItemsPreview": list_action_items(db, facility_id, page=1, page_size=10, status="OPEN")["rows"][:8],
        "trends": [
            {
                "month": key,
                "meetings": stats["meetings"],
                "avgAttendance": round(stats["attendance"] / stats["meetings"], 1) if stats["meetings"] else 0,
                "openItems": stats["open"],
                "resolvedItems": stats["resolved"],
            }
            for key, stats in sorted(trends.items())
        ],
    }


def get_meeting(db: Session, facility_id: uuid.UUID, meeting_id: uuid.UUID) -> models.ResidentCouncilMeeting:
    meeting = _meetings_query(db, facility_id).filter(models.ResidentCouncilMeeting.id == meeting_id).first()
    if meeting is None:
        raise NotFoundError("Resident council meeting not found.")
    return meeting


def get_meeting_detail(db: Session, facility_id: uuid.UUID, meeting_id: uuid.UUID) -> Dict[str, Any]:
    meeting = get_meeting(db, facility_id, meeting_id)
    parsed = parse_meeting_sheet(meeting.notes)
    items = sorted(meeting.items, key=lambda i: as_utc(i.updated_at), reverse=True)
    items.sort(key=lambda i: i.status)
    unresolved = _unresolved(items)

    old_by_department = _department_business((parsed or {}).get("oldBusiness"))
    new_by_department = _department_business((parsed or {}).get("newBusiness"))
    notes_by_department = {
        normalize_department_label(update["label"]): update["notes"]
        for update in (parsed or {}).get("departmentUpdates", [])
    }
    updated_at = max([as_utc(meeting.held_at)] + [as_utc(item.updated_at) for item in items])
    return {
        "id": str(meeting.id),
        "heldAt": iso_utc(meeting.held_at),
        "attendanceCount": meeting.attendance_count,
        "notes": meeting.notes,
        "legacyMinutesText": None if parsed else meeting.notes,
        "summary": (parsed or {}).get("summary") or "",
        "oldBusiness": (parsed or {}).get("oldBusiness") or "",
        "newBusiness": (parsed or {}).get("newBusiness") or "",
        "additionalNotes": (parsed or {}).get("additionalNotes") or "",
        "residentsInAttendance": (parsed or {}).get("residentsInAttendance", []),
        "status": "DRAFT" if unresolved else "FINAL",
        "unresolvedCount": unresolved,
        "actionItems": [serialize_action_item(item, meeting, row_status=False) for item in items],
        "departments": _meeting_departments(parsed, items),
        "updatedAt": iso_utc(updated_at),
        "minuteSections": [
            {
                "key": key,
                "label": label,
                "oldBusiness": "\n".join(old_by_department.get(label, [])),
                "newBusiness": "\n".join(new_by_department.get(label, [])),
                "notes": notes_by_department.get(label, ""),
            }
            for key, label in MINUTE_SECTIONS
        ],
    }


def list_owners(db: Session, facility_id: uuid.UUID) -> List[str]:
    rows = (
        db.query(models.ResidentCouncilItem.owner)
        .join(models.ResidentCouncilMeeting, models.ResidentCouncilItem.meeting_id == models.ResidentCouncilMeeting.id)
        .filter(models.ResidentCouncilMeeting.organization_id == facility_id, models.ResidentCouncilItem.owner.isnot(None))
        .distinct()
        .all()
    )
    return sorted((owner for (owner,) in rows if owner), key=str.lower)


# -- writes ----------------------------------------------------------------

def _department_updates(values: Optional[Dict[str, Optional[str]]],
                        fallback: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    values = values or {}
    fallback = fallback or {}
    updates = []
    for key, label in DEPARTMENT_FIELDS:
        text = (values.get(key) or "").strip() or fallback.get(label.lower())
        if text:
            updates.append({"label": label, "notes": text.strip()})
    return updates


def _template(template_id: Optional[str]) -> Optional[Dict[str, str]]:
    return next((t for t in COUNCIL_TOPIC_TEMPLATES if t["id"] == template_id), None)


def create_meeting(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> models.ResidentCouncilMeeting:
    held_at = data["heldAt"] if isinstance(data["heldAt"], datetime) else parse_iso_datetime(data["heldAt"])
    if held_at is None:
        raise ValidationError("Invalid meeting date.")

    resident_ids = list(dict.fromkeys(data.get("residentsAttendedIds") or []))
    residents = []
    if resident_ids:
        residents = (
            db.query(models.Resident)
            .filter(models.Resident.organization_id == facility_id, models.Resident.id.in_(resident_ids))
            .all()
        )
        residents.sort(key=lambda r: room_sort_key(r.room, r.last_name, r.first_name))
    attendees = [f"{r.last_name}, {r.first_name} (Room {r.room})" for r in residents]

    template = _template(data.get("templateId"))
    extra_lines = [
        data.get("additionalNotes"),
        f"Location: {data['location']}" if data.get("location") else None,
        f"Facilitator: {data['facilitator']}" if data.get("facilitator") else None,
        f"Template Applied: {template['title']}" if template else None,
    ]
    old_business = data.get("oldBusiness") or (template["prompt"] if template and template["section"] == "OLD" else None)
    new_business = data.get("newBusiness") or (template["prompt"] if template and template["section"] == "NEW" else None)
    attendance = data.get("attendanceCountOverride")

    meeting = models.ResidentCouncilMeeting(
        organization_id=facility_id,
        held_at=as_utc(held_at),
        attendance_count=attendance if attendance is not None else len(attendees),
        notes=build_meeting_sheet(
            data.get("summary"),
            attendees,
            _department_updates(data.get("departmentUpdates")),
            old_business,
            new_business,
            "\n".join(line for line in extra_lines if line) or None,
        ),
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)
    logger.info("council_meeting_created: facility=%s meeting=%s attendees=%s", facility_id, meeting.id, len(attendees))
    return meeting


def update_meeting_minutes(db: Session, facility_id: uuid.UUID, meeting_id: uuid.UUID,
                           data: Dict[str, Any]) -> models.ResidentCouncilMeeting:
    """Rewrite the minutes sheet; fields left out keep their parsed values."""
    meeting = get_meeting(db, facility_id, meeting_id)
    existing = parse_meeting_sheet(meeting.notes) or {
        "summary": None,
        "residentsInAttendance": [],
        "departmentUpdates": [],
        "oldBusiness": None,
        "newBusiness": None,
        "additionalNotes": None,
    }
    previous_departments = {u["label"].lower(): u["notes"] for u in existing["departmentUpdates"]}
    meeting.notes = build_meeting_sheet(
        data.get("summary") or existing["summary"],
        existing["residentsInAttendance"],
        _department_updates(data.get("departmentUpdates"), previous_departments),
        data.get("oldBusiness") or existing["oldBusiness"],
        data.get("newBusiness") or existing["newBusiness"],
        data.get("additionalNotes") or existing["additionalNotes"],
    )
    if data.get("attendanceCountOverride") is not None:
        meeting.attendance_count = data["attendanceCountOverride"]
    db.commit()
    db.refresh(meeting)
    return meeting


def delete_meeting(db: Session, facility_id: uuid.UUID, meeting_id: uuid.UUID) -> int:
    meeting = get_meeting(db, facility_id, meeting_id)
    removed_items = len(meeting.items)
    db.delete(meeting)
    db.commit()
    return removed_items


def get_action_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID) -> models.ResidentCouncilItem:
    item = (
        db.query(models.ResidentCouncilItem)
        .join(models.ResidentCouncilMeeting, models.ResidentCouncilItem.meeting_id == models.ResidentCouncilMeeting.id)
        .filter(models.ResidentCouncilItem.id == item_id, models.ResidentCouncilMeeting.organization_id == facility_id)
        .first()
    )
    if item is None:
        raise NotFoundError("Action item not found.")
    return item


def create_action_item(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> models.ResidentCouncilItem:
    meeting = get_meeting(db, facility_id, data["meetingId"])
    follow_up = "\n".join(
        line for line in (data.get("followUp"), "Carry Forward: Yes" if data.get("carryForward") else None) if line
    )
    item = models.ResidentCouncilItem(
        meeting_id=meeting.id,
        category=data["category"],
        concern=data["concern"],
        owner=data.get("owner") or None,
        status=data.get("status") or "UNRESOLVED",
        follow_up=merge_follow_up(data.get("section") or "NEW", data.get("dueDate"), follow_up or None),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def apply_topic_template(db: Session, facility_id: uuid.UUID, meeting_id: uuid.UUID,
                         template_id: str) -> models.ResidentCouncilItem:
    template = _template(template_id)
    if template is None:
        raise NotFoundError("Topic template not found.")
    return create_action_item(db, facility_id, {
        "meetingId": meeting_id,
        "category": template["category"],
        "concern": template["prompt"],
        "section": template["section"],
        "followUp": f"Template: {template['title']}",
    })


def update_action_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID,
                       changes: Dict[str, Any]) -> models.ResidentCouncilItem:
    item = get_action_item(db, facility_id, item_id)
    section = changes.get("section") or parse_section(item.follow_up) or "NEW"
    due_date = changes["dueDate"] if "dueDate" in changes else parse_due_date(item.follow_up)
    follow_up = changes["followUp"] if "followUp" in changes else strip_follow_up_meta(item.follow_up)
    if changes.get("status"):
        item.status = changes["status"]
    if "owner" in changes:
        item.owner = changes["owner"] or None
    if changes.get("category"):
        item.category = changes["category"]
    if changes.get("concern"):
        item.concern = changes["concern"]
    item.follow_up = merge_follow_up(section, due_date, follow_up)
    db.commit()
    db.refresh(item)
    return item


def bulk_update_action_items(db: Session, facility_id: uuid.UUID, item_ids: Sequence[uuid.UUID],
                             status: Optional[str] = None, owner: Optional[str] = None,
                             due_date: Optional[str] = None) -> int:
    items = (
        db.query(models.ResidentCouncilItem)
        .join(models.ResidentCouncilMeeting, models.ResidentCouncilItem.meeting_id == models.ResidentCouncilMeeting.id)
        .filter(models.ResidentCouncilItem.id.in_(list(item_ids)), models.ResidentCouncilMeeting.organization_id == facility_id)
        .all()
    )
    for item in items:
        section = parse_section(item.follow_up) or "NEW"
        item.follow_up = merge_follow_up(section, due_date or parse_due_date(item.follow_up),
                                         strip_follow_up_meta(item.follow_up))
        item.status = status or item.status
        item.owner = owner or item.owner
    db.commit()
    return len(items)


def delete_action_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID) -> uuid.UUID:
    """Delete an action item and return its meeting id."""
    item = get_action_item(db, facility_id, item_id)
    meeting_id = item.meeting_id
    db.delete(item)
    db.commit()
    return meeting_id
