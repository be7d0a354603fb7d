"""
Analytics aggregation.

One snapshot per request: attendance, engagement, 1:1 notes, programs, and
staff/volunteer activity over a date range, compared against the window of
the same length immediately before it.
"""
from __future__ import annotations

import logging
import uuid
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from actify.db import models
from actify.utils.facility_settings import as_attendance_rules
from actify.utils.residents import INACTIVE_RESIDENT_STATUSES, format_label, room_sort_key
from actify.utils.timezones import (
    add_zoned_days,
    as_utc,
    end_of_zoned_day,
    format_in_time_zone,
    iso_utc,
    now_utc,
    resolve_time_zone,
    start_of_zoned_day,
    start_of_zoned_month,
    start_of_zoned_month_shift,
    start_of_zoned_week,
    subtract_days,
    zoned_date_key,
    zoned_date_string_to_utc_start,
)

logger = logging.getLogger(__name__)

RANGE_PRESETS = ("today", "7d", "30d", "custom")
SUPPORTIVE_STATUSES = frozenset(("PRESENT", "ACTIVE", "LEADING"))
TOP_PROGRAMS_LIMIT = 30
TOP_ONE_ON_ONE_RESIDENTS = 60
RECENT_NOTES_LIMIT = 40
NARRATIVE_PREVIEW = 140
RESIDENT_OPTIONS_LIMIT = 400


@dataclass
class AnalyticsFilters:
    range: str = "30d"
    from_: Optional[str] = None
    to: Optional[str] = None
    resident_id: Optional[str] = None
    category: Optional[str] = None
    staff_id: Optional[str] = None


@dataclass
class DateRange:
    start: datetime
    end: datetime
    start_key: str
    end_key: str
    label: str
    total_days: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "start": iso_utc(self.start),
            "end": iso_utc(self.end),
            "startKey": self.start_key,
            "endKey": self.end_key,
            "label": self.label,
            "totalDays": self.total_days,
        }


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_filters(raw: Dict[str, Optional[str]]) -> AnalyticsFilters:
    """Unknown range presets fall back to ``30d``; blank values become None."""
    range_value = _clean(raw.get("range"))
    return AnalyticsFilters(
        range=range_value if range_value in RANGE_PRESETS else "30d",
        from_=_clean(raw.get("from")),
        to=_clean(raw.get("to")),
        resident_id=_clean(raw.get("residentId")),
        category=_clean(raw.get("category")),
        staff_id=_clean(raw.get("staffId")),
    )


def _short_date(value: datetime, time_zone: str, with_year: bool = True) -> str:
    return format_in_time_zone(value, time_zone, "%b {day}, %Y" if with_year else "%b {day}")


def _range(start: datetime, end: datetime, time_zone: str, label: str, total_days: int) -> DateRange:
    return DateRange(start, end, zoned_date_key(start, time_zone), zoned_date_key(end, time_zone), label, total_days)


def resolve_date_range(filters: AnalyticsFilters, time_zone: Optional[str], now: Optional[datetime] = None) -> DateRange:
    time_zone = resolve_time_zone(time_zone)
    now = as_utc(now or now_utc())

    if filters.range == "today":
        start = start_of_zoned_day(now, time_zone)
        return _range(start, end_of_zoned_day(now, time_zone), time_zone,
                      f"Today • {_short_date(start, time_zone)}", 1)

    if filters.range in ("7d", "30d"):
        days = 7 if filters.range == "7d" else 30
        start = start_of_zoned_day(subtract_days(now, days - 1), time_zone)
        return _range(start, end_of_zoned_day(now, time_zone), time_zone, f"Last {days} days", days)

    custom_start = zoned_date_string_to_utc_start(filters.from_, time_zone) if filters.from_ else None
    custom_end_start = zoned_date_string_to_utc_start(filters.to, time_zone) if filters.to else None
    if custom_start and custom_end_start:
        end = add_zoned_days(custom_end_start, time_zone, 1) - timedelta(milliseconds=1)
        delta_ms = (end - custom_start).total_seconds() * 1000
        total_days = 1 if delta_ms < 0 else max(1, int(delta_ms // 86_400_000) + 1)
        label = f"{_short_date(custom_start, time_zone, with_year=False)} - {_short_date(end, time_zone)}"
        return _range(custom_start, end, time_zone, label, total_days)

    start = start_of_zoned_day(subtract_days(now, 29), time_zone)
    return _range(start, end_of_zoned_day(now, time_zone), time_zone, "Last 30 days", 30)


def previous_range(start: datetime, end: datetime):
    window = end - start + timedelta(milliseconds=1)
    previous_end = start - timedelta(milliseconds=1)
    return previous_end - window + timedelta(milliseconds=1), previous_end


def split_staff_filter(value: Optional[str]):
    """``user:<id>`` / ``volunteer:<id>``; a bare id is treated as a user."""
    if not value:
        return None, None
    if value.startswith("user:"):
        return value[5:], None
    if value.startswith("volunteer:"):
        return None, value[10:]
    return value, None


def _uuid_or_none(value: Optional[str]) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value) if value else None
    except ValueError:
        return None


def percent(part: int, total: int) -> float:
    if total == 0:
        return 0
    return round(part / total * 100, 1)


def _preview(text: Optional[str], limit: int = NARRATIVE_PREVIEW) -> str:
    normalized = " ".join((text or "").split())
    if len(normalized) <= limit:
        return normalized
    return normalized[: limit - 1] + "…"


def compute_facility_presence(
    rows: Iterable[Dict[str, Any]],
    active_resident_ids: Iterable[uuid.UUID],
    now: datetime,
    time_zone: str,
) -> Dict[str, Any]:
    """Distinct residents present today, this month, and last month.

    ``rows`` carry ``residentId``, ``status`` and ``occurredAt``. Rows for
    residents outside ``active_resident_ids`` are ignored.
    """
    allowed = set(active_resident_ids)
    active_count = len(allowed)
    today_start, today_end = start_of_zoned_day(now, time_zone), end_of_zoned_day(now, time_zone)
    month_start = start_of_zoned_month(now, time_zone)
    previous_start = start_of_zoned_month_shift(now, time_zone, -1)
    previous_end = month_start - timedelta(milliseconds=1)

    today, current, previous = set(), set(), set()
    previous_any = False
    for row in rows:
        if row["residentId"] not in allowed:
            continue
        occurred = as_utc(row["occurredAt"])
        present = row["status"] in SUPPORTIVE_STATUSES
        if previous_start <= occurred <= previous_end:
            previous_any = True
            if present:
                previous.add(row["residentId"])
        if not present:
            continue
        if today_start <= occurred <= today_end:
            today.add(row["residentId"])
        if month_start <= occurred <= today_end:
            current.add(row["residentId"])

    current_pct = percent(len(current), active_count)
    previous_pct = percent(len(previous), active_count)
    return {
        "activeResidentCount": active_count,
        "todayPresentResidents": len(today),
        "todayPresentPercent": percent(len(today), active_count),
        "currentMonthPresentResidents": len(current),
        "currentMonthPresentPercent": current_pct,
        "previousMonthPresentResidents": len(previous),
        "previousMonthPresentPercent": previous_pct,
        "hasPreviousMonthData": previous_any,
        "monthOverMonthDelta": round(current_pct - previous_pct, 1) if previous_any else None,
    }


def _active_residents_query(db: Session, facility_id: uuid.UUID):
    return db.query(models.Resident).filter(
        models.Resident.organization_id == facility_id,
        or_(models.Resident.is_active.is_(True), models.Resident.status.in_(("ACTIVE", "BED_BOUND"))),
        models.Resident.status.notin_(INACTIVE_RESIDENT_STATUSES),
    )


def get_filter_options(db: Session, facility_id: uuid.UUID) -> Dict[str, Any]:
    residents = sorted(
        _active_residents_query(db, facility_id).all(),
        key=lambda r: room_sort_key(r.room, r.last_name, r.first_name),
    )[:RESIDENT_OPTIONS_LIMIT]
    categories = (
        db.query(models.ActivityTemplate.category)
        .filter(models.ActivityTemplate.organization_id == facility_id)
        .distinct()
        .order_by(models.ActivityTemplate.category.asc())
        .all()
    )
    staff = (
        db.query(models.User, models.OrganizationMembership.role)
        .join(models.OrganizationMembership, models.OrganizationMembership.user_id == models.User.id)
        .filter(models.OrganizationMembership.organization_id == facility_id)
        .all()
    )
    volunteers = (
        db.query(models.Volunteer)
        .filter(models.Volunteer.organization_id == facility_id)
        .order_by(models.Volunteer.name.asc())
        .all()
    )
    staff_options = sorted(
        (
            {
                "id": f"user:{user.id}",
                "label": f"{user.display_name or user.email} ({format_label(role)})",
                "type": "staff",
            }
            for user, role in staff
        ),
        key=lambda option: option["label"].lower(),
    )
    return {
        "residents": [
            {"id": str(r.id), "label": f"{r.last_name}, {r.first_name}", "room": r.room} for r in residents
        ],
        "categories": [{"key": row[0], "label": row[0]} for row in categories],
        "staffAndVolunteers": staff_options + [
            {"id": f"volunteer:{v.id}", "label": f"{v.name} (Volunteer)", "type": "volunteer"} for v in volunteers
        ],
    }


def _attendance_rows(db: Session, facility_id: uuid.UUID, resident_ids: Sequence[uuid.UUID],
                     start: datetime, end: datetime, category: Optional[str]):
    if not resident_ids:
        return []
    query = (
        db.query(models.Attendance)
        .join(models.ActivityInstance, models.Attendance.activity_instance_id == models.ActivityInstance.id)
        .options(joinedload(models.Attendance.activity_instance).joinedload(models.ActivityInstance.template))
        .filter(
            models.Attendance.resident_id.in_(resident_ids),
            models.ActivityInstance.organization_id == facility_id,
            models.ActivityInstance.start_at >= as_utc(start),
            models.ActivityInstance.start_at <= as_utc(end),
        )
    )
    if category:
        query = query.join(models.ActivityTemplate, models.ActivityInstance.template_id == models.ActivityTemplate.id)
        query = query.filter(models.ActivityTemplate.category == category)
    return query.all()


def _note_rows(db: Session, resident_ids: Sequence[uuid.UUID], start: datetime, end: datetime,
               user_id: Optional[uuid.UUID]):
    if not resident_ids:
        return []
    query = (
        db.query(models.ProgressNote)
        .options(joinedload(models.ProgressNote.resident), joinedload(models.ProgressNote.created_by))
        .filter(
            models.ProgressNote.resident_id.in_(resident_ids),
            models.ProgressNote.created_at >= as_utc(start),
            models.ProgressNote.created_at <= as_utc(end),
        )
    )
    if user_id is not None:
        query = query.filter(models.ProgressNote.created_by_user_id == user_id)
    return query.all()


def _score_map(weights: Dict[str, Any]) -> Dict[str, float]:
    return {
        "PRESENT": weights["present"],
        "ACTIVE": weights["active"],
        "LEADING": weights["leading"],
        "REFUSED": 0,
        "NO_SHOW": 0,
    }


def _trend(delta: Optional[float]) -> str:
    if delta is None or delta == 0:
        return "flat"
    return "up" if delta > 0 else "down"


def _signed_points(delta: Optional[float]) -> str:
    if delta is None:
        return "No prior period comparison"
    return f"{'+' if delta > 0 else ''}{delta:.1f} pts"


def build_kpis(attendance: Dict[str, Any], one_on_one: Dict[str, Any]) -> List[Dict[str, Any]]:
    counts = attendance["counts"]
    supportive = counts["present"] + counts["active"] + counts["leading"]
    delta = attendance["monthDeltaPercent"]
    note_delta = one_on_one["totalNotes"] - one_on_one["previousTotalNotes"]
    return [
        {
            "key": "total-attended",
            "label": "Total Attended Residents",
            "value": str(attendance["totalAttendedResidents"]),
            "detail": f"{supportive} supportive attendance rows",
            "delta": _signed_points(delta),
            "trend": _trend(delta),
        },
        {
            "key": "residents-participated",
            "label": "Residents Participated",
            "value": str(attendance["residentsParticipated"]),
            "detail": f"{attendance['residentsParticipated']} of {len(attendance['topAttendees'])} filtered residents",
        },
        {
            "key": "participation-percent",
            "label": "Participation %",
            "value": f"{attendance['participationPercent']:.1f}%",
            "detail": f"Prior period: {attendance['previousParticipationPercent']:.1f}%",
            "delta": _signed_points(delta),
            "trend": _trend(delta),
        },
        {
            "key": "average-daily",
            "label": "Average Daily %",
            "value": f"{attendance['averageDailyPercent']:.1f}%",
            "detail": f"Across {len(attendance['dailyParticipation']) or 1} day(s) in selected range",
        },
        {
            "key": "one-on-one",
            "label": "1:1 Notes",
            "value": str(one_on_one["totalNotes"]),
            "detail": f"{one_on_one['notesWithFollowUp']} with follow-up",
            "delta": "No prior period notes" if one_on_one["previousTotalNotes"] == 0
            else f"{'+' if note_delta >= 0 else ''}{note_delta}",
            "trend": _trend(note_delta),
        },
    ]


def _attendance_section(rows, previous_rows, residents, score_map, time_zone: str):
    counts = {"present": 0, "active": 0, "leading": 0, "refused": 0, "noShow": 0, "total": len(rows)}
    count_keys = {"PRESENT": "present", "ACTIVE": "active", "LEADING": "leading",
                  "REFUSED": "refused", "NO_SHOW": "noShow"}
    attendee_counts: Counter = Counter()
    barriers: Counter = Counter()
    previous_barriers: Counter = Counter(row.barrier_reason for row in previous_rows if row.barrier_reason)
    weekly: Dict[str, List[float]] = {}
    daily: Dict[str, Dict[str, Any]] = {}
    category_mix: Counter = Counter()
    location_mix: Counter = Counter()
    programs: Dict[tuple, Dict[str, Any]] = {}
    supportive_residents = set()

    for row in rows:
        if row.status in count_keys:
            counts[count_keys[row.status]] += 1
        if row.barrier_reason:
            barriers[row.barrier_reason] += 1
        if row.status not in SUPPORTIVE_STATUSES:
            continue

        activity = row.activity_instance
        supportive_residents.add(row.resident_id)
        attendee_counts[row.resident_id] += 1

        week_label = format_in_time_zone(start_of_zoned_week(activity.start_at, time_zone, 1), time_zone, "%b {day}")
        bucket = weekly.setdefault(week_label, [0.0, 0])
        bucket[0] += score_map.get(row.status, 0)
        bucket[1] += 1

        day_key = zoned_date_key(activity.start_at, time_zone)
        day = daily.setdefault(day_key, {"date": activity.start_at, "residents": set(), "entries": 0})
        day["entries"] += 1
        day["residents"].add(row.resident_id)

        category = activity.template.category if activity.template else "Uncategorized"
        location = activity.location or "Unassigned"
        category_mix[category] += 1
        location_mix[location] += 1
        program = programs.setdefault(
            (activity.title, category, location),
            {"title": activity.title, "category": category, "location": location, "attendedCount": 0},
        )
        program["attendedCount"] += 1

    active_count = len(residents)
    previous_supportive = {row.resident_id for row in previous_rows if row.status in SUPPORTIVE_STATUSES}
    participation = percent(len(supportive_residents), active_count)
    previous_participation = percent(len(previous_supportive), active_count)
    delta = round(participation - previous_participation, 1) if previous_rows else None

    daily_participation = [
        {
            "dayKey": key,
            "label": format_in_time_zone(daily[key]["date"], time_zone, "%a, %b {day}"),
            "uniqueResidents": len(daily[key]["residents"]),
            "totalEntries": daily[key]["entries"],
            "participationPercent": percent(len(daily[key]["residents"]), active_count),
        }
        for key in sorted(daily)
    ]
    average_daily = (
        round(sum(day["participationPercent"] for day in daily_participation) / len(daily_participation), 1)
        if daily_participation else 0
    )

    top_attendees = sorted(
        (
            {
                "residentId": str(resident.id),
                "residentName": f"{resident.last_name}, {resident.first_name}",
                "room": resident.room,
                "attendedCount": attendee_counts.get(resident.id, 0),
            }
            for resident in residents
        ),
        key=lambda item: -item["attendedCount"],
    )
    top_barriers = [
        {
            "barrier": barrier,
            "count": count,
            "previousCount": previous_barriers.get(barrier, 0),
            "delta": count - previous_barriers.get(barrier, 0),
        }
        for barrier, count in barriers.most_common()
    ]
    engagement_trend = [
        {"label": label, "score": round(total / max(entries, 1), 2), "entries": entries}
        for label, (total, entries) in weekly.items()
    ]
    average_score = round(sum(score_map.get(row.status, 0) for row in rows) / max(len(rows), 1), 2)

    return {
        "counts": counts,
        "topAttendees": top_attendees,
        "topBarriers": top_barriers,
        "engagementTrend": engagement_trend,
        "dailyParticipation": daily_participation,
        "residentsParticipated": len(supportive_residents),
        "participationPercent": participation,
        "averageDailyPercent": average_daily,
        "previousParticipationPercent": previous_participation,
        "monthDeltaPercent": delta,
        "averageEngagementScore": average_score,
        "categoryMix": [{"category": name, "count": count} for name, count in category_mix.most_common()],
        "locationMix": [{"location": name, "count": count} for name, count in location_mix.most_common()],
        "topPrograms": sorted(programs.values(), key=lambda p: -p["attendedCount"])[:TOP_PROGRAMS_LIMIT],
    }


def _one_on_one_section(notes, previous_notes, residents_by_id) -> Dict[str, Any]:
    one_on_one = [note for note in notes if note.type == "ONE_TO_ONE"]
    previous_total = sum(1 for note in previous_notes if note.type == "ONE_TO_ONE")
    by_resident: Dict[uuid.UUID, Dict[str, Any]] = {}
    moods: Counter = Counter()
    responses: Counter = Counter()
    for note in one_on_one:
        entry = by_resident.setdefault(note.resident_id, {"count": 0, "lastAt": as_utc(note.created_at)})
        entry["count"] += 1
        entry["lastAt"] = max(entry["lastAt"], as_utc(note.created_at))
        moods[note.mood_affect] += 1
        responses[note.response] += 1

    top_residents = []
    for resident_id, entry in by_resident.items():
        resident = residents_by_id.get(resident_id)
        top_residents.append({
            "residentId": str(resident_id),
            "residentName": resident.full_name if resident else "Unknown Resident",
            "room": resident.room if resident else "-",
            "notesCount": entry["count"],
            "lastNoteAt": iso_utc(entry["lastAt"]),
        })
    top_residents.sort(key=lambda item: -item["notesCount"])

    recent = sorted(one_on_one, key=lambda note: as_utc(note.created_at), reverse=True)[:RECENT_NOTES_LIMIT]
    return {
        "totalNotes": len(one_on_one),
        "previousTotalNotes": previous_total,
        "notesWithFollowUp": sum(1 for note in one_on_one if (note.follow_up or "").strip()),
        "topResidents": top_residents[:TOP_ONE_ON_ONE_RESIDENTS],
        "moodBreakdown": [{"label": format_label(label), "count": count} for label, count in moods.items()],
        "responseBreakdown": [{"label": format_label(label), "count": count} for label, count in responses.items()],
        "recentNotes": [
            {
                "id": str(note.id),
                "residentName": f"{note.resident.last_name}, {note.resident.first_name}",
                "room": note.resident.room,
                "createdAt": iso_utc(note.created_at),
                "response": format_label(note.response),
                "mood": format_label(note.mood_affect),
                "narrativePreview": _preview(note.narrative),
            }
            for note in recent
        ],
    }


def _staff_volunteer_section(notes, visits) -> Dict[str, Any]:
    staff: Dict[Any, Dict[str, Any]] = {}
    for note in notes:
        label = (note.created_by.display_name or note.created_by.email) if note.created_by else "Unknown Staff"
        entry = staff.setdefault(note.created_by_user_id, {"label": label, "notesCount": 0})
        entry["notesCount"] += 1

    volunteers: Dict[uuid.UUID, Dict[str, Any]] = defaultdict(lambda: {"label": "", "visits": 0, "hours": 0.0})
    for visit in visits:
        entry = volunteers[visit.volunteer_id]
        entry["label"] = visit.volunteer.name
        entry["visits"] += 1
        if visit.end_at is not None:
            entry["hours"] += max(0.0, (as_utc(visit.end_at) - as_utc(visit.start_at)).total_seconds() / 3600)

    volunteer_activity = sorted(
        (
            {"id": f"volunteer:{vid}", "label": v["label"], "visits": v["visits"], "hours": round(v["hours"], 1)}
            for vid, v in volunteers.items()
        ),
        key=lambda item: -item["visits"],
    )
    return {
        "staffActivity": sorted(
            ({"id": f"user:{uid}", "label": s["label"], "notesCount": s["notesCount"]} for uid, s in staff.items()),
            key=lambda item: -item["notesCount"],
        ),
        "volunteerActivity": volunteer_activity,
        "volunteerTotals": {
            "visits": len(visits),
            "hours": round(sum(item["hours"] for item in volunteer_activity), 1),
        },
    }


def get_analytics_snapshot(
    db: Session,
    facility: models.Organization,
    time_zone: str,
    attendance_rules: Dict[str, Any],
    filters: AnalyticsFilters,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    date_range = resolve_date_range(filters, time_zone, now)
    start, end = date_range.start, date_range.end
    previous_start, previous_end = previous_range(start, end)
    user_filter, volunteer_filter = split_staff_filter(filters.staff_id)

    residents_q = _active_residents_query(db, facility.id)
    if filters.resident_id:
        residents_q = residents_q.filter(models.Resident.id == _uuid_or_none(filters.resident_id))
    residents = sorted(residents_q.all(), key=lambda r: room_sort_key(r.room, r.last_name, r.first_name))
    resident_ids = [resident.id for resident in residents]
    residents_by_id = {resident.id: resident for resident in residents}

    rows = _attendance_rows(db, facility.id, resident_ids, start, end, filters.category)
    previous_rows = _attendance_rows(db, facility.id, resident_ids, previous_start, previous_end, filters.category)

    user_uuid = _uuid_or_none(user_filter)
    if user_filter and user_uuid is None:
        notes, previous_notes = [], []
    else:
        notes = _note_rows(db, resident_ids, start, end, user_uuid)
        previous_notes = _note_rows(db, resident_ids, previous_start, previous_end, user_uuid)

    visits_q = (
        db.query(models.VolunteerVisit)
        .join(models.Volunteer, models.VolunteerVisit.volunteer_id == models.Volunteer.id)
        .options(joinedload(models.VolunteerVisit.volunteer))
        .filter(
            models.Volunteer.organization_id == facility.id,
            models.VolunteerVisit.start_at >= as_utc(start),
            models.VolunteerVisit.start_at <= as_utc(end),
        )
    )
    if volunteer_filter:
        visits_q = visits_q.filter(models.VolunteerVisit.volunteer_id == _uuid_or_none(volunteer_filter))
    visits = visits_q.all()

    score_map = _score_map(as_attendance_rules(attendance_rules)["engagementWeights"])
    attendance = _attendance_section(rows, previous_rows, residents, score_map, time_zone)
    presence = compute_facility_presence(
        (
            {"residentId": row.resident_id, "status": row.status, "occurredAt": row.activity_instance.start_at}
            for row in list(rows) + list(previous_rows)
        ),
        resident_ids,
        end,
        time_zone,
    )
    attendance["totalAttendedResidents"] = presence["currentMonthPresentResidents"]
    one_on_one = _one_on_one_section(notes, previous_notes, residents_by_id)
    counts = attendance["counts"]
    month_key = date_range.start_key[:7]

    logger.info("analytics_snapshot: facility=%s range=%s rows=%s notes=%s",
                facility.id, filters.range, len(rows), len(notes))
    return {
        "range": date_range.as_dict(),
        "options": get_filter_options(db, facility.id),
        "kpis": build_kpis(attendance, one_on_one),
        "attendance": {
            key: attendance[key]
            for key in (
                "counts", "topAttendees", "topBarriers", "engagementTrend", "dailyParticipation",
                "totalAttendedResidents", "residentsParticipated", "participationPercent",
                "averageDailyPercent", "previousParticipationPercent", "monthDeltaPercent",
            )
        },
        "engagement": {
            "averageEngagementScore": attendance["averageEngagementScore"],
            "topBarriers": attendance["topBarriers"],
            "weeklyScores": attendance["engagementTrend"],
            "categoryMix": attendance["categoryMix"],
            "insightChips": [
                f"{counts['present'] + counts['active'] + counts['leading']} supportive attendance entries",
                f"{counts['refused'] + counts['noShow']} refused/no-show entries",
                f"{attendance['categoryMix'][0]['category'] if attendance['categoryMix'] else 'No category data'}"
                " leads category mix",
                f"Engagement score avg {attendance['averageEngagementScore']:.2f}",
            ],
        },
        "oneOnOne": one_on_one,
        "programs": {
            "topPrograms": attendance["topPrograms"],
            "categoryMix": attendance["categoryMix"],
            "locationMix": attendance["locationMix"],
        },
        "staffVolunteers": _staff_volunteer_section(notes, visits),
        "facilityPresence": presence,
        "exports": {
            "monthlyReportPath": f"/reports/monthly?month={month_key}",
            "attendanceCsvPath": f"/attendance/reports/monthly?month={month_key}&format=csv",
        },
    }
