"""
Calendar scheduling service.

Single activities and recurring series share the ``activity_instances`` table:
series occurrences are materialized into rows for a rolling horizon so that
attendance, notes and conflict checks always work against concrete rows.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from actify.db import models
from actify.errors import CalendarConflictError, NotFoundError, ValidationError
from actify.services.calendar.conflicts import (
    conflict_summary,
    find_conflicts,
    is_outside_business_hours,
    warning_policy,
)
from actify.services.calendar.recurrence import (
    expand_series_to_range,
    make_occurrence_key,
    normalize_exdates,
)
from actify.utils.timezones import add_zoned_days, as_utc, iso_utc, parse_iso_datetime, start_of_zoned_day

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "Activity Room"
DEFAULT_MATERIALIZATION_HORIZON_DAYS = 180
DEFAULT_ADAPTATIONS = {
    "bedBound": False,
    "dementiaFriendly": False,
    "lowVisionHearing": False,
    "oneToOneMini": False,
    "overrides": {},
}

_UNSET = object()


def normalize_location(location: Optional[str]) -> str:
    trimmed = (location or "").strip()
    return trimmed or DEFAULT_LOCATION


def normalize_checklist(value: Any) -> list:
    return list(value) if isinstance(value, list) else []


def normalize_adaptations(value: Any) -> dict:
    if isinstance(value, dict):
        return dict(value)
    return dict(DEFAULT_ADAPTATIONS, overrides={})


def ensure_valid_range(start_at: Optional[datetime], end_at: Optional[datetime]) -> None:
    if start_at is None or end_at is None or as_utc(end_at) <= as_utc(start_at):
        raise ValidationError("Invalid schedule range.")


def serialize_activity(activity: models.ActivityInstance) -> Dict[str, Any]:
    return {
        "id": str(activity.id),
        "title": activity.title,
        "startAt": iso_utc(activity.start_at),
        "endAt": iso_utc(activity.end_at),
        "location": activity.location,
        "seriesId": str(activity.series_id) if activity.series_id else None,
        "occurrenceKey": activity.occurrence_key,
        "isOverride": bool(activity.is_override),
    }


def serialize_series(series: models.ActivitySeries) -> Dict[str, Any]:
    return {
        "id": str(series.id),
        "title": series.title,
        "dtstart": iso_utc(series.dtstart),
        "durationMin": series.duration_min,
        "rrule": series.rrule,
        "until": iso_utc(series.until),
        "timezone": series.timezone,
    }


def materialize_series_window(db: Session, series: models.ActivitySeries,
                              range_start: datetime, range_end: datetime) -> Dict[str, int]:
    """Create missing occurrence rows and drop stale generated ones in the window.

    Rows flagged ``is_override`` are never deleted here.
    """
    occurrences = expand_series_to_range(series, range_start, range_end)
    expected_keys = {occurrence.occurrence_key for occurrence in occurrences}

    in_window = (
        db.query(models.ActivityInstance)
        .filter(
            models.ActivityInstance.series_id == series.id,
            models.ActivityInstance.start_at <= as_utc(range_end),
            models.ActivityInstance.end_at >= as_utc(range_start),
        )
        .all()
    )
    known_keys = {row.occurrence_key for row in in_window if row.occurrence_key}
    if expected_keys:
        # Overridden rows may have moved out of the window but still own their key
        known_keys.update(
            key
            for (key,) in db.query(models.ActivityInstance.occurrence_key).filter(
                models.ActivityInstance.series_id == series.id,
                models.ActivityInstance.occurrence_key.in_(list(expected_keys)),
            )
        )

    created = 0
    for occurrence in occurrences:
        if occurrence.occurrence_key in known_keys:
            continue
        db.add(
            models.ActivityInstance(
                organization_id=series.organization_id,
                template_id=series.template_id,
                series_id=series.id,
                occurrence_key=occurrence.occurrence_key,
                is_override=False,
                conflict_override=False,
                title=series.title,
                start_at=occurrence.start_at,
                end_at=occurrence.end_at,
                location=normalize_location(series.location),
                checklist=normalize_checklist(series.checklist),
                adaptations_enabled=normalize_adaptations(series.adaptations),
            )
        )
        known_keys.add(occurrence.occurrence_key)
        created += 1

    stale = [
        row for row in in_window
        if not row.is_override and row.occurrence_key and row.occurrence_key not in expected_keys
    ]
    for row in stale:
        db.delete(row)
    db.flush()
    return {"createdCount": created, "deletedCount": len(stale)}


def ensure_series_occurrences_materialized(db: Session, facility_id, range_start: datetime,
                                           range_end: datetime) -> Dict[str, int]:
    series_rows = (
        db.query(models.ActivitySeries)
        .filter(
            models.ActivitySeries.organization_id == facility_id,
            models.ActivitySeries.dtstart <= as_utc(range_end),
            or_(models.ActivitySeries.until.is_(None), models.ActivitySeries.until >= as_utc(range_start)),
        )
        .all()
    )
    created = deleted = 0
    for series in series_rows:
        result = materialize_series_window(db, series, range_start, range_end)
        created += result["createdCount"]
        deleted += result["deletedCount"]
    db.commit()
    return {"seriesCount": len(series_rows), "createdCount": created, "deletedCount": deleted}


def get_calendar_range_activities(db: Session, facility_id, range_start: datetime, range_end: datetime):
    """Return ``(rows, materialized)`` where rows are ``(activity, attendance_count)``."""
    ensure_valid_range(range_start, range_end)
    materialized = ensure_series_occurrences_materialized(db, facility_id, range_start, range_end)

    counts = (
        db.query(models.Attendance.activity_instance_id, func.count(models.Attendance.id).label("n"))
        .group_by(models.Attendance.activity_instance_id)
        .subquery()
    )
    rows = (
        db.query(models.ActivityInstance, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.activity_instance_id == models.ActivityInstance.id)
        .filter(
            models.ActivityInstance.organization_id == facility_id,
            models.ActivityInstance.start_at <= as_utc(range_end),
            models.ActivityInstance.end_at >= as_utc(range_start),
        )
        .order_by(models.ActivityInstance.start_at.asc())
        .all()
    )
    return rows, materialized


def evaluate_warnings(db: Session, facility_id, settings: Dict[str, Any], start_at: datetime,
                      end_at: datetime, location: Optional[str] = None, exclude_activity_id=None):
    policy = warning_policy(settings)
    conflicts = []
    if policy.warn_therapy_overlap:
        conflicts = find_conflicts(
            db,
            facility_id,
            as_utc(start_at),
            as_utc(end_at),
            location=location,
            exclude_activity_id=exclude_activity_id,
            location_scoped=bool(location),
        )
    outside = False
    if policy.warn_outside_business_hours:
        outside = is_outside_business_hours(start_at, end_at, policy.timezone, policy.business_hours)
    return [conflict_summary(conflict) for conflict in conflicts], outside


def _raise_on_warnings(conflicts, outside, *, allow_conflict, allow_outside, conflict_message, outside_message):
    if not allow_conflict and conflicts:
        logger.info("calendar_conflict_rejected: %s conflicts=%s", conflict_message, len(conflicts))
        raise CalendarConflictError(conflict_message, conflicts=conflicts)
    if not allow_outside and outside:
        logger.info("calendar_conflict_rejected: %s", outside_message)
        raise CalendarConflictError(outside_message, conflicts=conflicts, outside_business_hours=True)


def create_activity_with_checks(
    db: Session,
    facility_id,
    settings: Dict[str, Any],
    *,
    title: str,
    start_at: datetime,
    end_at: datetime,
    location: Optional[str] = None,
    checklist: Any = None,
    adaptations_enabled: Any = None,
    template_id=None,
    series_id=None,
    occurrence_key: Optional[str] = None,
    is_override: bool = False,
    allow_conflict_override: bool = False,
    allow_outside_business_hours_override: bool = False,
) -> models.ActivityInstance:
    ensure_valid_range(start_at, end_at)
    location = normalize_location(location)
    conflicts, outside = evaluate_warnings(db, facility_id, settings, start_at, end_at, location)
    _raise_on_warnings(
        conflicts,
        outside,
        allow_conflict=allow_conflict_override,
        allow_outside=allow_outside_business_hours_override,
        conflict_message="Scheduling conflict detected.",
        outside_message="Activity falls outside business hours.",
    )

    activity = models.ActivityInstance(
        organization_id=facility_id,
        template_id=template_id,
        series_id=series_id,
        occurrence_key=occurrence_key,
        is_override=bool(is_override),
        conflict_override=bool(allow_conflict_override or allow_outside_business_hours_override),
        title=title,
        start_at=as_utc(start_at),
        end_at=as_utc(end_at),
        location=location,
        checklist=normalize_checklist(checklist),
        adaptations_enabled=normalize_adaptations(adaptations_enabled),
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


def get_activity(db: Session, facility_id, activity_id) -> models.ActivityInstance:
    activity = (
        db.query(models.ActivityInstance)
        .filter(models.ActivityInstance.id == activity_id, models.ActivityInstance.organization_id == facility_id)
        .first()
    )
    if not activity:
        raise NotFoundError("Activity not found.")
    return activity


def update_activity_with_checks(
    db: Session,
    facility_id,
    settings: Dict[str, Any],
    activity_id,
    *,
    title: Optional[str] = None,
    start_at: Optional[datetime] = None,
    end_at: Optional[datetime] = None,
    location: Optional[str] = None,
    checklist: Any = _UNSET,
    adaptations_enabled: Any = _UNSET,
    force_instance_override: bool = False,
    allow_conflict_override: bool = False,
    allow_outside_business_hours_override: bool = False,
) -> models.ActivityInstance:
    existing = get_activity(db, facility_id, activity_id)
    next_start = as_utc(start_at or existing.start_at)
    next_end = as_utc(end_at or existing.end_at)
    next_location = normalize_location(location if location is not None else existing.location)
    ensure_valid_range(next_start, next_end)

    conflicts, outside = evaluate_warnings(
        db, facility_id, settings, next_start, next_end, next_location, exclude_activity_id=existing.id
    )
    _raise_on_warnings(
        conflicts,
        outside,
        allow_conflict=allow_conflict_override,
        allow_outside=allow_outside_business_hours_override,
        conflict_message="Scheduling conflict detected.",
        outside_message="Activity falls outside business hours.",
    )

    existing.title = title or existing.title
    existing.start_at = next_start
    existing.end_at = next_end
    existing.location = next_location
    if checklist is not _UNSET:
        existing.checklist = normalize_checklist(checklist)
    if adaptations_enabled is not _UNSET:
        existing.adaptations_enabled = normalize_adaptations(adaptations_enabled)
    existing.is_override = bool(force_instance_override or existing.is_override)
    existing.conflict_override = bool(
        allow_conflict_override or allow_outside_business_hours_override or existing.conflict_override
    )
    db.commit()
    db.refresh(existing)
    return existing


def move_activity_with_checks(db: Session, facility_id, settings: Dict[str, Any], activity_id, *,
                              start_at: datetime, end_at: datetime, location: Optional[str] = None,
                              allow_conflict_override: bool = False,
                              allow_outside_business_hours_override: bool = False) -> models.ActivityInstance:
    return update_activity_with_checks(
        db,
        facility_id,
        settings,
        activity_id,
        start_at=start_at,
        end_at=end_at,
        location=location,
        force_instance_override=True,
        allow_conflict_override=allow_conflict_override,
        allow_outside_business_hours_override=allow_outside_business_hours_override,
    )


def create_series_with_checks(
    db: Session,
    facility_id,
    settings: Dict[str, Any],
    *,
    title: str,
    dtstart: datetime,
    duration_min: float,
    rrule: str,
    location: Optional[str] = None,
    template_id=None,
    until: Optional[datetime] = None,
    timezone: Optional[str] = None,
    checklist: Any = None,
    adaptations: Any = None,
    exdates: Optional[List[str]] = None,
    allow_conflict_override: bool = False,
    allow_outside_business_hours_override: bool = False,
    materialize_horizon_days: Optional[int] = None,
):
    if duration_min is None or duration_min <= 0:
        raise ValidationError("Duration must be a positive number of minutes.")

    dtstart = as_utc(dtstart)
    first_end = dtstart + timedelta(minutes=duration_min)
    ensure_valid_range(dtstart, first_end)

    conflicts, outside = evaluate_warnings(db, facility_id, settings, dtstart, first_end, location)
    _raise_on_warnings(
        conflicts,
        outside,
        allow_conflict=allow_conflict_override,
        allow_outside=allow_outside_business_hours_override,
        conflict_message="Series start conflicts with existing activity.",
        outside_message="Series start is outside business hours.",
    )

    series = models.ActivitySeries(
        organization_id=facility_id,
        title=title,
        location=normalize_location(location),
        template_id=template_id,
        dtstart=dtstart,
        duration_min=int(duration_min),
        rrule=rrule,
        until=as_utc(until),
        timezone=timezone or settings["timezone"],
        checklist=normalize_checklist(checklist),
        adaptations=normalize_adaptations(adaptations),
        exdates=list(exdates or []),
    )
    db.add(series)
    db.flush()

    range_start = start_of_zoned_day(series.dtstart, series.timezone)
    range_end = add_zoned_days(range_start, series.timezone,
                               materialize_horizon_days or DEFAULT_MATERIALIZATION_HORIZON_DAYS)
    materialized = materialize_series_window(db, series, range_start, range_end)
    db.commit()
    db.refresh(series)
    return series, materialized


def get_series(db: Session, facility_id, series_id) -> models.ActivitySeries:
    series = (
        db.query(models.ActivitySeries)
        .filter(models.ActivitySeries.id == series_id, models.ActivitySeries.organization_id == facility_id)
        .first()
    )
    if not series:
        raise NotFoundError("Activity series not found.")
    return series


def update_series_and_refresh(db: Session, facility_id, series_id, data: Dict[str, Any],
                              from_date: Optional[datetime] = None,
                              materialize_horizon_days: Optional[int] = None):
    """Apply ``data`` (only keys present are changed) and re-materialize.

    Recognized keys: title, location, templateId, dtstart, durationMin, rrule,
    until, timezone, checklist, adaptations.
    """
    series = get_series(db, facility_id, series_id)

    if data.get("title"):
        series.title = data["title"]
    if "location" in data:
        series.location = normalize_location(data["location"])
    if "templateId" in data:
        series.template_id = data["templateId"]
    if data.get("dtstart"):
        series.dtstart = as_utc(data["dtstart"])
    if data.get("durationMin"):
        series.duration_min = int(data["durationMin"])
    if data.get("rrule"):
        series.rrule = data["rrule"]
    if "until" in data:
        series.until = as_utc(data["until"])
    if data.get("timezone"):
        series.timezone = data["timezone"]
    if "checklist" in data:
        series.checklist = data["checklist"]
    if "adaptations" in data:
        series.adaptations = data["adaptations"]
    db.flush()

    range_start = as_utc(from_date) if from_date else start_of_zoned_day(series.dtstart, series.timezone)
    range_end = add_zoned_days(range_start, series.timezone,
                               materialize_horizon_days or DEFAULT_MATERIALIZATION_HORIZON_DAYS)
    materialized = materialize_series_window(db, series, range_start, range_end)
    db.commit()
    db.refresh(series)
    return series, materialized


def add_series_exdate(db: Session, facility_id, series_id, occurrence_start_at: datetime):
    series = get_series(db, facility_id, series_id)
    occurrence_key = make_occurrence_key(occurrence_start_at)
    exdates = normalize_exdates(series.exdates)
    if occurrence_key not in exdates:
        exdates.append(occurrence_key)
    series.exdates = exdates

    db.query(models.ActivityInstance).filter(
        models.ActivityInstance.series_id == series.id,
        models.ActivityInstance.occurrence_key == occurrence_key,
        models.ActivityInstance.is_override.is_(False),
    ).delete(synchronize_session=False)
    db.commit()
    db.refresh(series)
    return series, occurrence_key


def delete_activity(db: Session, facility_id, activity_id) -> Dict[str, Any]:
    """Delete one activity; a generated series occurrence is also excluded from its series."""
    existing = get_activity(db, facility_id, activity_id)
    activity_key = str(existing.id)
    skipped = False
    db.query(models.Attendance).filter(models.Attendance.activity_instance_id == existing.id).delete(
        synchronize_session=False
    )
    if existing.series_id and existing.occurrence_key and not existing.is_override:
        occurrence_start = parse_iso_datetime(existing.occurrence_key)
        if occurrence_start is not None:
            add_series_exdate(db, facility_id, existing.series_id, occurrence_start)
            skipped = True

    db.query(models.ActivityInstance).filter(
        models.ActivityInstance.id == activity_id,
        models.ActivityInstance.organization_id == facility_id,
    ).delete(synchronize_session=False)
    db.commit()
    return {"deleted": True, "skippedSeriesOccurrence": skipped, "id": activity_key}
