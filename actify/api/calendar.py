"""
Calendar API endpoints.

Range listing with series materialization, single activities, recurring
series and per-occurrence exclusions.
"""
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import calendar as calendar_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, ValidationError, to_http_exception
from actify.services import pdf_reports
from actify.services import reports as report_service
from actify.services.calendar import service as calendar_service
from actify.services.calendar.recurrence import build_rrule
from actify.utils.timezones import iso_utc, parse_iso_datetime, zoned_date_key

router = APIRouter(prefix="/calendar", tags=["calendar"])

calendar_reader = module_context("calendar")
calendar_writer = module_writer("calendar", "calendar data")


def _optional_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationError("Invalid template id.")


@router.get("/range")
def get_range(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    view: Optional[str] = Query(default=None, pattern="^(week|month|day)$"),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_reader),
):
    range_start = parse_iso_datetime(start)
    if range_start is None:
        raise HTTPException(status_code=400, detail="Invalid start date")
    range_end = parse_iso_datetime(end)
    if range_end is None:
        raise HTTPException(status_code=400, detail="Invalid end date")

    try:
        rows, materialized = calendar_service.get_calendar_range_activities(
            db, ctx.facility_id, range_start, range_end
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    return {
        "range": {"start": iso_utc(range_start), "end": iso_utc(range_end), "view": view or "week"},
        "materialized": materialized,
        "activities": [
            {
                "id": str(activity.id),
                "title": activity.title,
                "startAt": iso_utc(activity.start_at),
                "endAt": iso_utc(activity.end_at),
                "location": activity.location,
                "templateId": str(activity.template_id) if activity.template_id else None,
                "seriesId": str(activity.series_id) if activity.series_id else None,
                "occurrenceKey": activity.occurrence_key,
                "isOverride": bool(activity.is_override),
                "conflictOverride": bool(activity.conflict_override),
                "attendanceCount": int(attendance_count or 0),
                "checklist": activity.checklist or [],
                "adaptationsEnabled": activity.adaptations_enabled,
            }
            for activity, attendance_count in rows
        ],
    }


@router.post("/activities", status_code=status.HTTP_201_CREATED)
def create_activity(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        data = parse_payload(calendar_schemas.ActivityCreate, payload, "Invalid create activity payload.")
        template_id = _optional_uuid(data.templateId)
        if data.recurrence:
            recurrence = data.recurrence
            duration = round((data.endAt - data.startAt).total_seconds() / 60)
            series, materialized = calendar_service.create_series_with_checks(
                db,
                ctx.facility_id,
                ctx.settings,
                title=data.title,
                location=data.location,
                template_id=template_id,
                dtstart=data.startAt,
                duration_min=duration,
                rrule=build_rrule(recurrence.freq, recurrence.interval, recurrence.byDay,
                                  recurrence.count, recurrence.until),
                until=recurrence.until,
                timezone=recurrence.timezone or ctx.timezone,
                checklist=data.checklist,
                adaptations=data.adaptationsEnabled,
                allow_conflict_override=data.allowConflictOverride,
                allow_outside_business_hours_override=data.allowOutsideBusinessHoursOverride,
            )
            log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.SERIES_CREATE,
                                target_type="activity_series", target_id=series.id,
                                metadata={"title": series.title, "rrule": series.rrule})
            return {
                "mode": "series",
                "series": calendar_service.serialize_series(series),
                "materialized": materialized,
            }

        activity = calendar_service.create_activity_with_checks(
            db,
            ctx.facility_id,
            ctx.settings,
            title=data.title,
            start_at=data.startAt,
            end_at=data.endAt,
            location=data.location,
            template_id=template_id,
            checklist=data.checklist,
            adaptations_enabled=data.adaptationsEnabled,
            allow_conflict_override=data.allowConflictOverride,
            allow_outside_business_hours_override=data.allowOutsideBusinessHoursOverride,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.ACTIVITY_CREATE,
                        target_type="activity", target_id=activity.id, metadata={"title": activity.title})
    return {"mode": "single", "activity": calendar_service.serialize_activity(activity)}


@router.patch("/activities/{activity_id}")
def update_activity(
    activity_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        data = parse_payload(calendar_schemas.ActivityUpdate, payload, "Invalid update payload.")
        if data.scope == "series":
            raise ValidationError("Use /calendar/series/{id} to edit a series.")
        fields = data.model_fields_set
        extra = {}
        if "checklist" in fields:
            extra["checklist"] = data.checklist
        if "adaptationsEnabled" in fields:
            extra["adaptations_enabled"] = data.adaptationsEnabled
        activity = calendar_service.update_activity_with_checks(
            db,
            ctx.facility_id,
            ctx.settings,
            activity_id,
            title=data.title,
            start_at=data.startAt,
            end_at=data.endAt,
            location=data.location,
            force_instance_override=True,
            allow_conflict_override=data.allowConflictOverride,
            allow_outside_business_hours_override=data.allowOutsideBusinessHoursOverride,
            **extra,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.ACTIVITY_UPDATE,
                        target_type="activity", target_id=activity.id)
    return {"activity": calendar_service.serialize_activity(activity)}


@router.post("/activities/{activity_id}/move")
def move_activity(
    activity_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        data = parse_payload(calendar_schemas.ActivityMove, payload, "Invalid move payload.")
        activity = calendar_service.move_activity_with_checks(
            db,
            ctx.facility_id,
            ctx.settings,
            activity_id,
            start_at=data.startAt,
            end_at=data.endAt,
            location=data.location,
            allow_conflict_override=data.allowConflictOverride,
            allow_outside_business_hours_override=data.allowOutsideBusinessHoursOverride,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.ACTIVITY_UPDATE,
                        target_type="activity", target_id=activity.id, metadata={"moved": True})
    return {"moved": True, "activity": calendar_service.serialize_activity(activity)}


@router.delete("/activities/{activity_id}")
def delete_activity(
    activity_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        result = calendar_service.delete_activity(db, ctx.facility_id, activity_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.ACTIVITY_DELETE,
                        target_type="activity", target_id=activity_id,
                        metadata={"skippedSeriesOccurrence": result["skippedSeriesOccurrence"]})
    return result


@router.patch("/series/{series_id}")
def update_series(
    series_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        data = parse_payload(calendar_schemas.SeriesUpdate, payload, "Invalid series update payload.")
        changes = {
            key: getattr(data, key)
            for key in ("title", "location", "templateId", "dtstart", "durationMin", "rrule", "until",
                        "timezone", "checklist", "adaptations")
            if key in data.model_fields_set
        }
        if "templateId" in changes:
            changes["templateId"] = _optional_uuid(changes["templateId"])
        series, materialized = calendar_service.update_series_and_refresh(
            db,
            ctx.facility_id,
            series_id,
            changes,
            from_date=data.fromDate,
            materialize_horizon_days=data.materializeHorizonDays,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.SERIES_UPDATE,
                        target_type="activity_series", target_id=series.id,
                        metadata={"fields": sorted(changes)})
    return {
        "scope": data.scope or "series",
        "series": calendar_service.serialize_series(series),
        "materialized": materialized,
    }


@router.post("/series/{series_id}/exdate")
def add_exdate(
    series_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_writer),
):
    try:
        data = parse_payload(calendar_schemas.SeriesExdate, payload, "Invalid exdate payload.")
        series, occurrence_key = calendar_service.add_series_exdate(
            db, ctx.facility_id, series_id, data.occurrenceStartAt
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.SERIES_EXDATE,
                        target_type="activity_series", target_id=series.id,
                        metadata={"occurrenceKey": occurrence_key})
    return {
        "skipped": True,
        "occurrenceKey": occurrence_key,
        "seriesId": str(series.id),
        "exdatesCount": len(series.exdates or []),
    }


@router.get("/export/pdf")
def export_schedule_pdf(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    preview: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(calendar_reader),
):
    """Printable schedule; ``start``/``end`` accept date keys or ISO datetimes (default: this week)."""
    window = report_service.resolve_schedule_range(start, end, ctx.timezone)
    if window is None:
        raise HTTPException(status_code=400, detail="Invalid export range")
    range_start, range_end = window

    try:
        rows, _ = calendar_service.get_calendar_range_activities(
            db, ctx.facility_id, range_start, range_end - timedelta(milliseconds=1)
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    days = report_service.build_schedule_days([activity for activity, _ in rows], range_start, range_end,
                                              ctx.timezone)
    label = report_service.schedule_range_label(range_start, range_end, ctx.timezone)
    pdf = pdf_reports.render_calendar_schedule_pdf(days, ctx.facility.name, label, ctx.timezone)
    disposition = "inline" if preview == "1" else "attachment"
    filename = f"activity-calendar-{zoned_date_key(range_start, ctx.timezone)}.pdf"
    return Response(content=pdf, media_type="application/pdf",
                    headers={"Content-Disposition": f'{disposition}; filename="{filename}"'})
