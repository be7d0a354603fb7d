"""
Attendance API endpoints.

Quick-take capture for a day's sessions, session history, per-resident
summaries and the monthly attendance report.
"""
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, ensure_write, get_facility_context
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import attendance as attendance_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import attendance as attendance_service
from actify.utils.module_flags import module_disabled_message, module_enabled
from actify.utils.timezones import parse_month_key

router = APIRouter(prefix="/attendance", tags=["attendance"])


def attendance_reader(ctx: FacilityContext = Depends(get_facility_context)) -> FacilityContext:
    # Attendance rides on calendar sessions, so both modules must be on.
    if not (module_enabled(ctx.module_flags, "calendar") and module_enabled(ctx.module_flags, "attendanceTracking")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail=module_disabled_message("attendanceTracking"))
    return ctx


def attendance_writer(ctx: FacilityContext = Depends(attendance_reader)) -> FacilityContext:
    ensure_write(ctx, "attendance")
    return ctx


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/quick-take")
def get_quick_take(
    date: Optional[str] = Query(default=None),
    sessionId: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_reader),
):
    return attendance_service.get_attendance_quick_take_payload(
        db, ctx.facility_id, ctx.timezone, date_key=date, session_id=sessionId
    )


@router.post("/quick-take")
def save_quick_take(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_writer),
):
    try:
        data = parse_payload(attendance_schemas.AttendanceSave, payload, "Invalid attendance payload.")
        result = attendance_service.save_attendance_batch(
            db,
            ctx.facility_id,
            data.sessionId,
            [entry.model_dump() for entry in data.entries],
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.ATTENDANCE_SAVE,
                        target_type="activity", target_id=data.sessionId, metadata=result)
    return {"ok": True, "result": result}


@router.get("/sessions")
def list_sessions(
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    activity: Optional[str] = Query(default=None),
    location: Optional[str] = Query(default=None),
    hasNotes: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_reader),
):
    raw = {"from": from_, "to": to, "activity": activity, "location": location, "hasNotes": hasNotes}
    try:
        query = parse_payload(
            attendance_schemas.AttendanceHistoryQuery,
            {key: value for key, value in raw.items() if value is not None},
            "Invalid sessions filter payload.",
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    return attendance_service.get_attendance_sessions_history(
        db,
        ctx.facility_id,
        ctx.timezone,
        from_key=query.from_,
        to_key=query.to,
        activity=query.activity,
        location=query.location,
        has_notes=query.hasNotes,
    )


@router.get("/residents/{resident_id}")
def get_resident_summary(
    resident_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_reader),
):
    summary = attendance_service.get_resident_attendance_summary(db, ctx.facility_id, resident_id, ctx.timezone)
    if summary is None:
        raise HTTPException(status_code=404, detail="Resident not found.")
    return summary


@router.get("/residents/{resident_id}/export")
def export_resident_summary(
    resident_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_reader),
):
    summary = attendance_service.get_resident_attendance_summary(db, ctx.facility_id, resident_id, ctx.timezone)
    if summary is None:
        raise HTTPException(status_code=404, detail="Resident not found.")
    return _csv_response(
        attendance_service.resident_summary_csv(summary),
        attendance_service.resident_export_filename(summary["resident"]["name"]),
    )


@router.get("/reports/monthly")
def monthly_report(
    month: Optional[str] = Query(default=None),
    format: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(attendance_reader),
):
    raw = {"month": month, "format": format}
    try:
        query = parse_payload(
            attendance_schemas.MonthlyReportQuery,
            {key: value for key, value in raw.items() if value is not None},
            "Invalid report query.",
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    _, month_start, next_month = parse_month_key(query.month, ctx.timezone)
    report = attendance_service.get_monthly_attendance_report(
        db, ctx.facility_id, ctx.timezone, month_start, next_month - timedelta(milliseconds=1)
    )
    if query.format == "csv":
        return _csv_response(
            attendance_service.monthly_report_csv(report),
            f"attendance-summary-{report['monthKey']}.csv",
        )
    return report
