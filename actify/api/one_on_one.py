"""
Daily 1:1 queue endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import queue as queue_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import one_on_one_queue as queue_service

router = APIRouter(prefix="/oneonone/queue", tags=["one-on-one"])

queue_reader = module_context("notes")
queue_writer = module_writer("notes", "1:1 queue data")


@router.get("")
def get_queue(
    date: Optional[str] = Query(default=None),
    queueSize: Optional[float] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(queue_reader),
):
    try:
        snapshot = queue_service.get_queue_snapshot(db, ctx.facility_id, ctx.timezone, date, queueSize)
    except ActifyError as exc:
        raise to_http_exception(exc)
    return {"snapshot": snapshot}


@router.post("/regenerate")
def regenerate_queue(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(queue_writer),
):
    try:
        data = parse_payload(queue_schemas.QueueRegenerate, payload, "Invalid regenerate payload.")
        snapshot = queue_service.regenerate_queue_snapshot(
            db,
            ctx.facility_id,
            ctx.timezone,
            date_key=data.date,
            queue_size=data.queueSize,
            missing_this_month_only=data.missingThisMonthOnly,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.QUEUE_REGENERATE,
                        target_type="one_on_one_queue", metadata={
                            "date": snapshot["dateKey"],
                            "queueSize": snapshot["queueSize"],
                            "missingThisMonthOnly": data.missingThisMonthOnly,
                        })
    return {"snapshot": snapshot}


@router.post("/complete")
def complete_queue_item(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(queue_writer),
):
    try:
        data = parse_payload(queue_schemas.QueueItemAction, payload, "Invalid complete payload.")
        snapshot = queue_service.complete_queue_item(db, ctx.facility_id, data.queueItemId, ctx.timezone)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.QUEUE_COMPLETE,
                        target_type="one_on_one_queue", target_id=data.queueItemId)
    return {"snapshot": snapshot}


@router.post("/skip")
def skip_queue_item(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(queue_writer),
):
    try:
        data = parse_payload(queue_schemas.QueueSkip, payload, "Invalid skip payload.")
        snapshot = queue_service.skip_queue_item(db, ctx.facility_id, data.queueItemId, data.skipReason,
                                                 ctx.timezone)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.QUEUE_SKIP,
                        target_type="one_on_one_queue", target_id=data.queueItemId,
                        metadata={"skipReason": data.skipReason})
    return {"snapshot": snapshot}


@router.post("/pin")
def pin_queue_item(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(queue_writer),
):
    try:
        data = parse_payload(queue_schemas.QueueItemAction, payload, "Invalid pin payload.")
        snapshot = queue_service.pin_queue_item_to_tomorrow(db, ctx.facility_id, data.queueItemId, ctx.timezone)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.QUEUE_PIN,
                        target_type="one_on_one_queue", target_id=data.queueItemId)
    return {"snapshot": snapshot}
