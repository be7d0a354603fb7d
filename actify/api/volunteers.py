"""
Volunteer hub endpoints: directory, profiles, shifts, and hour approvals.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import volunteers as volunteer_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import volunteers as volunteer_service

router = APIRouter(prefix="/volunteers", tags=["volunteers"])

volunteer_reader = module_context("volunteers")
volunteer_writer = module_writer("volunteers", "volunteer data")


@router.get("/hub")
def get_hub(
    hoursOffset: Optional[str] = Query(default=None),
    hoursLimit: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_reader),
):
    raw = {"hoursOffset": hoursOffset, "hoursLimit": hoursLimit}
    try:
        query = parse_payload(volunteer_schemas.HubQuery, {k: v for k, v in raw.items() if v is not None},
                              "Invalid volunteers hub query.")
    except ActifyError as exc:
        raise to_http_exception(exc)
    return volunteer_service.get_hub(
        db, ctx.facility_id, ctx.timezone, hours_offset=query.hoursOffset, hours_limit=query.hoursLimit
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_volunteer(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        data = parse_payload(volunteer_schemas.VolunteerCreate, payload, "Invalid volunteer payload.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    volunteer = volunteer_service.create_volunteer(db, ctx.facility_id, data.model_dump())
    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VOLUNTEER_CREATE,
                        target_type="volunteer", target_id=volunteer.id, metadata={"name": volunteer.name})
    return {"volunteer": volunteer_service.serialize_volunteer(volunteer)}


@router.get("/{volunteer_id}/details")
def get_volunteer_details(
    volunteer_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_reader),
):
    try:
        return volunteer_service.get_volunteer_detail(db, ctx.facility_id, volunteer_id, ctx.timezone)
    except ActifyError as exc:
        raise to_http_exception(exc)


@router.patch("/{volunteer_id}")
def update_volunteer(
    volunteer_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        volunteer_service.get_volunteer(db, ctx.facility_id, volunteer_id)
        data = parse_payload(volunteer_schemas.VolunteerUpdate, payload, "Invalid volunteer payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set}
        volunteer = volunteer_service.update_volunteer(db, ctx.facility_id, volunteer_id, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VOLUNTEER_UPDATE,
                        target_type="volunteer", target_id=volunteer.id, metadata={"fields": sorted(changes)})
    return {"volunteer": volunteer_service.serialize_volunteer(volunteer)}


@router.delete("/{volunteer_id}")
def delete_volunteer(
    volunteer_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        volunteer_service.delete_volunteer(db, ctx.facility_id, volunteer_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VOLUNTEER_DELETE,
                        target_type="volunteer", target_id=volunteer_id)
    return {"ok": True}


@router.post("/visits", status_code=status.HTTP_201_CREATED)
def create_visit(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        data = parse_payload(volunteer_schemas.VisitCreate, payload, "Invalid shift payload.")
        visit = volunteer_service.create_visit(db, ctx.facility_id, ctx.user.id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VISIT_CREATE,
                        target_type="volunteer_visit", target_id=visit.id,
                        metadata={"volunteerId": str(visit.volunteer_id)})
    return {"visit": volunteer_service.serialize_visit(visit)}


@router.patch("/visits/{visit_id}")
def update_visit(
    visit_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        volunteer_service.get_visit(db, ctx.facility_id, visit_id)
        data = parse_payload(volunteer_schemas.VisitUpdate, payload, "Invalid visit update payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set if key != "action"}
        visit = volunteer_service.update_visit(db, ctx.facility_id, visit_id, ctx.user.id, data.action, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VISIT_UPDATE,
                        target_type="volunteer_visit", target_id=visit.id, metadata={"action": data.action})
    return {"visit": volunteer_service.serialize_visit(visit)}


@router.delete("/visits/{visit_id}")
def delete_visit(
    visit_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(volunteer_writer),
):
    try:
        volunteer_service.delete_visit(db, ctx.facility_id, visit_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.VISIT_DELETE,
                        target_type="volunteer_visit", target_id=visit_id)
    return {"ok": True}
