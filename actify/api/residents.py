"""
Resident roster endpoints.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, ensure_write, get_facility_context
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import residents as resident_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import residents as resident_service

router = APIRouter(prefix="/residents", tags=["residents"])


def residents_writer(ctx: FacilityContext = Depends(get_facility_context)) -> FacilityContext:
    ensure_write(ctx, "residents")
    return ctx


@router.get("")
def list_residents(
    archived: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(get_facility_context),
):
    residents = resident_service.list_residents(db, ctx.facility_id, archived=archived == "true")
    return {"residents": resident_service.serialize_residents(db, residents)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_resident(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(residents_writer),
):
    try:
        data = parse_payload(resident_schemas.ResidentCreate, payload, "Invalid resident payload.")
        resident = resident_service.create_resident(
            db,
            ctx.facility_id,
            first_name=data.firstName,
            last_name=data.lastName,
            room=data.room,
            status=data.status,
            birth_date=data.birthDate,
            preferences=data.preferences,
            safety_notes=data.safetyNotes,
            tags=data.tags,
            follow_up_flag=data.followUpFlag,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.RESIDENT_CREATE,
                        target_type="resident", target_id=resident.id, metadata={"room": resident.room})
    return {"resident": resident_service.serialize_residents(db, [resident])[0]}


@router.post("/import")
def import_residents(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(residents_writer),
):
    try:
        data = parse_payload(resident_schemas.ResidentImport, payload, "Invalid import payload.")
        result = resident_service.import_residents(db, ctx.facility_id, [row.model_dump() for row in data.rows])
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.RESIDENT_IMPORT,
                        target_type="facility", target_id=ctx.facility_id, metadata=result["summary"])
    return {
        "summary": result["summary"],
        "residents": resident_service.serialize_residents(db, result["residents"]),
    }


@router.patch("/{resident_id}")
def update_resident(
    resident_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(residents_writer),
):
    try:
        data = parse_payload(resident_schemas.ResidentUpdate, payload, "Invalid resident update payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set}
        resident = resident_service.update_resident(db, ctx.facility_id, resident_id, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.RESIDENT_UPDATE,
                        target_type="resident", target_id=resident.id, metadata={"fields": sorted(changes)})
    return {"resident": resident_service.serialize_residents(db, [resident])[0]}


@router.post("/{resident_id}/archive")
def archive_resident(
    resident_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(residents_writer),
):
    try:
        resident = resident_service.archive_resident(db, ctx.facility_id, resident_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.RESIDENT_ARCHIVE,
                        target_type="resident", target_id=resident.id)
    return {"resident": resident_service.serialize_residents(db, [resident])[0]}
