"""
Progress note endpoints.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import notes as note_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import notes as note_service
from actify.utils.timezones import parse_iso_datetime

router = APIRouter(prefix="/notes", tags=["notes"])

notes_reader = module_context("notes")
notes_writer = module_writer("notes", "notes")


@router.get("")
def list_notes(
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    residentId: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(notes_reader),
):
    raw = {"from": from_, "to": to, "type": type, "residentId": residentId, "q": q}
    try:
        query = parse_payload(
            note_schemas.NotesQuery,
            {key: value.strip() for key, value in raw.items() if value is not None},
            "Invalid notes query.",
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    # Unparseable dates are ignored rather than rejected.
    return note_service.list_notes(
        db,
        ctx.facility_id,
        date_from=parse_iso_datetime(query.from_) if query.from_ else None,
        date_to=parse_iso_datetime(query.to) if query.to else None,
        note_type=query.type,
        resident_id=query.residentId,
        q=query.q,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_note(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(notes_writer),
):
    try:
        data = parse_payload(note_schemas.NoteBuilderPayload, payload, "Invalid note payload.")
        note = note_service.create_note(db, ctx.facility_id, ctx.user.id, data.model_dump(), ctx.timezone)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.NOTE_CREATE,
                        target_type="progress_note", target_id=note.id,
                        metadata={"residentId": str(note.resident_id), "type": note.type})
    return {"note": note_service.to_notes_list_row(note)}


@router.get("/{note_id}")
def get_note(
    note_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(notes_reader),
):
    try:
        note = note_service.get_note(db, ctx.facility_id, note_id)
    except ActifyError as exc:
        raise to_http_exception(exc)
    return {"note": note_service.to_note_detail(note)}


@router.patch("/{note_id}")
def update_note(
    note_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(notes_writer),
):
    try:
        data = parse_payload(note_schemas.NoteBuilderPayload, payload, "Invalid note update payload.")
        note = note_service.update_note(db, ctx.facility_id, note_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.NOTE_UPDATE,
                        target_type="progress_note", target_id=note.id)
    return {"note": note_service.to_notes_list_row(note)}


@router.delete("/{note_id}")
def delete_note(
    note_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(notes_writer),
):
    try:
        note_service.delete_note(db, ctx.facility_id, note_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.NOTE_DELETE,
                        target_type="progress_note", target_id=note_id)
    return {"ok": True}
