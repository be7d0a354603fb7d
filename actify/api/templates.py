"""
Template library endpoints.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import templates as template_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, NotFoundError, to_http_exception
from actify.services import templates as template_service
from actify.utils.timezones import iso_utc, parse_iso_datetime

router = APIRouter(prefix="/templates", tags=["templates"])

templates_reader = module_context("templates")
templates_writer = module_writer("templates", "templates")


def _parse_upsert(payload: dict, message: str):
    data = parse_payload(template_schemas.TemplateUpsert, payload, message)
    if data.type == "activity":
        body = parse_payload(template_schemas.ActivityTemplatePayload, data.payload, message)
    else:
        body = parse_payload(template_schemas.NoteTemplatePayload, data.payload, message)
    return data, body.model_dump()


@router.get("")
def list_templates(
    type: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_reader),
):
    return {"templates": template_service.get_templates_library(db, ctx.facility_id, type)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_template(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_writer),
):
    try:
        data, body = _parse_upsert(payload, "Invalid template payload.")
        template = template_service.create_template(
            db, ctx.facility_id, template_type=data.type, title=data.title,
            category=data.category, tags=data.tags, payload=body,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.TEMPLATE_CREATE,
                        target_type=f"{data.type}_template", target_id=template["id"],
                        metadata={"title": data.title})
    return {"template": template}


@router.post("/use", status_code=status.HTTP_201_CREATED)
def use_template(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_writer),
):
    try:
        data = parse_payload(template_schemas.TemplateUse, payload, "Invalid schedule payload.")
        try:
            template_id = uuid.UUID(data.templateId)
        except ValueError:
            raise NotFoundError("Activity template not found.")
        activity = template_service.use_activity_template(
            db,
            ctx.facility_id,
            template_id,
            parse_iso_datetime(data.startAt),
            parse_iso_datetime(data.endAt),
            data.location,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.TEMPLATE_USE,
                        target_type="activity", target_id=activity.id,
                        metadata={"templateId": str(activity.template_id)})
    return {
        "activity": {
            "id": str(activity.id),
            "startAt": iso_utc(activity.start_at),
            "endAt": iso_utc(activity.end_at),
        }
    }


@router.patch("/{template_id}")
def update_template(
    template_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_writer),
):
    try:
        data, body = _parse_upsert(payload, "Invalid template update payload.")
        template = template_service.update_template(
            db, ctx.facility_id, template_id, template_type=data.type, title=data.title,
            category=data.category, tags=data.tags, payload=body,
        )
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.TEMPLATE_UPDATE,
                        target_type=f"{data.type}_template", target_id=template_id)
    return {"template": template}


@router.delete("/{template_id}")
def delete_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_writer),
):
    try:
        kind = template_service.delete_template(db, ctx.facility_id, template_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.TEMPLATE_DELETE,
                        target_type=f"{kind}_template", target_id=template_id)
    return {"ok": True}


@router.post("/{template_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(templates_writer),
):
    try:
        template = template_service.duplicate_template(db, ctx.facility_id, template_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.TEMPLATE_CREATE,
                        target_type=f"{template['type']}_template", target_id=template["id"],
                        metadata={"duplicatedFrom": str(template_id)})
    return {"template": template}
