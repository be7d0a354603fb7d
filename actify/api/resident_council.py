"""
Resident council endpoints.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import resident_council as council_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import pdf_reports
from actify.services import resident_council as council_service

router = APIRouter(prefix="/resident-council", tags=["resident-council"])

council_reader = module_context("residentCouncil")
council_writer = module_writer("residentCouncil", "resident council data")


def _query_dict(raw: dict) -> dict:
    return {key: value for key, value in raw.items() if value is not None}


@router.get("")
def get_snapshot(
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    snapshot = council_service.get_snapshot(db, ctx.facility_id)
    snapshot["owners"] = council_service.list_owners(db, ctx.facility_id)
    return snapshot


@router.get("/overview")
def get_overview(
    month: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    return council_service.get_overview(db, ctx.facility_id, ctx.timezone, month)


@router.get("/meetings")
def list_meetings(
    page: Optional[str] = Query(default=None),
    pageSize: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    hasOpenActionItems: Optional[str] = Query(default=None),
    department: Optional[str] = Query(default=None),
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = Query(default=None),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    raw = {
        "page": page, "pageSize": pageSize, "search": search, "status": status_filter,
        "hasOpenActionItems": hasOpenActionItems, "department": department, "from": from_, "to": to, "sort": sort,
    }
    try:
        query = parse_payload(council_schemas.MeetingsQuery, _query_dict(raw), "Invalid meetings query.")
    except ActifyError as exc:
        raise to_http_exception(exc)
    return council_service.list_meetings(
        db,
        ctx.facility_id,
        ctx.timezone,
        page=query.page,
        page_size=query.pageSize,
        search=query.search,
        status=query.status,
        has_open_action_items=query.hasOpenActionItems,
        department=query.department,
        from_key=query.from_,
        to_key=query.to,
        sort=query.sort,
    )


@router.post("/meetings", status_code=status.HTTP_201_CREATED)
def create_meeting(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.MeetingCreate, payload, "Invalid meeting payload.")
        meeting = council_service.create_meeting(db, ctx.facility_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_MEETING_CREATE,
                        target_type="resident_council_meeting", target_id=meeting.id,
                        metadata={"attendanceCount": meeting.attendance_count})
    return {"meeting": council_service.get_meeting_detail(db, ctx.facility_id, meeting.id)}


@router.get("/meetings/{meeting_id}")
def get_meeting(
    meeting_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    try:
        return {"meeting": council_service.get_meeting_detail(db, ctx.facility_id, meeting_id)}
    except ActifyError as exc:
        raise to_http_exception(exc)


@router.patch("/meetings/{meeting_id}")
def update_meeting_minutes(
    meeting_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.MeetingMinutes, payload, "Invalid minutes payload.")
        meeting = council_service.update_meeting_minutes(db, ctx.facility_id, meeting_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_MEETING_UPDATE,
                        target_type="resident_council_meeting", target_id=meeting.id,
                        metadata={"fields": sorted(data.model_fields_set)})
    return {"meeting": council_service.get_meeting_detail(db, ctx.facility_id, meeting.id)}


@router.delete("/meetings/{meeting_id}")
def delete_meeting(
    meeting_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        removed_items = council_service.delete_meeting(db, ctx.facility_id, meeting_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_MEETING_DELETE,
                        target_type="resident_council_meeting", target_id=meeting_id,
                        metadata={"itemsDeleted": removed_items})
    return {"ok": True}


@router.get("/meetings/{meeting_id}/pdf")
def meeting_minutes_pdf(
    meeting_id: uuid.UUID,
    preview: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    try:
        detail = council_service.get_meeting_detail(db, ctx.facility_id, meeting_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    pdf = pdf_reports.render_council_minutes_pdf(detail, ctx.facility.name, ctx.timezone)
    disposition = "inline" if preview == "1" else "attachment"
    filename = f"resident-council-{detail['heldAt'][:10]}.pdf"
    return Response(content=pdf, media_type="application/pdf",
                    headers={"Content-Disposition": f'{disposition}; filename="{filename}"'})


@router.post("/meetings/{meeting_id}/templates", status_code=status.HTTP_201_CREATED)
def apply_template(
    meeting_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.TemplateApply, {**payload, "meetingId": str(meeting_id)},
                             "Invalid template payload.")
        item = council_service.apply_topic_template(db, ctx.facility_id, data.meetingId, data.templateId)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_ITEM_CREATE,
                        target_type="resident_council_item", target_id=item.id,
                        metadata={"source": "template", "templateId": data.templateId})
    return {"item": council_service.serialize_action_item(item, item.meeting)}


@router.get("/actions")
def list_action_items(
    page: Optional[str] = Query(default=None),
    pageSize: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    department: Optional[str] = Query(default=None),
    owner: Optional[str] = Query(default=None),
    meetingId: Optional[str] = Query(default=None),
    sort: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_reader),
):
    raw = {
        "page": page, "pageSize": pageSize, "search": search, "status": status_filter,
        "department": department, "owner": owner, "meetingId": meetingId, "sort": sort,
    }
    try:
        query = parse_payload(council_schemas.ActionItemsQuery, _query_dict(raw), "Invalid action items query.")
    except ActifyError as exc:
        raise to_http_exception(exc)
    return council_service.list_action_items(
        db,
        ctx.facility_id,
        page=query.page,
        page_size=query.pageSize,
        search=query.search,
        status=query.status,
        department=query.department,
        owner=query.owner,
        meeting_id=query.meetingId,
        sort=query.sort,
    )


@router.post("/actions", status_code=status.HTTP_201_CREATED)
def create_action_item(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.ActionItemCreate, payload, "Invalid action item payload.")
        item = council_service.create_action_item(db, ctx.facility_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_ITEM_CREATE,
                        target_type="resident_council_item", target_id=item.id,
                        metadata={"meetingId": str(item.meeting_id), "category": item.category})
    return {"item": council_service.serialize_action_item(item, item.meeting)}


@router.post("/actions/bulk")
def bulk_update_action_items(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.ActionItemBulkUpdate, payload, "Invalid bulk update payload.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    updated = council_service.bulk_update_action_items(
        db, ctx.facility_id, data.itemIds, status=data.status, owner=data.owner, due_date=data.dueDate
    )
    if updated:
        log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_ITEM_UPDATE,
                            target_type="resident_council_item", metadata={
                                "itemIds": [str(item_id) for item_id in data.itemIds],
                                "status": data.status,
                                "owner": data.owner,
                                "dueDate": data.dueDate,
                            })
    return {"ok": True, "updated": updated}


@router.patch("/actions/{item_id}")
def update_action_item(
    item_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        data = parse_payload(council_schemas.ActionItemUpdate, payload, "Invalid action item update payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set}
        item = council_service.update_action_item(db, ctx.facility_id, item_id, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_ITEM_UPDATE,
                        target_type="resident_council_item", target_id=item.id,
                        metadata={"fields": sorted(changes)})
    return {"item": council_service.serialize_action_item(item, item.meeting)}


@router.delete("/actions/{item_id}")
def delete_action_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(council_writer),
):
    try:
        meeting_id = council_service.delete_action_item(db, ctx.facility_id, item_id)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.COUNCIL_ITEM_DELETE,
                        target_type="resident_council_item", target_id=item_id,
                        metadata={"meetingId": str(meeting_id)})
    return {"ok": True}
