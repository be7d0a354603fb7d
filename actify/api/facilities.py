"""
Facilities API endpoints.

Manage facilities and their staff memberships with owner/admin enforcement,
last-owner protection and audited lifecycle actions.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from actify.api.auth import get_or_create_user
from actify.api.deps import get_current_user_context
from actify.api.permissions import can_manage_org, is_member_of_org
from actify.audit import AuditAction, AuditStatus, log, log_member
from actify.db import crud, models, schemas
from actify.db.database import get_db
from actify.services.notification_service import NotificationService
from actify.utils.role_permissions import ROLE_OWNER, validate_role
from actify.utils.timezones import resolve_time_zone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/facilities", tags=["facilities"])


def _facility_out(facility: models.Organization) -> dict:
    return {
        "id": str(facility.id),
        "name": facility.name,
        "slug": facility.slug,
        "timezone": facility.timezone,
        "is_active": facility.is_active,
    }


def _load_facility(db: Session, facility_id: uuid.UUID) -> models.Organization:
    facility = crud.get_facility(db, facility_id)
    if not facility:
        raise HTTPException(status_code=404, detail="Facility not found")
    return facility


def _require_manage(facility_id: uuid.UUID, current_user: dict) -> None:
    if not can_manage_org(facility_id, current_user):
        raise HTTPException(status_code=403, detail="Forbidden")


def _checked_role(raw) -> str:
    try:
        return validate_role(raw)
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid role")


def _actor_name(user: models.User) -> str:
    return user.display_name or user.email


@router.get("")
def list_facilities(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """List facilities where the user has a membership (facility switcher)."""
    _, current_user = user_context
    roles = {m["organization_id"]: m["role"] for m in current_user.get("memberships", [])}
    facilities = crud.get_facilities_for_ids(db, [uuid.UUID(fid) for fid in roles])
    return [{**_facility_out(f), "role": roles.get(str(f.id))} for f in facilities]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_facility(
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    name = (payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=422, detail="Facility name is required")
    slug = (payload.get("slug") or "").strip() or None

    user, _ = user_context
    if crud.get_facility_by_name(db, name):
        raise HTTPException(status_code=409, detail="Facility name already exists")

    facility = crud.create_facility(
        db, schemas.FacilityCreate(name=name, slug=slug, timezone=payload.get("timezone")), user.id
    )
    log(
        db,
        action=AuditAction.ORGANIZATION_CREATE,
        status=AuditStatus.SUCCESS,
        target_type="organization",
        target_id=facility.id,
        actor_user_id=user.id,
        organization_id=facility.id,
    )
    logger.info("facility_created: facility=%s owner=%s", facility.id, user.id)
    return _facility_out(facility)


@router.get("/{facility_id}")
def get_facility(
    facility_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _, current_user = user_context
    facility = _load_facility(db, facility_id)
    if not is_member_of_org(facility_id, current_user):
        raise HTTPException(status_code=403, detail="Forbidden")
    return _facility_out(facility)


@router.put("/{facility_id}")
def update_facility(
    facility_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    facility = _load_facility(db, facility_id)
    _require_manage(facility_id, current_user)

    old_data = _facility_out(facility)
    new_name = (payload.get("name") or "").strip()
    if new_name and new_name != facility.name:
        if crud.get_facility_by_name(db, new_name, exclude_id=facility_id):
            raise HTTPException(status_code=409, detail="Facility name already exists")
        facility.name = new_name
    if payload.get("timezone"):
        facility.timezone = resolve_time_zone(payload["timezone"])
    if payload.get("is_active") is not None:
        facility.is_active = bool(payload["is_active"])

    new_data = _facility_out(facility)
    if new_data != old_data:
        db.commit()
        db.refresh(facility)
        log(
            db,
            action=AuditAction.ORGANIZATION_UPDATE,
            target_type="organization",
            target_id=facility.id,
            actor_user_id=user.id,
            organization_id=facility.id,
            metadata={"old_data": old_data, "new_data": new_data},
        )
    return _facility_out(facility)


@router.delete("/{facility_id}")
def delete_facility(
    facility_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    facility = _load_facility(db, facility_id)
    _require_manage(facility_id, current_user)

    # Audit before the row goes away; the audit row keeps the facility id only
    log(
        db,
        action=AuditAction.ORGANIZATION_DELETE,
        target_type="organization",
        target_id=facility_id,
        actor_user_id=user.id,
        metadata={"name": facility.name},
    )
    crud.delete_facility(db, facility)
    return {"status": "deleted"}


@router.get("/{facility_id}/members")
def list_members(
    facility_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _, current_user = user_context
    _load_facility(db, facility_id)
    if not is_member_of_org(facility_id, current_user):
        raise HTTPException(status_code=403, detail="Forbidden")

    return [
        schemas.FacilityMember(
            user_id=u.id,
            email=u.email,
            display_name=u.display_name,
            role=m.role,
            can_read=bool(m.can_read),
            can_write=bool(m.can_write),
        ).model_dump(mode="json")
        for m, u in crud.get_members(db, facility_id)
    ]


@router.post("/{facility_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    facility_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    facility = _load_facility(db, facility_id)
    _require_manage(facility_id, current_user)

    email = (payload.get("email") or "").strip().lower()
    if not email:
        raise HTTPException(status_code=422, detail="Email is required")
    role = _checked_role(payload.get("role") or "viewer")

    member_user = get_or_create_user(db, email=email)
    if crud.get_membership(db, facility_id, member_user.id):
        raise HTTPException(status_code=409, detail="User already a member")

    crud.add_member(db, facility_id, member_user.id, role)
    log_member(db, actor_user_id=user.id, organization_id=facility_id, member_user_id=member_user.id,
               action=AuditAction.MEMBER_ADD, role=role)

    try:
        NotificationService(db).notify_membership_added(
            user_id=member_user.id,
            facility_name=facility.name,
            role=role,
            added_by_name=_actor_name(user),
            facility_id=facility.id,
        )
    except Exception as exc:
        db.rollback()
        logger.error("membership_notification_failed: user=%s error=%s", member_user.id, exc)

    return {"status": "added", "user_id": str(member_user.id), "role": role}


@router.put("/{facility_id}/members/{member_user_id}")
def update_member(
    facility_id: uuid.UUID,
    member_user_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    facility = _load_facility(db, facility_id)
    _require_manage(facility_id, current_user)

    membership = crud.get_membership(db, facility_id, member_user_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Membership not found")

    new_role = _checked_role(payload.get("role"))
    old_role = membership.role
    if old_role == new_role:
        return {"status": "unchanged", "role": new_role}
    if old_role == ROLE_OWNER and crud.count_owners(db, facility_id) <= 1:
        raise HTTPException(status_code=400, detail="Cannot demote the last owner")

    crud.set_member_role(db, membership, new_role)
    log(
        db,
        action=AuditAction.MEMBER_ROLE_CHANGE,
        target_type="user",
        target_id=member_user_id,
        actor_user_id=user.id,
        organization_id=facility_id,
        metadata={"old_role": old_role, "new_role": new_role},
    )

    try:
        NotificationService(db).notify_role_changed(
            user_id=member_user_id,
            facility_name=facility.name,
            old_role=old_role,
            new_role=new_role,
            changed_by_name=_actor_name(user),
            facility_id=facility.id,
        )
    except Exception as exc:
        db.rollback()
        logger.error("role_change_notification_failed: user=%s error=%s", member_user_id, exc)

    return {"status": "updated", "role": new_role}


@router.delete("/{facility_id}/members/{member_user_id}")
def remove_member(
    facility_id: uuid.UUID,
    member_user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    facility = _load_facility(db, facility_id)
    _require_manage(facility_id, current_user)

    membership = crud.get_membership(db, facility_id, member_user_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Membership not found")
    if membership.role == ROLE_OWNER and crud.count_owners(db, facility_id) <= 1:
        raise HTTPException(status_code=400, detail="Cannot remove the last owner")

    role = membership.role
    crud.remove_member(db, membership)
    log_member(db, actor_user_id=user.id, organization_id=facility_id, member_user_id=member_user_id,
               action=AuditAction.MEMBER_REMOVE, role=role)

    try:
        NotificationService(db).notify_membership_removed(
            user_id=member_user_id,
            facility_name=facility.name,
            removed_by_name=_actor_name(user),
        )
    except Exception as exc:
        db.rollback()
        logger.error("membership_notification_failed: user=%s error=%s", member_user_id, exc)

    return {"status": "removed"}
