"""
Audit logging helpers and enums.

Centralized helpers to persist normalized audit records with consistent
schema; includes convenience wrappers per target type.
"""
from __future__ import annotations
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from actify.db import crud, schemas

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # Facility
    ORGANIZATION_CREATE = "organization_create"
    ORGANIZATION_UPDATE = "organization_update"
    ORGANIZATION_DELETE = "organization_delete"
    SETTINGS_UPDATE = "settings_update"
    # Membership
    MEMBER_ADD = "member_add"
    MEMBER_REMOVE = "member_remove"
    MEMBER_ROLE_CHANGE = "member_role_change"
    # Residents
    RESIDENT_CREATE = "resident_create"
    RESIDENT_UPDATE = "resident_update"
    RESIDENT_ARCHIVE = "resident_archive"
    RESIDENT_IMPORT = "resident_import"
    # Calendar
    ACTIVITY_CREATE = "activity_create"
    ACTIVITY_UPDATE = "activity_update"
    ACTIVITY_DELETE = "activity_delete"
    SERIES_CREATE = "series_create"
    SERIES_UPDATE = "series_update"
    SERIES_EXDATE = "series_exdate"
    # Attendance
    ATTENDANCE_SAVE = "attendance_save"
    # Notes
    NOTE_CREATE = "note_create"
    NOTE_UPDATE = "note_update"
    NOTE_DELETE = "note_delete"
    # Templates
    TEMPLATE_CREATE = "template_create"
    TEMPLATE_UPDATE = "template_update"
    TEMPLATE_DELETE = "template_delete"
    TEMPLATE_USE = "template_use"
    # 1:1 queue
    QUEUE_REGENERATE = "queue_regenerate"
    QUEUE_COMPLETE = "queue_complete"
    QUEUE_SKIP = "queue_skip"
    QUEUE_PIN = "queue_pin"
    # Resident council
    COUNCIL_MEETING_CREATE = "council_meeting_create"
    COUNCIL_MEETING_UPDATE = "council_meeting_update"
    COUNCIL_MEETING_DELETE = "council_meeting_delete"
    COUNCIL_ITEM_CREATE = "council_item_create"
    COUNCIL_ITEM_UPDATE = "council_item_update"
    COUNCIL_ITEM_DELETE = "council_item_delete"
    # Budget & stock
    BUDGET_ITEM_CREATE = "budget_item_create"
    BUDGET_ITEM_UPDATE = "budget_item_update"
    BUDGET_ITEM_DELETE = "budget_item_delete"
    BUDGET_ITEM_ADJUST = "budget_item_adjust"
    BUDGET_CATEGORY_CREATE = "budget_category_create"
    BUDGET_CATEGORY_UPDATE = "budget_category_update"
    BUDGET_CATEGORY_DELETE = "budget_category_delete"
    BUDGET_EXPENSE_CREATE = "budget_expense_create"
    BUDGET_EXPENSE_UPDATE = "budget_expense_update"
    BUDGET_EXPENSE_DELETE = "budget_expense_delete"
    BUDGET_SALE_CREATE = "budget_sale_create"
    # Volunteers
    VOLUNTEER_CREATE = "volunteer_create"
    VOLUNTEER_UPDATE = "volunteer_update"
    VOLUNTEER_DELETE = "volunteer_delete"
    VISIT_CREATE = "visit_create"
    VISIT_UPDATE = "visit_update"
    VISIT_DELETE = "visit_delete"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> schemas.AuditLog:
    """Central audit logging helper."""
    # Persist plain string values, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata or {},
    )
    return crud.create_audit_log(
        db,
        audit_log=audit_log,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
    )


__all__ = ["AuditAction", "AuditStatus", "log"]


def log_facility_change(
    db: Session,
    *,
    facility,
    actor,
    action: AuditAction,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Audit a facility-scoped domain change.

    Audit failures are logged and never fail the request that triggered them.
    """
    try:
        return log(
            db,
            action=action,
            target_type=target_type,
            target_id=target_id,
            actor_user_id=actor.id,
            organization_id=facility.id,
            metadata=metadata,
        )
    except Exception as exc:
        db.rollback()
        logger.warning("audit_write_failed: action=%s target=%s error=%s", action, target_type, exc)
        return None


def log_member(db: Session, *, actor_user_id: uuid.UUID, organization_id: uuid.UUID, member_user_id: uuid.UUID,
               action: AuditAction, role: Optional[str] = None, status: AuditStatus | str = AuditStatus.SUCCESS):
    return log(
        db,
        action=action,
        status=status,
        target_type="user",
        target_id=member_user_id,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata={"role": role} if role else None,
    )


__all__.extend(["log_facility_change", "log_member"])
