"""
Audit log API endpoints.

Facility owners/admins read their facility's trail; superadmins may read
across facilities.
"""
from datetime import datetime
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from actify.api.deps import get_current_user_context
from actify.api.permissions import can_manage_org
from actify.db import crud, schemas
from actify.db.database import get_db

router = APIRouter(prefix="/audits", tags=["audits"])


@router.get("", response_model=List[schemas.AuditLog])
def list_audit_logs(
    facility_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    status: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    _, current_user = user_context

    if facility_id:
        if not can_manage_org(facility_id, current_user):
            raise HTTPException(status_code=403, detail="Forbidden")
    elif not current_user.get("is_superadmin"):
        raise HTTPException(status_code=403, detail="Forbidden, facility_id is required for non-superadmins")

    audit_logs = crud.get_audit_logs(
        db,
        organization_id=facility_id,
        user_id=user_id,
        action_type=action_type,
        status=status,
        target_type=target_type,
        target_id=target_id,
        since=since,
        skip=offset,
        limit=limit,
    )
    return [
        schemas.AuditLog(
            id=entry.id,
            organization_id=entry.organization_id,
            actor_user_id=entry.actor_user_id,
            action_type=entry.action_type,
            status=entry.status,
            target_type=entry.target_type,
            target_id=entry.target_id,
            reason=entry.reason,
            metadata=entry.metadata_json,
            created_at=entry.created_at,
        )
        for entry in audit_logs
    ]
