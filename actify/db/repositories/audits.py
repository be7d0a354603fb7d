"""
Audit trail persistence.

Rows are append-only; reads are newest first and always bounded by
``limit``.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from actify.db import schemas, models


def create_audit_log(db: Session, audit_log: schemas.AuditLogCreate, actor_user_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None):
    payload = audit_log.model_dump(exclude={"metadata"})
    entry = models.AuditLog(
        **payload,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata_json=audit_log.metadata or {},
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def _audit_query(
    db: Session,
    *,
    organization_id: Optional[uuid.UUID],
    actor_user_id: Optional[uuid.UUID],
    action_type: Optional[str],
    status: Optional[str],
    target_type: Optional[str],
    target_id: Optional[uuid.UUID],
    since: Optional[datetime],
):
    AuditLog = models.AuditLog
    criteria = []
    if organization_id is not None:
        criteria.append(AuditLog.organization_id == organization_id)
    if actor_user_id is not None:
        criteria.append(AuditLog.actor_user_id == actor_user_id)
    if action_type:
        criteria.append(AuditLog.action_type == action_type)
    if status:
        criteria.append(AuditLog.status == status)
    if target_type:
        criteria.append(AuditLog.target_type == target_type)
    if target_id is not None:
        criteria.append(AuditLog.target_id == target_id)
    if since is not None:
        criteria.append(AuditLog.created_at >= since)
    return db.query(AuditLog).filter(*criteria)


def get_audit_logs(
    db: Session,
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    status: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = _audit_query(
        db,
        organization_id=organization_id,
        actor_user_id=user_id,
        action_type=action_type,
        status=status,
        target_type=target_type,
        target_id=target_id,
        since=since,
    )
    return (
        query.order_by(models.AuditLog.created_at.desc(), models.AuditLog.id)
        .offset(skip)
        .limit(limit)
        .all()
    )
