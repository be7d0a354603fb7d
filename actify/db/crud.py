"""
CRUD facade for facilities, memberships and audit logs.

Thin wrappers that delegate to the repository modules.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from . import schemas
from .repositories import audits as repo_audits
from .repositories import organizations as repo_orgs


# CRUD for AuditLog (facade delegates to repository)
def create_audit_log(
    db: Session,
    audit_log: schemas.AuditLogCreate,
    *,
    actor_user_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = None,
):
    return repo_audits.create_audit_log(db, audit_log, actor_user_id, organization_id)


def get_audit_logs(
    db: Session,
    *,
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
    return repo_audits.get_audit_logs(
        db,
        organization_id=organization_id,
        user_id=user_id,
        action_type=action_type,
        status=status,
        target_type=target_type,
        target_id=target_id,
        since=since,
        skip=skip,
        limit=limit,
    )


# Facilities and memberships
def create_facility(db: Session, facility: schemas.FacilityCreate, user_id: uuid.UUID):
    return repo_orgs.create_facility(db, facility.name, user_id, slug=facility.slug, timezone=facility.timezone)


def get_facility(db: Session, facility_id: uuid.UUID):
    return repo_orgs.get_facility(db, facility_id)


def get_facility_by_name(db: Session, name: str, exclude_id: Optional[uuid.UUID] = None):
    return repo_orgs.get_facility_by_name(db, name, exclude_id)


def get_facilities_for_ids(db: Session, facility_ids):
    return repo_orgs.get_facilities_for_ids(db, list(facility_ids))


def delete_facility(db: Session, facility):
    return repo_orgs.delete_facility(db, facility)


def get_membership(db: Session, facility_id: uuid.UUID, user_id: uuid.UUID):
    return repo_orgs.get_membership(db, facility_id, user_id)


def get_members(db: Session, facility_id: uuid.UUID):
    return repo_orgs.get_members(db, facility_id)


def count_owners(db: Session, facility_id: uuid.UUID) -> int:
    return repo_orgs.count_owners(db, facility_id)


def add_member(db: Session, facility_id: uuid.UUID, user_id: uuid.UUID, role: str):
    return repo_orgs.add_member(db, facility_id, user_id, role)


def set_member_role(db: Session, membership, role: str):
    return repo_orgs.set_member_role(db, membership, role)


def remove_member(db: Session, membership):
    return repo_orgs.remove_member(db, membership)
