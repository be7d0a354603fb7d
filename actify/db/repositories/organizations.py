"""
Facility repository functions.

Facilities are stored as organizations; memberships carry the facility role.
"""
from __future__ import annotations

import uuid
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from actify.db import models
from actify.utils.role_permissions import ROLE_OWNER, get_role_permissions
from actify.utils.timezones import resolve_time_zone


def create_facility(db: Session, name: str, user_id: uuid.UUID, *, slug: Optional[str] = None,
                    timezone: Optional[str] = None) -> models.Organization:
    facility = models.Organization(
        name=name,
        slug=slug,
        timezone=resolve_time_zone(timezone),
        created_by=user_id,
    )
    db.add(facility)
    db.flush()
    # Creator becomes owner
    db.add(models.OrganizationMembership(
        organization_id=facility.id,
        user_id=user_id,
        role=ROLE_OWNER,
        **get_role_permissions(ROLE_OWNER),
    ))
    db.commit()
    db.refresh(facility)
    return facility


def get_facility(db: Session, facility_id: uuid.UUID) -> Optional[models.Organization]:
    return db.query(models.Organization).filter(models.Organization.id == facility_id).first()


def get_facility_by_name(db: Session, name: str, exclude_id: Optional[uuid.UUID] = None):
    query = db.query(models.Organization).filter(models.Organization.name == name)
    if exclude_id is not None:
        query = query.filter(models.Organization.id != exclude_id)
    return query.first()


def get_facilities_for_ids(db: Session, facility_ids: List[uuid.UUID]) -> List[models.Organization]:
    if not facility_ids:
        return []
    return (
        db.query(models.Organization)
        .filter(models.Organization.id.in_(facility_ids))
        .order_by(models.Organization.name.asc())
        .all()
    )


def delete_facility(db: Session, facility: models.Organization) -> None:
    db.query(models.OrganizationMembership).filter(
        models.OrganizationMembership.organization_id == facility.id
    ).delete(synchronize_session=False)
    db.delete(facility)
    db.commit()


def get_membership(db: Session, facility_id: uuid.UUID, user_id: uuid.UUID):
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == facility_id,
            models.OrganizationMembership.user_id == user_id,
        )
        .first()
    )


def get_members(db: Session, facility_id: uuid.UUID) -> List[Tuple[models.OrganizationMembership, models.User]]:
    return (
        db.query(models.OrganizationMembership, models.User)
        .join(models.User, models.User.id == models.OrganizationMembership.user_id)
        .filter(models.OrganizationMembership.organization_id == facility_id)
        .order_by(models.User.email.asc())
        .all()
    )


def count_owners(db: Session, facility_id: uuid.UUID) -> int:
    return (
        db.query(models.OrganizationMembership)
        .filter(
            models.OrganizationMembership.organization_id == facility_id,
            models.OrganizationMembership.role == ROLE_OWNER,
        )
        .count()
    )


def add_member(db: Session, facility_id: uuid.UUID, user_id: uuid.UUID, role: str):
    membership = models.OrganizationMembership(
        organization_id=facility_id,
        user_id=user_id,
        role=role,
        **get_role_permissions(role),
    )
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership


def set_member_role(db: Session, membership: models.OrganizationMembership, role: str):
    # can_read/can_write always follow the role
    membership.role = role
    for key, value in get_role_permissions(role).items():
        setattr(membership, key, value)
    db.commit()
    db.refresh(membership)
    return membership


def remove_member(db: Session, membership: models.OrganizationMembership) -> None:
    db.delete(membership)
    db.commit()
