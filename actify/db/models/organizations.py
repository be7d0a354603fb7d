import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class Organization(Base):
    """A care facility. Every domain row is scoped to one."""
    __tablename__ = 'organizations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=True, unique=True)
    timezone = Column(String(100), nullable=False, default='America/New_York')
    is_active = Column(Boolean, nullable=False, default=True)
    # businessHours, attendanceRules, inventory, notifications, moduleFlags
    settings = Column(JSONB, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)


class OrganizationMembership(Base):
    __tablename__ = 'organization_memberships'
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    role = Column(String, nullable=False)  # 'owner'|'admin'|'editor'|'viewer'
    can_read = Column(Boolean, nullable=False, default=True)
    can_write = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_org_memberships_user_id', 'user_id'),
        CheckConstraint("role in ('owner','admin','editor','viewer')", name='ck_org_memberships_role'),
    )
