import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Volunteer(Base):
    __tablename__ = 'volunteers'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(160), nullable=False)
    phone = Column(String(40), nullable=True)
    # Free-form profile lines: "tag:", "availability:", "onboarding:", ...
    requirements = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    visits = relationship('VolunteerVisit', back_populates='volunteer', cascade='all, delete-orphan')


class VolunteerVisit(Base):
    __tablename__ = 'volunteer_visits'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    volunteer_id = Column(UUID(as_uuid=True), ForeignKey('volunteers.id', ondelete='CASCADE'), nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=True)
    assigned_location = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    signed_in_by_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    signed_out_by_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    volunteer = relationship('Volunteer', back_populates='visits')

    __table_args__ = (
        Index('idx_volunteer_visits_volunteer_id_start_at', 'volunteer_id', 'start_at'),
    )
