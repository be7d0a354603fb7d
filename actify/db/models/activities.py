import uuid
from sqlalchemy import Column, String, Text, Integer, DateTime, Boolean, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class ActivityTemplate(Base):
    __tablename__ = 'activity_templates'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(200), nullable=False)
    category = Column(String(80), nullable=False, default='General')
    supplies = Column(Text, nullable=True)  # newline separated
    setup_steps = Column(Text, nullable=True)  # newline separated
    difficulty = Column(String(20), nullable=False, default='Medium')
    default_checklist = Column(JSONB, nullable=True)  # list[str]
    adaptations = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_activity_templates_organization_id', 'organization_id'),
    )


class ActivitySeries(Base):
    """A recurring schedule (RRULE) that materializes ActivityInstance rows."""
    __tablename__ = 'activity_series'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(200), nullable=False)
    dtstart = Column(DateTime(timezone=True), nullable=False)
    duration_min = Column(Integer, nullable=False)
    rrule = Column(String(500), nullable=False)
    until = Column(DateTime(timezone=True), nullable=True)
    timezone = Column(String(100), nullable=False, default='America/New_York')
    location = Column(String(200), nullable=False)
    checklist = Column(JSONB, nullable=True)
    adaptations = Column(JSONB, nullable=True)
    exdates = Column(JSONB, nullable=True)  # list of occurrence keys
    template_id = Column(UUID(as_uuid=True), ForeignKey('activity_templates.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    instances = relationship('ActivityInstance', back_populates='series')


class ActivityInstance(Base):
    __tablename__ = 'activity_instances'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    series_id = Column(UUID(as_uuid=True), ForeignKey('activity_series.id', ondelete='SET NULL'), nullable=True)
    occurrence_key = Column(String(40), nullable=True)
    is_override = Column(Boolean, nullable=False, default=False)
    conflict_override = Column(Boolean, nullable=False, default=False)
    title = Column(String(200), nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=False)
    checklist = Column(JSONB, nullable=True)  # [{text, done}]
    adaptations_enabled = Column(JSONB, nullable=True)
    template_id = Column(UUID(as_uuid=True), ForeignKey('activity_templates.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    series = relationship('ActivitySeries', back_populates='instances')
    template = relationship('ActivityTemplate')
    attendance = relationship('Attendance', back_populates='activity_instance', cascade='all, delete-orphan')

    __table_args__ = (
        Index('idx_activity_instances_organization_id_start_at', 'organization_id', 'start_at'),
        UniqueConstraint('series_id', 'occurrence_key', name='uq_activity_instances_series_occurrence'),
    )


class Attendance(Base):
    __tablename__ = 'attendance'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    activity_instance_id = Column(UUID(as_uuid=True), ForeignKey('activity_instances.id', ondelete='CASCADE'), nullable=False)
    resident_id = Column(UUID(as_uuid=True), ForeignKey('residents.id', ondelete='CASCADE'), nullable=False)
    status = Column(String(20), nullable=False)  # PRESENT|ACTIVE|LEADING|REFUSED|NO_SHOW
    barrier_reason = Column(String(40), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    activity_instance = relationship('ActivityInstance', back_populates='attendance')
    resident = relationship('Resident')

    __table_args__ = (
        UniqueConstraint('activity_instance_id', 'resident_id', name='uq_attendance_activity_resident'),
        Index('idx_attendance_resident_id', 'resident_id'),
    )
