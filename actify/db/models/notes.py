import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class ProgressNoteTemplate(Base):
    __tablename__ = 'progress_note_templates'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(200), nullable=False)
    quick_phrases = Column(JSONB, nullable=True)
    # "[[ACTIFY_NOTE_META]] {...}" header line followed by the body text
    body_template = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)


class ProgressNote(Base):
    __tablename__ = 'progress_notes'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    resident_id = Column(UUID(as_uuid=True), ForeignKey('residents.id', ondelete='CASCADE'), nullable=False)
    activity_instance_id = Column(UUID(as_uuid=True), ForeignKey('activity_instances.id', ondelete='SET NULL'), nullable=True)
    type = Column(String(20), nullable=False)  # GROUP|ONE_TO_ONE
    participation_level = Column(String(20), nullable=False, default='MODERATE')
    mood_affect = Column(String(20), nullable=False, default='CALM')
    cues_required = Column(String(20), nullable=False, default='NONE')
    response = Column(String(20), nullable=False, default='POSITIVE')
    narrative = Column(Text, nullable=False)
    follow_up = Column(Text, nullable=True)
    created_by_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    resident = relationship('Resident')
    created_by = relationship('User')
    activity_instance = relationship('ActivityInstance')

    __table_args__ = (
        Index('idx_progress_notes_organization_id_created_at', 'organization_id', 'created_at'),
        Index('idx_progress_notes_resident_id_created_at', 'resident_id', 'created_at'),
    )
