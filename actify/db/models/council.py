import uuid
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class ResidentCouncilMeeting(Base):
    __tablename__ = 'resident_council_meetings'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    held_at = Column(DateTime(timezone=True), nullable=False)
    attendance_count = Column(Integer, nullable=False, default=0)
    # Minutes sheet, see actify.services.resident_council.build_meeting_notes
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    items = relationship('ResidentCouncilItem', back_populates='meeting', cascade='all, delete-orphan')

    __table_args__ = (
        Index('idx_resident_council_meetings_organization_id_held_at', 'organization_id', 'held_at'),
    )


class ResidentCouncilItem(Base):
    __tablename__ = 'resident_council_items'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    meeting_id = Column(UUID(as_uuid=True), ForeignKey('resident_council_meetings.id', ondelete='CASCADE'), nullable=False)
    category = Column(String(40), nullable=False)
    concern = Column(Text, nullable=False)
    owner = Column(String(120), nullable=True)
    status = Column(String(20), nullable=False, default='UNRESOLVED')  # UNRESOLVED|RESOLVED
    follow_up = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    meeting = relationship('ResidentCouncilMeeting', back_populates='items')
