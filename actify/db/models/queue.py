import uuid
from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class DailyOneOnOneQueue(Base):
    __tablename__ = 'daily_one_on_one_queue'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    resident_id = Column(UUID(as_uuid=True), ForeignKey('residents.id', ondelete='CASCADE'), nullable=False)
    queue_date = Column(DateTime(timezone=True), nullable=False)
    queue_date_key = Column(String(10), nullable=False)
    position = Column(Integer, nullable=False)
    reason = Column(String(200), nullable=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    pinned_for_date = Column(DateTime(timezone=True), nullable=True)
    pinned_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    skipped_at = Column(DateTime(timezone=True), nullable=True)
    skip_reason = Column(String(40), nullable=True)
    queue_size = Column(Integer, nullable=False, default=6)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    resident = relationship('Resident')

    __table_args__ = (
        UniqueConstraint('organization_id', 'queue_date_key', 'resident_id', name='uq_one_on_one_queue_day_resident'),
        Index('idx_one_on_one_queue_organization_id_date', 'organization_id', 'queue_date_key'),
    )
