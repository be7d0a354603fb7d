import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, now_utc


class Resident(Base):
    __tablename__ = 'residents'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    room = Column(String(40), nullable=False)
    status = Column(String(32), nullable=False, default='ACTIVE')
    is_active = Column(Boolean, nullable=False, default=True)
    birth_date = Column(DateTime(timezone=True), nullable=True)
    preferences = Column(Text, nullable=True)
    safety_notes = Column(Text, nullable=True)
    # Comma separated, see actify.utils.residents.parse_resident_tags
    tags = Column(Text, nullable=True)
    follow_up_flag = Column(Boolean, nullable=False, default=False)
    last_one_on_one_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('idx_residents_organization_id_room', 'organization_id', 'room'),
        Index('idx_residents_organization_id_status', 'organization_id', 'status'),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
