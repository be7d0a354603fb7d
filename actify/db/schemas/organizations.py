import uuid
from pydantic import BaseModel


class FacilityBase(BaseModel):
    name: str
    slug: str | None = None
    timezone: str | None = None


class FacilityCreate(FacilityBase):
    pass


class FacilityMember(BaseModel):
    user_id: uuid.UUID
    email: str
    display_name: str | None = None
    role: str
    can_read: bool
    can_write: bool
