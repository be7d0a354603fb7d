"""Payloads for resident council endpoints."""
import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DATE_KEY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

Section = Literal["OLD", "NEW"]
ItemStatus = Literal["UNRESOLVED", "RESOLVED"]


class _Trimmed(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class MeetingMinutes(_Trimmed):
    attendanceCountOverride: Optional[int] = Field(default=None, ge=0)
    summary: Optional[str] = Field(default=None, max_length=3000)
    oldBusiness: Optional[str] = Field(default=None, max_length=3000)
    newBusiness: Optional[str] = Field(default=None, max_length=3000)
    additionalNotes: Optional[str] = Field(default=None, max_length=3000)
    departmentUpdates: Dict[str, Optional[str]] = Field(default_factory=dict)


class MeetingCreate(MeetingMinutes):
    heldAt: datetime
    residentsAttendedIds: List[uuid.UUID] = Field(default_factory=list)
    location: Optional[str] = Field(default=None, max_length=3000)
    facilitator: Optional[str] = Field(default=None, max_length=3000)
    templateId: Optional[str] = None


class ActionItemCreate(_Trimmed):
    meetingId: uuid.UUID
    section: Section = "NEW"
    category: str = Field(min_length=1)
    concern: str = Field(min_length=3)
    owner: Optional[str] = Field(default=None, max_length=3000)
    followUp: Optional[str] = Field(default=None, max_length=3000)
    dueDate: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)
    status: ItemStatus = "UNRESOLVED"
    carryForward: bool = False


class ActionItemUpdate(_Trimmed):
    section: Optional[Section] = None
    status: Optional[ItemStatus] = None
    owner: Optional[str] = Field(default=None, max_length=3000)
    followUp: Optional[str] = Field(default=None, max_length=3000)
    dueDate: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)
    category: Optional[str] = Field(default=None, min_length=1)
    concern: Optional[str] = Field(default=None, min_length=3)


class ActionItemBulkUpdate(_Trimmed):
    itemIds: List[uuid.UUID] = Field(min_length=1)
    status: Optional[ItemStatus] = None
    owner: Optional[str] = None
    dueDate: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)


class TemplateApply(BaseModel):
    meetingId: uuid.UUID
    templateId: str = Field(min_length=1)


class MeetingsQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: Optional[int] = Field(default=None, ge=1)
    pageSize: Optional[int] = Field(default=None, ge=1)
    search: Optional[str] = None
    status: Literal["ALL", "DRAFT", "FINAL"] = "ALL"
    hasOpenActionItems: bool = False
    department: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from", pattern=DATE_KEY_PATTERN)
    to: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)
    sort: Literal["newest", "oldest", "most_action_items", "most_departments"] = "newest"


class ActionItemsQuery(BaseModel):
    page: Optional[int] = Field(default=None, ge=1)
    pageSize: Optional[int] = Field(default=None, ge=1)
    search: Optional[str] = None
    status: Literal["ALL", "OPEN", "DONE"] = "ALL"
    department: Optional[str] = None
    owner: Optional[str] = None
    meetingId: Optional[uuid.UUID] = None
    sort: Literal["newest", "oldest", "due_soon"] = "newest"
