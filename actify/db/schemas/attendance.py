import uuid
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

QuickAttendanceStatus = Literal[
    "CLEAR", "PRESENT", "REFUSED", "ASLEEP", "OUT_OF_ROOM", "ONE_TO_ONE", "NOT_APPLICABLE"
]


class AttendanceEntry(BaseModel):
    residentId: uuid.UUID
    status: QuickAttendanceStatus
    notes: Optional[str] = Field(default=None, max_length=800)


class AttendanceSave(BaseModel):
    sessionId: uuid.UUID
    entries: List[AttendanceEntry] = Field(default_factory=list)


class AttendanceHistoryQuery(BaseModel):
    from_: Optional[str] = Field(default=None, alias="from", pattern=r"^\d{4}-\d{2}-\d{2}$")
    to: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    activity: Optional[str] = Field(default=None, max_length=160)
    location: Optional[str] = Field(default=None, max_length=160)
    hasNotes: Literal["all", "yes", "no"] = "all"


class MonthlyReportQuery(BaseModel):
    month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    format: Literal["json", "csv"] = "json"
