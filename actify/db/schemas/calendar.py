from datetime import datetime
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field

WeekdayToken = Literal["SU", "MO", "TU", "WE", "TH", "FR", "SA"]


class RecurrencePayload(BaseModel):
    freq: Literal["DAILY", "WEEKLY", "MONTHLY"]
    interval: int = Field(default=1, ge=1, le=365)
    byDay: Optional[List[WeekdayToken]] = None
    count: Optional[int] = Field(default=None, ge=1, le=3650)
    until: Optional[datetime] = None
    timezone: Optional[str] = Field(default=None, min_length=1)


class ActivityCreate(BaseModel):
    title: str = Field(min_length=2, max_length=200)
    startAt: datetime
    endAt: datetime
    location: Optional[str] = Field(default=None, min_length=1, max_length=160)
    checklist: Any = None
    adaptationsEnabled: Any = None
    templateId: Optional[str] = None
    allowConflictOverride: bool = False
    allowOutsideBusinessHoursOverride: bool = False
    recurrence: Optional[RecurrencePayload] = None


class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    startAt: Optional[datetime] = None
    endAt: Optional[datetime] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=160)
    checklist: Any = None
    adaptationsEnabled: Any = None
    allowConflictOverride: bool = False
    allowOutsideBusinessHoursOverride: bool = False
    scope: Optional[Literal["instance", "series"]] = None


class ActivityMove(BaseModel):
    startAt: datetime
    endAt: datetime
    location: Optional[str] = Field(default=None, min_length=1, max_length=160)
    allowConflictOverride: bool = False
    allowOutsideBusinessHoursOverride: bool = False


class SeriesUpdate(BaseModel):
    scope: Optional[Literal["series", "future"]] = None
    fromDate: Optional[datetime] = None
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    location: Optional[str] = Field(default=None, min_length=1, max_length=160)
    templateId: Optional[str] = None
    dtstart: Optional[datetime] = None
    durationMin: Optional[int] = Field(default=None, ge=5, le=24 * 60)
    rrule: Optional[str] = Field(default=None, min_length=6, max_length=200)
    until: Optional[datetime] = None
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=80)
    checklist: Any = None
    adaptations: Any = None
    materializeHorizonDays: Optional[int] = Field(default=None, ge=7, le=730)


class SeriesExdate(BaseModel):
    occurrenceStartAt: datetime
