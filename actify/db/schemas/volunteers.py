"""Payloads for volunteer and visit endpoints."""
import uuid
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Trimmed(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class VolunteerCreate(_Trimmed):
    name: str = Field(min_length=2)
    phone: Optional[str] = Field(default=None, max_length=64)
    requirements: Optional[Union[List[str], str]] = None


class VolunteerUpdate(_Trimmed):
    name: Optional[str] = Field(default=None, min_length=2)
    phone: Optional[str] = Field(default=None, max_length=64)
    requirements: Optional[Union[List[str], str]] = None


class VisitCreate(_Trimmed):
    volunteerId: uuid.UUID
    startAt: str = Field(min_length=1)
    endAt: Optional[str] = None
    assignedLocation: str = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=2000)


class VisitUpdate(_Trimmed):
    action: Literal["signOut", "reassign", "approve", "deny", "update"] = "update"
    volunteerId: Optional[uuid.UUID] = None
    endAt: Optional[str] = None
    assignedLocation: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    denialReason: Optional[str] = Field(default=None, max_length=255)


class HubQuery(BaseModel):
    hoursOffset: Optional[int] = Field(default=None, ge=0)
    hoursLimit: Optional[int] = Field(default=None, ge=10, le=100)
