from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from actify.utils.residents import RESIDENT_STATUS_OPTIONS


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _known_status(value):
    if value is not None and value not in RESIDENT_STATUS_OPTIONS:
        raise ValueError(f"Unknown resident status: {value}")
    return value


class ResidentBase(BaseModel):
    birthDate: Optional[str] = Field(default=None, max_length=32)
    preferences: Optional[str] = Field(default=None, max_length=2000)
    safetyNotes: Optional[str] = Field(default=None, max_length=2000)
    tags: Optional[List[str]] = Field(default=None, max_length=20)
    followUpFlag: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def tags_not_blank(cls, value):
        if value is None:
            return value
        cleaned = [tag.strip() for tag in value]
        if any(not tag for tag in cleaned):
            raise ValueError("tags must not be blank")
        return cleaned

    @field_validator("birthDate", "preferences", "safetyNotes", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class ResidentCreate(ResidentBase):
    firstName: str = Field(min_length=1)
    lastName: str = Field(min_length=1)
    room: str = Field(min_length=1)
    status: str

    @field_validator("firstName", "lastName", "room", mode="before")
    @classmethod
    def strip_names(cls, value):
        return _strip(value)

    @field_validator("status")
    @classmethod
    def known_status(cls, value):
        return _known_status(value)


class ResidentUpdate(ResidentBase):
    firstName: Optional[str] = Field(default=None, min_length=1)
    lastName: Optional[str] = Field(default=None, min_length=1)
    room: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = None
    lastOneOnOneAt: Optional[datetime] = None

    @field_validator("firstName", "lastName", "room", mode="before")
    @classmethod
    def strip_names(cls, value):
        return _strip(value)

    @field_validator("status")
    @classmethod
    def known_status(cls, value):
        return _known_status(value)


class ResidentImportRow(BaseModel):
    firstName: str = Field(min_length=1)
    lastName: str = Field(min_length=1)
    room: str = Field(min_length=1)
    status: str = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("firstName", "lastName", "room", "status", "notes", mode="before")
    @classmethod
    def strip_values(cls, value):
        return _strip(value)


class ResidentImport(BaseModel):
    rows: List[ResidentImportRow] = Field(min_length=1, max_length=500)
