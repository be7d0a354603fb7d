import uuid
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class NoteBuilderPayload(BaseModel):
    noteType: Literal["general", "1on1"]
    title: str = Field(default="", max_length=120)
    occurredAt: datetime
    residentId: uuid.UUID
    linkedResidentIds: List[uuid.UUID] = Field(default_factory=list)
    location: str = Field(default="", max_length=120)
    setting: str = Field(default="", max_length=120)
    activityLabel: str = Field(default="", max_length=160)
    narrative: str = Field(min_length=10, max_length=5000)
    participationLevel: Literal["none", "low", "moderate", "high"]
    responseType: Literal["positive", "neutral", "resistant"]
    mood: Literal["bright", "calm", "flat", "anxious", "agitated", "other"]
    cues: Literal["none", "verbal", "visual", "hand_on_hand", "physical_assist"]
    interventions: List[str] = Field(default_factory=list, max_length=20)
    followUpNeeded: bool = False
    followUpNotes: str = Field(default="", max_length=1500)
    tags: List[str] = Field(default_factory=list, max_length=20)
    communicationMethod: str = Field(default="", max_length=120)
    mobilityAccess: str = Field(default="", max_length=120)
    goalLink: str = Field(default="", max_length=120)
    staffPresent: str = Field(default="", max_length=160)

    @field_validator(
        "title", "location", "setting", "activityLabel", "narrative", "followUpNotes",
        "communicationMethod", "mobilityAccess", "goalLink", "staffPresent",
        mode="before",
    )
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("interventions", "tags", mode="before")
    @classmethod
    def strip_items(cls, value):
        if isinstance(value, list):
            return [_strip(item) for item in value]
        return value

    @field_validator("interventions")
    @classmethod
    def check_interventions(cls, value):
        if any(not item or len(item) > 120 for item in value):
            raise ValueError("interventions must be 1-120 characters")
        return value

    @field_validator("tags")
    @classmethod
    def check_tags(cls, value):
        if any(not item or len(item) > 40 for item in value):
            raise ValueError("tags must be 1-40 characters")
        return value


class NotesQuery(BaseModel):
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    type: Optional[Literal["all", "general", "1on1"]] = None
    residentId: Optional[uuid.UUID] = None
    q: Optional[str] = None
