from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _strip_items(values):
    if isinstance(values, list):
        return [_strip(item) for item in values]
    return values


class ActivityTemplateAdaptations(BaseModel):
    bedBound: str = Field(default="", max_length=1000)
    dementia: str = Field(default="", max_length=1000)
    lowVision: str = Field(default="", max_length=1000)
    oneToOne: str = Field(default="", max_length=1000)


class ActivityTemplatePayload(BaseModel):
    difficulty: Literal["Easy", "Medium", "Hard"]
    estimatedMinutes: Optional[int] = Field(default=None, ge=5, le=480)
    supplies: List[str] = Field(default_factory=list)
    setupSteps: List[str] = Field(default_factory=list)
    checklistItems: List[str] = Field(default_factory=list)
    adaptations: ActivityTemplateAdaptations

    @field_validator("supplies", "setupSteps", "checklistItems", mode="before")
    @classmethod
    def strip_items(cls, value):
        return _strip_items(value)

    @field_validator("supplies", "setupSteps", "checklistItems")
    @classmethod
    def no_blank_items(cls, value):
        if any(not item for item in value):
            raise ValueError("items must not be blank")
        return value


class NoteFieldsEnabled(BaseModel):
    mood: bool = True
    cues: bool = True
    participation: bool = True
    response: bool = True
    followUp: bool = True


class NoteTextBlocks(BaseModel):
    opening: Optional[str] = Field(default=None, max_length=2000)
    body: Optional[str] = Field(default=None, max_length=8000)
    followUp: Optional[str] = Field(default=None, max_length=2000)


class NoteTemplatePayload(BaseModel):
    fieldsEnabled: NoteFieldsEnabled = Field(default_factory=NoteFieldsEnabled)
    defaultTextBlocks: NoteTextBlocks = Field(default_factory=NoteTextBlocks)
    quickPhrases: List[str] = Field(default_factory=list, max_length=30)

    @field_validator("quickPhrases", mode="before")
    @classmethod
    def strip_phrases(cls, value):
        return _strip_items(value)


class TemplateUpsert(BaseModel):
    type: Literal["activity", "note"]
    title: str = Field(min_length=2, max_length=120)
    category: Optional[str] = Field(default=None, max_length=80)
    tags: List[str] = Field(default_factory=list, max_length=20)
    payload: Dict[str, Any]

    @field_validator("title", "category", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class TemplateUse(BaseModel):
    templateId: str = Field(min_length=1)
    startAt: str = Field(min_length=1)
    endAt: str = Field(min_length=1)
    location: str = Field(min_length=1, max_length=200)

    @field_validator("templateId", "startAt", "endAt", "location", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)
