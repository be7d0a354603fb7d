"""Payloads for the daily 1:1 queue."""
import uuid
from typing import Literal, Optional

from pydantic import BaseModel, Field

DATE_KEY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

SkipReason = Literal[
    "RESIDENT_DECLINED",
    "ASLEEP",
    "IN_APPOINTMENT",
    "CLINICAL_HOLD",
    "STAFFING_CONSTRAINT",
    "OTHER",
]


class QueueRegenerate(BaseModel):
    date: Optional[str] = Field(default=None, pattern=DATE_KEY_PATTERN)
    queueSize: Optional[int] = Field(default=None, ge=1, le=20)
    missingThisMonthOnly: bool = False


class QueueItemAction(BaseModel):
    queueItemId: uuid.UUID


class QueueSkip(QueueItemAction):
    skipReason: SkipReason
