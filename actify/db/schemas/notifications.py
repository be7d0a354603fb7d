import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserNotificationPreference(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_type: str
    email_enabled: bool
    in_app_enabled: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserNotificationPreferenceUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None


class Notification(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    event_type: str
    title: str
    message: str
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    # ORM attribute is ``metadata_json``; ``metadata`` is reserved on declarative classes
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias='metadata_json')
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[Notification]
    unread_count: int
    total_count: int


class NotificationPreferencesResponse(BaseModel):
    preferences: Dict[str, Dict[str, bool]]


class NotificationStatsResponse(BaseModel):
    unread_count: int
    total_notifications: int
    recent_notifications: List[Notification]


class NotificationFeedAction(BaseModel):
    action: Literal['mark-read', 'mark-all-read', 'clear-all', 'clear-read']
    id: Optional[uuid.UUID] = None

    @field_validator('action', mode='before')
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value
