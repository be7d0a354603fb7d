"""
Domain-split Pydantic schemas.

Shared facility, audit and notification schemas are re-exported
here; feature payloads are imported from their own modules
(``actify.db.schemas.calendar`` and so on).
"""

from .organizations import FacilityBase, FacilityCreate, FacilityMember
from .audits import AuditLogBase, AuditLogCreate, AuditLog
from .notifications import (
    UserNotificationPreference,
    UserNotificationPreferenceUpdate,
    Notification,
    NotificationListResponse,
    NotificationPreferencesResponse,
    NotificationStatsResponse,
    NotificationFeedAction,
)
