"""
Notification API Endpoints

In-app notifications, per-event preferences, and the generated facility feed
(digests plus daily triggers).
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, get_current_user_context, get_facility_context
from actify.db import schemas
from actify.db.database import get_db
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services.notification_service import (
    PREFERENCE_EVENT_TYPES,
    NotificationService,
    ensure_user_notification_feed,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=schemas.NotificationListResponse)
def get_notifications(
    unread_only: bool = False,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """
    Get notifications for the current user.

    - **unread_only**: If true, only return unread notifications
    - **limit**: Maximum number of notifications to return (default 50)
    """
    user, _ = user_context
    service = NotificationService(db)
    notifications = service.get_user_notifications(user_id=user.id, unread_only=unread_only, limit=limit)
    return schemas.NotificationListResponse(
        notifications=notifications,
        unread_count=service.get_unread_count(user.id),
        total_count=len(notifications),
    )


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    if not NotificationService(db).mark_notification_read(notification_id, user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")


@router.get("/stats", response_model=schemas.NotificationStatsResponse)
def get_notification_stats(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    service = NotificationService(db)
    recent = service.get_user_notifications(user_id=user.id, unread_only=False, limit=5)
    return schemas.NotificationStatsResponse(
        unread_count=service.get_unread_count(user.id),
        total_notifications=service.get_total_count(user.id),
        recent_notifications=recent,
    )


@router.get("/preferences", response_model=schemas.NotificationPreferencesResponse)
def get_notification_preferences(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    return schemas.NotificationPreferencesResponse(preferences=NotificationService(db).get_user_preferences(user.id))


@router.get("/preferences/{event_type}")
def get_notification_preference(
    event_type: str,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    _ensure_event_type(event_type)
    return {"event_type": event_type, **NotificationService(db).get_user_preferences(user.id)[event_type]}


def _ensure_event_type(event_type: str) -> None:
    if event_type not in PREFERENCE_EVENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid event type. Must be one of: {', '.join(PREFERENCE_EVENT_TYPES)}",
        )


@router.put("/preferences/{event_type}", response_model=schemas.UserNotificationPreference)
def update_notification_preference(
    event_type: str,
    preference_update: schemas.UserNotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """
    Update notification preferences for a facility membership event
    (added, removed, role changed). Omitted fields keep their current value.
    """
    user, _ = user_context
    _ensure_event_type(event_type)

    service = NotificationService(db)
    current = service.get_user_preferences(user.id)[event_type]
    email_enabled = preference_update.email_enabled
    if email_enabled is None:
        email_enabled = current['email_enabled']
    in_app_enabled = preference_update.in_app_enabled
    if in_app_enabled is None:
        in_app_enabled = current['in_app_enabled']

    return service.set_user_preference(
        user_id=user.id,
        event_type=event_type,
        email_enabled=email_enabled,
        in_app_enabled=in_app_enabled,
    )


def _feed_counts(service: NotificationService, user_id: uuid.UUID) -> dict:
    return {"unreadCount": service.get_unread_count(user_id), "totalCount": service.get_total_count(user_id)}


@router.get("/feed")
def get_facility_feed(
    limit: int = 30,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(get_facility_context),
):
    """Generate today's digests and triggers for the facility, then list the feed."""
    try:
        ensure_user_notification_feed(db, ctx.user, ctx.facility, ctx.timezone)
    except Exception as exc:
        # The feed is still readable when generation fails
        db.rollback()
        logger.error("notification_feed_failed: user=%s facility=%s error=%s", ctx.user.id, ctx.facility_id, exc)

    service = NotificationService(db)
    notifications = service.get_user_notifications(user_id=ctx.user.id, limit=limit)
    return {
        "notifications": [schemas.Notification.model_validate(n).model_dump(mode="json") for n in notifications],
        **_feed_counts(service, ctx.user.id),
    }


@router.post("/feed")
def apply_feed_action(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(get_facility_context),
):
    try:
        data = parse_payload(schemas.NotificationFeedAction, payload, "Invalid request payload.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    service = NotificationService(db)
    if data.action == "mark-read":
        if data.id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Notification id is required.")
        service.mark_notification_read(data.id, ctx.user.id)
    elif data.action == "mark-all-read":
        service.mark_all_read(ctx.user.id)
    elif data.action == "clear-read":
        service.clear_read(ctx.user.id)
    else:
        service.clear_all(ctx.user.id)
    return {"ok": True, **_feed_counts(service, ctx.user.id)}


@router.delete("/cleanup/expired")
def cleanup_expired_notifications(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """Remove expired notifications (superadmin maintenance)."""
    user, _ = user_context
    if not user.is_superadmin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    count = NotificationService(db).cleanup_expired_notifications()
    return {"message": f"Cleaned up {count} expired notifications"}
