"""
Notification service: in-app notifications, preferences, and the generated
facility feed (digests and daily triggers).
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from actify.db import models
from actify.services.budget_stock import count_below_reorder
from actify.utils.facility_settings import as_notification_defaults, merge_notification_overrides
from actify.utils.residents import INACTIVE_RESIDENT_STATUSES
from actify.utils.timezones import (
    as_utc,
    end_of_zoned_day,
    format_in_time_zone,
    start_of_zoned_day,
    start_of_zoned_week,
    zoned_date_key,
)

logger = logging.getLogger(__name__)

# Membership events (user preferences apply to these)
EVENT_MEMBERSHIP_ADDED = 'facility_membership_added'
EVENT_MEMBERSHIP_REMOVED = 'facility_membership_removed'
EVENT_ROLE_CHANGED = 'facility_role_changed'

PREFERENCE_EVENT_TYPES = (EVENT_MEMBERSHIP_ADDED, EVENT_MEMBERSHIP_REMOVED, EVENT_ROLE_CHANGED)

# Generated feed kinds
KIND_DIGEST_DAILY = 'DIGEST_DAILY'
KIND_DIGEST_WEEKLY = 'DIGEST_WEEKLY'
KIND_BIRTHDAY = 'BIRTHDAY'
KIND_ONE_TO_ONE_DUE = 'ONE_TO_ONE_DUE'
KIND_LOW_STOCK = 'LOW_STOCK'

DEFAULT_EXPIRES_DAYS = 30

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


class NotificationService:
    """Service class for handling all notification operations."""

    def __init__(self, db: Session):
        self.db = db

    # === User Preference Management ===

    def get_user_preferences(self, user_id: uuid.UUID) -> Dict[str, Dict[str, bool]]:
        """
        Get all notification preferences for a user, filling in defaults for
        event types the user never changed.
        """
        preferences = self.db.query(models.UserNotificationPreference).filter(
            models.UserNotificationPreference.user_id == user_id
        ).all()

        resolved = {event_type: {'email_enabled': False, 'in_app_enabled': True} for event_type in PREFERENCE_EVENT_TYPES}
        for pref in preferences:
            if pref.event_type in resolved:
                resolved[pref.event_type] = {
                    'email_enabled': pref.email_enabled,
                    'in_app_enabled': pref.in_app_enabled,
                }
        return resolved

    def set_user_preference(
        self,
        user_id: uuid.UUID,
        event_type: str,
        email_enabled: bool,
        in_app_enabled: bool,
    ) -> models.UserNotificationPreference:
        existing = self.db.query(models.UserNotificationPreference).filter(
            and_(
                models.UserNotificationPreference.user_id == user_id,
                models.UserNotificationPreference.event_type == event_type,
            )
        ).first()

        if existing:
            existing.email_enabled = email_enabled
            existing.in_app_enabled = in_app_enabled
            existing.updated_at = datetime.now(UTC)
        else:
            existing = models.UserNotificationPreference(
                user_id=user_id,
                event_type=event_type,
                email_enabled=email_enabled,
                in_app_enabled=in_app_enabled,
            )
            self.db.add(existing)

        self.db.commit()
        self.db.refresh(existing)
        return existing

    # === In-App Notification Management ===

    def create_notification(
        self,
        user_id: uuid.UUID,
        event_type: str,
        title: str,
        message: str,
        organization_id: Optional[uuid.UUID] = None,
        action_url: Optional[str] = None,
        action_text: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        expires_days: int = DEFAULT_EXPIRES_DAYS,
    ) -> models.Notification:
        notification = models.Notification(
            user_id=user_id,
            organization_id=organization_id,
            event_type=event_type,
            title=title,
            message=message,
            action_url=action_url,
            action_text=action_text,
            expires_at=datetime.now(UTC) + timedelta(days=expires_days),
        )
        if metadata:
            notification.set_metadata(metadata)

        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def create_if_missing(
        self,
        dedupe_key: str,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        kind: str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Insert a generated feed entry once per ``dedupe_key``. Returns True when created."""
        exists = self.db.query(models.Notification.id).filter(models.Notification.dedupe_key == dedupe_key).first()
        if exists:
            return False
        notification = models.Notification(
            user_id=user_id,
            organization_id=organization_id,
            event_type=kind,
            title=title,
            message=message,
            action_url=action_url,
            dedupe_key=dedupe_key,
            metadata_json=metadata,
            expires_at=datetime.now(UTC) + timedelta(days=DEFAULT_EXPIRES_DAYS),
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same key first
            self.db.rollback()
            return False
        return True

    def _active_query(self, user_id: uuid.UUID):
        now = datetime.now(UTC)
        return self.db.query(models.Notification).filter(
            models.Notification.user_id == user_id,
            or_(models.Notification.expires_at.is_(None), models.Notification.expires_at > now),
        )

    def get_user_notifications(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[models.Notification]:
        query = self._active_query(user_id)
        if unread_only:
            query = query.filter(models.Notification.is_read.is_(False))
        return query.order_by(desc(models.Notification.created_at)).limit(limit).all()

    def mark_notification_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """
        Mark a notification as read for a specific user.
        Returns False if the notification does not exist or belongs to someone else.
        """
        notification = self.db.query(models.Notification).filter(
            and_(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
        ).first()

        if not notification:
            return False

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
            self.db.commit()

        return True

    def mark_all_read(self, user_id: uuid.UUID) -> int:
        count = self.db.query(models.Notification).filter(
            models.Notification.user_id == user_id,
            models.Notification.is_read.is_(False),
        ).update({"is_read": True, "read_at": datetime.now(UTC)}, synchronize_session=False)
        self.db.commit()
        return count

    def clear_all(self, user_id: uuid.UUID) -> int:
        count = self.db.query(models.Notification).filter(
            models.Notification.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return count

    def clear_read(self, user_id: uuid.UUID) -> int:
        count = self.db.query(models.Notification).filter(
            models.Notification.user_id == user_id,
            models.Notification.is_read.is_(True),
        ).delete(synchronize_session=False)
        self.db.commit()
        return count

    def get_unread_count(self, user_id: uuid.UUID) -> int:
        return self._active_query(user_id).filter(models.Notification.is_read.is_(False)).count()

    def get_total_count(self, user_id: uuid.UUID) -> int:
        return self._active_query(user_id).count()

    # === Membership events ===

    def _notify_if_enabled(self, event_type: str, user_id: uuid.UUID, **kwargs) -> Optional[models.Notification]:
        prefs = self.get_user_preferences(user_id).get(event_type, {'in_app_enabled': True})
        if not prefs['in_app_enabled']:
            return None
        return self.create_notification(user_id=user_id, event_type=event_type, **kwargs)

    def notify_membership_added(
        self,
        user_id: uuid.UUID,
        facility_name: str,
        role: str,
        added_by_name: str,
        facility_id: Optional[uuid.UUID] = None,
    ) -> Optional[models.Notification]:
        return self._notify_if_enabled(
            EVENT_MEMBERSHIP_ADDED,
            user_id,
            organization_id=facility_id,
            title=f"Welcome to {facility_name}!",
            message=f"{added_by_name} added you to {facility_name} as a {role}.",
            metadata={'facility_name': facility_name, 'role': role, 'added_by_name': added_by_name},
        )

    def notify_role_changed(
        self,
        user_id: uuid.UUID,
        facility_name: str,
        old_role: str,
        new_role: str,
        changed_by_name: str,
        facility_id: Optional[uuid.UUID] = None,
    ) -> Optional[models.Notification]:
        return self._notify_if_enabled(
            EVENT_ROLE_CHANGED,
            user_id,
            organization_id=facility_id,
            title=f"Your role in {facility_name} changed",
            message=f"{changed_by_name} changed your role from {old_role} to {new_role}.",
            metadata={'facility_name': facility_name, 'old_role': old_role, 'new_role': new_role},
        )

    def notify_membership_removed(
        self,
        user_id: uuid.UUID,
        facility_name: str,
        removed_by_name: str,
    ) -> Optional[models.Notification]:
        return self._notify_if_enabled(
            EVENT_MEMBERSHIP_REMOVED,
            user_id,
            title=f"Removed from {facility_name}",
            message=f"{removed_by_name} removed you from {facility_name}.",
            metadata={'facility_name': facility_name, 'removed_by_name': removed_by_name},
        )

    def cleanup_expired_notifications(self) -> int:
        """
        Remove notifications that have exceeded their expiration date.
        Returns count of cleaned up notifications.
        """
        expired = self.db.query(models.Notification).filter(
            models.Notification.expires_at <= datetime.now(UTC)
        )
        count = expired.count()
        expired.delete(synchronize_session=False)
        self.db.commit()
        return count


# ---------------------------------------------------------------------------
# Generated facility feed
# ---------------------------------------------------------------------------

def parse_time_to_minutes(value: str) -> int:
    match = _TIME_RE.match((value or "").strip())
    if not match:
        return 0
    hours, minutes = int(match.group(1)), int(match.group(2))
    return max(0, min(23, hours)) * 60 + max(0, min(59, minutes))


def is_within_quiet_hours(now_minutes: int, quiet_start: str, quiet_end: str) -> bool:
    """Quiet windows may wrap midnight (22:00-06:00)."""
    start = parse_time_to_minutes(quiet_start)
    end = parse_time_to_minutes(quiet_end)
    if start == end:
        return False
    if start < end:
        return start <= now_minutes < end
    return now_minutes >= start or now_minutes < end


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def count_birthdays_today(db: Session, facility_id: uuid.UUID, time_zone: str, now: datetime) -> int:
    today = format_in_time_zone(now, time_zone, "%m-%d")
    residents = db.query(models.Resident.birth_date, models.Resident.status).filter(
        models.Resident.organization_id == facility_id,
        models.Resident.birth_date.isnot(None),
    ).all()
    return sum(
        1
        for birth_date, status in residents
        if status not in INACTIVE_RESIDENT_STATUSES and format_in_time_zone(birth_date, time_zone, "%m-%d") == today
    )


def feed_counts(db: Session, facility_id: uuid.UUID, time_zone: str, now: datetime) -> Dict[str, Any]:
    day_start = start_of_zoned_day(now, time_zone)
    day_end = end_of_zoned_day(now, time_zone)
    date_key = zoned_date_key(now, time_zone)

    todays_activities = db.query(models.ActivityInstance).filter(
        models.ActivityInstance.organization_id == facility_id,
        models.ActivityInstance.start_at >= day_start,
        models.ActivityInstance.start_at <= day_end,
    ).count()
    pending_queue = db.query(models.DailyOneOnOneQueue).filter(
        models.DailyOneOnOneQueue.organization_id == facility_id,
        models.DailyOneOnOneQueue.queue_date_key == date_key,
        models.DailyOneOnOneQueue.completed_at.is_(None),
        models.DailyOneOnOneQueue.skipped_at.is_(None),
    ).count()
    return {
        "todaysActivities": todays_activities,
        "pendingOneToOneQueue": pending_queue,
        "lowInventory": count_below_reorder(db, facility_id),
        "birthdaysToday": count_birthdays_today(db, facility_id, time_zone, now),
    }


def ensure_user_notification_feed(
    db: Session,
    user: models.User,
    facility: models.Organization,
    time_zone: str,
    now: Optional[datetime] = None,
) -> int:
    """Create today's digests and trigger notifications for ``user``.

    Every entry has a dedupe key, so calling this on each feed read is safe.
    Quiet hours suppress triggers but never digests. Returns how many entries
    were created.
    """
    now = as_utc(now or datetime.now(UTC))
    facility_defaults = as_notification_defaults((facility.settings or {}).get("notifications"))
    settings = merge_notification_overrides(facility_defaults, user.notification_settings)
    if not settings["channels"]["inApp"]:
        return 0

    service = NotificationService(db)
    counts = feed_counts(db, facility.id, time_zone, now)
    now_minutes = parse_time_to_minutes(format_in_time_zone(now, time_zone, "%H:%M"))
    date_key = zoned_date_key(now, time_zone)
    week_key = zoned_date_key(start_of_zoned_week(now, time_zone, 1), time_zone)
    weekday = format_in_time_zone(now, time_zone, "%a").upper()[:3]
    digest_minutes = parse_time_to_minutes(settings["digest"]["time"])
    created = 0

    def _emit(key: str, kind: str, title: str, message: str, action_url: str, metadata: Dict[str, Any]) -> None:
        nonlocal created
        if service.create_if_missing(key, user.id, facility.id, kind, title, message, action_url, metadata):
            created += 1

    if settings["digest"]["mode"] == "DAILY" and now_minutes >= digest_minutes:
        _emit(
            f"digest:daily:{user.id}:{date_key}",
            KIND_DIGEST_DAILY,
            "Daily Digest",
            f"{counts['todaysActivities']} activities scheduled today, "
            f"{counts['pendingOneToOneQueue']} pending 1:1 queue items, "
            f"{_plural(counts['birthdaysToday'], 'birthday')} today.",
            "/notifications",
            {**counts, "timezone": time_zone, "dateKey": date_key},
        )

    if (
        settings["digest"]["mode"] == "WEEKLY"
        and settings["weeklyDigestDay"] == weekday
        and now_minutes >= digest_minutes
    ):
        _emit(
            f"digest:weekly:{user.id}:{week_key}",
            KIND_DIGEST_WEEKLY,
            "Weekly Digest",
            f"{counts['todaysActivities']} activities on today's schedule, "
            f"{counts['pendingOneToOneQueue']} 1:1 items pending, "
            f"{_plural(counts['birthdaysToday'], 'birthday')} today.",
            "/notifications",
            {**counts, "timezone": time_zone, "weekKey": week_key},
        )

    quiet = settings["quietHours"]
    if quiet["enabled"] and is_within_quiet_hours(now_minutes, quiet["start"], quiet["end"]):
        logger.info("notification_feed_quiet_hours: user=%s facility=%s created=%s", user.id, facility.id, created)
        return created

    if counts["birthdaysToday"] > 0:
        _emit(
            f"birthday:{user.id}:{date_key}",
            KIND_BIRTHDAY,
            "Resident Birthdays Today",
            f"{_plural(counts['birthdaysToday'], 'resident birthday')} today.",
            "/residents",
            {"birthdaysToday": counts["birthdaysToday"], "dateKey": date_key},
        )

    if settings["triggers"]["oneToOneDueToday"] and counts["pendingOneToOneQueue"] > 0:
        _emit(
            f"trigger:one-to-one:{user.id}:{date_key}",
            KIND_ONE_TO_ONE_DUE,
            "1:1 Queue Due Today",
            f"{counts['pendingOneToOneQueue']} residents are still pending in today's 1:1 queue.",
            "/oneonone/queue",
            {"pendingOneToOneQueue": counts["pendingOneToOneQueue"]},
        )

    if settings["triggers"]["lowInventory"] and counts["lowInventory"] > 0:
        _emit(
            f"trigger:low-stock:{user.id}:{date_key}",
            KIND_LOW_STOCK,
            "Low Stock Alert",
            f"{_plural(counts['lowInventory'], 'inventory item')} below reorder threshold.",
            "/budget-stock",
            {"lowInventoryCount": counts["lowInventory"]},
        )

    logger.info("notification_feed_generated: user=%s facility=%s created=%s", user.id, facility.id, created)
    return created
