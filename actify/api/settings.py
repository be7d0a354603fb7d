"""
Facility settings endpoints.

Facility-wide sections are editable by owners/admins; each user may keep
personal notification overrides on top of the facility defaults.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, get_facility_context
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.utils.facility_settings import (
    SETTINGS_SECTIONS,
    facility_settings_view,
    merge_notification_overrides,
    merge_settings_patch,
)
from actify.utils.timezones import resolve_time_zone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timezone: Optional[str] = None
    businessHours: Optional[Dict[str, Any]] = None
    attendanceRules: Optional[Dict[str, Any]] = None
    inventory: Optional[Dict[str, Any]] = None
    notifications: Optional[Dict[str, Any]] = None
    moduleFlags: Optional[Dict[str, Any]] = None


class NotificationOverrides(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channels: Optional[Dict[str, bool]] = None
    triggers: Optional[Dict[str, bool]] = None
    quietHours: Optional[Dict[str, Any]] = None
    digest: Optional[Dict[str, Any]] = None


@router.get("")
def get_settings(ctx: FacilityContext = Depends(get_facility_context)):
    return {**ctx.settings, "canManage": bool(ctx.can_manage)}


@router.patch("")
def update_settings(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(get_facility_context),
):
    if not ctx.can_manage:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Only owners and admins can change facility settings.")
    try:
        data = parse_payload(SettingsPatch, payload, "Invalid settings payload.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    facility = ctx.facility
    patch = {key: getattr(data, key) for key in data.model_fields_set if key in SETTINGS_SECTIONS}
    patch = {key: value for key, value in patch.items() if value is not None}
    facility.settings = merge_settings_patch(facility.settings, patch)
    if data.timezone:
        facility.timezone = resolve_time_zone(data.timezone)
    db.commit()
    db.refresh(facility)

    changed = sorted(patch) + (["timezone"] if data.timezone else [])
    log_facility_change(db, facility=facility, actor=ctx.user, action=AuditAction.SETTINGS_UPDATE,
                        target_type="facility_settings", target_id=facility.id, metadata={"sections": changed})
    logger.info("settings_updated: facility=%s sections=%s", facility.id, changed)
    return facility_settings_view(facility)


@router.get("/notifications/me")
def get_my_notification_settings(ctx: FacilityContext = Depends(get_facility_context)):
    return {
        "overrides": ctx.user.notification_settings or {},
        "effective": merge_notification_overrides(ctx.settings["notifications"], ctx.user.notification_settings),
    }


@router.put("/notifications/me")
def update_my_notification_settings(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(get_facility_context),
):
    try:
        data = parse_payload(NotificationOverrides, payload, "Invalid notification settings payload.")
    except ActifyError as exc:
        raise to_http_exception(exc)

    user = ctx.user
    user.notification_settings = data.model_dump(exclude_none=True)
    db.commit()
    db.refresh(user)
    return {
        "overrides": user.notification_settings,
        "effective": merge_notification_overrides(ctx.settings["notifications"], user.notification_settings),
    }
