"""
API dependency helpers.

Provides the dependency-resolved user context and the facility context that
every facility-scoped router builds on.
"""
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple, Dict, Any

from fastapi import Header, HTTPException, status, Depends
from sqlalchemy.orm import Session

from actify.db.database import get_db
from actify.api.auth import resolve_identity_from_headers, get_or_create_user, get_user_memberships
from actify.db import models
from actify.utils.facility_settings import facility_settings_view
from actify.utils.module_flags import module_enabled, module_disabled_message
from actify.utils.role_permissions import role_allows_write, role_allows_manage
from actify.utils.runtime import dev_mode_active, DEV_USER_EMAIL, DEV_USER_NAME

# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.


def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    if dev_mode_active():
        email = DEV_USER_EMAIL
        name = DEV_USER_NAME
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = get_or_create_user(db, email=email, display_name=name)

    memberships = get_user_memberships(db, user.id)
    # Keys are strings to align with permission helpers that cast org_id to str
    memberships_by_org = {str(m["organization_id"]): m for m in memberships}
    current_user = {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(user.is_superadmin),
        "memberships": memberships,
        "memberships_by_org": memberships_by_org,
    }
    return user, current_user


@dataclass
class FacilityContext:
    """Everything a facility-scoped handler needs about the caller and tenant."""

    user: models.User
    current_user: Dict[str, Any]
    facility: models.Organization
    role: str
    settings: Dict[str, Any]

    @property
    def facility_id(self) -> uuid.UUID:
        return self.facility.id

    @property
    def timezone(self) -> str:
        return self.settings["timezone"]

    @property
    def module_flags(self) -> Dict[str, Any]:
        return self.settings["moduleFlags"]

    @property
    def can_write(self) -> bool:
        return self.current_user.get("is_superadmin") or role_allows_write(self.role)

    @property
    def can_manage(self) -> bool:
        return self.current_user.get("is_superadmin") or role_allows_manage(self.role)


def _parse_facility_id(raw: Optional[str]) -> Optional[uuid.UUID]:
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid facility id.")


def get_facility_context(
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
    x_facility_id: Optional[str] = Header(default=None, alias="X-Facility-Id"),
) -> FacilityContext:
    """Resolve the facility for this request.

    The ``X-Facility-Id`` header wins; a user with exactly one membership
    falls back to it. Superadmins may enter any facility.
    """
    user, current_user = user_context
    facility_id = _parse_facility_id(x_facility_id)
    memberships = current_user.get("memberships", [])
    if facility_id is None:
        if len(memberships) != 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Facility context required.")
        facility_id = uuid.UUID(memberships[0]["organization_id"])

    membership = current_user.get("memberships_by_org", {}).get(str(facility_id))
    if membership is None and not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this facility.")

    facility = db.query(models.Organization).filter(models.Organization.id == facility_id).first()
    if not facility:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Facility not found.")

    role = membership["role"] if membership else "admin"
    return FacilityContext(
        user=user,
        current_user=current_user,
        facility=facility,
        role=role,
        settings=facility_settings_view(facility),
    )


def ensure_module(ctx: FacilityContext, module_key: str) -> None:
    if not module_enabled(ctx.module_flags, module_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=module_disabled_message(module_key))


def ensure_write(ctx: FacilityContext, area: str) -> None:
    if not ctx.can_write:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Read-only role cannot modify {area}.")


def module_context(module_key: str):
    """Dependency factory: facility context gated on a module flag."""

    def _dependency(ctx: FacilityContext = Depends(get_facility_context)) -> FacilityContext:
        ensure_module(ctx, module_key)
        return ctx

    return _dependency


def module_writer(module_key: str, area: str):
    """Dependency factory: module-gated facility context that also requires a write role."""

    def _dependency(ctx: FacilityContext = Depends(get_facility_context)) -> FacilityContext:
        ensure_module(ctx, module_key)
        ensure_write(ctx, area)
        return ctx

    return _dependency
