"""
Permission checks for facility-scoped access control.

Key helpers:
- get_org_membership(org_id, current_user)
- is_member_of_org(org_id, current_user)
- can_write_org(org_id, current_user)
- can_manage_org(org_id, current_user)
"""
from typing import Optional, Dict, Any

from actify.utils.role_permissions import (
    role_allows_write as _role_allows_write,
    role_allows_manage as _role_allows_manage,
)


def get_org_membership(org_id, current_user: Optional[Dict[str, Any]]):
    """Return the membership dict for ``org_id`` from the request context, if any."""
    if not current_user or org_id is None:
        return None
    by_org = current_user.get("memberships_by_org", {}) or {}
    membership = by_org.get(str(org_id))
    if membership:
        return membership
    for item in current_user.get("memberships", []) or []:
        if item and item.get("organization_id") == str(org_id):
            return item
    return None


def is_member_of_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if not current_user or org_id is None:
        return False
    # Superadmins are considered members of all facilities
    if current_user.get("is_superadmin"):
        return True
    return get_org_membership(org_id, current_user) is not None


def can_write_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if not current_user or org_id is None:
        return False
    if current_user.get("is_superadmin"):
        return True
    membership = get_org_membership(org_id, current_user)
    return bool(membership and _role_allows_write(membership.get("role")))


def can_manage_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if not current_user or org_id is None:
        return False
    if current_user.get("is_superadmin"):
        return True
    membership = get_org_membership(org_id, current_user)
    return bool(membership and _role_allows_manage(membership.get("role")))
