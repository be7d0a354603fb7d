"""
Facility role definitions.

Every facility membership carries one of four roles. The role decides the
default ``can_read``/``can_write`` flags stored on the membership and whether
the member may manage the facility (settings, members).
"""

from typing import Dict, FrozenSet, Optional, Set

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"

ROLE_PERMISSIONS: Dict[str, Dict[str, bool]] = {
    ROLE_OWNER: {"can_read": True, "can_write": True},
    ROLE_ADMIN: {"can_read": True, "can_write": True},
    ROLE_EDITOR: {"can_read": True, "can_write": True},
    ROLE_VIEWER: {"can_read": True, "can_write": False},
}

ROLE_LABELS: Dict[str, str] = {
    ROLE_OWNER: "Activity Director",
    ROLE_ADMIN: "Administrator",
    ROLE_EDITOR: "Activity Assistant",
    ROLE_VIEWER: "Read Only",
}

ALLOWED_ROLES: FrozenSet[str] = frozenset(ROLE_PERMISSIONS)
WRITE_ROLES: FrozenSet[str] = frozenset({ROLE_OWNER, ROLE_ADMIN, ROLE_EDITOR})
MANAGE_ROLES: FrozenSet[str] = frozenset({ROLE_OWNER, ROLE_ADMIN})


def get_role_permissions(role: str) -> Dict[str, bool]:
    """Return a copy of the default membership flags for ``role``.

    Raises:
        ValueError: If the role is not one of the facility roles.
    """
    if role not in ROLE_PERMISSIONS:
        raise ValueError(f"Unknown role: {role}. Allowed roles: {sorted(ALLOWED_ROLES)}")
    return dict(ROLE_PERMISSIONS[role])


def get_allowed_roles() -> Set[str]:
    return set(ALLOWED_ROLES)


def get_manage_roles() -> Set[str]:
    return set(MANAGE_ROLES)


def validate_role(role: Optional[str]) -> str:
    """Normalize and validate a role name, raising ValueError when unknown."""
    normalized = (role or "").strip().lower()
    if normalized not in ALLOWED_ROLES:
        raise ValueError(f"Invalid role '{role}'. Allowed roles: {sorted(ALLOWED_ROLES)}")
    return normalized


def role_allows_write(role: Optional[str]) -> bool:
    return role in WRITE_ROLES


def role_allows_manage(role: Optional[str]) -> bool:
    return role in MANAGE_ROLES
