import pytest

from actify.utils.role_permissions import (
    ROLE_LABELS,
    get_allowed_roles,
    get_manage_roles,
    get_role_permissions,
    role_allows_manage,
    role_allows_write,
    validate_role,
)


def test_role_permissions_table():
    assert get_role_permissions("owner") == {"can_read": True, "can_write": True}
    assert get_role_permissions("viewer") == {"can_read": True, "can_write": False}
    # Returned dicts are copies
    get_role_permissions("editor")["can_write"] = False
    assert get_role_permissions("editor")["can_write"] is True


def test_unknown_role_raises():
    with pytest.raises(ValueError):
        get_role_permissions("superuser")
    with pytest.raises(ValueError):
        validate_role("")


def test_validate_role_normalizes_case():
    assert validate_role(" Editor ") == "editor"


def test_write_and_manage_roles():
    assert get_allowed_roles() == {"owner", "admin", "editor", "viewer"}
    assert get_manage_roles() == {"owner", "admin"}
    assert role_allows_write("editor")
    assert not role_allows_write("viewer")
    assert role_allows_manage("admin")
    assert not role_allows_manage("editor")
    assert not role_allows_manage(None)


def test_role_labels():
    assert ROLE_LABELS["owner"] == "Activity Director"
    assert ROLE_LABELS["editor"] == "Activity Assistant"
