from types import SimpleNamespace

from actify.utils.facility_settings import (
    DEFAULT_ATTENDANCE_RULES,
    as_business_hours,
    as_inventory_defaults,
    as_notification_defaults,
    facility_settings_view,
    merge_notification_overrides,
    merge_settings_patch,
)
from actify.utils.module_flags import (
    DEFAULT_MODULE_FLAGS,
    as_module_flags,
    module_disabled_message,
    module_enabled,
)


def test_module_flags_default_when_missing():
    flags = as_module_flags(None)
    assert flags == DEFAULT_MODULE_FLAGS
    assert flags is not DEFAULT_MODULE_FLAGS


def test_module_flags_derived_keys():
    flags = as_module_flags({"modules": {"attendanceTracking": False, "oneToOneNotes": False, "groupNotes": False}})
    assert module_enabled(flags, "calendar") is False
    assert module_enabled(flags, "notes") is False
    assert module_enabled(flags, "templates") is True

    flags = as_module_flags({"modules": {"inventorySupplyTracking": 0, "activityTemplatesLibrary": False}})
    assert module_enabled(flags, "inventory") is False
    assert module_enabled(flags, "templates") is False


def test_module_flags_mode_validation():
    assert as_module_flags({"mode": "CORE_WORKFLOW"})["mode"] == "CORE_WORKFLOW"
    assert as_module_flags({"mode": "EVERYTHING"})["mode"] == "FULL_TOOLKIT"


def test_module_disabled_messages():
    assert module_disabled_message("residentCouncil") == "Resident council module is disabled."
    assert module_disabled_message("attendanceTracking") == "Attendance module is disabled."
    assert module_disabled_message("unknownThing") == "unknownThing module is disabled."
    assert module_enabled({}, "calendar") is False


def test_business_hours_keeps_valid_days_only():
    hours = as_business_hours({"start": "07:30", "days": [0, "3", 7, -1, "x", 6]})
    assert hours == {"start": "07:30", "end": "17:00", "days": [0, 3, 6]}
    assert as_business_hours("garbage")["days"] == [1, 2, 3, 4, 5]


def test_inventory_defaults_monthly_budget():
    assert as_inventory_defaults(None)["budgetTracking"]["monthlyBudget"] == 500
    assert as_inventory_defaults({"budgetTracking": {"monthlyBudget": "750.5"}})["budgetTracking"]["monthlyBudget"] == 750.5


def test_notification_defaults_unknown_digest_mode_is_off():
    defaults = as_notification_defaults({"digest": {"mode": "HOURLY"}, "weeklyDigestDay": "fri"})
    assert defaults["digest"] == {"mode": "OFF", "time": "09:00"}
    assert defaults["weeklyDigestDay"] == "FRI"
    assert defaults["channels"] == {"inApp": True, "email": False, "push": False}


def test_user_overrides_merge_over_facility_defaults():
    base = as_notification_defaults({"digest": {"mode": "DAILY", "time": "08:00"}})
    merged = merge_notification_overrides(base, {"digest": {"time": "10:30"}, "triggers": {"lowInventory": False}})
    assert merged["digest"] == {"mode": "DAILY", "time": "10:30"}
    assert merged["triggers"]["lowInventory"] is False
    assert merged["triggers"]["oneToOneDueToday"] is True
    assert merge_notification_overrides(base, None) == base


def test_settings_view_resolves_everything():
    view = facility_settings_view(SimpleNamespace(timezone="Not/AZone", settings=None))
    assert view["timezone"] == "America/New_York"
    assert view["attendanceRules"] == DEFAULT_ATTENDANCE_RULES
    assert set(view) == {"timezone", "moduleFlags", "businessHours", "attendanceRules", "inventory", "notifications"}


def test_merge_settings_patch_merges_known_sections():
    stored = {"businessHours": {"start": "08:00", "end": "17:00"}, "custom": 1}
    merged = merge_settings_patch(stored, {"businessHours": {"end": "18:00"}, "unknown": {"x": 1}})
    assert merged["businessHours"] == {"start": "08:00", "end": "18:00"}
    assert merged["custom"] == 1
    assert "unknown" not in merged


def test_merge_settings_patch_keeps_nested_customisations():
    stored = {
        "notifications": {"triggers": {"birthdays": False, "lowInventory": True}, "digest": {"mode": "DAILY"}},
        "attendanceRules": {"engagementWeights": {"present": 1, "active": 2}},
    }
    merged = merge_settings_patch(stored, {
        "notifications": {"triggers": {"lowInventory": False}},
        "attendanceRules": {"engagementWeights": {"active": 3}},
    })
    assert merged["notifications"]["triggers"] == {"birthdays": False, "lowInventory": False}
    assert merged["notifications"]["digest"] == {"mode": "DAILY"}
    assert merged["attendanceRules"]["engagementWeights"] == {"present": 1, "active": 3}
    assert stored["notifications"]["triggers"]["lowInventory"] is True
