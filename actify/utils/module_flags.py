"""Per-facility module flags.

Facilities toggle whole areas of the product on and off. The stored JSON is
merged over the defaults so that newly added modules are enabled for facilities
that predate them.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Literal, Mapping

ModuleKey = Literal[
    "templates",
    "calendar",
    "notes",
    "reports",
    "analytics",
    "inventory",
    "residentCouncil",
    "volunteers",
]

DEFAULT_MODULE_FLAGS: Dict[str, Any] = {
    "mode": "FULL_TOOLKIT",
    "modules": {
        "attendanceTracking": True,
        "oneToOneNotes": True,
        "groupNotes": True,
        "carePlanBuilder": True,
        "activityTemplatesLibrary": True,
        "outingsTransportation": False,
        "prizeCartIncentives": True,
        "inventorySupplyTracking": True,
        "therapyCollaboration": False,
        "photoAttachments": True,
        "documentESignature": False,
        "templates": True,
        "calendar": True,
        "notes": True,
        "reports": True,
        "goals": True,
        "analytics": True,
        "assessments": True,
        "inventory": True,
        "prizeCart": True,
        "residentCouncil": True,
        "volunteers": True,
        "carePlan": True,
        "analyticsHeatmaps": True,
        "familyEngagementNotes": True,
    },
    "widgets": {
        "oneToOneDueList": True,
        "birthdays": True,
        "newAdmitsDischarges": True,
        "monthlyParticipationSnapshot": True,
    },
}

# Labels used in "<Label> module is disabled." responses.
MODULE_LABELS: Dict[str, str] = {
    "templates": "Templates",
    "calendar": "Calendar",
    "notes": "Notes",
    "reports": "Reports",
    "analytics": "Analytics",
    "inventory": "Inventory",
    "residentCouncil": "Resident council",
    "volunteers": "Volunteers",
    "attendanceTracking": "Attendance",
}


def as_module_flags(raw: Any) -> Dict[str, Any]:
    """Merge raw stored flags over defaults and apply the derived module keys."""
    if not isinstance(raw, Mapping):
        raw = {}
    merged = copy.deepcopy(DEFAULT_MODULE_FLAGS)
    if raw.get("mode") in ("CORE_WORKFLOW", "FULL_TOOLKIT"):
        merged["mode"] = raw["mode"]
    for section in ("modules", "widgets"):
        values = raw.get(section)
        if isinstance(values, Mapping):
            for key, value in values.items():
                merged[section][key] = bool(value)

    modules = merged["modules"]
    modules["templates"] = modules["templates"] and modules["activityTemplatesLibrary"]
    modules["notes"] = modules["notes"] and (modules["oneToOneNotes"] or modules["groupNotes"])
    modules["calendar"] = modules["calendar"] and modules["attendanceTracking"]
    modules["carePlan"] = modules["carePlan"] and modules["carePlanBuilder"]
    modules["prizeCart"] = modules["prizeCart"] and modules["prizeCartIncentives"]
    modules["inventory"] = modules["inventory"] and modules["inventorySupplyTracking"]
    return merged


def module_enabled(flags: Mapping[str, Any], key: str) -> bool:
    return bool((flags.get("modules") or {}).get(key, False))


def module_disabled_message(key: str) -> str:
    return f"{MODULE_LABELS.get(key, key)} module is disabled."
