from actify.services.resident_council import (
    build_meeting_sheet,
    clamp_page_size,
    merge_follow_up,
    normalize_department_label,
    parse_due_date,
    parse_meeting_sheet,
    parse_section,
    strip_follow_up_meta,
)


def test_meeting_sheet_round_trip():
    sheet = build_meeting_sheet(
        "Residents reviewed the spring outing plan.",
        ["Ada Lovelace (101A)", "Grace Hopper (102)"],
        [{"label": "Dietary", "notes": "More fresh fruit at lunch"}],
        old_business="Call bell response times",
        new_business=None,
        additional_notes=None,
    )
    parsed = parse_meeting_sheet(sheet)
    assert parsed["summary"] == "Residents reviewed the spring outing plan."
    assert parsed["residentsInAttendance"] == ["Ada Lovelace (101A)", "Grace Hopper (102)"]
    assert parsed["departmentUpdates"] == [{"label": "Dietary", "notes": "More fresh fruit at lunch"}]
    assert parsed["oldBusiness"] == "Call bell response times"
    assert parsed["newBusiness"] is None
    assert parsed["additionalNotes"] is None


def test_empty_sheet_collapses_placeholders():
    parsed = parse_meeting_sheet(build_meeting_sheet(None, [], []))
    assert parsed["summary"] is None
    assert parsed["residentsInAttendance"] == []
    assert parsed["departmentUpdates"] == []


def test_legacy_notes_are_not_parsed():
    assert parse_meeting_sheet("Summary: short note only") is None
    assert parse_meeting_sheet(None) is None


def test_follow_up_metadata_lines():
    text = merge_follow_up("NEW", "2026-04-01", "Ask dietary for menu options")
    assert text == "Section: NEW\nDue: 2026-04-01\nAsk dietary for menu options"
    assert parse_section(text) == "NEW"
    assert parse_due_date(text) == "2026-04-01"
    assert strip_follow_up_meta(text) == "Ask dietary for menu options"


def test_merge_follow_up_replaces_existing_meta():
    text = merge_follow_up("OLD", None, "Section: NEW\nDue: 2026-04-01\nFollow up with nursing")
    assert text == "Section: OLD\nFollow up with nursing"
    assert merge_follow_up("OLD", None, None) == "Section: OLD"


def test_bad_meta_values_are_ignored():
    assert parse_due_date("Due: next week") is None
    assert parse_section("Section: LATER") is None
    assert strip_follow_up_meta("Due: 2026-01-01") is None


def test_normalize_department_label():
    assert normalize_department_label("") == "Other"
    assert normalize_department_label("Administrator") == "Administration"
    assert normalize_department_label("social work") == "Social Services"
    assert normalize_department_label("Physical Therapy") == "Therapy"
    assert normalize_department_label("nursing staff") == "Nursing"
    assert normalize_department_label("Chaplain") == "Other"


def test_clamp_page_size():
    assert clamp_page_size(None) == 20
    assert clamp_page_size(3) == 10
    assert clamp_page_size(99) == 40
    assert clamp_page_size(25) == 25
