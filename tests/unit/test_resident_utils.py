from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

from actify.utils.residents import (
    days_since,
    format_label,
    get_resident_age,
    get_resident_tag_icon_keys,
    is_active_status,
    is_needs_one_on_one,
    normalize_status_for_import,
    parse_resident_tags,
    serialize_resident_tags,
    sort_residents_by_room,
    status_label,
)

TODAY = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def test_status_labels():
    assert status_label("HOSPITALIZED") == "Hospital"
    assert status_label("BED_BOUND") == "Bed Bound"
    assert status_label("ON_LEAVE") == "On Leave"
    assert status_label("mystery") == "Active"
    assert format_label("AT_APPOINTMENT") == "At Appointment"


def test_active_statuses():
    assert is_active_status("ACTIVE")
    assert is_active_status("BED_BOUND")
    assert not is_active_status("HOSPITALIZED")


def test_sort_by_room_numeric_then_suffix_then_name():
    residents = [
        SimpleNamespace(room="12B", last_name="Zed", first_name="A"),
        SimpleNamespace(room="2", last_name="Young", first_name="B"),
        SimpleNamespace(room="12a", last_name="Xu", first_name="C"),
        SimpleNamespace(room="Annex", last_name="Wu", first_name="D"),
        SimpleNamespace(room="12A", last_name="Adams", first_name="E"),
    ]
    ordered = [(r.room, r.last_name) for r in sort_residents_by_room(residents)]
    assert ordered == [("2", "Young"), ("12A", "Adams"), ("12a", "Xu"), ("12B", "Zed"), ("Annex", "Wu")]


def test_tags_round_trip():
    assert parse_resident_tags(" Bed Bound, ,Non-verbal ") == ["Bed Bound", "Non-verbal"]
    assert serialize_resident_tags(["Bed Bound", " ", "Trach"]) == "Bed Bound, Trach"
    assert parse_resident_tags(None) == []


def test_tag_icon_keys():
    assert get_resident_tag_icon_keys(["bed-bound", "Non Verbal", "trach care", "diabetic"]) == [
        "BED_BOUND", "NON_VERBAL", "TRACH",
    ]


def test_import_status_normalization():
    assert normalize_status_for_import("bed bound") == "BED_BOUND"
    assert normalize_status_for_import(" hospital ") == "HOSPITALIZED"
    assert normalize_status_for_import("active") == "ACTIVE"
    assert normalize_status_for_import("on leave") is None


def test_days_since_and_needs_one_on_one():
    assert days_since(None, TODAY) is None
    assert days_since(TODAY - timedelta(days=3, hours=5), TODAY) == 3
    assert days_since(TODAY + timedelta(days=1), TODAY) == 0
    assert is_needs_one_on_one(None, TODAY)
    assert is_needs_one_on_one(TODAY - timedelta(days=7), TODAY)
    assert not is_needs_one_on_one(TODAY - timedelta(days=6, hours=23), TODAY)


def test_resident_age():
    assert get_resident_age(datetime(1940, 3, 16, tzinfo=UTC), TODAY) == 85
    assert get_resident_age(datetime(1940, 3, 15, tzinfo=UTC), TODAY) == 86
    assert get_resident_age(datetime(2030, 1, 1, tzinfo=UTC), TODAY) is None
    assert get_resident_age(None, TODAY) is None
