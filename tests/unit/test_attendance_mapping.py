from types import SimpleNamespace

import pytest

from actify.services.attendance import (
    QUICK_ATTENDANCE_CYCLE,
    count_from_attendance_rows,
    cycle_attendance_status,
    from_attendance_record,
    monthly_report_csv,
    quick_status_label,
    resident_export_filename,
    to_attendance_record,
)


def test_cycle_wraps_to_present():
    assert cycle_attendance_status(None) == "PRESENT"
    assert cycle_attendance_status("CLEAR") == "PRESENT"
    assert cycle_attendance_status("PRESENT") == "REFUSED"
    assert cycle_attendance_status(QUICK_ATTENDANCE_CYCLE[-1]) == "PRESENT"


def test_quick_status_label():
    assert quick_status_label("ONE_TO_ONE") == "1:1 Completed"
    assert quick_status_label("unknown") == "Clear"


@pytest.mark.parametrize(
    "quick, expected",
    [
        ("PRESENT", ("PRESENT", None)),
        ("REFUSED", ("REFUSED", "REFUSED")),
        ("ASLEEP", ("NO_SHOW", "ASLEEP")),
        ("OUT_OF_ROOM", ("NO_SHOW", "AT_APPOINTMENT")),
        ("ONE_TO_ONE", ("ACTIVE", None)),
        ("NOT_APPLICABLE", ("NO_SHOW", "OTHER")),
    ],
)
def test_quick_status_maps_to_stored_record_and_back(quick, expected):
    record = to_attendance_record(quick)
    assert (record["status"], record["barrier_reason"]) == expected
    assert from_attendance_record(record["status"], record["barrier_reason"], record["notes"]) == quick


def test_clear_deletes_unless_bed_bound():
    assert to_attendance_record("CLEAR", "ACTIVE") is None
    bed_bound = to_attendance_record("CLEAR", "BED_BOUND", "  ")
    assert bed_bound == {"status": "NO_SHOW", "barrier_reason": "BED_BOUND", "notes": None}
    assert from_attendance_record("NO_SHOW", "BED_BOUND") == "ASLEEP"


def test_not_applicable_gets_default_note():
    assert to_attendance_record("NOT_APPLICABLE")["notes"] == "Not applicable"
    assert to_attendance_record("NOT_APPLICABLE", notes="Family visit")["notes"] == "Family visit"


def test_legacy_rows_map_back():
    assert from_attendance_record("LEADING") == "ONE_TO_ONE"
    assert from_attendance_record("NO_SHOW", "NOT_INFORMED") == "OUT_OF_ROOM"
    assert from_attendance_record("NO_SHOW", None, "Not applicable today") == "NOT_APPLICABLE"


def test_count_from_rows_tracks_notes():
    rows = [
        SimpleNamespace(status="PRESENT", barrier_reason=None, notes=None),
        SimpleNamespace(status="NO_SHOW", barrier_reason="ASLEEP", notes="napping"),
        SimpleNamespace(status="ACTIVE", barrier_reason=None, notes=""),
    ]
    result = count_from_attendance_rows(rows)
    assert result["counts"]["present"] == 1
    assert result["counts"]["asleep"] == 1
    assert result["counts"]["oneToOne"] == 1
    assert result["counts"]["totalEntries"] == 3
    assert result["hasNotes"] is True


def test_monthly_csv_layout():
    report = {
        "monthKey": "2026-03",
        "totalEntries": 2,
        "totals": {"present": 1, "refused": 1, "asleep": 0, "outOfRoom": 0, "oneToOne": 0, "notApplicable": 0},
        "daily": [{"dateKey": "2026-03-02", "total": 2}],
        "sessions": [{"dateKey": "2026-03-02", "title": "Bingo", "present": 1, "refused": 1,
                      "noShowLike": 0, "oneToOne": 0}],
    }
    lines = monthly_report_csv(report).splitlines()
    assert lines[0] == "Month,2026-03"
    assert "2026-03-02,2" in lines
    assert lines[-1] == "2026-03-02,Bingo,1,1,0,0"


def test_resident_export_filename():
    assert resident_export_filename("Ada  Lovelace") == "attendance-resident-ada-lovelace.csv"
