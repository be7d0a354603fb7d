import uuid
from datetime import UTC, datetime

from actify.services.analytics import (
    AnalyticsFilters,
    build_kpis,
    compute_facility_presence,
    parse_filters,
    percent,
    previous_range,
    resolve_date_range,
    split_staff_filter,
)

NY = "America/New_York"
NOW = datetime(2026, 3, 18, 16, 0, tzinfo=UTC)


def test_parse_filters_defaults_and_blanks():
    filters = parse_filters({"range": "90d", "from": " ", "residentId": " abc "})
    assert filters.range == "30d"
    assert filters.from_ is None
    assert filters.resident_id == "abc"


def test_resolve_presets():
    today = resolve_date_range(AnalyticsFilters(range="today"), NY, NOW)
    assert today.start_key == today.end_key == "2026-03-18"
    assert today.total_days == 1
    assert today.label.startswith("Today")

    week = resolve_date_range(AnalyticsFilters(range="7d"), NY, NOW)
    assert week.start_key == "2026-03-12"
    assert week.label == "Last 7 days"


def test_resolve_custom_range():
    custom = resolve_date_range(AnalyticsFilters(range="custom", from_="2026-03-01", to="2026-03-10"), NY, NOW)
    assert custom.start_key == "2026-03-01"
    assert custom.end_key == "2026-03-10"
    assert custom.total_days == 10
    assert custom.label == "Mar 1 - Mar 10, 2026"


def test_custom_range_without_dates_falls_back_to_thirty_days():
    fallback = resolve_date_range(AnalyticsFilters(range="custom"), NY, NOW)
    assert fallback.total_days == 30
    assert fallback.label == "Last 30 days"


def test_previous_range_has_same_length():
    current = resolve_date_range(AnalyticsFilters(range="7d"), NY, NOW)
    prev_start, prev_end = previous_range(current.start, current.end)
    assert prev_end < current.start
    assert (prev_end - prev_start) == (current.end - current.start)


def test_split_staff_filter():
    assert split_staff_filter("user:abc") == ("abc", None)
    assert split_staff_filter("volunteer:xyz") == (None, "xyz")
    assert split_staff_filter("abc") == ("abc", None)
    assert split_staff_filter(None) == (None, None)


def test_percent():
    assert percent(1, 3) == 33.3
    assert percent(5, 0) == 0


def test_facility_presence_counts_distinct_supportive_residents():
    a, b, outsider = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    rows = [
        {"residentId": a, "status": "PRESENT", "occurredAt": datetime(2026, 3, 18, 14, 0, tzinfo=UTC)},
        {"residentId": a, "status": "ACTIVE", "occurredAt": datetime(2026, 3, 5, 14, 0, tzinfo=UTC)},
        {"residentId": b, "status": "REFUSED", "occurredAt": datetime(2026, 3, 6, 14, 0, tzinfo=UTC)},
        {"residentId": b, "status": "LEADING", "occurredAt": datetime(2026, 2, 10, 14, 0, tzinfo=UTC)},
        {"residentId": outsider, "status": "PRESENT", "occurredAt": datetime(2026, 3, 18, 14, 0, tzinfo=UTC)},
    ]
    presence = compute_facility_presence(rows, [a, b], NOW, NY)
    assert presence["activeResidentCount"] == 2
    assert presence["todayPresentResidents"] == 1
    assert presence["currentMonthPresentResidents"] == 1
    assert presence["currentMonthPresentPercent"] == 50.0
    assert presence["previousMonthPresentResidents"] == 1
    assert presence["hasPreviousMonthData"] is True
    assert presence["monthOverMonthDelta"] == 0.0


def test_presence_without_previous_month_has_no_delta():
    presence = compute_facility_presence([], [], NOW, NY)
    assert presence["monthOverMonthDelta"] is None
    assert presence["todayPresentPercent"] == 0


def test_build_kpis_shapes():
    attendance = {
        "counts": {"present": 4, "active": 1, "leading": 0},
        "monthDeltaPercent": 12.5,
        "totalAttendedResidents": 3,
        "residentsParticipated": 3,
        "topAttendees": [1, 2, 3, 4],
        "participationPercent": 75.0,
        "previousParticipationPercent": 62.5,
        "averageDailyPercent": 40.0,
        "dailyParticipation": [1, 2],
    }
    one_on_one = {"totalNotes": 5, "previousTotalNotes": 0, "notesWithFollowUp": 2}
    kpis = {k["key"]: k for k in build_kpis(attendance, one_on_one)}
    assert kpis["total-attended"]["value"] == "3"
    assert kpis["total-attended"]["delta"] == "+12.5 pts"
    assert kpis["total-attended"]["trend"] == "up"
    assert kpis["participation-percent"]["value"] == "75.0%"
    assert kpis["one-on-one"]["delta"] == "No prior period notes"
