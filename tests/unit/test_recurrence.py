import uuid
from datetime import UTC, datetime
from types import SimpleNamespace

from actify.services.calendar.recurrence import (
    add_months,
    build_rrule,
    expand_series_to_range,
    merge_occurrences_with_overrides,
    normalize_exdates,
    parse_rrule,
)


def _series(rrule, dtstart, duration_min=60, until=None, exdates=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        dtstart=dtstart,
        duration_min=duration_min,
        rrule=rrule,
        until=until,
        exdates=exdates,
    )


MONDAY_10 = datetime(2026, 3, 2, 15, 0, tzinfo=UTC)


def test_parse_rrule_defaults_weekly_to_dtstart_weekday():
    parsed = parse_rrule("FREQ=WEEKLY;INTERVAL=2", MONDAY_10)
    assert parsed.freq == "WEEKLY"
    assert parsed.interval == 2
    assert parsed.by_day == [1]
    assert parsed.count is None


def test_parse_rrule_unknown_freq_and_bad_interval():
    parsed = parse_rrule("FREQ=HOURLY;INTERVAL=-3;BYDAY=FR,MO,XX", MONDAY_10)
    assert parsed.freq == "WEEKLY"
    assert parsed.interval == 1
    assert parsed.by_day == [1, 5]


def test_parse_rrule_until_formats():
    date_only = parse_rrule("FREQ=DAILY;UNTIL=20260310", MONDAY_10)
    assert date_only.until == datetime(2026, 3, 10, 23, 59, 59, 999000, tzinfo=UTC)
    stamped = parse_rrule("FREQ=DAILY;UNTIL=20260310T120000Z", MONDAY_10)
    assert stamped.until == datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def test_build_rrule_round_trips_through_parser():
    rrule = build_rrule("WEEKLY", 1, ["MO", "WE"], count=4)
    assert rrule == "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=4"
    parsed = parse_rrule(rrule, MONDAY_10)
    assert parsed.by_day == [1, 3]
    assert parsed.count == 4


def test_expand_daily_within_window():
    series = _series("FREQ=DAILY;INTERVAL=1", MONDAY_10)
    occurrences = expand_series_to_range(
        series, datetime(2026, 3, 3, tzinfo=UTC), datetime(2026, 3, 5, 23, 0, tzinfo=UTC)
    )
    assert [o.start_at.day for o in occurrences] == [3, 4, 5]
    assert (occurrences[0].end_at - occurrences[0].start_at).total_seconds() == 3600
    assert occurrences[0].occurrence_key == "2026-03-03T15:00:00.000Z"


def test_expand_weekly_by_day():
    series = _series("FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE,FR", MONDAY_10)
    occurrences = expand_series_to_range(
        series, datetime(2026, 3, 1, tzinfo=UTC), datetime(2026, 3, 14, tzinfo=UTC)
    )
    assert [o.start_at.day for o in occurrences] == [2, 4, 6, 9, 11, 13]


def test_count_is_consumed_before_the_window():
    series = _series("FREQ=DAILY;INTERVAL=1;COUNT=5", MONDAY_10)
    occurrences = expand_series_to_range(
        series, datetime(2026, 3, 5, tzinfo=UTC), datetime(2026, 3, 31, tzinfo=UTC)
    )
    # Mar 2..6 are the five occurrences; only 5 and 6 fall inside the window
    assert [o.start_at.day for o in occurrences] == [5, 6]


def test_exdates_remove_occurrences():
    series = _series("FREQ=DAILY", MONDAY_10, exdates=["2026-03-03T15:00:00.000Z", "", 7])
    occurrences = expand_series_to_range(
        series, datetime(2026, 3, 2, tzinfo=UTC), datetime(2026, 3, 4, 23, 0, tzinfo=UTC)
    )
    assert [o.start_at.day for o in occurrences] == [2, 4]


def test_series_until_caps_expansion():
    series = _series("FREQ=DAILY", MONDAY_10, until=datetime(2026, 3, 4, 0, 0, tzinfo=UTC))
    occurrences = expand_series_to_range(
        series, datetime(2026, 3, 1, tzinfo=UTC), datetime(2026, 3, 31, tzinfo=UTC)
    )
    assert [o.start_at.day for o in occurrences] == [2, 3]


def test_monthly_steps_from_previous_occurrence():
    jan_31 = datetime(2026, 1, 31, 15, 0, tzinfo=UTC)
    series = _series("FREQ=MONTHLY;COUNT=3", jan_31)
    occurrences = expand_series_to_range(series, jan_31, datetime(2026, 12, 31, tzinfo=UTC))
    assert [(o.start_at.month, o.start_at.day) for o in occurrences] == [(1, 31), (2, 28), (3, 28)]
    assert [o.occurrence_key for o in occurrences] == [
        "2026-01-31T15:00:00.000Z", "2026-02-28T15:00:00.000Z", "2026-03-28T15:00:00.000Z"
    ]


def test_add_months_clamps_day():
    assert add_months(datetime(2024, 1, 31, tzinfo=UTC), 1).day == 29
    assert add_months(datetime(2026, 11, 30, tzinfo=UTC), 3) == datetime(2027, 2, 28, tzinfo=UTC)


def test_inverted_range_is_empty():
    series = _series("FREQ=DAILY", MONDAY_10)
    assert expand_series_to_range(series, datetime(2026, 4, 1, tzinfo=UTC), datetime(2026, 3, 1, tzinfo=UTC)) == []


def test_merge_overrides_replaces_times():
    series = _series("FREQ=DAILY;COUNT=2", MONDAY_10)
    generated = expand_series_to_range(series, MONDAY_10, datetime(2026, 3, 10, tzinfo=UTC))
    moved = SimpleNamespace(
        occurrence_key=generated[1].occurrence_key,
        start_at=datetime(2026, 3, 3, 18, 0, tzinfo=UTC),
        end_at=datetime(2026, 3, 3, 19, 0, tzinfo=UTC),
    )
    merged = merge_occurrences_with_overrides(generated, [moved])
    assert merged[0].start_at == generated[0].start_at
    assert merged[1].start_at.hour == 18
    assert merged[1].occurrence_key == generated[1].occurrence_key


def test_normalize_exdates_ignores_non_lists():
    assert normalize_exdates(None) == []
    assert normalize_exdates([" a ", None, ""]) == ["a"]
