from datetime import UTC, datetime

from actify.services.calendar.conflicts import (
    has_time_overlap,
    is_outside_business_hours,
    parse_minutes,
    warning_policy,
)
from actify.utils.facility_settings import DEFAULT_BUSINESS_HOURS

NY = "America/New_York"


def _utc(*parts):
    return datetime(*parts, tzinfo=UTC)


def test_overlap_is_half_open():
    assert has_time_overlap(_utc(2026, 3, 2, 14), _utc(2026, 3, 2, 15), _utc(2026, 3, 2, 14, 30), _utc(2026, 3, 2, 16))
    # Touching edges do not overlap
    assert not has_time_overlap(_utc(2026, 3, 2, 14), _utc(2026, 3, 2, 15), _utc(2026, 3, 2, 15), _utc(2026, 3, 2, 16))


def test_parse_minutes():
    assert parse_minutes("08:30") == 510
    assert parse_minutes("24:00") is None
    assert parse_minutes("8am") is None
    assert parse_minutes(None) is None


def test_inside_business_hours_on_weekday():
    # 09:00-10:00 Monday in New York
    assert not is_outside_business_hours(_utc(2026, 3, 2, 14), _utc(2026, 3, 2, 15), NY, DEFAULT_BUSINESS_HOURS)


def test_outside_business_hours_cases():
    # Saturday
    assert is_outside_business_hours(_utc(2026, 3, 7, 15), _utc(2026, 3, 7, 16), NY, DEFAULT_BUSINESS_HOURS)
    # Monday 07:00 local
    assert is_outside_business_hours(_utc(2026, 3, 2, 12), _utc(2026, 3, 2, 13), NY, DEFAULT_BUSINESS_HOURS)
    # Runs past 17:00 local
    assert is_outside_business_hours(_utc(2026, 3, 2, 21), _utc(2026, 3, 2, 22, 30), NY, DEFAULT_BUSINESS_HOURS)
    # Spans two days
    assert is_outside_business_hours(_utc(2026, 3, 2, 14), _utc(2026, 3, 3, 14), NY, DEFAULT_BUSINESS_HOURS)


def test_invalid_business_hours_never_flags():
    broken = {"start": "soon", "end": "17:00", "days": [1]}
    assert not is_outside_business_hours(_utc(2026, 3, 7, 3), _utc(2026, 3, 7, 4), NY, broken)


def test_warning_policy_reads_settings_view():
    settings = {
        "timezone": NY,
        "businessHours": DEFAULT_BUSINESS_HOURS,
        "attendanceRules": {"warnTherapyOverlap": False, "warnOutsideBusinessHours": True},
    }
    policy = warning_policy(settings)
    assert policy.warn_therapy_overlap is False
    assert policy.warn_outside_business_hours is True
    assert policy.timezone == NY
