from actify.services.notification_service import is_within_quiet_hours, parse_time_to_minutes


def test_parse_time_to_minutes():
    assert parse_time_to_minutes("09:30") == 570
    assert parse_time_to_minutes("23:59") == 1439
    assert parse_time_to_minutes("99:99") == 23 * 60 + 59
    assert parse_time_to_minutes("9am") == 0
    assert parse_time_to_minutes(None) == 0


def test_quiet_hours_same_day_window():
    assert is_within_quiet_hours(13 * 60, "12:00", "14:00")
    assert not is_within_quiet_hours(14 * 60, "12:00", "14:00")


def test_quiet_hours_wrap_midnight():
    assert is_within_quiet_hours(23 * 60, "22:00", "06:00")
    assert is_within_quiet_hours(5 * 60, "22:00", "06:00")
    assert not is_within_quiet_hours(12 * 60, "22:00", "06:00")


def test_empty_window_is_never_quiet():
    assert not is_within_quiet_hours(600, "10:00", "10:00")
