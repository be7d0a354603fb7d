from datetime import UTC, datetime
from types import SimpleNamespace

from actify.services import pdf_reports
from actify.services.reports import (
    build_schedule_days,
    monthly_report_csv,
    resolve_schedule_range,
    schedule_range_label,
)

NY = "America/New_York"
NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)  # Wednesday


def _report():
    return {
        "monthKey": "2026-03",
        "monthLabel": "March 2026",
        "range": {"start": "2026-03-01T05:00:00.000Z", "end": "2026-04-01T03:59:59.999Z"},
        "attendance": {"present": 10, "active": 2, "leading": 1, "refused": 3, "noShow": 4},
        "engagementAverage": 1.25,
        "topPrograms": [{"title": "Bingo", "sessions": 4, "attended": 22}],
        "barriers": [{"label": "Asleep", "count": 3}],
        "oneOnOneTotal": 6,
        "notableOutcomes": [{"residentName": "Ada Lovelace", "date": "2026-03-02", "text": "Led the sing-along."}],
    }


def test_default_schedule_range_is_current_week():
    start, end = resolve_schedule_range(None, None, NY, now=NOW)
    assert start == datetime(2026, 3, 2, 5, 0, tzinfo=UTC)
    # Week ends after Sunday Mar 8; DST starts that day
    assert end == datetime(2026, 3, 9, 4, 0, tzinfo=UTC)
    assert schedule_range_label(start, end, NY) == "Mar 2, 2026 - Mar 8, 2026"


def test_schedule_range_from_date_keys():
    start, end = resolve_schedule_range("2026-03-10", "2026-03-10", NY, now=NOW)
    assert schedule_range_label(start, end, NY) == "Mar 10, 2026"
    assert resolve_schedule_range("2026-03-10", "2026-03-01", NY, now=NOW) is None
    assert resolve_schedule_range("soon", None, NY, now=NOW) is None


def test_build_schedule_days_groups_and_orders_by_day():
    start, end = resolve_schedule_range("2026-03-02", "2026-03-03", NY, now=NOW)
    activities = [
        SimpleNamespace(title="Bingo", location="Main Lounge",
                        start_at=datetime(2026, 3, 2, 19, 0, tzinfo=UTC), end_at=datetime(2026, 3, 2, 20, 0, tzinfo=UTC)),
        SimpleNamespace(title="Coffee Social", location="Activity Room",
                        start_at=datetime(2026, 3, 2, 14, 0, tzinfo=UTC), end_at=datetime(2026, 3, 2, 15, 0, tzinfo=UTC)),
    ]
    days = build_schedule_days(activities, start, end, NY)
    assert [day["label"] for day in days] == ["Monday, March 2", "Tuesday, March 3"]
    assert [a["title"] for a in days[0]["activities"]] == ["Coffee Social", "Bingo"]
    assert days[0]["activities"][0]["time"] == "9:00 AM - 10:00 AM"
    assert days[1]["activities"] == []


def test_monthly_report_csv_rows():
    lines = monthly_report_csv(_report()).splitlines()
    assert lines[0] == "Section,Metric,Value"
    assert "Attendance,Present/Active,12" in lines
    assert "Top Program,Bingo,22" in lines
    assert "Outcome,Ada Lovelace,Led the sing-along." in lines


def test_pdf_renderers_produce_pdf_bytes():
    monthly = pdf_reports.render_monthly_report_pdf(_report(), "Maple Grove", NY)
    assert monthly.startswith(b"%PDF")

    schedule = pdf_reports.render_calendar_schedule_pdf(
        [{"label": "Monday, March 2", "activities": [{"time": "9:00 AM - 10:00 AM", "title": "Bingo & Co",
                                                       "location": "Lounge"}]}],
        "Maple Grove", "Mar 2, 2026", NY,
    )
    assert schedule.startswith(b"%PDF")
