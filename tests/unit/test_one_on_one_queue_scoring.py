import random
import uuid
from datetime import UTC, datetime

import pytest

from actify.errors import ValidationError
from actify.services.one_on_one_queue import (
    BED_BOUND_BOOST,
    NO_MONTHLY_VISIT_BOOST,
    NO_PRIOR_VISIT_DAYS,
    TIE_BREAK_RANGE,
    ResidentQueueStats,
    clamp_queue_size,
    create_date_context,
    reason_for_resident,
    score_resident,
    zoned_days_between,
)

NY = "America/New_York"


def _stats(month_note_count=0, days=None, status="ACTIVE"):
    return ResidentQueueStats(
        resident_id=uuid.uuid4(),
        first_name="Ada",
        last_name="Lovelace",
        room="101",
        status=status,
        month_note_count=month_note_count,
        month_last_note_at=None,
        last_one_on_one_at=None,
        days_since_last_one_on_one=days,
    )


def test_clamp_queue_size():
    assert clamp_queue_size(None) == 6
    assert clamp_queue_size(0) == 6
    assert clamp_queue_size(-4) == 1
    assert clamp_queue_size(50) == 20
    assert clamp_queue_size(8) == 8


def test_create_date_context_month_window():
    ctx = create_date_context("2026-02-10", NY)
    assert ctx.queue_date_key == "2026-02-10"
    assert ctx.queue_date == datetime(2026, 2, 10, 5, 0, tzinfo=UTC)
    assert ctx.next_queue_date == datetime(2026, 2, 11, 5, 0, tzinfo=UTC)
    assert ctx.month_start == datetime(2026, 2, 1, 5, 0, tzinfo=UTC)
    assert ctx.month_end == datetime(2026, 3, 1, 4, 59, 59, 999000, tzinfo=UTC)


def test_create_date_context_rejects_bad_key():
    with pytest.raises(ValidationError) as exc:
        create_date_context("02/10/2026", NY)
    assert str(exc.value) == "Invalid queue date. Expected YYYY-MM-DD."


def test_zoned_days_between():
    reference = datetime(2026, 2, 10, 15, 0, tzinfo=UTC)
    assert zoned_days_between(reference, None, NY) is None
    assert zoned_days_between(reference, datetime(2026, 2, 3, 23, 0, tzinfo=UTC), NY) == 7
    assert zoned_days_between(reference, datetime(2026, 2, 12, tzinfo=UTC), NY) == 0


def test_zoned_days_between_counts_dst_day_as_whole():
    # 2026-03-08 is a 23-hour day in New York
    reference = datetime(2026, 3, 10, 4, 0, tzinfo=UTC)
    assert zoned_days_between(reference, datetime(2026, 3, 2, 15, 0, tzinfo=UTC), NY) == 8
    assert zoned_days_between(datetime(2026, 11, 3, 5, 0, tzinfo=UTC), datetime(2026, 10, 27, 4, 0, tzinfo=UTC), NY) == 7


def test_reason_for_resident():
    assert reason_for_resident(_stats(0)) == "No 1:1 this month"
    assert reason_for_resident(_stats(1, status="BED_BOUND")) == "Bed-bound follow-up"
    assert reason_for_resident(_stats(1, days=None)) == "No prior 1:1 on record"
    assert reason_for_resident(_stats(1, days=9)) == "9 days since last 1:1"
    assert reason_for_resident(_stats(2, days=3)) == "Routine monthly touchpoint"


def test_score_resident_components():
    rng = random.Random(7)
    score = score_resident(_stats(0, days=None, status="BED_BOUND"), rng)
    base = NO_MONTHLY_VISIT_BOOST + NO_PRIOR_VISIT_DAYS + BED_BOUND_BOOST
    assert base <= score < base + TIE_BREAK_RANGE


def test_missing_this_month_outranks_long_gap():
    rng = random.Random(1)
    assert score_resident(_stats(0, days=1), rng) > score_resident(_stats(3, days=300), rng)
