"""
Daily 1:1 visit queue.

Every facility day gets a short, ranked list of residents due a one-to-one
visit. Residents without a 1:1 note this month rank first, then the longest
gaps. Rows pinned to the following day are carried over ahead of the ranked
candidates.
"""
from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from actify.db import models
from actify.errors import NotFoundError, ValidationError
from actify.utils.residents import room_sort_key, status_label
from actify.utils.timezones import (
    add_zoned_days,
    as_utc,
    iso_utc,
    now_utc,
    resolve_time_zone,
    start_of_zoned_day,
    start_of_zoned_month,
    start_of_zoned_month_shift,
    to_zoned,
    zoned_date_key,
    zoned_date_string_to_utc_start,
)

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 6
MIN_QUEUE_SIZE = 1
MAX_QUEUE_SIZE = 20
NO_MONTHLY_VISIT_BOOST = 10_000
NO_PRIOR_VISIT_DAYS = 365
BED_BOUND_BOOST = 3
TIE_BREAK_RANGE = 0.25

SKIP_REASON_LABELS = {
    "RESIDENT_DECLINED": "Resident declined",
    "ASLEEP": "Asleep",
    "IN_APPOINTMENT": "In appointment",
    "CLINICAL_HOLD": "Clinical hold",
    "STAFFING_CONSTRAINT": "Staffing constraint",
    "OTHER": "Other",
}

PINNED_REASON = "Pinned to tomorrow"


@dataclass
class DateContext:
    time_zone: str
    queue_date: datetime
    queue_date_key: str
    day_end: datetime
    next_queue_date: datetime
    month_start: datetime
    month_end: datetime


@dataclass
class ResidentQueueStats:
    resident_id: uuid.UUID
    first_name: str
    last_name: str
    room: str
    status: str
    month_note_count: int
    month_last_note_at: Optional[datetime]
    last_one_on_one_at: Optional[datetime]
    days_since_last_one_on_one: Optional[int]

    @property
    def has_one_on_one_this_month(self) -> bool:
        return self.month_note_count > 0

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def clamp_queue_size(size: Optional[float]) -> int:
    if not size:
        return DEFAULT_QUEUE_SIZE
    try:
        value = int(size)
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_QUEUE_SIZE
    return min(MAX_QUEUE_SIZE, max(MIN_QUEUE_SIZE, value))


def create_date_context(date_key: Optional[str], time_zone: Optional[str]) -> DateContext:
    """Resolve the queue day and its month window in the facility zone.

    Raises:
        ValidationError: If ``date_key`` is given but is not ``YYYY-MM-DD``.
    """
    tz = resolve_time_zone(time_zone)
    trimmed = (date_key or "").strip()
    if trimmed:
        queue_date = zoned_date_string_to_utc_start(trimmed, tz)
        if queue_date is None:
            raise ValidationError("Invalid queue date. Expected YYYY-MM-DD.")
    else:
        queue_date = start_of_zoned_day(now_utc(), tz)

    next_queue_date = add_zoned_days(queue_date, tz, 1)
    next_month = start_of_zoned_month_shift(queue_date, tz, 1)
    return DateContext(
        time_zone=tz,
        queue_date=queue_date,
        queue_date_key=zoned_date_key(queue_date, tz),
        day_end=next_queue_date - timedelta(milliseconds=1),
        next_queue_date=next_queue_date,
        month_start=start_of_zoned_month(queue_date, tz),
        month_end=next_month - timedelta(milliseconds=1),
    )


def zoned_days_between(reference: datetime, compare: Optional[datetime], time_zone: str) -> Optional[int]:
    if compare is None:
        return None
    # calendar-date difference; a DST day is 23 or 25 hours long
    days = (to_zoned(reference, time_zone).date() - to_zoned(compare, time_zone).date()).days
    return max(days, 0)


def reason_for_resident(stats: ResidentQueueStats) -> str:
    if stats.month_note_count == 0:
        return "No 1:1 this month"
    if stats.status == "BED_BOUND":
        return "Bed-bound follow-up"
    if stats.days_since_last_one_on_one is None:
        return "No prior 1:1 on record"
    if stats.days_since_last_one_on_one >= 7:
        return f"{stats.days_since_last_one_on_one} days since last 1:1"
    return "Routine monthly touchpoint"


def score_resident(stats: ResidentQueueStats, rng: Optional[random.Random] = None) -> float:
    rng = rng or random
    boost = NO_MONTHLY_VISIT_BOOST if stats.month_note_count == 0 else 0
    days = stats.days_since_last_one_on_one
    if days is None:
        days = NO_PRIOR_VISIT_DAYS
    bed_bound = BED_BOUND_BOOST if stats.status == "BED_BOUND" else 0
    return boost + days + bed_bound + rng.random() * TIE_BREAK_RANGE


def load_resident_queue_stats(db: Session, facility_id: uuid.UUID, ctx: DateContext) -> List[ResidentQueueStats]:
    residents = (
        db.query(models.Resident)
        .filter(models.Resident.organization_id == facility_id, models.Resident.status != "DISCHARGED")
        .all()
    )
    residents.sort(key=lambda r: room_sort_key(r.room, r.last_name, r.first_name))

    notes = (
        db.query(models.ProgressNote)
        .join(models.Resident, models.ProgressNote.resident_id == models.Resident.id)
        .filter(
            models.Resident.organization_id == facility_id,
            models.ProgressNote.type == "ONE_TO_ONE",
        )
    )
    month_rows = (
        notes.with_entities(
            models.ProgressNote.resident_id,
            func.count(models.ProgressNote.id),
            func.max(models.ProgressNote.created_at),
        )
        .filter(
            models.ProgressNote.created_at >= as_utc(ctx.month_start),
            models.ProgressNote.created_at <= as_utc(ctx.month_end),
        )
        .group_by(models.ProgressNote.resident_id)
        .all()
    )
    last_rows = (
        notes.with_entities(models.ProgressNote.resident_id, func.max(models.ProgressNote.created_at))
        .filter(models.ProgressNote.created_at <= as_utc(ctx.day_end))
        .group_by(models.ProgressNote.resident_id)
        .all()
    )
    month_by_resident = {rid: (count, last_at) for rid, count, last_at in month_rows}
    last_by_resident = {rid: last_at for rid, last_at in last_rows}

    stats = []
    for resident in residents:
        count, month_last = month_by_resident.get(resident.id, (0, None))
        last_at = last_by_resident.get(resident.id)
        stats.append(ResidentQueueStats(
            resident_id=resident.id,
            first_name=resident.first_name,
            last_name=resident.last_name,
            room=resident.room,
            status=resident.status,
            month_note_count=count,
            month_last_note_at=as_utc(month_last),
            last_one_on_one_at=as_utc(last_at),
            days_since_last_one_on_one=zoned_days_between(ctx.queue_date, last_at and as_utc(last_at), ctx.time_zone),
        ))
    return stats


def _queue_rows(db: Session, facility_id: uuid.UUID, ctx: DateContext) -> List[models.DailyOneOnOneQueue]:
    return (
        db.query(models.DailyOneOnOneQueue)
        .options(joinedload(models.DailyOneOnOneQueue.resident))
        .filter(
            models.DailyOneOnOneQueue.organization_id == facility_id,
            models.DailyOneOnOneQueue.queue_date_key == ctx.queue_date_key,
        )
        .order_by(
            models.DailyOneOnOneQueue.is_pinned.desc(),
            models.DailyOneOnOneQueue.position.asc(),
            models.DailyOneOnOneQueue.created_at.asc(),
        )
        .all()
    )


def rebuild_queue(db: Session, facility_id: uuid.UUID, queue_size: int, ctx: DateContext,
                  resident_stats: List[ResidentQueueStats], *, preserve_pinned: bool,
                  missing_this_month_only: bool, include_pinned: bool,
                  rng: Optional[random.Random] = None) -> List[models.DailyOneOnOneQueue]:
    existing = _queue_rows(db, facility_id, ctx)
    existing_pinned = [row for row in existing if row.is_pinned] if preserve_pinned and include_pinned else []
    existing_pinned_by_resident = {row.resident_id: row for row in existing_pinned}

    for row in existing:
        if not preserve_pinned or not row.is_pinned:
            db.delete(row)
    db.flush()

    carryover: List[models.DailyOneOnOneQueue] = []
    if include_pinned:
        carryover = (
            db.query(models.DailyOneOnOneQueue)
            .join(models.Resident, models.DailyOneOnOneQueue.resident_id == models.Resident.id)
            .filter(
                models.DailyOneOnOneQueue.organization_id == facility_id,
                models.DailyOneOnOneQueue.pinned_for_date >= as_utc(ctx.queue_date),
                models.DailyOneOnOneQueue.pinned_for_date <= as_utc(ctx.day_end),
                models.Resident.status != "DISCHARGED",
            )
            .order_by(models.DailyOneOnOneQueue.pinned_at.asc(), models.DailyOneOnOneQueue.created_at.asc())
            .all()
        )

    pinned_order: Dict[uuid.UUID, int] = {}
    for row in sorted(existing_pinned, key=lambda r: r.position):
        pinned_order.setdefault(row.resident_id, len(pinned_order) + 1)
    for row in carryover:
        pinned_order.setdefault(row.resident_id, len(pinned_order) + 1)

    pinned = sorted(
        (stats for stats in resident_stats if stats.resident_id in pinned_order),
        key=lambda s: (pinned_order[s.resident_id], room_sort_key(s.room, s.last_name, s.first_name)),
    )
    candidates = [
        stats for stats in resident_stats
        if stats.resident_id not in pinned_order
        and (not missing_this_month_only or stats.month_note_count == 0)
    ]
    scored = sorted(candidates, key=lambda s: score_resident(s, rng), reverse=True)
    target = max(queue_size, len(pinned))
    selected = pinned + scored[:max(0, target - len(pinned))]

    now = now_utc()
    for index, stats in enumerate(selected, start=1):
        was_pinned = stats.resident_id in pinned_order
        current = existing_pinned_by_resident.get(stats.resident_id)
        reason = PINNED_REASON if was_pinned and current is None else reason_for_resident(stats)
        if current is not None:
            current.position = index
            current.queue_size = queue_size
            current.reason = reason
            current.is_pinned = was_pinned
            continue
        db.add(models.DailyOneOnOneQueue(
            organization_id=facility_id,
            resident_id=stats.resident_id,
            queue_date=as_utc(ctx.queue_date),
            queue_date_key=ctx.queue_date_key,
            position=index,
            queue_size=queue_size,
            reason=reason,
            is_pinned=was_pinned,
            pinned_at=now if was_pinned else None,
        ))

    selected_ids = {stats.resident_id for stats in selected}
    for row in existing_pinned:
        if row.resident_id not in selected_ids:
            db.delete(row)
    db.flush()

    logger.info(
        "one_on_one_queue_rebuilt: facility=%s date=%s size=%s pinned=%s selected=%s",
        facility_id, ctx.queue_date_key, queue_size, len(pinned), len(selected),
    )
    return _queue_rows(db, facility_id, ctx)


def _serialize_queue_item(row: models.DailyOneOnOneQueue, stats: Optional[ResidentQueueStats]) -> Dict[str, Any]:
    resident = row.resident
    return {
        "id": str(row.id),
        "residentId": str(row.resident_id),
        "residentName": resident.full_name,
        "room": resident.room,
        "status": resident.status,
        "statusLabel": status_label(resident.status),
        "reason": row.reason,
        "isPinned": bool(row.is_pinned),
        "position": row.position,
        "queueSize": row.queue_size,
        "completedAt": iso_utc(row.completed_at),
        "skippedAt": iso_utc(row.skipped_at),
        "skipReason": row.skip_reason,
        "skipReasonLabel": SKIP_REASON_LABELS.get(row.skip_reason) if row.skip_reason else None,
        "lastOneOnOneAt": iso_utc(stats.last_one_on_one_at) if stats else None,
        "daysSinceLastOneOnOne": stats.days_since_last_one_on_one if stats else None,
        "monthNoteCount": stats.month_note_count if stats else 0,
    }


def build_snapshot(ctx: DateContext, rows: List[models.DailyOneOnOneQueue],
                   resident_stats: List[ResidentQueueStats]) -> Dict[str, Any]:
    stats_by_resident = {stats.resident_id: stats for stats in resident_stats}
    queue = [_serialize_queue_item(row, stats_by_resident.get(row.resident_id)) for row in rows]
    queued = {row.resident_id for row in rows}
    return {
        "dateKey": ctx.queue_date_key,
        "queueSize": rows[0].queue_size if rows else DEFAULT_QUEUE_SIZE,
        "coverage": {
            "residentsWithOneOnOneThisMonth": sum(1 for s in resident_stats if s.has_one_on_one_this_month),
            "totalEligibleResidents": len(resident_stats),
        },
        "queue": queue,
        "monthlyResidents": [
            {
                "residentId": str(stats.resident_id),
                "residentName": stats.name,
                "room": stats.room,
                "status": stats.status,
                "statusLabel": status_label(stats.status),
                "monthNoteCount": stats.month_note_count,
                "monthLastNoteAt": iso_utc(stats.month_last_note_at),
                "lastOneOnOneAt": iso_utc(stats.last_one_on_one_at),
                "daysSinceLastOneOnOne": stats.days_since_last_one_on_one,
                "hasOneOnOneThisMonth": stats.has_one_on_one_this_month,
                "inTodayQueue": stats.resident_id in queued,
            }
            for stats in resident_stats
        ],
    }


def _snapshot(db: Session, facility_id: uuid.UUID, queue_size: int, ctx: DateContext, *,
              regenerate: bool, missing_this_month_only: bool) -> Dict[str, Any]:
    try:
        resident_stats = load_resident_queue_stats(db, facility_id, ctx)
        if regenerate:
            rows = rebuild_queue(
                db, facility_id, queue_size, ctx, resident_stats,
                preserve_pinned=not missing_this_month_only,
                missing_this_month_only=missing_this_month_only,
                include_pinned=not missing_this_month_only,
            )
        else:
            rows = _queue_rows(db, facility_id, ctx)
            if not rows:
                rows = rebuild_queue(
                    db, facility_id, queue_size, ctx, resident_stats,
                    preserve_pinned=True, missing_this_month_only=False, include_pinned=True,
                )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return build_snapshot(ctx, rows, resident_stats)


def get_queue_snapshot(db: Session, facility_id: uuid.UUID, time_zone: str, date_key: Optional[str] = None,
                       queue_size: Optional[float] = None) -> Dict[str, Any]:
    ctx = create_date_context(date_key, time_zone)
    return _snapshot(db, facility_id, clamp_queue_size(queue_size), ctx, regenerate=False,
                     missing_this_month_only=False)


def regenerate_queue_snapshot(db: Session, facility_id: uuid.UUID, time_zone: str, date_key: Optional[str] = None,
                              queue_size: Optional[int] = None, missing_this_month_only: bool = False) -> Dict[str, Any]:
    ctx = create_date_context(date_key, time_zone)
    return _snapshot(db, facility_id, clamp_queue_size(queue_size), ctx, regenerate=True,
                     missing_this_month_only=bool(missing_this_month_only))


def get_queue_item(db: Session, facility_id: uuid.UUID, queue_item_id: uuid.UUID) -> models.DailyOneOnOneQueue:
    row = (
        db.query(models.DailyOneOnOneQueue)
        .filter(
            models.DailyOneOnOneQueue.id == queue_item_id,
            models.DailyOneOnOneQueue.organization_id == facility_id,
        )
        .first()
    )
    if row is None:
        raise NotFoundError("Queue item not found.")
    return row


def complete_queue_item(db: Session, facility_id: uuid.UUID, queue_item_id: uuid.UUID, time_zone: str) -> Dict[str, Any]:
    row = get_queue_item(db, facility_id, queue_item_id)
    row.completed_at = now_utc()
    row.skipped_at = None
    row.skip_reason = None
    ctx = create_date_context(row.queue_date_key, time_zone)
    return _snapshot(db, facility_id, DEFAULT_QUEUE_SIZE, ctx, regenerate=False, missing_this_month_only=False)


def skip_queue_item(db: Session, facility_id: uuid.UUID, queue_item_id: uuid.UUID, skip_reason: str,
                    time_zone: str) -> Dict[str, Any]:
    row = get_queue_item(db, facility_id, queue_item_id)
    row.completed_at = None
    row.skipped_at = now_utc()
    row.skip_reason = skip_reason
    ctx = create_date_context(row.queue_date_key, time_zone)
    return _snapshot(db, facility_id, DEFAULT_QUEUE_SIZE, ctx, regenerate=False, missing_this_month_only=False)


def pin_queue_item_to_tomorrow(db: Session, facility_id: uuid.UUID, queue_item_id: uuid.UUID,
                               time_zone: str) -> Dict[str, Any]:
    row = get_queue_item(db, facility_id, queue_item_id)
    ctx = create_date_context(row.queue_date_key, time_zone)
    row.pinned_for_date = as_utc(ctx.next_queue_date)
    row.pinned_at = now_utc()
    return _snapshot(db, facility_id, DEFAULT_QUEUE_SIZE, ctx, regenerate=False, missing_this_month_only=False)
