"""Resident roster operations."""
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from actify.db import models
from actify.errors import NotFoundError, ValidationError
from actify.utils.residents import (
    WRITABLE_RESIDENT_STATUSES,
    is_active_status,
    normalize_status_for_import,
    parse_resident_tags,
    serialize_resident_tags,
)
from actify.utils.timezones import as_utc, iso_utc, parse_iso_datetime

logger = logging.getLogger(__name__)

RECENT_NOTES_LIMIT = 3
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_birth_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a birth date; bare dates are pinned to noon UTC so they never shift a day."""
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    candidate = f"{trimmed}T12:00:00.000Z" if _DATE_ONLY_RE.match(trimmed) else trimmed
    parsed = parse_iso_datetime(candidate)
    if parsed is None:
        raise ValidationError("Invalid birth date.")
    return parsed


def ensure_writable_status(status: Optional[str]) -> None:
    if status is not None and status not in WRITABLE_RESIDENT_STATUSES:
        raise ValidationError("Unsupported resident status.")


def _recent_one_on_one_notes(db: Session, resident_ids: Sequence[uuid.UUID]) -> Dict[uuid.UUID, List]:
    if not resident_ids:
        return {}
    notes = (
        db.query(models.ProgressNote)
        .filter(
            models.ProgressNote.resident_id.in_(list(resident_ids)),
            models.ProgressNote.type == "ONE_TO_ONE",
        )
        .order_by(models.ProgressNote.created_at.desc())
        .all()
    )
    grouped: Dict[uuid.UUID, List] = {}
    for note in notes:
        bucket = grouped.setdefault(note.resident_id, [])
        if len(bucket) < RECENT_NOTES_LIMIT:
            bucket.append(note)
    return grouped


def serialize_resident(resident: models.Resident, recent_notes: Sequence[models.ProgressNote] = ()) -> Dict[str, Any]:
    latest_note_at = recent_notes[0].created_at if recent_notes else None
    last_one_on_one = resident.last_one_on_one_at
    if last_one_on_one and latest_note_at:
        last_one_on_one = max(as_utc(last_one_on_one), as_utc(latest_note_at))
    else:
        last_one_on_one = last_one_on_one or latest_note_at
    return {
        "id": str(resident.id),
        "firstName": resident.first_name,
        "lastName": resident.last_name,
        "room": resident.room,
        "status": resident.status,
        "birthDate": iso_utc(resident.birth_date),
        "preferences": resident.preferences,
        "safetyNotes": resident.safety_notes,
        "tags": parse_resident_tags(resident.tags),
        "lastOneOnOneAt": iso_utc(last_one_on_one),
        "followUpFlag": bool(resident.follow_up_flag),
        "recentNotes": [
            {"id": str(note.id), "createdAt": iso_utc(note.created_at), "narrative": note.narrative}
            for note in recent_notes
        ],
    }


def serialize_residents(db: Session, residents: Sequence[models.Resident]) -> List[Dict[str, Any]]:
    notes = _recent_one_on_one_notes(db, [resident.id for resident in residents])
    return [serialize_resident(resident, notes.get(resident.id, [])) for resident in residents]


def _ordered(query):
    return query.order_by(models.Resident.room.asc(), models.Resident.last_name.asc(), models.Resident.first_name.asc())


def list_residents(db: Session, facility_id: uuid.UUID, archived: bool = False) -> List[models.Resident]:
    query = db.query(models.Resident).filter(models.Resident.organization_id == facility_id)
    if archived:
        query = query.filter(models.Resident.status == "DISCHARGED")
    else:
        query = query.filter(models.Resident.status != "DISCHARGED")
    return _ordered(query).all()


def get_resident(db: Session, facility_id: uuid.UUID, resident_id: uuid.UUID) -> models.Resident:
    resident = (
        db.query(models.Resident)
        .filter(models.Resident.id == resident_id, models.Resident.organization_id == facility_id)
        .first()
    )
    if resident is None:
        raise NotFoundError("Resident not found.")
    return resident


def create_resident(db: Session, facility_id: uuid.UUID, *, first_name: str, last_name: str, room: str,
                    status: str, birth_date: Optional[str] = None, preferences: Optional[str] = None,
                    safety_notes: Optional[str] = None, tags: Optional[List[str]] = None,
                    follow_up_flag: Optional[bool] = None) -> models.Resident:
    ensure_writable_status(status)
    resident = models.Resident(
        organization_id=facility_id,
        first_name=first_name,
        last_name=last_name,
        room=room,
        status=status,
        is_active=is_active_status(status),
        birth_date=parse_birth_date(birth_date),
        preferences=preferences or None,
        safety_notes=safety_notes or None,
        tags=serialize_resident_tags(tags) if tags else None,
        follow_up_flag=bool(follow_up_flag),
    )
    db.add(resident)
    db.commit()
    db.refresh(resident)
    return resident


_FIELD_COLUMNS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "room": "room",
    "preferences": "preferences",
    "safetyNotes": "safety_notes",
    "followUpFlag": "follow_up_flag",
}


def update_resident(db: Session, facility_id: uuid.UUID, resident_id: uuid.UUID,
                    changes: Dict[str, Any]) -> models.Resident:
    """Apply a partial update. ``changes`` only carries the fields the caller sent."""
    if not changes:
        raise ValidationError("At least one field is required.")
    ensure_writable_status(changes.get("status"))
    resident = get_resident(db, facility_id, resident_id)

    for key, column in _FIELD_COLUMNS.items():
        if key in changes and changes[key] is not None:
            setattr(resident, column, changes[key])
    for key, column in (("preferences", "preferences"), ("safetyNotes", "safety_notes")):
        if key in changes and changes[key] is None:
            setattr(resident, column, None)
    if changes.get("status"):
        resident.status = changes["status"]
        resident.is_active = is_active_status(changes["status"])
    if "birthDate" in changes:
        resident.birth_date = parse_birth_date(changes["birthDate"])
    if changes.get("tags"):
        resident.tags = serialize_resident_tags(changes["tags"])
    if "lastOneOnOneAt" in changes:
        resident.last_one_on_one_at = as_utc(changes["lastOneOnOneAt"])

    db.commit()
    db.refresh(resident)
    return resident


def archive_resident(db: Session, facility_id: uuid.UUID, resident_id: uuid.UUID) -> models.Resident:
    resident = get_resident(db, facility_id, resident_id)
    resident.status = "DISCHARGED"
    resident.is_active = False
    db.commit()
    db.refresh(resident)
    return resident


def import_residents(db: Session, facility_id: uuid.UUID, rows: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Upsert roster rows keyed on room. Rows with an unknown status are skipped."""
    created = updated = skipped = 0
    imported_ids: List[uuid.UUID] = []
    try:
        for row in rows:
            status = normalize_status_for_import(row["status"])
            if status is None:
                skipped += 1
                continue
            existing = (
                db.query(models.Resident)
                .filter(models.Resident.organization_id == facility_id, models.Resident.room == row["room"])
                .first()
            )
            if existing is not None:
                existing.first_name = row["firstName"]
                existing.last_name = row["lastName"]
                existing.status = status
                existing.is_active = is_active_status(status)
                if row.get("notes"):
                    existing.preferences = row["notes"]
                db.flush()
                updated += 1
                imported_ids.append(existing.id)
                continue
            resident = models.Resident(
                organization_id=facility_id,
                first_name=row["firstName"],
                last_name=row["lastName"],
                room=row["room"],
                status=status,
                is_active=is_active_status(status),
                preferences=row.get("notes") or None,
            )
            db.add(resident)
            db.flush()
            created += 1
            imported_ids.append(resident.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "residents_import: facility=%s created=%s updated=%s skipped=%s",
        facility_id, created, updated, skipped,
    )
    residents = []
    if imported_ids:
        residents = _ordered(
            db.query(models.Resident).filter(
                models.Resident.organization_id == facility_id,
                models.Resident.id.in_(imported_ids),
            )
        ).all()
    return {
        "summary": {"created": created, "updated": updated, "skipped": skipped, "processed": len(rows)},
        "residents": residents,
    }
