"""
Progress notes.

The note builder collects more fields than the ``progress_notes`` table has
columns for. Header fields and tags are folded into ``narrative`` and the
follow-up details into ``follow_up`` as prefixed lines, and
``parse_progress_note_content`` reads them back out.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session, joinedload

from actify.db import models
from actify.errors import NotFoundError
from actify.services.templates import parse_note_template_meta
from actify.utils.timezones import as_utc, iso_utc, zoned_date_key

TITLE_PREFIX = "Title:"
LOCATION_PREFIX = "Location:"
TOPIC_PREFIX = "Topic:"
SETTING_PREFIX = "Setting:"
TAGS_PREFIX = "Tags:"
INTERVENTIONS_PREFIX = "Interventions:"
FOLLOW_UP_NEEDED_PREFIX = "Follow-up Needed:"
LINKED_RESIDENTS_PREFIX = "Linked Residents:"
COMMUNICATION_PREFIX = "Communication:"
MOBILITY_PREFIX = "Mobility/Access:"
GOAL_LINK_PREFIX = "Goal Link:"
STAFF_PRESENT_PREFIX = "Staff Present:"

_FOLLOW_UP_TAGGED = (
    INTERVENTIONS_PREFIX,
    FOLLOW_UP_NEEDED_PREFIX,
    LINKED_RESIDENTS_PREFIX,
    COMMUNICATION_PREFIX,
    MOBILITY_PREFIX,
    GOAL_LINK_PREFIX,
    STAFF_PRESENT_PREFIX,
)

NOTES_LIST_LIMIT = 500
MAX_TAGS = 20


# Builder values <-> stored enum values

def to_db_participation(value: str) -> str:
    if value == "high":
        return "HIGH"
    if value == "moderate":
        return "MODERATE"
    return "MINIMAL"


def from_db_participation(value: str) -> str:
    if value == "HIGH":
        return "high"
    if value == "MODERATE":
        return "moderate"
    return "low"


_MOODS = ("bright", "flat", "anxious", "agitated")


def to_db_mood(value: str) -> str:
    return value.upper() if value in _MOODS else "CALM"


def from_db_mood(value: str) -> str:
    lowered = (value or "").lower()
    return lowered if lowered in _MOODS else "calm"


def to_db_cues(value: str) -> str:
    if value == "verbal":
        return "VERBAL"
    if value == "visual":
        return "VISUAL"
    if value in ("hand_on_hand", "physical_assist"):
        return "HAND_OVER_HAND"
    return "NONE"


def from_db_cues(value: str) -> str:
    if value == "VERBAL":
        return "verbal"
    if value == "VISUAL":
        return "visual"
    if value == "HAND_OVER_HAND":
        return "hand_on_hand"
    return "none"


def to_db_response(value: str) -> str:
    if value == "neutral":
        return "NEUTRAL"
    if value == "resistant":
        return "RESISTANT"
    return "POSITIVE"


def from_db_response(value: str) -> str:
    if value == "NEUTRAL":
        return "neutral"
    if value == "RESISTANT":
        return "resistant"
    return "positive"


def to_db_type(note_type: str) -> str:
    return "ONE_TO_ONE" if note_type == "1on1" else "GROUP"


def from_db_type(note_type: str) -> str:
    return "1on1" if note_type == "ONE_TO_ONE" else "general"


def normalize_tags(tags: Sequence[str]) -> List[str]:
    cleaned = []
    for tag in tags:
        normalized = re.sub(r"\s+", "-", re.sub(r"^#", "", tag.strip())).lower()
        if normalized:
            cleaned.append(normalized)
    deduped: List[str] = []
    for tag in cleaned[:MAX_TAGS]:
        if tag not in deduped:
            deduped.append(tag)
    return deduped


def _append_header(lines: List[str], prefix: str, value: Optional[str]) -> None:
    trimmed = (value or "").strip()
    if trimmed:
        lines.append(f"{prefix} {trimmed}")


def serialize_narrative(payload: Dict[str, Any]) -> str:
    header: List[str] = []
    _append_header(header, TITLE_PREFIX, payload.get("title"))
    if payload["noteType"] == "general":
        _append_header(header, LOCATION_PREFIX, payload.get("location"))
    else:
        _append_header(header, SETTING_PREFIX, payload.get("setting") or payload.get("location"))
    _append_header(header, TOPIC_PREFIX, payload.get("activityLabel"))

    body = [payload["narrative"].strip()]
    tags = normalize_tags(payload.get("tags") or [])
    if tags:
        body.extend(["", f"{TAGS_PREFIX} " + " ".join(f"#{tag}" for tag in tags)])

    prefix = "\n".join(header) + "\n\n" if header else ""
    return (prefix + "\n".join(body)).strip()


def serialize_follow_up(payload: Dict[str, Any], linked_resident_names: Sequence[str]) -> Optional[str]:
    lines: List[str] = []
    if (payload.get("followUpNotes") or "").strip():
        lines.append(payload["followUpNotes"].strip())
    if payload.get("interventions"):
        lines.append(f"{INTERVENTIONS_PREFIX} " + ", ".join(payload["interventions"]))
    if payload.get("followUpNeeded"):
        lines.append(f"{FOLLOW_UP_NEEDED_PREFIX} Yes")
    if linked_resident_names:
        lines.append(f"{LINKED_RESIDENTS_PREFIX} " + ", ".join(linked_resident_names))
    for prefix, key in (
        (COMMUNICATION_PREFIX, "communicationMethod"),
        (MOBILITY_PREFIX, "mobilityAccess"),
        (GOAL_LINK_PREFIX, "goalLink"),
        (STAFF_PRESENT_PREFIX, "staffPresent"),
    ):
        _append_header(lines, prefix, payload.get(key))
    return "\n".join(lines).strip() or None


_HEADER_KEYS = (
    (TITLE_PREFIX, "title"),
    (LOCATION_PREFIX, "location"),
    (SETTING_PREFIX, "setting"),
    (TOPIC_PREFIX, "activityLabel"),
)


def _parse_header_line(line: str):
    trimmed = line.strip()
    for prefix, key in _HEADER_KEYS:
        if trimmed.startswith(prefix):
            return key, trimmed[len(prefix):].strip()
    return None


def _parse_tags_line(line: str) -> List[str]:
    trimmed = line.strip()
    if not trimmed.startswith(TAGS_PREFIX):
        return []
    tokens = [token.lstrip("#") for token in re.split(r"[\s,]+", trimmed[len(TAGS_PREFIX):].strip())]
    return normalize_tags([token for token in tokens if token])


def _tagged_value(lines: Sequence[str], prefix: str) -> str:
    for line in lines:
        if line.strip().startswith(prefix):
            return line.strip()[len(prefix):].strip()
    return ""


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()] if value else []


def parse_progress_note_content(narrative_raw: Optional[str], follow_up_raw: Optional[str] = None) -> Dict[str, Any]:
    narrative = (narrative_raw or "").strip()
    lines = re.split(r"\r?\n", narrative)
    parsed: Dict[str, Any] = {
        "title": "",
        "location": "",
        "setting": "",
        "activityLabel": "",
        "narrativeBody": narrative,
        "tags": [],
    }

    index = 0
    while index < len(lines):
        header = _parse_header_line(lines[index])
        if header is None:
            break
        parsed[header[0]] = header[1]
        index += 1
    while index < len(lines) and not lines[index].strip():
        index += 1

    body = lines[index:]
    if body:
        tags = _parse_tags_line(body[-1])
        if tags:
            parsed["tags"] = tags
            body.pop()
            while body and not body[-1].strip():
                body.pop()
    parsed["narrativeBody"] = "\n".join(body).strip() or narrative

    follow_lines = [line for line in re.split(r"\r?\n", follow_up_raw or "") if line.strip()]
    notes_only = [line for line in follow_lines if not line.strip().startswith(_FOLLOW_UP_TAGGED)]
    parsed.update({
        "followUpNotes": "\n".join(notes_only).strip(),
        "interventions": _split_list(_tagged_value(follow_lines, INTERVENTIONS_PREFIX)),
        "followUpNeeded": _tagged_value(follow_lines, FOLLOW_UP_NEEDED_PREFIX).lower() == "yes",
        "linkedResidentNames": _split_list(_tagged_value(follow_lines, LINKED_RESIDENTS_PREFIX)),
        "communicationMethod": _tagged_value(follow_lines, COMMUNICATION_PREFIX),
        "mobilityAccess": _tagged_value(follow_lines, MOBILITY_PREFIX),
        "goalLink": _tagged_value(follow_lines, GOAL_LINK_PREFIX),
        "staffPresent": _tagged_value(follow_lines, STAFF_PRESENT_PREFIX),
    })
    return parsed


def to_notes_list_row(note: models.ProgressNote) -> Dict[str, Any]:
    parsed = parse_progress_note_content(note.narrative, note.follow_up)
    resident = note.resident
    author = note.created_by
    return {
        "id": str(note.id),
        "createdAt": iso_utc(note.created_at),
        "noteType": from_db_type(note.type),
        "residentId": str(note.resident_id),
        "residentName": resident.full_name if resident else "",
        "residentRoom": resident.room if resident else "",
        "createdByName": (author.display_name or author.email) if author else "",
        "title": parsed["title"] or parsed["activityLabel"] or parsed["narrativeBody"][:72] or "Untitled note",
        "tags": parsed["tags"],
        "status": "Signed",
        "narrativeBody": parsed["narrativeBody"],
    }


def to_note_detail(note: models.ProgressNote) -> Dict[str, Any]:
    """List row plus the structured fields the note editor reloads."""
    parsed = parse_progress_note_content(note.narrative, note.follow_up)
    return {
        **to_notes_list_row(note),
        "participationLevel": from_db_participation(note.participation_level),
        "mood": from_db_mood(note.mood_affect),
        "cues": from_db_cues(note.cues_required),
        "responseType": from_db_response(note.response),
        "parsed": parsed,
    }


def map_template_for_builder(template: models.ProgressNoteTemplate) -> Dict[str, Any]:
    meta = parse_note_template_meta(template.body_template)
    phrases = template.quick_phrases if isinstance(template.quick_phrases, list) else []
    return {
        "id": str(template.id),
        "title": template.title,
        "category": meta["category"],
        "tags": meta["tags"],
        "quickPhrases": [str(phrase).strip() for phrase in phrases if str(phrase).strip()],
        "narrativeStarter": meta["payload"]["defaultTextBlocks"]["body"] or "",
    }


def _facility_notes(db: Session, facility_id: uuid.UUID):
    return (
        db.query(models.ProgressNote)
        .join(models.Resident, models.ProgressNote.resident_id == models.Resident.id)
        .filter(models.Resident.organization_id == facility_id)
        .options(joinedload(models.ProgressNote.resident), joinedload(models.ProgressNote.created_by))
    )


def list_notes(db: Session, facility_id: uuid.UUID, *, date_from: Optional[datetime] = None,
               date_to: Optional[datetime] = None, note_type: Optional[str] = None,
               resident_id: Optional[uuid.UUID] = None, q: Optional[str] = None) -> Dict[str, Any]:
    query = _facility_notes(db, facility_id)
    if note_type == "general":
        query = query.filter(models.ProgressNote.type == "GROUP")
    elif note_type == "1on1":
        query = query.filter(models.ProgressNote.type == "ONE_TO_ONE")
    if resident_id:
        query = query.filter(models.ProgressNote.resident_id == resident_id)
    if date_from:
        query = query.filter(models.ProgressNote.created_at >= as_utc(date_from))
    if date_to:
        query = query.filter(models.ProgressNote.created_at <= as_utc(date_to))
    notes = query.order_by(models.ProgressNote.created_at.desc()).limit(NOTES_LIST_LIMIT).all()

    rows = [to_notes_list_row(note) for note in notes]
    needle = (q or "").strip().lower()
    if needle:
        rows = [
            row for row in rows
            if needle in " ".join([
                row["title"], row["narrativeBody"], row["residentName"], row["residentRoom"],
                row["createdByName"], " ".join(row["tags"]),
            ]).lower()
        ]

    templates = (
        db.query(models.ProgressNoteTemplate)
        .filter(models.ProgressNoteTemplate.organization_id == facility_id)
        .order_by(models.ProgressNoteTemplate.created_at.desc())
        .all()
    )
    return {"notes": rows, "templates": [map_template_for_builder(t) for t in templates]}


def get_note(db: Session, facility_id: uuid.UUID, note_id: uuid.UUID) -> models.ProgressNote:
    note = _facility_notes(db, facility_id).filter(models.ProgressNote.id == note_id).first()
    if note is None:
        raise NotFoundError("Note not found.")
    return note


def _linked_names(db: Session, facility_id: uuid.UUID, payload: Dict[str, Any]) -> List[str]:
    """Resolve resident names for the note; raises when the primary resident is foreign."""
    resident_ids = {payload["residentId"], *payload.get("linkedResidentIds", [])}
    residents = (
        db.query(models.Resident)
        .filter(models.Resident.organization_id == facility_id, models.Resident.id.in_(list(resident_ids)))
        .all()
    )
    names = {resident.id: resident.full_name for resident in residents}
    if payload["residentId"] not in names:
        raise NotFoundError("Resident not found in this facility.")
    return [names[rid] for rid in payload.get("linkedResidentIds", []) if rid in names]


def _apply_payload(note: models.ProgressNote, payload: Dict[str, Any], linked_names: Sequence[str]) -> None:
    note.resident_id = payload["residentId"]
    note.type = to_db_type(payload["noteType"])
    note.participation_level = to_db_participation(payload["participationLevel"])
    note.mood_affect = to_db_mood(payload["mood"])
    note.cues_required = to_db_cues(payload["cues"])
    note.response = to_db_response(payload["responseType"])
    note.narrative = serialize_narrative(payload)
    note.follow_up = serialize_follow_up(payload, linked_names)
    note.created_at = as_utc(payload["occurredAt"])


def _complete_queue_item(db: Session, facility_id: uuid.UUID, resident_id: uuid.UUID,
                         completed_at: datetime, time_zone: str) -> None:
    queue_date_key = zoned_date_key(completed_at, time_zone)
    (
        db.query(models.DailyOneOnOneQueue)
        .filter(
            models.DailyOneOnOneQueue.organization_id == facility_id,
            models.DailyOneOnOneQueue.resident_id == resident_id,
            models.DailyOneOnOneQueue.queue_date_key == queue_date_key,
            models.DailyOneOnOneQueue.completed_at.is_(None),
        )
        .update(
            {"completed_at": as_utc(completed_at), "skipped_at": None, "skip_reason": None},
            synchronize_session=False,
        )
    )


def create_note(db: Session, facility_id: uuid.UUID, author_id: uuid.UUID, payload: Dict[str, Any],
                time_zone: str) -> models.ProgressNote:
    """Create a note. A 1:1 note also stamps the resident and completes today's queue item."""
    linked_names = _linked_names(db, facility_id, payload)
    note = models.ProgressNote(organization_id=facility_id, created_by_user_id=author_id,
                               activity_instance_id=None)
    _apply_payload(note, payload, linked_names)
    db.add(note)
    db.flush()

    if payload["noteType"] == "1on1":
        resident = db.get(models.Resident, payload["residentId"])
        resident.last_one_on_one_at = note.created_at
        _complete_queue_item(db, facility_id, resident.id, note.created_at, time_zone)

    db.commit()
    return get_note(db, facility_id, note.id)


def update_note(db: Session, facility_id: uuid.UUID, note_id: uuid.UUID,
                payload: Dict[str, Any]) -> models.ProgressNote:
    note = get_note(db, facility_id, note_id)
    linked_names = _linked_names(db, facility_id, payload)
    _apply_payload(note, payload, linked_names)
    if payload["noteType"] == "1on1":
        resident = db.get(models.Resident, payload["residentId"])
        resident.last_one_on_one_at = note.created_at
    db.commit()
    return get_note(db, facility_id, note.id)


def delete_note(db: Session, facility_id: uuid.UUID, note_id: uuid.UUID) -> None:
    note = get_note(db, facility_id, note_id)
    db.delete(note)
    db.commit()

