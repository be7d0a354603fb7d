"""
Template library.

Activity templates and progress-note templates live in separate tables but are
presented as one library. Note templates keep their settings in a one-line JSON
header on ``body_template`` (see ``serialize_note_template_meta``).
"""
from __future__ import annotations

import json
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from actify.db import models
from actify.errors import NotFoundError, ValidationError
from actify.services.calendar.service import DEFAULT_ADAPTATIONS
from actify.utils.timezones import as_utc, iso_utc

NOTE_META_PREFIX = "[[ACTIFY_NOTE_META]]"
NOTE_FIELDS_DEFAULTS = {
    "mood": True,
    "cues": True,
    "participation": True,
    "response": True,
    "followUp": True,
}
DEFAULT_ACTIVITY_CATEGORY = "General"
DEFAULT_NOTE_CATEGORY = "Progress Note"


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def parse_note_template_meta(raw_body: Optional[str]) -> Dict[str, Any]:
    """Split a stored note-template body into its meta header and body text.

    A missing or unparseable header yields defaults with the whole value as body.
    """
    value = raw_body or ""
    lines = re.split(r"\r?\n", value)
    first_line = lines[0].strip() if lines else ""
    metadata: Optional[Dict[str, Any]] = None
    body_template = value

    if first_line.startswith(NOTE_META_PREFIX):
        try:
            decoded = json.loads(first_line[len(NOTE_META_PREFIX):].strip())
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            metadata = decoded
            body_template = "\n".join(lines[1:]).lstrip()

    metadata = metadata or {}
    blocks = metadata.get("defaultTextBlocks") if isinstance(metadata.get("defaultTextBlocks"), dict) else {}
    fields = metadata.get("fieldsEnabled") if isinstance(metadata.get("fieldsEnabled"), dict) else {}
    tags = metadata.get("tags")
    return {
        "bodyTemplate": body_template,
        "category": _clean(metadata.get("category")),
        "tags": [str(tag).strip() for tag in tags if str(tag).strip()] if isinstance(tags, list) else [],
        "payload": {
            "fieldsEnabled": {**NOTE_FIELDS_DEFAULTS, **fields},
            "defaultTextBlocks": {
                "opening": _clean(blocks.get("opening")),
                "body": _clean(blocks.get("body")) or _clean(body_template),
                "followUp": _clean(blocks.get("followUp")),
            },
            "quickPhrases": [],
        },
    }


def serialize_note_template_meta(body: str, category: Optional[str] = None, tags: Optional[List[str]] = None,
                                 fields_enabled: Optional[Dict[str, bool]] = None,
                                 default_text_blocks: Optional[Dict[str, Optional[str]]] = None) -> str:
    blocks = default_text_blocks or {}
    metadata = {
        "category": _clean(category),
        "tags": [tag.strip() for tag in (tags or []) if tag and tag.strip()],
        "fieldsEnabled": fields_enabled or dict(NOTE_FIELDS_DEFAULTS),
        "defaultTextBlocks": {
            key: _clean(blocks.get(key)) for key in ("opening", "body", "followUp")
        },
    }
    metadata = {key: value for key, value in metadata.items() if value is not None}
    metadata["defaultTextBlocks"] = {
        key: value for key, value in metadata["defaultTextBlocks"].items() if value is not None
    }
    return f"{NOTE_META_PREFIX} {json.dumps(metadata)}\n{(body or '').strip()}"


def strip_note_template_meta(raw_body: Optional[str]) -> str:
    return parse_note_template_meta(raw_body)["bodyTemplate"]


def _to_tag(value: str) -> str:
    return re.sub(r"\s+", "-", value.strip().lower())


def _split(value: Optional[str], pattern: str) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in re.split(pattern, value) if part.strip()]


def to_difficulty(value: Optional[str]) -> str:
    normalized = (value or "").strip().lower()
    if normalized == "easy":
        return "Easy"
    if normalized == "hard":
        return "Hard"
    return "Medium"


def _string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def to_unified_activity_template(template: models.ActivityTemplate, usage_count: int) -> Dict[str, Any]:
    checklist = template.default_checklist if isinstance(template.default_checklist, list) else []
    adaptations = template.adaptations if isinstance(template.adaptations, dict) else {}
    payload = {
        "difficulty": to_difficulty(template.difficulty),
        "supplies": _split(template.supplies, r"\r?\n|,"),
        "setupSteps": _split(template.setup_steps, r"\r?\n"),
        "checklistItems": [str(item).strip() for item in checklist if str(item).strip()],
        "adaptations": {
            "bedBound": _string(adaptations.get("bedBound")),
            "dementia": _string(adaptations.get("dementiaFriendly")),
            "lowVision": _string(adaptations.get("lowVisionHearing")),
            "oneToOne": _string(adaptations.get("oneToOneMini")),
        },
    }
    if isinstance(adaptations.get("estimatedMinutes"), int):
        payload["estimatedMinutes"] = adaptations["estimatedMinutes"]

    tags = [
        _to_tag(value)
        for value in (template.category or "", payload["difficulty"], "Checklist" if payload["checklistItems"] else "")
        if value.strip()
    ]
    return {
        "id": str(template.id),
        "type": "activity",
        "title": template.title,
        "category": template.category,
        "tags": tags,
        "status": "active",
        "isFavorite": False,
        "usageCount": usage_count,
        "updatedAt": iso_utc(template.created_at),
        "payload": payload,
    }


def to_unified_note_template(template: models.ProgressNoteTemplate) -> Dict[str, Any]:
    meta = parse_note_template_meta(template.body_template)
    phrases = template.quick_phrases if isinstance(template.quick_phrases, list) else []
    tags: List[str] = []
    for tag in meta["tags"]:
        normalized = _to_tag(tag)
        if normalized not in tags:
            tags.append(normalized)
    return {
        "id": str(template.id),
        "type": "note",
        "title": template.title,
        "category": meta["category"] or DEFAULT_NOTE_CATEGORY,
        "tags": tags or ["progress-note"],
        "status": "active",
        "isFavorite": False,
        "usageCount": 0,
        "updatedAt": iso_utc(template.created_at),
        "payload": {
            "fieldsEnabled": meta["payload"]["fieldsEnabled"],
            "defaultTextBlocks": meta["payload"]["defaultTextBlocks"],
            "quickPhrases": [str(phrase).strip() for phrase in phrases if str(phrase).strip()],
        },
    }


def get_templates_library(db: Session, facility_id: uuid.UUID, template_type: Optional[str] = None) -> List[Dict[str, Any]]:
    templates: List[Dict[str, Any]] = []
    if template_type in (None, "", "all", "activity"):
        usage_rows = (
            db.query(models.ActivityInstance.template_id, func.count(models.ActivityInstance.id))
            .filter(
                models.ActivityInstance.organization_id == facility_id,
                models.ActivityInstance.template_id.isnot(None),
            )
            .group_by(models.ActivityInstance.template_id)
            .all()
        )
        usage = {template_id: count for template_id, count in usage_rows}
        activity_templates = (
            db.query(models.ActivityTemplate)
            .filter(models.ActivityTemplate.organization_id == facility_id)
            .order_by(models.ActivityTemplate.created_at.desc())
            .all()
        )
        templates.extend(to_unified_activity_template(t, usage.get(t.id, 0)) for t in activity_templates)
    if template_type in (None, "", "all", "note"):
        note_templates = (
            db.query(models.ProgressNoteTemplate)
            .filter(models.ProgressNoteTemplate.organization_id == facility_id)
            .order_by(models.ProgressNoteTemplate.created_at.desc())
            .all()
        )
        templates.extend(to_unified_note_template(t) for t in note_templates)
    return templates


def _activity_columns(title: str, category: Optional[str], tags: List[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    adaptations = payload.get("adaptations") or {}
    return {
        "title": title,
        "category": _clean(category) or DEFAULT_ACTIVITY_CATEGORY,
        "supplies": "\n".join(payload.get("supplies") or []),
        "setup_steps": "\n".join(payload.get("setupSteps") or []),
        "difficulty": payload["difficulty"],
        "default_checklist": list(payload.get("checklistItems") or []),
        "adaptations": {
            "bedBound": adaptations.get("bedBound", ""),
            "dementiaFriendly": adaptations.get("dementia", ""),
            "lowVisionHearing": adaptations.get("lowVision", ""),
            "oneToOneMini": adaptations.get("oneToOne", ""),
            "estimatedMinutes": payload.get("estimatedMinutes"),
            "tags": list(tags),
        },
    }


def _note_columns(title: str, category: Optional[str], tags: List[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    blocks = payload.get("defaultTextBlocks") or {}
    body = _clean(blocks.get("body")) or ""
    return {
        "title": title,
        "quick_phrases": list(payload.get("quickPhrases") or []),
        "body_template": serialize_note_template_meta(
            body,
            category=_clean(category) or DEFAULT_NOTE_CATEGORY,
            tags=tags,
            fields_enabled=payload.get("fieldsEnabled"),
            default_text_blocks={"opening": blocks.get("opening"), "body": body, "followUp": blocks.get("followUp")},
        ),
    }


def create_template(db: Session, facility_id: uuid.UUID, *, template_type: str, title: str,
                    category: Optional[str], tags: List[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    if template_type == "activity":
        template = models.ActivityTemplate(organization_id=facility_id, **_activity_columns(title, category, tags, payload))
        db.add(template)
        db.commit()
        db.refresh(template)
        return to_unified_activity_template(template, 0)

    template = models.ProgressNoteTemplate(organization_id=facility_id, **_note_columns(title, category, tags, payload))
    db.add(template)
    db.commit()
    db.refresh(template)
    return to_unified_note_template(template)


def _find_activity_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID):
    return (
        db.query(models.ActivityTemplate)
        .filter(models.ActivityTemplate.id == template_id, models.ActivityTemplate.organization_id == facility_id)
        .first()
    )


def _find_note_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID):
    return (
        db.query(models.ProgressNoteTemplate)
        .filter(models.ProgressNoteTemplate.id == template_id,
                models.ProgressNoteTemplate.organization_id == facility_id)
        .first()
    )


def update_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID, *, template_type: str,
                    title: str, category: Optional[str], tags: List[str], payload: Dict[str, Any]) -> Dict[str, Any]:
    if template_type == "activity":
        template = _find_activity_template(db, facility_id, template_id)
        columns = _activity_columns(title, category, tags, payload)
    else:
        template = _find_note_template(db, facility_id, template_id)
        columns = _note_columns(title, category, tags, payload)
    if template is None:
        raise NotFoundError("Template not found.")

    for key, value in columns.items():
        setattr(template, key, value)
    db.commit()
    db.refresh(template)
    if template_type == "activity":
        return to_unified_activity_template(template, 0)
    return to_unified_note_template(template)


def delete_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID) -> str:
    """Delete an activity or note template and return which kind was removed."""
    template = _find_activity_template(db, facility_id, template_id)
    kind = "activity"
    if template is None:
        template = _find_note_template(db, facility_id, template_id)
        kind = "note"
    if template is None:
        raise NotFoundError("Template not found.")
    db.delete(template)
    db.commit()
    return kind


def with_copy_suffix(title: str) -> str:
    if title.lower().endswith("(copy)"):
        return title
    return f"{title} (Copy)"


def duplicate_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID) -> Dict[str, Any]:
    source = _find_activity_template(db, facility_id, template_id)
    if source is not None:
        copy = models.ActivityTemplate(
            organization_id=facility_id,
            title=with_copy_suffix(source.title),
            category=source.category,
            supplies=source.supplies,
            setup_steps=source.setup_steps,
            difficulty=source.difficulty,
            default_checklist=source.default_checklist,
            adaptations=source.adaptations,
        )
        db.add(copy)
        db.commit()
        db.refresh(copy)
        return to_unified_activity_template(copy, 0)

    note_source = _find_note_template(db, facility_id, template_id)
    if note_source is None:
        raise NotFoundError("Template not found.")
    copy = models.ProgressNoteTemplate(
        organization_id=facility_id,
        title=with_copy_suffix(note_source.title),
        quick_phrases=note_source.quick_phrases,
        body_template=note_source.body_template,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return to_unified_note_template(copy)


def use_activity_template(db: Session, facility_id: uuid.UUID, template_id: uuid.UUID,
                          start_at: Optional[datetime], end_at: Optional[datetime],
                          location: str) -> models.ActivityInstance:
    """Schedule a one-off activity from a template."""
    if start_at is None or end_at is None or as_utc(end_at) <= as_utc(start_at):
        raise ValidationError("Invalid start/end time.")
    template = _find_activity_template(db, facility_id, template_id)
    if template is None:
        raise NotFoundError("Activity template not found.")

    checklist_items = template.default_checklist if isinstance(template.default_checklist, list) else []
    activity = models.ActivityInstance(
        organization_id=facility_id,
        template_id=template.id,
        title=template.title,
        start_at=as_utc(start_at),
        end_at=as_utc(end_at),
        location=location.strip(),
        adaptations_enabled=dict(DEFAULT_ADAPTATIONS, overrides={}),
        checklist=[{"text": str(item), "done": False} for item in checklist_items],
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity
