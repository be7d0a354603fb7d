from actify.services.templates import (
    NOTE_META_PREFIX,
    parse_note_template_meta,
    serialize_note_template_meta,
    strip_note_template_meta,
    to_difficulty,
    with_copy_suffix,
)


def test_serialized_meta_header_is_parsed_back():
    stored = serialize_note_template_meta(
        "Resident engaged with {{activity}}.",
        category="Progress Note",
        tags=["music", " "],
        fields_enabled={"mood": False},
        default_text_blocks={"opening": "Met in room.", "followUp": ""},
    )
    assert stored.startswith(NOTE_META_PREFIX + " {")
    parsed = parse_note_template_meta(stored)
    assert parsed["bodyTemplate"] == "Resident engaged with {{activity}}."
    assert parsed["category"] == "Progress Note"
    assert parsed["tags"] == ["music"]
    # Missing field flags fall back to enabled
    assert parsed["payload"]["fieldsEnabled"]["mood"] is False
    assert parsed["payload"]["fieldsEnabled"]["cues"] is True
    blocks = parsed["payload"]["defaultTextBlocks"]
    assert blocks == {"opening": "Met in room.", "body": "Resident engaged with {{activity}}.", "followUp": None}


def test_body_without_header_is_kept_whole():
    parsed = parse_note_template_meta("Plain body\nsecond line")
    assert parsed["bodyTemplate"] == "Plain body\nsecond line"
    assert parsed["category"] is None
    assert parsed["tags"] == []


def test_broken_header_is_treated_as_body():
    raw = NOTE_META_PREFIX + " {not json\nBody"
    assert strip_note_template_meta(raw) == raw


def test_to_difficulty():
    assert to_difficulty("EASY") == "Easy"
    assert to_difficulty(" hard ") == "Hard"
    assert to_difficulty(None) == "Medium"
    assert to_difficulty("extreme") == "Medium"


def test_with_copy_suffix_is_idempotent():
    assert with_copy_suffix("Bingo") == "Bingo (Copy)"
    assert with_copy_suffix("Bingo (copy)") == "Bingo (copy)"
    assert with_copy_suffix(with_copy_suffix("Bingo")) == "Bingo (Copy)"
