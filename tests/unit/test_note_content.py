from actify.services.notes import (
    from_db_cues,
    from_db_participation,
    from_db_type,
    normalize_tags,
    parse_progress_note_content,
    serialize_follow_up,
    serialize_narrative,
    to_db_cues,
    to_db_mood,
    to_db_participation,
    to_db_response,
    to_db_type,
)


def _payload(**overrides):
    payload = {
        "noteType": "1on1",
        "title": "Garden visit",
        "setting": "Courtyard",
        "activityLabel": "Sensory gardening",
        "narrative": "Resident smelled herbs and talked about her old farm.",
        "tags": ["#Sensory", "garden time", "sensory"],
    }
    payload.update(overrides)
    return payload


def test_builder_value_mappers():
    assert to_db_participation("high") == "HIGH"
    assert to_db_participation("none") == "MINIMAL"
    assert from_db_participation("MINIMAL") == "low"
    assert to_db_mood("other") == "CALM"
    assert to_db_mood("anxious") == "ANXIOUS"
    assert to_db_cues("physical_assist") == "HAND_OVER_HAND"
    assert from_db_cues("HAND_OVER_HAND") == "hand_on_hand"
    assert to_db_response("resistant") == "RESISTANT"
    assert to_db_type("1on1") == "ONE_TO_ONE"
    assert to_db_type("general") == "GROUP"
    assert from_db_type("GROUP") == "general"


def test_normalize_tags_dedupes_and_caps():
    assert normalize_tags(["#Music", "music", "Large Group", "  "]) == ["music", "large-group"]
    assert len(normalize_tags([f"t{i}" for i in range(30)])) == 20


def test_serialize_one_to_one_narrative_uses_setting_header():
    text = serialize_narrative(_payload())
    lines = text.splitlines()
    assert lines[0] == "Title: Garden visit"
    assert lines[1] == "Setting: Courtyard"
    assert lines[2] == "Topic: Sensory gardening"
    assert lines[3] == ""
    assert text.endswith("Tags: #sensory #garden-time")


def test_serialize_general_narrative_uses_location_header():
    text = serialize_narrative(_payload(noteType="general", location="Dining Room", setting=None, tags=[]))
    assert "Location: Dining Room" in text
    assert "Setting:" not in text
    assert "Tags:" not in text


def test_narrative_without_headers_is_just_the_body():
    text = serialize_narrative({"noteType": "general", "narrative": "  Joined the sing-along.  "})
    assert text == "Joined the sing-along."


def test_parse_round_trip():
    payload = _payload(
        followUpNotes="Bring basil next week.",
        interventions=["Reminiscence", "Sensory cues"],
        followUpNeeded=True,
        communicationMethod="Verbal",
        goalLink="Social engagement",
        staffPresent="J. Rivera",
    )
    narrative = serialize_narrative(payload)
    follow_up = serialize_follow_up(payload, ["Grace Hopper"])
    parsed = parse_progress_note_content(narrative, follow_up)

    assert parsed["title"] == "Garden visit"
    assert parsed["setting"] == "Courtyard"
    assert parsed["activityLabel"] == "Sensory gardening"
    assert parsed["narrativeBody"] == payload["narrative"]
    assert parsed["tags"] == ["sensory", "garden-time"]
    assert parsed["followUpNotes"] == "Bring basil next week."
    assert parsed["interventions"] == ["Reminiscence", "Sensory cues"]
    assert parsed["followUpNeeded"] is True
    assert parsed["linkedResidentNames"] == ["Grace Hopper"]
    assert parsed["communicationMethod"] == "Verbal"
    assert parsed["mobilityAccess"] == ""
    assert parsed["goalLink"] == "Social engagement"
    assert parsed["staffPresent"] == "J. Rivera"


def test_empty_follow_up_serializes_to_none():
    assert serialize_follow_up({}, []) is None


def test_parse_plain_text_note():
    parsed = parse_progress_note_content("Just a plain note.")
    assert parsed["title"] == ""
    assert parsed["narrativeBody"] == "Just a plain note."
    assert parsed["followUpNeeded"] is False
