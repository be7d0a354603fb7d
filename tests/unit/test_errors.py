import pytest
from pydantic import BaseModel, Field

from actify.db.schemas.common import parse_payload
from actify.errors import (
    CalendarConflictError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
    to_http_exception,
)


def test_status_codes():
    assert ValidationError("x").status_code == 400
    assert PermissionDenied("x").status_code == 403
    assert NotFoundError("x").status_code == 404
    assert ConflictError("x").status_code == 409


def test_plain_errors_map_to_message_detail():
    exc = to_http_exception(NotFoundError("Resident not found."))
    assert exc.status_code == 404
    assert exc.detail == "Resident not found."


def test_calendar_conflict_detail_shape():
    conflicts = [{"id": "a", "title": "Bingo"}]
    exc = to_http_exception(
        CalendarConflictError("Scheduling conflict detected.", conflicts=conflicts, outside_business_hours=True)
    )
    assert exc.status_code == 409
    assert exc.detail == {
        "error": "Scheduling conflict detected.",
        "code": "CALENDAR_CONFLICT",
        "conflicts": conflicts,
        "outsideBusinessHours": True,
    }


class _Payload(BaseModel):
    name: str = Field(min_length=2)


def test_parse_payload_wraps_pydantic_errors():
    assert parse_payload(_Payload, {"name": "ok"}, "Bad.").name == "ok"
    with pytest.raises(ValidationError) as exc:
        parse_payload(_Payload, {"name": "x"}, "Invalid thing payload.")
    assert exc.value.message == "Invalid thing payload."
