"""Shared helpers for request payload validation."""
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from actify.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: Type[ModelT], data: Any, message: str) -> ModelT:
    """Validate ``data`` against ``model`` or raise a 400 with ``message``."""
    try:
        return model.model_validate(data if data is not None else {})
    except PydanticValidationError as exc:
        raise ValidationError(message, details={"errors": exc.errors(include_url=False)}) from exc
