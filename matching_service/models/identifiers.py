"""Common identifier types shared across models."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic.functional_validators import BeforeValidator

MAX_ID_LENGTH = 128


def clean_record_id(value: Any) -> str:
    """Normalise a user or match id, rejecting values unsafe as Mongo field keys.

    User ids double as keys of a match's ``read`` map, so dots and a leading
    ``$`` are refused.
    """

    if not isinstance(value, str):
        raise ValueError("id must be a string")
    text = value.strip()
    if not text:
        raise ValueError("id must not be empty")
    if len(text) > MAX_ID_LENGTH:
        raise ValueError("id is too long")
    if "." in text or text.startswith("$"):
        raise ValueError("id contains reserved characters")
    return text


RecordId = Annotated[str, BeforeValidator(clean_record_id)]

__all__ = ["MAX_ID_LENGTH", "RecordId", "clean_record_id"]
