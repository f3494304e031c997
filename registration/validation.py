"""Field checks applied to submitted registrations."""
from __future__ import annotations

import re
from typing import Mapping, Optional

from .errors import ValidationError
from .models import Registration

REQUIRED_FIELDS = ("name", "gender", "email", "country")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _normalize(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    # Lists, objects and booleans never count as a filled-in field.
    return ""


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def validate_registration(data: Optional[Mapping[str, object]]) -> Registration:
    """Return a :class:`Registration` or raise :class:`ValidationError`.

    Presence of every field is checked before the email format, so a payload
    with both problems reports the missing fields.
    """

    payload = data or {}
    values = {field: _normalize(payload.get(field)) for field in REQUIRED_FIELDS}
    if not all(values.values()):
        raise ValidationError("All fields are required")

    if not is_valid_email(values["email"]):
        raise ValidationError("Invalid email format")

    return Registration(**values)


__all__ = ["EMAIL_PATTERN", "REQUIRED_FIELDS", "is_valid_email", "validate_registration"]
