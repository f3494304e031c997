"""Domain models for registration records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """Represents a registration stored in the ``users`` table."""

    id: int
    name: str
    gender: str
    email: str
    country: str
    created_at: datetime


@dataclass(frozen=True)
class Registration:
    """Validated input for a new registration, before it has an id."""

    name: str
    gender: str
    email: str
    country: str


__all__ = ["Registration", "User"]
