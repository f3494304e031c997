"""Error types raised by the registration service."""
from __future__ import annotations


class RegistrationError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RegistrationError):
    """Submitted registration data failed one of the field checks."""

    status_code = 400


class ConflictError(RegistrationError):
    """A record with the submitted email already exists."""

    status_code = 400


class NotFoundError(RegistrationError):
    status_code = 404


class StorageError(RegistrationError):
    """The underlying SQLite store could not complete an operation."""

    status_code = 500


__all__ = [
    "ConflictError",
    "NotFoundError",
    "RegistrationError",
    "StorageError",
    "ValidationError",
]
