"""
Ride error taxonomy.

Every failure raised by the transition engine is a ``RideError`` whose
``kind`` is one member of the closed ``ErrorKind`` enumeration.  Callers
branch on ``kind`` (or the subclass), never on the message text.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"
    DATA_INTEGRITY = "data_integrity"


class RideError(Exception):
    """Base class for all ride lifecycle failures."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RideError):
    """Malformed input; the caller's fault, never retried."""

    kind = ErrorKind.VALIDATION


class NotFound(RideError):
    """Referenced ride/driver/user is absent or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND


class InvalidTransition(RideError):
    """The ride's current status forbids the requested operation."""

    kind = ErrorKind.INVALID_TRANSITION


class Conflict(RideError):
    """Lost a race to a concurrent transition; the whole call may be retried."""

    kind = ErrorKind.CONFLICT


class DataIntegrity(RideError):
    """A stored invariant is broken (e.g. in-progress ride without start time)."""

    kind = ErrorKind.DATA_INTEGRITY
