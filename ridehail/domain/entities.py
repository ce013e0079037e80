"""
Domain value objects and the ride state machine guard.

Patterns used
-------------
- **State Pattern** on ride status: ``ensure_transition`` is the single
  check applied before every lifecycle write
  (PENDING -> ASSIGNED -> IN_PROGRESS -> COMPLETED, PENDING -> CANCELLED).
- ``Place`` validates a pickup / drop descriptor before it reaches the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import RIDE_TRANSITIONS, RideStatus
from .errors import InvalidTransition, ValidationError


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Place:
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def build(
        cls,
        address: Optional[str],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        *,
        label: str = "pickup",
    ) -> "Place":
        """Normalise and validate a descriptor, raising ``ValidationError``."""
        address = (address or "").strip()
        if not address:
            raise ValidationError(f"{label} address is required")
        if (latitude is None) != (longitude is None):
            raise ValidationError(
                f"{label} coordinates must include both latitude and longitude"
            )
        if latitude is not None and not -90 <= latitude <= 90:
            raise ValidationError(f"{label} latitude out of range")
        if longitude is not None and not -180 <= longitude <= 180:
            raise ValidationError(f"{label} longitude out of range")
        return cls(address=address, latitude=latitude, longitude=longitude)


# ── State machine ─────────────────────────────────────────────────────


def can_transition(current: RideStatus, target: RideStatus) -> bool:
    return target in RIDE_TRANSITIONS.get(RideStatus(current), set())


def ensure_transition(current: RideStatus, target: RideStatus) -> None:
    """Raise ``InvalidTransition`` unless *current* -> *target* is an edge."""
    current = RideStatus(current)
    if can_transition(current, target):
        return
    if current == RideStatus(target) or is_terminal(current):
        raise InvalidTransition(f"Ride is already {current.value}")
    raise InvalidTransition(
        f"Cannot move ride from {current.value} to {RideStatus(target).value}"
    )


def is_terminal(status: RideStatus) -> bool:
    return not RIDE_TRANSITIONS.get(RideStatus(status))
