"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.ASSIGNED, RideStatus.CANCELLED},
    RideStatus.ASSIGNED: {RideStatus.IN_PROGRESS},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# A driver bound to a ride in one of these is not assignable
ACTIVE_RIDE_STATUSES = (RideStatus.ASSIGNED, RideStatus.IN_PROGRESS)


class NotificationType(str, enum.Enum):
    NEW_RIDE_REQUEST = "new_ride_request"
    RIDE_ASSIGNED = "ride_assigned"
    RIDE_UPDATE = "ride_update"
    RIDE_COMPLETED = "ride_completed"


class StatsPeriod(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
