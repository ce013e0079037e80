"""
Duration-based Fare Calculator
==============================

Formula
-------
* duration <= BASE_HOURS           -> total = BASE_FARE
* duration  > BASE_HOURS           -> additional_hours = ceil(hours - BASE_HOURS)
                                      additional_fare  = additional_hours x ADDITIONAL_HOUR_RATE
                                      total            = BASE_FARE + additional_fare

A zero or missing duration is billed as a zero-length trip (BASE_FARE).
All three constants come from configuration.

Complexity: O(1) per calculation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class FareBreakdown:
    base_fare: float
    additional_hours: int
    additional_fare: float
    total_fare: float


class FareCalculator:
    """Stateless tiered-rate billing used by the transition engine at EndRide."""

    def __init__(
        self,
        base_fare: float = 450.0,
        base_hours: int = 3,
        additional_hour_rate: float = 100.0,
    ):
        self.base_fare = base_fare
        self.base_hours = base_hours
        self.additional_hour_rate = additional_hour_rate

    def calculate(self, duration_minutes: Optional[int]) -> FareBreakdown:
        minutes = duration_minutes or 0
        excess_minutes = minutes - self.base_hours * 60
        if excess_minutes <= 0:
            return FareBreakdown(
                base_fare=self.base_fare,
                additional_hours=0,
                additional_fare=0.0,
                total_fare=self.base_fare,
            )

        # integer ceil avoids float drift on exact hour boundaries
        additional_hours = -(-excess_minutes // 60)
        additional_fare = additional_hours * self.additional_hour_rate
        return FareBreakdown(
            base_fare=self.base_fare,
            additional_hours=additional_hours,
            additional_fare=additional_fare,
            total_fare=self.base_fare + additional_fare,
        )


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps read back from the store as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def elapsed_minutes(started_at: datetime, ended_at: datetime) -> int:
    """Whole minutes between two instants, rounded up, never negative."""
    seconds = (as_utc(ended_at) - as_utc(started_at)).total_seconds()
    return max(0, math.ceil(seconds / 60))
