"""Reporting windows for driver earnings (daily / weekly / monthly)."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone

from .enums import StatsPeriod


def stats_window(period: StatsPeriod, day: date) -> tuple[datetime, datetime]:
    """Return the inclusive ``[start, end]`` UTC window containing *day*.

    Weeks run Monday to Sunday.
    """
    period = StatsPeriod(period)
    if period is StatsPeriod.DAILY:
        first, last = day, day
    elif period is StatsPeriod.WEEKLY:
        first = day - timedelta(days=day.weekday())
        last = first + timedelta(days=6)
    else:
        first = day.replace(day=1)
        last = day.replace(day=calendar.monthrange(day.year, day.month)[1])

    start = datetime.combine(first, time.min, tzinfo=timezone.utc)
    end = datetime.combine(last, time.max, tzinfo=timezone.utc)
    return start, end
