"""
Pure schedule window matching.

These functions decide whether a schedule wants its stream running at a given
local moment. They know nothing about processes or the config store, which
keeps the overnight-wrap rule testable on its own.
"""

from __future__ import annotations

from datetime import datetime, time

from ..shared.schemas import ScheduleConfig, parse_hhmm
from ..shared.types import WEEKDAYS, ScheduleType


def time_matches(now: time, start: time, end: time) -> bool:
    """
    True iff ``now`` falls in ``[start, end)``.

    When ``end < start`` the window spans midnight: 22:00-06:00 matches 23:30
    and 05:00 but not 12:00. ``start == end`` is an empty window.
    """
    now = now.replace(tzinfo=None)
    if end < start:
        return now >= start or now < end
    return start <= now < end


def date_matches(schedule: ScheduleConfig, now: datetime) -> bool:
    """``once``: today is the stored date. ``recurring``: today's weekday is selected."""
    if schedule.schedule_type == ScheduleType.ONCE:
        return schedule.specific_date is not None and now.date() == schedule.specific_date
    return WEEKDAYS[now.weekday()] in schedule.days


def is_desired(schedule: ScheduleConfig, now: datetime) -> bool:
    """Desired run-state of the schedule's stream at local time ``now``."""
    if not date_matches(schedule, now):
        return False
    return time_matches(now.time(), parse_hhmm(schedule.start_time), parse_hhmm(schedule.end_time))
