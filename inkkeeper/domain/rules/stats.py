"""Aggregations over logged sessions."""

from collections import defaultdict
from datetime import date
from typing import Iterable

from ..clock import as_utc
from ..entities.reading_session import ReadingSession
from ..entities.stats import ReadingSummary
from .rewards import minutes_from_seconds


def total_minutes(sessions: Iterable[ReadingSession]) -> int:
    """Whole minutes across all sessions (seconds are summed before flooring)."""
    return minutes_from_seconds(sum(s.duration_seconds for s in sessions))


def summarize_sessions(sessions: Iterable[ReadingSession], start_date: date, end_date: date) -> ReadingSummary:
    """Summarize the sessions whose UTC date falls in ``[start_date, end_date]``.

    The best day is the one with the most reading time; ties go to the
    earliest date.
    """
    seconds_by_day: dict[date, int] = defaultdict(int)
    count_by_day: dict[date, int] = defaultdict(int)
    total_seconds = 0
    total_units = 0
    total_sessions = 0

    for session in sessions:
        day = as_utc(session.created_at).date()
        if not start_date <= day <= end_date:
            continue
        seconds_by_day[day] += session.duration_seconds
        count_by_day[day] += 1
        total_seconds += session.duration_seconds
        total_units += session.units_read
        total_sessions += 1

    best_day = None
    if seconds_by_day:
        best_day = min(seconds_by_day, key=lambda d: (-seconds_by_day[d], d))

    return ReadingSummary(
        start_date=start_date,
        end_date=end_date,
        total_minutes_read=minutes_from_seconds(total_seconds),
        total_pages_read=total_units,
        total_sessions=total_sessions,
        best_day_date=best_day,
        most_sessions_in_a_day=max(count_by_day.values(), default=0),
    )
