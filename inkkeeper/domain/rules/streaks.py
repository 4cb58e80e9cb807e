"""
Streak rules. Pure functions, no backend access.

``evaluate_streak`` decides what to do with a streak when the user comes
back; the caller performs the chosen backend call. ``next_streak`` is the
continuation rule applied when a session is logged.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..clock import as_utc, hours_between

STREAK_BREAK_HOURS = 48.0


class StreakAction(str, Enum):
    NONE = "none"
    CONSUME_FREEZE = "consume_freeze"
    RESET = "reset"


@dataclass(frozen=True)
class StreakDecision:
    action: StreakAction
    streak: int


def evaluate_streak(
    last_session_at: Optional[datetime],
    current_streak: int,
    freezes_available: int,
    now: datetime,
    break_after_hours: float = STREAK_BREAK_HOURS,
) -> StreakDecision:
    """
    Decide whether a streak survives the time since the last session.

    Exactly ``break_after_hours`` is still a valid streak; only strictly
    more breaks it. A broken streak is saved by a freeze when one is
    available, otherwise it resets to 0.
    """
    if last_session_at is None or current_streak == 0:
        return StreakDecision(StreakAction.NONE, current_streak)

    if hours_between(last_session_at, now) <= break_after_hours:
        return StreakDecision(StreakAction.NONE, current_streak)

    if freezes_available > 0:
        return StreakDecision(StreakAction.CONSUME_FREEZE, current_streak)

    return StreakDecision(StreakAction.RESET, 0)


def next_streak(
    last_session_at: Optional[datetime],
    current_streak: int,
    now: datetime,
    break_after_hours: float = STREAK_BREAK_HOURS,
) -> int:
    """
    Returns the streak after logging a session at ``now``.

    First session starts at 1; another session on the same UTC day keeps
    the streak; a later day inside the break window extends it by one;
    anything older starts over at 1.
    """
    if last_session_at is None or current_streak == 0:
        return 1

    if as_utc(last_session_at).date() == as_utc(now).date():
        return current_streak

    if hours_between(last_session_at, now) <= break_after_hours:
        return current_streak + 1

    return 1
