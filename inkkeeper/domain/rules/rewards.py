"""Reward rules: how much Ink and XP a session earns.

Pure functions, no backend access. Two policies exist; a deployment runs
exactly one of them (see ``RewardModel``). The time-only policy is the
canonical one; the unit-based policy is the earlier pages/minutes rule.
"""

from dataclasses import dataclass
from enum import Enum

SECONDS_PER_MINUTE = 60

# Time-only policy
XP_PER_MINUTE = 5
INK_PER_MINUTE = 1
REFLECTION_BONUS_INK = 20
REFLECTION_BONUS_MIN_CHARS = 50

# Unit-based policy
XP_PER_UNIT = 2
UNIT_REFLECTION_BONUS = 20
UNIT_REFLECTION_MIN_CHARS = 10


class RewardModel(str, Enum):
    """Which reward rule set is in force."""

    TIME = "time"
    UNITS = "units"


@dataclass(frozen=True)
class Reward:
    ink_gained: int
    xp_gained: int


def minutes_from_seconds(duration_seconds: int) -> int:
    """Whole minutes in a duration, floored."""
    return max(0, duration_seconds) // SECONDS_PER_MINUTE


def time_based_reward(duration_seconds: int, reflection_length: int) -> Reward:
    """Reward 1 Ink and 5 XP per full minute, plus an Ink bonus for a real reflection.

    Args:
        duration_seconds: Active reading time.
        reflection_length: Character count of the reflection text.

    Returns:
        Reward: Ink and XP gained.
    """
    minutes = minutes_from_seconds(duration_seconds)
    bonus_ink = REFLECTION_BONUS_INK if reflection_length > REFLECTION_BONUS_MIN_CHARS else 0
    return Reward(
        ink_gained=minutes * INK_PER_MINUTE + bonus_ink,
        xp_gained=minutes * XP_PER_MINUTE,
    )


def unit_based_reward(units_read: int, reflection_length: int) -> Reward:
    """Reward 2 XP per unit read; Ink mirrors XP and the bonus applies to both.

    Args:
        units_read: Pages (physical) or minutes (audio) read.
        reflection_length: Character count of the reflection text.

    Returns:
        Reward: Ink and XP gained.
    """
    bonus = UNIT_REFLECTION_BONUS if reflection_length > UNIT_REFLECTION_MIN_CHARS else 0
    total = max(0, units_read) * XP_PER_UNIT + bonus
    return Reward(ink_gained=total, xp_gained=total)


def calculate_reward(
    model: RewardModel,
    duration_seconds: int,
    reflection_length: int,
    units_read: int = 0,
) -> Reward:
    """Dispatch to the reward policy in force."""
    if model == RewardModel.UNITS:
        return unit_based_reward(units_read, reflection_length)
    return time_based_reward(duration_seconds, reflection_length)
