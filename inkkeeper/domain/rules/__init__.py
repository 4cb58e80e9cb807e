"""Pure business rules: rewards, streaks, companion projection and stats."""

from .companions import is_faint, project_companion, project_companion_state, stages_for
from .rewards import Reward, RewardModel, calculate_reward, time_based_reward, unit_based_reward
from .stats import summarize_sessions, total_minutes
from .streaks import StreakAction, StreakDecision, evaluate_streak, next_streak

__all__ = [
    "Reward",
    "RewardModel",
    "calculate_reward",
    "time_based_reward",
    "unit_based_reward",
    "StreakAction",
    "StreakDecision",
    "evaluate_streak",
    "next_streak",
    "is_faint",
    "project_companion",
    "project_companion_state",
    "stages_for",
    "summarize_sessions",
    "total_minutes",
]
