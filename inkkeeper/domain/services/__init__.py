"""Domain services for the Inkkeeper application."""

from .account_service import AccountService
from .elapsed_time_tracker import ElapsedTimeTracker
from .home_service import HomeService
from .library_service import LibraryService
from .session_submission import MINIMUM_SESSION_SECONDS, SessionSubmissionService
from .stats_service import DEFAULT_JOURNAL_LIMIT, StatsService
from .timer_session import TimerSessionService

__all__ = [
    "AccountService",
    "DEFAULT_JOURNAL_LIMIT",
    "ElapsedTimeTracker",
    "HomeService",
    "LibraryService",
    "MINIMUM_SESSION_SECONDS",
    "SessionSubmissionService",
    "StatsService",
    "TimerSessionService",
]
