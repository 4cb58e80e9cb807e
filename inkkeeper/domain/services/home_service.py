"""Home screen refresh: streak upkeep, companion projection and the active book."""

import logging
from datetime import datetime
from typing import Optional

from ..clock import Clock, utc_now
from ..entities.book import Book
from ..entities.companion import CompanionState
from ..entities.profile import Profile
from ..entities.session_context import SessionContext
from ..entities.stats import HomeSnapshot
from ..errors import BackendError, NotFoundError
from ..interfaces.backend_gateway import BackendGateway
from ..rules.companions import FAINT_AFTER_HOURS, project_companion
from ..rules.streaks import STREAK_BREAK_HOURS, StreakAction, evaluate_streak

logger = logging.getLogger(__name__)


class HomeService:
    """
    Builds the home screen state.

    ``refresh()`` is meant to be called whenever the home screen becomes
    visible. It is also where a broken streak gets settled: the pure
    evaluator decides, this service makes the matching backend call.
    """

    def __init__(
        self,
        backend: BackendGateway,
        clock: Clock = utc_now,
        streak_break_hours: float = STREAK_BREAK_HOURS,
        faint_after_hours: float = FAINT_AFTER_HOURS,
    ):
        self.backend = backend
        self._clock = clock
        self.streak_break_hours = streak_break_hours
        self.faint_after_hours = faint_after_hours

    async def refresh(self, context: SessionContext) -> HomeSnapshot:
        """
        Fetch and project everything the home screen shows.

        Args:
            context: Who is looking.

        Returns:
            HomeSnapshot: Ink, streak, companion and active book, plus any
            notices produced while settling the streak.

        Raises:
            NotFoundError: If the user has no profile.
        """
        now = self._clock()
        profile = await self.backend.fetch_profile(context.user_id)
        notices: list[str] = []

        streak, freezes = await self._settle_streak(profile, now, notices)

        return HomeSnapshot(
            ink_drops=profile.ink_drops,
            current_streak=streak,
            streak_freezes_available=freezes,
            active_book=await self._active_book(profile),
            active_companion_id=profile.active_companion_id,
            companion=await self._companion_state(profile, now),
            notices=notices,
        )

    async def _settle_streak(self, profile: Profile, now: datetime, notices: list[str]) -> tuple[int, int]:
        decision = evaluate_streak(
            profile.last_session_at,
            profile.current_streak,
            profile.streak_freezes_available,
            now,
            break_after_hours=self.streak_break_hours,
        )

        if decision.action == StreakAction.CONSUME_FREEZE:
            try:
                result = await self.backend.use_streak_freeze(profile.user_id)
            except BackendError as e:
                logger.error(f"Could not use streak freeze for user {profile.user_id}: {e.message}")
                notices.append(f"Could not use streak freeze: {e.message}")
                return profile.current_streak, profile.streak_freezes_available

            if result.success:
                logger.info(f"Streak of user {profile.user_id} saved with a freeze")
                notices.append("Streak Saved! A Streak Freeze was consumed to maintain your current streak.")
                return decision.streak, result.freezes_remaining

            logger.warning(f"Backend refused streak freeze for user {profile.user_id}")
            return profile.current_streak, result.freezes_remaining

        if decision.action == StreakAction.RESET:
            try:
                await self.backend.reset_broken_streak(profile.user_id)
            except BackendError as e:
                logger.error(f"Could not reset streak for user {profile.user_id}: {e.message}")
                notices.append(f"Could not reset streak: {e.message}")
                return profile.current_streak, profile.streak_freezes_available
            logger.info(f"Streak of user {profile.user_id} reset from {profile.current_streak}")
            notices.append(f"Streak Broken. Your {profile.current_streak}-day streak has ended.")
            return decision.streak, profile.streak_freezes_available

        return decision.streak, profile.streak_freezes_available

    async def _active_book(self, profile: Profile) -> Optional[Book]:
        if not profile.active_book_id:
            return None
        try:
            return await self.backend.fetch_book(profile.active_book_id)
        except NotFoundError:
            logger.warning(f"Active book {profile.active_book_id} of user {profile.user_id} not found")
            return None

    async def _companion_state(self, profile: Profile, now: datetime) -> Optional[CompanionState]:
        if not profile.active_companion_id:
            return None
        try:
            companion = await self.backend.fetch_companion(profile.active_companion_id)
        except NotFoundError:
            logger.warning(f"Active companion {profile.active_companion_id} of user {profile.user_id} not found")
            return None
        return project_companion(
            companion,
            profile.last_session_at,
            now,
            faint_after_hours=self.faint_after_hours,
        )
