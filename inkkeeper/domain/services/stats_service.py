"""Reading statistics, journal and period summaries."""

import logging
from datetime import date
from typing import Optional

from ..entities.session_context import SessionContext
from ..entities.stats import JournalEntry, ReadingStats, ReadingSummary
from ..errors import NotFoundError, SessionValidationError
from ..interfaces.backend_gateway import BackendGateway
from ..rules.stats import total_minutes

logger = logging.getLogger(__name__)

DEFAULT_JOURNAL_LIMIT = 20


class StatsService:
    """Read-only views over a user's logged sessions."""

    def __init__(self, backend: BackendGateway, journal_limit: int = DEFAULT_JOURNAL_LIMIT):
        self.backend = backend
        self.journal_limit = journal_limit

    async def get_stats(self, context: SessionContext) -> ReadingStats:
        """Lifetime minutes, session count, streak and Ink."""
        profile = await self.backend.fetch_profile(context.user_id)
        sessions = await self.backend.list_sessions(context.user_id)
        return ReadingStats(
            total_minutes=total_minutes(sessions),
            total_sessions=len(sessions),
            streak=profile.current_streak,
            ink_drops=profile.ink_drops,
        )

    async def get_journal(self, context: SessionContext, limit: Optional[int] = None) -> list[JournalEntry]:
        """
        Most recent sessions with their book and reflection, newest first.

        Args:
            context: Whose journal.
            limit: Maximum number of entries (defaults to the configured limit).

        Returns:
            list[JournalEntry]: Journal rows.
        """
        sessions = await self.backend.list_sessions(context.user_id, limit=limit or self.journal_limit)

        titles: dict[str, tuple] = {}
        entries = []
        for session in sessions:
            if session.book_id not in titles:
                try:
                    book = await self.backend.fetch_book(session.book_id)
                    titles[session.book_id] = (book.title, book.cover_url)
                except NotFoundError:
                    # book deleted after the session was logged
                    titles[session.book_id] = (None, None)
            title, cover_url = titles[session.book_id]
            entries.append(
                JournalEntry(
                    id=session.id,
                    created_at=session.created_at,
                    duration_seconds=session.duration_seconds,
                    book_title=title,
                    cover_url=cover_url,
                    note=session.reflection_data.note,
                    prompt=session.reflection_data.prompt,
                )
            )
        return entries

    async def get_summary(self, context: SessionContext, start_date: date, end_date: date) -> ReadingSummary:
        """
        Totals between two dates, inclusive.

        Raises:
            SessionValidationError: If the range is inverted.
        """
        if end_date < start_date:
            raise SessionValidationError("The summary end date must not be before its start date.")
        return await self.backend.get_reading_summary(context.user_id, start_date, end_date)
