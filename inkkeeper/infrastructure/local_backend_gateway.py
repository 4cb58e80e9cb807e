"""Local in-memory implementation of BackendGateway."""

import logging
from datetime import date
from typing import Dict, List, Optional

from ..domain.clock import Clock, utc_now
from ..domain.entities.book import Book, BookFormat, BookStatus
from ..domain.entities.companion import Companion
from ..domain.entities.profile import Profile, StreakFreezeResult
from ..domain.entities.reading_session import LogSessionRequest, ReadingSession
from ..domain.entities.stats import ReadingSummary
from ..domain.errors import BackendError, NotFoundError
from ..domain.interfaces.backend_gateway import BackendGateway
from ..domain.rules.stats import summarize_sessions
from ..domain.rules.streaks import next_streak

logger = logging.getLogger(__name__)

DEMO_USER_ID = "12345678-1234-5678-1234-567812345678"


class LocalBackendGateway(BackendGateway):
    """Local in-memory implementation of the BackendGateway protocol.

    Stores profiles, books, companions and sessions in dictionaries for
    testing and development purposes. ``log_session_atomic`` validates
    everything before touching any dictionary and never awaits in
    between, so a rejected call leaves the store exactly as it was.
    """

    def __init__(self, clock: Clock = utc_now):
        """Initialize the gateway with empty tables.

        Args:
            clock: Source of the timestamps the "server" stamps on writes.
        """
        self._clock = clock
        self._profiles: Dict[str, Profile] = {}
        self._books: Dict[str, Book] = {}
        self._companions: Dict[str, Companion] = {}
        self._sessions: Dict[str, ReadingSession] = {}
        self._pending_failure: Optional[str] = None

    # ===== Seeding helpers =====

    def add_profile(self, profile: Profile) -> None:
        """Add or replace a profile."""
        self._profiles[profile.user_id] = profile

    def add_book(self, book: Book) -> None:
        """Add or replace a book."""
        self._books[book.id] = book

    def add_companion(self, companion: Companion) -> None:
        """Add or replace a companion."""
        self._companions[companion.id] = companion

    def add_session(self, session: ReadingSession) -> None:
        """Add a previously logged session."""
        self._sessions[session.id] = session

    def fail_next_call(self, message: str) -> None:
        """Make the next write call raise ``BackendError(message)``."""
        self._pending_failure = message

    def clear(self) -> None:
        """Clear all tables."""
        self._profiles.clear()
        self._books.clear()
        self._companions.clear()
        self._sessions.clear()

    def get_all_sessions(self) -> Dict[str, ReadingSession]:
        """Get all sessions.

        Returns:
            Dict[str, ReadingSession]: Dictionary of all sessions.
        """
        return self._sessions.copy()

    # ===== Reads =====

    async def fetch_profile(self, user_id: str) -> Profile:
        """Retrieve a profile by user ID.

        Raises:
            NotFoundError: If the profile is not found.
        """
        if user_id not in self._profiles:
            raise NotFoundError(f"Profile for user {user_id} not found")
        return self._profiles[user_id]

    async def fetch_book(self, book_id: str) -> Book:
        if book_id not in self._books:
            raise NotFoundError(f"Book with id {book_id} not found")
        return self._books[book_id]

    async def fetch_companion(self, companion_id: str) -> Companion:
        if companion_id not in self._companions:
            raise NotFoundError(f"Companion with id {companion_id} not found")
        return self._companions[companion_id]

    async def list_books(self, user_id: str) -> List[Book]:
        books = [b for b in self._books.values() if b.user_id == user_id]
        return sorted(books, key=lambda b: b.created_at, reverse=True)

    async def list_sessions(self, user_id: str, limit: Optional[int] = None) -> List[ReadingSession]:
        sessions = sorted(
            (s for s in self._sessions.values() if s.user_id == user_id),
            key=lambda s: s.created_at,
            reverse=True,
        )
        return sessions[:limit] if limit is not None else sessions

    async def get_reading_summary(self, user_id: str, start_date: date, end_date: date) -> ReadingSummary:
        sessions = [s for s in self._sessions.values() if s.user_id == user_id]
        return summarize_sessions(sessions, start_date, end_date)

    # ===== Writes =====

    async def log_session_atomic(self, request: LogSessionRequest) -> None:
        """Record a session, then apply every side effect in one step.

        Raises:
            BackendError: If any referenced row is missing or not the user's.
        """
        self._raise_pending_failure()

        profile = self._profiles.get(request.user_id)
        book = self._books.get(request.book_id)
        companion = self._companions.get(request.companion_id)
        if profile is None:
            raise BackendError(f"Profile for user {request.user_id} does not exist", code="P0002")
        if book is None or book.user_id != request.user_id:
            raise BackendError(f"Book {request.book_id} does not belong to user {request.user_id}", code="P0002")
        if companion is None or companion.user_id != request.user_id:
            raise BackendError(
                f"Companion {request.companion_id} does not belong to user {request.user_id}", code="P0002"
            )

        now = self._clock()
        session = ReadingSession(
            user_id=request.user_id,
            book_id=request.book_id,
            duration_seconds=request.duration_seconds,
            units_read=request.units_read,
            reflection_data=request.reflection_data,
            ink_gained=request.ink_gained,
            xp_gained=request.xp_gained,
            created_at=now,
        )

        book_update = {"current_unit": request.new_book_unit}
        if request.new_book_status is not None:
            book_update["status"] = request.new_book_status

        self._sessions[session.id] = session
        self._books[book.id] = book.model_copy(update=book_update)
        self._companions[companion.id] = companion.model_copy(update={"xp": companion.xp + request.xp_gained})
        self._profiles[profile.user_id] = profile.model_copy(
            update={
                "ink_drops": profile.ink_drops + request.ink_gained,
                "current_streak": next_streak(profile.last_session_at, profile.current_streak, now),
                "last_session_at": now,
            }
        )
        logger.debug(f"Logged session {session.id} for user {request.user_id}")

    async def use_streak_freeze(self, user_id: str) -> StreakFreezeResult:
        """Spend a freeze and stamp the profile so the streak is valid again."""
        self._raise_pending_failure()
        profile = await self.fetch_profile(user_id)
        if profile.streak_freezes_available <= 0:
            return StreakFreezeResult(success=False, freezes_remaining=0)

        remaining = profile.streak_freezes_available - 1
        self._profiles[user_id] = profile.model_copy(
            update={"streak_freezes_available": remaining, "last_session_at": self._clock()}
        )
        return StreakFreezeResult(success=True, freezes_remaining=remaining)

    async def reset_broken_streak(self, user_id: str) -> None:
        self._raise_pending_failure()
        profile = await self.fetch_profile(user_id)
        self._profiles[user_id] = profile.model_copy(update={"current_streak": 0})

    async def insert_book(self, book: Book) -> Book:
        self._raise_pending_failure()
        stored = book.model_copy(update={"created_at": self._clock()})
        self._books[stored.id] = stored
        return stored

    async def set_active_book(self, user_id: str, book_id: str) -> None:
        self._raise_pending_failure()
        profile = await self.fetch_profile(user_id)
        self._profiles[user_id] = profile.model_copy(update={"active_book_id": book_id})

    async def update_shelf(self, user_id: str, book_ids: List[str], shelf_name: str) -> None:
        self._raise_pending_failure()
        for book_id in book_ids:
            book = self._books.get(book_id)
            if book is not None and book.user_id == user_id:
                self._books[book_id] = book.model_copy(update={"shelf_name": shelf_name})

    async def delete_user_account(self, user_id: str) -> None:
        """Delete the profile and every row owned by the user."""
        self._raise_pending_failure()
        await self.fetch_profile(user_id)
        del self._profiles[user_id]
        for table in (self._books, self._companions, self._sessions):
            for key in [k for k, v in table.items() if v.user_id == user_id]:
                del table[key]

    def _raise_pending_failure(self) -> None:
        if self._pending_failure is not None:
            message, self._pending_failure = self._pending_failure, None
            raise BackendError(message)


def seed_demo_data(gateway: LocalBackendGateway, user_id: str = DEMO_USER_ID) -> None:
    """Pre-populate a demo reader with a companion and an active book."""
    companion = Companion(id=f"{user_id}-fox", user_id=user_id, nickname="Rusty", species="fox")
    book = Book(
        id=f"{user_id}-book",
        user_id=user_id,
        title="The Hobbit",
        author="J.R.R. Tolkien",
        format=BookFormat.PHYSICAL,
        current_unit=0,
        total_units=310,
        status=BookStatus.ACTIVE,
    )
    gateway.add_companion(companion)
    gateway.add_book(book)
    gateway.add_profile(
        Profile(
            user_id=user_id,
            email="reader@example.com",
            active_book_id=book.id,
            active_companion_id=companion.id,
            daily_goal_amount=20,
        )
    )
