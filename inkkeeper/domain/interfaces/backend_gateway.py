"""Backend gateway interface."""

from datetime import date
from typing import Optional, Protocol, runtime_checkable

from ..entities.book import Book
from ..entities.companion import Companion
from ..entities.profile import Profile, StreakFreezeResult
from ..entities.reading_session import LogSessionRequest, ReadingSession
from ..entities.stats import ReadingSummary


@runtime_checkable
class BackendGateway(Protocol):
    """Protocol defining the calls the client makes to the hosted backend.

    The backend owns persistence and consistency. Every method may suspend
    the caller; implementations raise ``NotFoundError`` for missing entities
    and ``BackendError`` (carrying the backend's own message) for failures.
    """

    async def fetch_profile(self, user_id: str) -> Profile:
        """Retrieve a user's profile.

        Args:
            user_id: The unique identifier of the user.

        Returns:
            Profile: The profile entity.

        Raises:
            NotFoundError: If the profile is not found.
        """
        ...

    async def fetch_book(self, book_id: str) -> Book:
        """Retrieve a book by ID.

        Raises:
            NotFoundError: If the book is not found.
        """
        ...

    async def fetch_companion(self, companion_id: str) -> Companion:
        """Retrieve a companion by ID.

        Raises:
            NotFoundError: If the companion is not found.
        """
        ...

    async def log_session_atomic(self, request: LogSessionRequest) -> None:
        """Record a session in one transaction.

        Inserts the session, advances the book (or marks it finished), adds
        the Ink to the profile, adds the XP to the companion, stamps
        ``last_session_at`` and continues the streak. Either all of it
        happens or none of it does.

        Args:
            request: The session payload and the computed rewards.

        Raises:
            BackendError: If the backend rejects or cannot run the transaction.
        """
        ...

    async def use_streak_freeze(self, user_id: str) -> StreakFreezeResult:
        """Spend one streak freeze to keep a broken streak alive."""
        ...

    async def reset_broken_streak(self, user_id: str) -> None:
        """Reset a broken streak to zero."""
        ...

    async def list_books(self, user_id: str) -> list[Book]:
        """List a user's books, newest first."""
        ...

    async def insert_book(self, book: Book) -> Book:
        """Store a new book and return it as stored."""
        ...

    async def set_active_book(self, user_id: str, book_id: str) -> None:
        """Point the user's profile at ``book_id``."""
        ...

    async def update_shelf(self, user_id: str, book_ids: list[str], shelf_name: str) -> None:
        """Move the given books onto a named shelf."""
        ...

    async def list_sessions(self, user_id: str, limit: Optional[int] = None) -> list[ReadingSession]:
        """List a user's sessions, newest first."""
        ...

    async def get_reading_summary(self, user_id: str, start_date: date, end_date: date) -> ReadingSummary:
        """Summarize a user's reading between two dates (inclusive)."""
        ...

    async def delete_user_account(self, user_id: str) -> None:
        """Delete the user and everything they own."""
        ...
