"""Inkkeeper Controller for handling business logic and coordination."""

import logging
import weakref
from datetime import date
from typing import Optional

from fastapi import WebSocket

from ..domain.clock import Clock, utc_now
from ..domain.entities import (
    Book,
    BookDraft,
    HomeSnapshot,
    JournalEntry,
    LibraryView,
    ReadingStats,
    ReadingSummary,
    SessionContext,
    SessionDraft,
    SessionResult,
)
from ..domain.errors import MissingPrerequisiteError, NotFoundError
from ..domain.interfaces.backend_gateway import BackendGateway
from ..domain.interfaces.book_catalog import BookCatalog
from ..domain.rules.rewards import RewardModel
from ..domain.services import (
    AccountService,
    HomeService,
    LibraryService,
    SessionSubmissionService,
    StatsService,
    TimerSessionService,
)
from .websocket_handler import WebSocketHandler

logger = logging.getLogger(__name__)


class InkkeeperController:
    """
    Controller for coordinating Inkkeeper operations.

    This controller is injected with the backend gateway and the rule
    settings, builds the domain services, and handles the business logic
    for each endpoint, keeping the API layer thin.
    """

    def __init__(
        self,
        backend: BackendGateway,
        reward_model: RewardModel = RewardModel.TIME,
        minimum_session_seconds: int = 60,
        streak_break_hours: float = 48.0,
        faint_after_hours: float = 24.0,
        timer_tick_seconds: float = 1.0,
        journal_limit: int = 20,
        clock: Clock = utc_now,
        catalog: Optional[BookCatalog] = None,
        search_limit: int = 10,
    ):
        """
        Initialize the controller with injected dependencies.

        Args:
            backend: Gateway to the hosted backend
            reward_model: Reward rule set used for submissions
            minimum_session_seconds: Shortest session that earns rewards
            streak_break_hours: Gap after which a streak is broken
            faint_after_hours: Gap after which the companion shows as faint
            timer_tick_seconds: Interval of live timer updates
            journal_limit: Default number of journal entries
            clock: Wall clock
            catalog: Public book catalog used by book search
            search_limit: Maximum number of book search results
        """
        self.backend = backend
        self.reward_model = reward_model
        self.minimum_session_seconds = minimum_session_seconds
        self.timer_tick_seconds = timer_tick_seconds
        self._clock = clock

        self.home_service = HomeService(
            backend,
            clock=clock,
            streak_break_hours=streak_break_hours,
            faint_after_hours=faint_after_hours,
        )
        self.library_service = LibraryService(backend, catalog=catalog, search_limit=search_limit)
        self.stats_service = StatsService(backend, journal_limit=journal_limit)
        self.account_service = AccountService(backend)

        # one submission service per user so the in-flight guard spans HTTP and WebSocket;
        # an entry lives only while a timer or a running submit holds it
        self._submissions: "weakref.WeakValueDictionary[str, SessionSubmissionService]" = weakref.WeakValueDictionary()

        logger.info(f"InkkeeperController initialized with {type(backend).__name__}")

    def submission_service_for(self, user_id: str) -> SessionSubmissionService:
        """Get the user's submission service, creating it on first use."""
        service = self._submissions.get(user_id)
        if service is None:
            service = SessionSubmissionService(
                self.backend,
                reward_model=self.reward_model,
                minimum_session_seconds=self.minimum_session_seconds,
            )
            self._submissions[user_id] = service
        return service

    async def handle_timer_connection(
        self,
        websocket: WebSocket,
        context: SessionContext,
        book_id: Optional[str] = None,
    ) -> None:
        """
        Run a live timer over an accepted WebSocket until it ends.

        Raises:
            MissingPrerequisiteError: If there is no book to read.
        """
        logger.info(f"Handling new timer connection from {websocket.client}")

        book = await self._resolve_timer_book(context, book_id)
        timer_service = TimerSessionService(
            context=context,
            book=book,
            submission=self.submission_service_for(context.user_id),
            clock=self._clock,
            tick_interval=self.timer_tick_seconds,
        )
        handler = WebSocketHandler(timer_service=timer_service)

        await timer_service.start()
        await handler.handle_websocket(websocket)
        logger.info(f"Timer session {timer_service.id} finished: {timer_service.get_session_state()}")

    async def _resolve_timer_book(self, context: SessionContext, book_id: Optional[str]) -> Book:
        if book_id is None:
            profile = await self.backend.fetch_profile(context.user_id)
            book_id = profile.active_book_id
        if not book_id:
            raise MissingPrerequisiteError(
                "Please select a book from your library to start reading.",
                redirect="library",
            )
        try:
            book = await self.backend.fetch_book(book_id)
        except NotFoundError as e:
            raise MissingPrerequisiteError(str(e), redirect="library") from e
        if book.user_id != context.user_id:
            raise MissingPrerequisiteError(f"Book with id {book_id} not found", redirect="library")
        return book

    def get_health_status(self) -> dict:
        """
        Get application health status.

        Returns:
            Dict containing health status information
        """
        return {
            "status": "healthy",
            "backend": type(self.backend).__name__,
            "reward_model": self.reward_model.value,
        }

    async def refresh_home(self, context: SessionContext) -> HomeSnapshot:
        return await self.home_service.refresh(context)

    async def get_library(self, context: SessionContext) -> LibraryView:
        return await self.library_service.list_library(context)

    async def add_book(self, context: SessionContext, draft: BookDraft, allow_duplicate: bool = False) -> Book:
        return await self.library_service.add_book(context, draft, allow_duplicate=allow_duplicate)

    async def search_books(self, query: str) -> list[BookDraft]:
        return await self.library_service.search_books(query)

    async def swap_active_book(self, context: SessionContext, book_id: str) -> bool:
        return await self.library_service.swap_active_book(context, book_id)

    async def create_shelf(self, context: SessionContext, name: str, book_ids: list[str]) -> str:
        return await self.library_service.create_shelf(context, name, book_ids)

    async def get_stats(self, context: SessionContext) -> ReadingStats:
        return await self.stats_service.get_stats(context)

    async def get_journal(self, context: SessionContext, limit: Optional[int] = None) -> list[JournalEntry]:
        return await self.stats_service.get_journal(context, limit=limit)

    async def get_summary(self, context: SessionContext, start_date: date, end_date: date) -> ReadingSummary:
        return await self.stats_service.get_summary(context, start_date, end_date)

    async def submit_session(self, context: SessionContext, draft: SessionDraft) -> SessionResult:
        """Submit a completed session recorded outside the live timer."""
        return await self.submission_service_for(context.user_id).submit(context, draft)

    async def delete_account(self, context: SessionContext) -> None:
        await self.account_service.delete_account(context)
        self._submissions.pop(context.user_id, None)
