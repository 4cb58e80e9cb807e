"""Session submission: validate a finished timer session and record it atomically."""

import logging
from typing import Optional

from ..entities.book import Book, BookFormat, BookStatus
from ..entities.companion import Companion
from ..entities.profile import Profile
from ..entities.reading_session import (
    LogSessionRequest,
    ReflectionData,
    SessionDraft,
    SessionResult,
)
from ..entities.session_context import SessionContext
from ..errors import (
    MissingPrerequisiteError,
    NotFoundError,
    SessionValidationError,
    SubmissionInProgressError,
)
from ..interfaces.backend_gateway import BackendGateway
from ..rules.rewards import RewardModel, calculate_reward, minutes_from_seconds

logger = logging.getLogger(__name__)

MINIMUM_SESSION_SECONDS = 60


class SessionSubmissionService:
    """
    Orchestrates the submission of one completed reading session.

    Steps, in order:
    - refuse while another submission is outstanding
    - resolve the profile, the book and the active companion
    - validate duration and page range (nothing is sent on failure)
    - work out units read, the new book progress and the rewards
    - issue exactly one ``log_session_atomic`` call

    Backend failures propagate with the backend's message untouched. There is
    no retry and no compensation: the backend transaction is all or nothing.
    """

    def __init__(
        self,
        backend: BackendGateway,
        reward_model: RewardModel = RewardModel.TIME,
        minimum_session_seconds: int = MINIMUM_SESSION_SECONDS,
    ):
        self.backend = backend
        self.reward_model = reward_model
        self.minimum_session_seconds = minimum_session_seconds
        self._in_flight = False

    @property
    def is_submitting(self) -> bool:
        """True while a submission call is outstanding; the UI disables submit."""
        return self._in_flight

    async def submit(self, context: SessionContext, draft: SessionDraft) -> SessionResult:
        """
        Submit a completed session.

        Args:
            context: Who is submitting.
            draft: The timer result and the reflection stage input.

        Returns:
            SessionResult: Rewards granted and the book's new progress.

        Raises:
            SubmissionInProgressError: If a submission is already outstanding.
            MissingPrerequisiteError: If there is no book or active companion.
            SessionValidationError: If the session is too short or the page range is invalid.
            BackendError: If the backend rejects the atomic call.
        """
        if self._in_flight:
            raise SubmissionInProgressError("A session is already being saved.")

        self.precheck(draft)

        self._in_flight = True
        try:
            profile = await self.backend.fetch_profile(context.user_id)
            book = await self._resolve_book(profile, draft.book_id)
            companion = await self._resolve_companion(profile)

            request = self.build_request(context, draft, book, companion)

            logger.info(
                f"Logging session for user {context.user_id}, book {book.id}: "
                f"{request.duration_seconds}s, +{request.ink_gained} ink, +{request.xp_gained} xp"
            )
            await self.backend.log_session_atomic(request)
        finally:
            self._in_flight = False

        return SessionResult(
            ink_gained=request.ink_gained,
            xp_gained=request.xp_gained,
            units_read=request.units_read,
            new_book_unit=request.new_book_unit,
            new_book_status=request.new_book_status,
            message=f"Session recorded! +{request.ink_gained} Ink Drops, +{request.xp_gained} XP",
        )

    def precheck(self, draft: SessionDraft) -> None:
        """Checks that need nothing from the backend.

        Raises:
            SessionValidationError: If the session is too short or its explicit page range is inverted.
        """
        if draft.duration_seconds < self.minimum_session_seconds:
            raise SessionValidationError(
                f"Sessions must be at least {self.minimum_session_seconds} seconds to count."
            )
        if draft.start_unit is not None and draft.end_unit is not None and draft.end_unit < draft.start_unit:
            raise SessionValidationError(
                f"End page ({draft.end_unit}) cannot be before start page ({draft.start_unit})."
            )

    def validate(self, draft: SessionDraft, book: Book) -> None:
        """Check the preconditions of a submission against the book.

        Raises:
            SessionValidationError: If a precondition does not hold.
        """
        self.precheck(draft)

        if book.format == BookFormat.PHYSICAL:
            if draft.end_unit is None:
                raise SessionValidationError("Enter the page you stopped on.")
            start_unit = self._start_unit(draft, book)
            if draft.end_unit < start_unit:
                raise SessionValidationError(
                    f"End page ({draft.end_unit}) cannot be before start page ({start_unit})."
                )

    def build_request(
        self,
        context: SessionContext,
        draft: SessionDraft,
        book: Book,
        companion: Companion,
    ) -> LogSessionRequest:
        """Validate the draft and compute the payload of the atomic call."""
        self.validate(draft, book)

        minutes = minutes_from_seconds(draft.duration_seconds)
        if book.format == BookFormat.PHYSICAL:
            units_read = draft.end_unit - self._start_unit(draft, book)
            new_book_unit = draft.end_unit
        else:
            units_read = minutes
            new_book_unit = book.current_unit + minutes

        reward = calculate_reward(
            self.reward_model,
            duration_seconds=draft.duration_seconds,
            reflection_length=len(draft.reflection),
            units_read=units_read,
        )

        return LogSessionRequest(
            user_id=context.user_id,
            book_id=book.id,
            companion_id=companion.id,
            duration_seconds=draft.duration_seconds,
            units_read=units_read,
            reflection_data=ReflectionData(note=draft.reflection),
            ink_gained=reward.ink_gained,
            xp_gained=reward.xp_gained,
            new_book_unit=new_book_unit,
            new_book_status=BookStatus.FINISHED if draft.finished else None,
        )

    async def _resolve_book(self, profile: Profile, book_id: Optional[str]) -> Book:
        target_id = book_id or profile.active_book_id
        if not target_id:
            raise MissingPrerequisiteError(
                "Please select a book from your library to start reading.",
                redirect="library",
            )
        try:
            return await self.backend.fetch_book(target_id)
        except NotFoundError as e:
            raise MissingPrerequisiteError(str(e), redirect="library") from e

    async def _resolve_companion(self, profile: Profile) -> Companion:
        if not profile.active_companion_id:
            raise MissingPrerequisiteError(
                "Could not find an active companion.",
                redirect="companion",
            )
        try:
            return await self.backend.fetch_companion(profile.active_companion_id)
        except NotFoundError as e:
            raise MissingPrerequisiteError(str(e), redirect="companion") from e

    @staticmethod
    def _start_unit(draft: SessionDraft, book: Book) -> int:
        return draft.start_unit if draft.start_unit is not None else book.current_unit
