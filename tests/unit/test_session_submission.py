"""Tests for SessionSubmissionService."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from inkkeeper.domain.entities import (
    Book,
    BookFormat,
    BookStatus,
    Companion,
    LogSessionRequest,
    Profile,
    SessionContext,
    SessionDraft,
)
from inkkeeper.domain.errors import (
    BackendError,
    MissingPrerequisiteError,
    NotFoundError,
    SessionValidationError,
    SubmissionInProgressError,
)
from inkkeeper.domain.rules.rewards import RewardModel
from inkkeeper.domain.services.session_submission import SessionSubmissionService
from inkkeeper.infrastructure.local_backend_gateway import LocalBackendGateway

USER_ID = "user-1"


@pytest.fixture
def context():
    return SessionContext(user_id=USER_ID)


@pytest.fixture
def physical_book():
    return Book(
        id="book-physical",
        user_id=USER_ID,
        title="The Name of the Wind",
        format=BookFormat.PHYSICAL,
        current_unit=100,
        total_units=662,
    )


@pytest.fixture
def audio_book():
    return Book(
        id="book-audio",
        user_id=USER_ID,
        title="Project Hail Mary",
        format=BookFormat.AUDIO,
        current_unit=45,
        total_units=970,
    )


@pytest.fixture
def companion():
    return Companion(id="companion-1", user_id=USER_ID, xp=120)


@pytest.fixture
def profile(physical_book, companion):
    return Profile(
        user_id=USER_ID,
        active_book_id=physical_book.id,
        active_companion_id=companion.id,
        ink_drops=40,
        current_streak=2,
    )


@pytest.fixture
def mock_backend(profile, physical_book, audio_book, companion):
    """Create a mock backend gateway."""
    books = {physical_book.id: physical_book, audio_book.id: audio_book}

    async def fetch_book(book_id):
        if book_id not in books:
            raise NotFoundError(f"Book with id {book_id} not found")
        return books[book_id]

    backend = AsyncMock()
    backend.fetch_profile.return_value = profile
    backend.fetch_book.side_effect = fetch_book
    backend.fetch_companion.return_value = companion
    backend.log_session_atomic.return_value = None
    return backend


@pytest.fixture
def service(mock_backend):
    return SessionSubmissionService(mock_backend)


class TestPreconditions:
    """Invalid sessions are rejected before anything reaches the backend."""

    @pytest.mark.asyncio
    async def test_rejects_session_shorter_than_a_minute(self, service, mock_backend, context):
        draft = SessionDraft(duration_seconds=59, end_unit=110)

        with pytest.raises(SessionValidationError, match="at least 60 seconds"):
            await service.submit(context, draft)

        mock_backend.fetch_profile.assert_not_called()
        mock_backend.log_session_atomic.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_end_before_start(self, service, mock_backend, context):
        draft = SessionDraft(duration_seconds=900, start_unit=130, end_unit=100)

        with pytest.raises(SessionValidationError, match="cannot be before"):
            await service.submit(context, draft)

        mock_backend.fetch_profile.assert_not_called()
        mock_backend.log_session_atomic.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_end_before_current_progress(self, service, mock_backend, context):
        draft = SessionDraft(duration_seconds=900, end_unit=90)

        with pytest.raises(SessionValidationError):
            await service.submit(context, draft)

        mock_backend.log_session_atomic.assert_not_called()

    @pytest.mark.asyncio
    async def test_physical_book_requires_end_page(self, service, mock_backend, context):
        with pytest.raises(SessionValidationError, match="page you stopped on"):
            await service.submit(context, SessionDraft(duration_seconds=900))

        mock_backend.log_session_atomic.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_active_book_redirects_to_library(self, mock_backend, profile, context):
        mock_backend.fetch_profile.return_value = profile.model_copy(update={"active_book_id": None})
        service = SessionSubmissionService(mock_backend)

        with pytest.raises(MissingPrerequisiteError) as exc_info:
            await service.submit(context, SessionDraft(duration_seconds=900, end_unit=130))

        assert exc_info.value.redirect == "library"
        mock_backend.log_session_atomic.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_book_redirects_to_library(self, service, context):
        with pytest.raises(MissingPrerequisiteError) as exc_info:
            await service.submit(context, SessionDraft(book_id="nope", duration_seconds=900, end_unit=130))

        assert exc_info.value.redirect == "library"

    @pytest.mark.asyncio
    async def test_missing_companion_is_a_prerequisite_error(self, mock_backend, profile, context):
        mock_backend.fetch_profile.return_value = profile.model_copy(update={"active_companion_id": None})
        service = SessionSubmissionService(mock_backend)

        with pytest.raises(MissingPrerequisiteError) as exc_info:
            await service.submit(context, SessionDraft(duration_seconds=900, end_unit=130))

        assert exc_info.value.redirect == "companion"
        mock_backend.log_session_atomic.assert_not_called()


class TestSubmission:
    """Successful submissions issue exactly one atomic call."""

    @pytest.mark.asyncio
    async def test_physical_unit_model_end_to_end(self, mock_backend, context):
        service = SessionSubmissionService(mock_backend, reward_model=RewardModel.UNITS)
        draft = SessionDraft(duration_seconds=900, start_unit=100, end_unit=130)

        result = await service.submit(context, draft)

        assert result.units_read == 30
        assert result.ink_gained == 60
        assert result.xp_gained == 60
        assert result.new_book_unit == 130
        mock_backend.log_session_atomic.assert_awaited_once()
        request: LogSessionRequest = mock_backend.log_session_atomic.call_args.args[0]
        assert request.user_id == USER_ID
        assert request.book_id == "book-physical"
        assert request.companion_id == "companion-1"
        assert request.duration_seconds == 900
        assert request.units_read == 30
        assert request.ink_gained == 60
        assert request.xp_gained == 60
        assert request.new_book_unit == 130
        assert request.new_book_status is None

    @pytest.mark.asyncio
    async def test_time_model_is_the_default(self, service, mock_backend, context):
        reflection = "x" * 60
        result = await service.submit(context, SessionDraft(duration_seconds=600, end_unit=120, reflection=reflection))

        assert result.ink_gained == 30
        assert result.xp_gained == 50
        assert result.message == "Session recorded! +30 Ink Drops, +50 XP"
        request = mock_backend.log_session_atomic.call_args.args[0]
        assert request.reflection_data.note == reflection

    @pytest.mark.asyncio
    async def test_start_defaults_to_current_progress(self, service, context):
        result = await service.submit(context, SessionDraft(duration_seconds=600, end_unit=112))
        assert result.units_read == 12

    @pytest.mark.asyncio
    async def test_audio_book_advances_by_minutes(self, service, mock_backend, context):
        result = await service.submit(context, SessionDraft(book_id="book-audio", duration_seconds=1250))

        assert result.units_read == 20
        assert result.new_book_unit == 65
        request = mock_backend.log_session_atomic.call_args.args[0]
        assert request.book_id == "book-audio"

    @pytest.mark.asyncio
    async def test_finished_marks_book_finished(self, service, mock_backend, context):
        result = await service.submit(context, SessionDraft(duration_seconds=600, end_unit=662, finished=True))

        assert result.new_book_status == BookStatus.FINISHED
        request = mock_backend.log_session_atomic.call_args.args[0]
        assert request.new_book_status == BookStatus.FINISHED
        assert request.new_book_unit == 662

    @pytest.mark.asyncio
    async def test_backend_error_is_surfaced_unmodified(self, service, mock_backend, context):
        mock_backend.log_session_atomic.side_effect = BackendError("new row violates row-level security policy")

        with pytest.raises(BackendError) as exc_info:
            await service.submit(context, SessionDraft(duration_seconds=600, end_unit=110))

        assert exc_info.value.message == "new row violates row-level security policy"
        mock_backend.log_session_atomic.assert_awaited_once()
        assert service.is_submitting is False


class TestInFlightGuard:
    """A second submit while one is outstanding is refused."""

    @pytest.mark.asyncio
    async def test_duplicate_submit_is_refused(self, service, mock_backend, context):
        release = asyncio.Event()

        async def slow_log(request):
            await release.wait()

        mock_backend.log_session_atomic.side_effect = slow_log
        draft = SessionDraft(duration_seconds=600, end_unit=110)

        first = asyncio.create_task(service.submit(context, draft))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert service.is_submitting is True

        with pytest.raises(SubmissionInProgressError):
            await service.submit(context, draft)

        release.set()
        await first
        assert service.is_submitting is False
        mock_backend.log_session_atomic.assert_awaited_once()


class TestWithLocalBackend:
    """The orchestrator against the in-memory backend."""

    @pytest.fixture
    def backend(self, profile, physical_book, companion):
        backend = LocalBackendGateway()
        backend.add_profile(profile)
        backend.add_book(physical_book)
        backend.add_companion(companion)
        return backend

    @pytest.mark.asyncio
    async def test_all_side_effects_applied(self, backend, context):
        service = SessionSubmissionService(backend, reward_model=RewardModel.UNITS)

        await service.submit(context, SessionDraft(duration_seconds=900, start_unit=100, end_unit=130))

        profile = await backend.fetch_profile(USER_ID)
        book = await backend.fetch_book("book-physical")
        companion = await backend.fetch_companion("companion-1")
        sessions = await backend.list_sessions(USER_ID)
        assert book.current_unit == 130
        assert profile.ink_drops == 100
        assert companion.xp == 180
        assert profile.last_session_at is not None
        assert len(sessions) == 1
        assert sessions[0].units_read == 30

    @pytest.mark.asyncio
    async def test_backend_failure_changes_nothing(self, backend, context):
        service = SessionSubmissionService(backend)
        backend.fail_next_call("could not serialize access due to concurrent update")

        with pytest.raises(BackendError, match="concurrent update"):
            await service.submit(context, SessionDraft(duration_seconds=900, end_unit=130))

        profile = await backend.fetch_profile(USER_ID)
        book = await backend.fetch_book("book-physical")
        assert profile.ink_drops == 40
        assert book.current_unit == 100
        assert await backend.list_sessions(USER_ID) == []
