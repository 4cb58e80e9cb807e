"""Tests for TimerSessionService."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from inkkeeper.domain.entities import (
    BackEvent,
    Book,
    Companion,
    ConfirmDiscardMessage,
    DiscardEvent,
    ErrorCode,
    ErrorOutMessage,
    FinishTimerEvent,
    NoticeMessage,
    Profile,
    ResumeEvent,
    SessionContext,
    SessionEndedMessage,
    SessionReadyMessage,
    SessionRecordedMessage,
    SessionStage,
    StartTimerEvent,
    SubmitEvent,
    SuspendEvent,
    TimerUpdateMessage,
)
from inkkeeper.domain.services.session_submission import SessionSubmissionService
from inkkeeper.domain.services.timer_session import TimerSessionService
from inkkeeper.infrastructure.local_backend_gateway import LocalBackendGateway

USER_ID = "user-1"


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 10, 20, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def book():
    return Book(id="book-1", user_id=USER_ID, title="Dune", current_unit=100, total_units=400)


@pytest.fixture
def backend(book, clock):
    backend = LocalBackendGateway(clock=clock)
    backend.add_profile(Profile(user_id=USER_ID, active_book_id=book.id, active_companion_id="companion-1"))
    backend.add_book(book)
    backend.add_companion(Companion(id="companion-1", user_id=USER_ID))
    return backend


@pytest.fixture
def service(backend, book, clock):
    """Service driven event by event; the tick task is never started."""
    return TimerSessionService(
        SessionContext(user_id=USER_ID),
        book,
        SessionSubmissionService(backend),
        clock=clock,
        tick_interval=3600,
    )


def drain(service: TimerSessionService) -> list:
    messages = []
    while not service.outbound_queue.empty():
        messages.append(service.outbound_queue.get_nowait())
    return messages


async def read_for(service: TimerSessionService, clock: FakeClock, seconds: int):
    """Start the timer and spend ``seconds`` with the app in the background."""
    await service._handle_event(StartTimerEvent())
    await service._handle_event(SuspendEvent())
    clock.advance(seconds)
    await service._handle_event(ResumeEvent())


async def finish_submissions(service: TimerSessionService):
    await asyncio.gather(*list(service._submit_tasks))


class TestLifecycle:
    """Test cases for starting and stopping the service."""

    @pytest.mark.asyncio
    async def test_start_emits_ready_then_update(self, service):
        await service.start()
        try:
            ready = await service.outbound_queue.get()
            update = await service.outbound_queue.get()
        finally:
            await service.stop()

        assert isinstance(ready, SessionReadyMessage)
        assert ready.ready.book_title == "Dune"
        assert ready.ready.current_unit == 100
        assert isinstance(update, TimerUpdateMessage)
        assert update.elapsed_seconds == 0
        assert service._running is False

    @pytest.mark.asyncio
    async def test_tick_loop_counts_seconds(self, service):
        service.tick_interval = 0.01
        await service.start()
        await service.start_timer()
        await asyncio.sleep(0.2)
        await service.stop()

        assert service.tracker.accumulated_seconds > 0
        assert service.tracker.is_running is False


class TestTimerStage:
    """Test cases for the timer stage."""

    @pytest.mark.asyncio
    async def test_background_time_is_credited_on_resume(self, service, clock):
        await read_for(service, clock, 95)

        messages = drain(service)

        assert service.tracker.accumulated_seconds == 95
        assert messages[-1].elapsed_seconds == 95
        assert messages[-1].can_finish is True

    @pytest.mark.asyncio
    async def test_finish_before_a_minute_is_refused(self, service, clock):
        await read_for(service, clock, 30)
        drain(service)

        await service._handle_event(FinishTimerEvent())

        messages = drain(service)
        assert isinstance(messages[0], NoticeMessage)
        assert messages[0].message == "Read for at least 1 minute(s) to finish."
        assert service.stage == SessionStage.TIMER
        assert service.tracker.is_running is True

    @pytest.mark.asyncio
    async def test_finish_moves_to_reflection(self, service, clock):
        await read_for(service, clock, 61)

        await service._handle_event(FinishTimerEvent())

        assert service.stage == SessionStage.REFLECTION
        assert service.tracker.is_running is False
        assert drain(service)[-1].stage == "reflection"


class TestBackAndDiscard:
    """Test cases for leaving the screen."""

    @pytest.mark.asyncio
    async def test_back_with_no_time_closes(self, service):
        await service._handle_event(BackEvent())

        messages = drain(service)
        assert isinstance(messages[-1], SessionEndedMessage)
        assert messages[-1].reason == "closed"

    @pytest.mark.asyncio
    async def test_back_with_time_asks_to_confirm(self, service, clock):
        await read_for(service, clock, 20)
        drain(service)

        await service._handle_event(BackEvent())

        assert isinstance(drain(service)[0], ConfirmDiscardMessage)
        assert service.tracker.accumulated_seconds == 20

    @pytest.mark.asyncio
    async def test_discard_drops_the_time(self, service, clock, backend):
        await read_for(service, clock, 200)

        await service._handle_event(DiscardEvent())

        ended = drain(service)[-1]
        assert ended.reason == "discarded"
        assert ended.elapsed_seconds == 200
        assert service.stage == SessionStage.DISCARDED
        assert service.tracker.accumulated_seconds == 0
        assert backend.get_all_sessions() == {}

    @pytest.mark.asyncio
    async def test_back_from_reflection_returns_to_timer(self, service, clock):
        await read_for(service, clock, 90)
        await service._handle_event(FinishTimerEvent())

        await service._handle_event(BackEvent())

        assert service.stage == SessionStage.TIMER
        assert service.tracker.accumulated_seconds == 90


class TestSubmit:
    """Test cases for submitting from the reflection stage."""

    @pytest.mark.asyncio
    async def test_submit_records_and_ends(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)

        await service._handle_event(SubmitEvent(reflection="Arrakis", end_unit=130))
        await finish_submissions(service)

        recorded, ended = drain(service)
        assert isinstance(recorded, SessionRecordedMessage)
        assert recorded.units_read == 30
        assert recorded.new_book_unit == 130
        assert recorded.ink_gained == 2
        assert recorded.xp_gained == 10
        assert ended.reason == "recorded"
        assert service.stage == SessionStage.RECORDED
        assert (await backend.fetch_book("book-1")).current_unit == 130
        assert len(backend.get_all_sessions()) == 1

    @pytest.mark.asyncio
    async def test_submit_before_finish_is_refused(self, service, clock):
        await read_for(service, clock, 150)
        drain(service)

        await service._handle_event(SubmitEvent(end_unit=130))

        assert drain(service)[0].message == "Finish the session before claiming rewards."
        assert service._submit_tasks == set()

    @pytest.mark.asyncio
    async def test_missing_end_page_returns_to_reflection(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)

        await service._handle_event(SubmitEvent(reflection="no page"))
        await finish_submissions(service)

        error = drain(service)[0]
        assert isinstance(error, ErrorOutMessage)
        assert error.code == ErrorCode.VALIDATION_FAILED
        assert error.message == "Enter the page you stopped on."
        assert service.stage == SessionStage.REFLECTION
        assert backend.get_all_sessions() == {}

    @pytest.mark.asyncio
    async def test_second_submit_while_saving_is_refused(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)

        await service._handle_event(SubmitEvent(end_unit=130))
        await service._handle_event(SubmitEvent(end_unit=130))
        await finish_submissions(service)

        messages = drain(service)
        assert messages[0].code == ErrorCode.SUBMISSION_IN_PROGRESS
        assert isinstance(messages[1], SessionRecordedMessage)
        assert len(backend.get_all_sessions()) == 1

    @pytest.mark.asyncio
    async def test_submit_refused_by_other_save_can_be_retried(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)
        service.submission._in_flight = True

        await service._handle_event(SubmitEvent(end_unit=130))
        await finish_submissions(service)

        assert drain(service)[0].code == ErrorCode.SUBMISSION_IN_PROGRESS
        assert service.stage == SessionStage.REFLECTION

        service.submission._in_flight = False
        await service._handle_event(SubmitEvent(end_unit=130))
        await finish_submissions(service)

        assert isinstance(drain(service)[0], SessionRecordedMessage)
        assert len(backend.get_all_sessions()) == 1

    @pytest.mark.asyncio
    async def test_discard_while_saving_is_refused(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)

        await service._handle_event(SubmitEvent(end_unit=130))
        await service._handle_event(DiscardEvent())
        await finish_submissions(service)

        notice, recorded, ended = drain(service)
        assert notice.message == "Your session is being saved. Please wait."
        assert isinstance(recorded, SessionRecordedMessage)
        assert ended.reason == "recorded"
        assert len(backend.get_all_sessions()) == 1

    @pytest.mark.asyncio
    async def test_discard_after_recorded_is_ignored(self, service, clock):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        await service._handle_event(SubmitEvent(end_unit=130))
        await finish_submissions(service)
        drain(service)

        await service._handle_event(DiscardEvent())

        assert drain(service) == []
        assert service.stage == SessionStage.RECORDED

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_the_session(self, service, clock, backend):
        await read_for(service, clock, 150)
        await service._handle_event(FinishTimerEvent())
        drain(service)
        backend.fail_next_call("duplicate key value violates unique constraint")

        await service._handle_event(SubmitEvent(end_unit=130))
        await finish_submissions(service)

        error = drain(service)[0]
        assert error.code == ErrorCode.BACKEND_ERROR
        assert error.message == "duplicate key value violates unique constraint"
        assert service.stage == SessionStage.REFLECTION
        assert service.tracker.accumulated_seconds == 150


def test_session_state(service):
    state = service.get_session_state()

    assert state["user_id"] == USER_ID
    assert state["stage"] == "timer"
    assert state["elapsed_seconds"] == 0
    assert state["submitting"] is False
