"""Unit tests for domain entities."""

import pytest
from pydantic import ValidationError

from inkkeeper.domain.entities import (
    Book,
    BookFormat,
    BookStatus,
    ErrorCode,
    ErrorOutMessage,
    LibraryView,
    Profile,
    ReadingSession,
    SessionDraft,
    SessionEndedMessage,
    SessionStage,
    SessionSubmit,
    TimerControl,
    TimerUpdateMessage,
)


class TestBook:
    """Tests for Book entity."""

    def test_book_defaults(self):
        """Test creating a book with minimal required fields."""
        book = Book(user_id="user-1", title="Emma")

        assert book.id is not None
        assert book.author == "Unknown"
        assert book.format == BookFormat.PHYSICAL
        assert book.status == BookStatus.ACTIVE
        assert book.current_unit == 0
        assert book.total_units is None

    def test_progress_percent(self):
        assert Book(user_id="u", title="Emma", current_unit=50, total_units=200).progress_percent == 25
        assert Book(user_id="u", title="Emma", current_unit=250, total_units=200).progress_percent == 100
        assert Book(user_id="u", title="Emma", current_unit=50).progress_percent is None

    def test_title_is_required(self):
        with pytest.raises(ValidationError):
            Book(user_id="user-1", title="")

    def test_negative_progress_is_rejected(self):
        with pytest.raises(ValidationError):
            Book(user_id="user-1", title="Emma", current_unit=-1)


class TestProfile:
    """Tests for Profile entity."""

    def test_profile_defaults(self):
        profile = Profile(user_id="user-1")

        assert profile.ink_drops == 0
        assert profile.current_streak == 0
        assert profile.streak_freezes_available == 0
        assert profile.last_session_at is None
        assert profile.active_book_id is None

    def test_negative_ink_is_rejected(self):
        with pytest.raises(ValidationError):
            Profile(user_id="user-1", ink_drops=-5)


class TestSessions:
    """Tests for session entities."""

    def test_session_stage_values(self):
        assert [s.value for s in SessionStage] == ["timer", "reflection", "submitting", "recorded", "discarded"]

    def test_reading_session_is_immutable(self):
        session = ReadingSession(user_id="user-1", book_id="book-1", duration_seconds=60)

        with pytest.raises(ValidationError):
            session.duration_seconds = 120

    def test_draft_rejects_negative_pages(self):
        with pytest.raises(ValidationError):
            SessionDraft(duration_seconds=60, end_unit=-1)


class TestLibraryView:
    """Tests for LibraryView."""

    def test_is_empty(self):
        assert LibraryView().is_empty is True
        assert LibraryView(wishlist=[Book(user_id="u", title="Emma")]).is_empty is False


class TestWireMessages:
    """Tests for the WebSocket wire models and their outbound wrappers."""

    def test_timer_control_types(self):
        assert TimerControl(type="app.suspend").type == "app.suspend"
        with pytest.raises(ValidationError):
            TimerControl(type="timer.rewind")

    def test_submit_defaults(self):
        submit = SessionSubmit.model_validate({"type": "session.submit", "end_unit": 42})

        assert submit.reflection == ""
        assert submit.end_unit == 42
        assert submit.finished is False

    def test_outbound_messages_build_wire_models(self):
        update = TimerUpdateMessage(elapsed_seconds=61, running=True, stage="timer", can_finish=True)
        error = ErrorOutMessage(ErrorCode.MISSING_PREREQUISITE, "Pick a book", redirect="library")
        ended = SessionEndedMessage(reason="discarded", elapsed_seconds=30)

        assert update.update.model_dump() == {
            "type": "timer.update",
            "elapsed_seconds": 61,
            "running": True,
            "stage": "timer",
            "can_finish": True,
        }
        assert error.error.redirect == "library"
        assert error.error.model_dump(mode="json")["code"] == "MISSING_PREREQUISITE"
        assert ended.session_ended.type == "session.ended"
