"""Outbound message entities."""

from dataclasses import dataclass, field
from typing import Optional

from .websocket_messages import (
    ConfirmDiscard,
    ErrorCode,
    ErrorMessage,
    ServerNotice,
    SessionEnded,
    SessionReady,
    SessionRecorded,
    TimerUpdate,
)


class OutboundMessage:
    """Base class for outbound messages."""

    pass


@dataclass
class SessionReadyMessage(OutboundMessage):
    """Message indicating the timer session is ready to accept events."""

    session_id: str
    book_id: str
    book_title: str
    book_format: str
    current_unit: int
    ready: SessionReady = field(init=False)

    def __post_init__(self):
        self.ready = SessionReady(
            session_id=self.session_id,
            book_id=self.book_id,
            book_title=self.book_title,
            book_format=self.book_format,
            current_unit=self.current_unit,
        )


@dataclass
class TimerUpdateMessage(OutboundMessage):
    """Message carrying the elapsed time."""

    elapsed_seconds: int
    running: bool
    stage: str
    can_finish: bool = False
    update: TimerUpdate = field(init=False)

    def __post_init__(self):
        self.update = TimerUpdate(
            elapsed_seconds=self.elapsed_seconds,
            running=self.running,
            stage=self.stage,
            can_finish=self.can_finish,
        )


@dataclass
class ConfirmDiscardMessage(OutboundMessage):
    """Message asking the client to confirm discarding the session."""

    confirm: ConfirmDiscard = field(default_factory=ConfirmDiscard)


@dataclass
class SessionRecordedMessage(OutboundMessage):
    """Message containing the rewards of a recorded session."""

    ink_gained: int
    xp_gained: int
    units_read: int
    new_book_unit: int
    new_book_status: Optional[str] = None
    message: str = "Session recorded!"
    recorded: SessionRecorded = field(init=False)

    def __post_init__(self):
        self.recorded = SessionRecorded(
            ink_gained=self.ink_gained,
            xp_gained=self.xp_gained,
            units_read=self.units_read,
            new_book_unit=self.new_book_unit,
            new_book_status=self.new_book_status,
            message=self.message,
        )


@dataclass
class NoticeMessage(OutboundMessage):
    """Message containing a notice."""

    message: str
    notice: ServerNotice = field(init=False)

    def __post_init__(self):
        self.notice = ServerNotice(message=self.message)


@dataclass
class ErrorOutMessage(OutboundMessage):
    """Message containing an error."""

    code: ErrorCode
    message: str
    redirect: Optional[str] = None
    error: ErrorMessage = field(init=False)

    def __post_init__(self):
        self.error = ErrorMessage(code=self.code, message=self.message, redirect=self.redirect)


@dataclass
class SessionEndedMessage(OutboundMessage):
    """Message indicating the session has ended."""

    reason: str
    elapsed_seconds: int = 0
    session_ended: SessionEnded = field(init=False)

    def __post_init__(self):
        self.session_ended = SessionEnded(reason=self.reason, elapsed_seconds=self.elapsed_seconds)
