"""Domain entities for the Inkkeeper application."""

from .book import Book, BookDraft, BookFormat, BookStatus
from .companion import Companion, CompanionStage, CompanionState, CompanionStatus
from .events import (
    BackEvent,
    CloseEvent,
    DiscardEvent,
    FinishTimerEvent,
    InboundEvent,
    PauseTimerEvent,
    ResumeEvent,
    StartTimerEvent,
    SubmitEvent,
    SuspendEvent,
)
from .messages import (
    ConfirmDiscardMessage,
    ErrorOutMessage,
    NoticeMessage,
    OutboundMessage,
    SessionEndedMessage,
    SessionReadyMessage,
    SessionRecordedMessage,
    TimerUpdateMessage,
)
from .profile import Profile, StreakFreezeResult
from .reading_session import (
    LogSessionRequest,
    ReadingSession,
    ReflectionData,
    SessionDraft,
    SessionResult,
    SessionStage,
)
from .session_context import SessionContext
from .stats import HomeSnapshot, JournalEntry, LibraryView, ReadingStats, ReadingSummary
from .websocket_messages import (
    ClientMessage,
    ConfirmDiscard,
    ErrorCode,
    ErrorMessage,
    ServerMessage,
    ServerNotice,
    SessionEnded,
    SessionReady,
    SessionRecorded,
    SessionStart,
    SessionSubmit,
    TimerControl,
    TimerUpdate,
)

__all__ = [
    # Book entities
    "Book",
    "BookDraft",
    "BookFormat",
    "BookStatus",
    # Companion entities
    "Companion",
    "CompanionStage",
    "CompanionState",
    "CompanionStatus",
    # Profile entities
    "Profile",
    "StreakFreezeResult",
    # Session entities
    "ReadingSession",
    "ReflectionData",
    "SessionDraft",
    "LogSessionRequest",
    "SessionResult",
    "SessionStage",
    "SessionContext",
    # Aggregated views
    "ReadingStats",
    "JournalEntry",
    "ReadingSummary",
    "HomeSnapshot",
    "LibraryView",
    # Event entities
    "InboundEvent",
    "StartTimerEvent",
    "PauseTimerEvent",
    "SuspendEvent",
    "ResumeEvent",
    "FinishTimerEvent",
    "BackEvent",
    "DiscardEvent",
    "SubmitEvent",
    "CloseEvent",
    # Message entities
    "OutboundMessage",
    "SessionReadyMessage",
    "TimerUpdateMessage",
    "ConfirmDiscardMessage",
    "SessionRecordedMessage",
    "NoticeMessage",
    "ErrorOutMessage",
    "SessionEndedMessage",
    # WebSocket message entities
    "ClientMessage",
    "ServerMessage",
    "SessionStart",
    "TimerControl",
    "SessionSubmit",
    "SessionReady",
    "TimerUpdate",
    "ConfirmDiscard",
    "SessionRecorded",
    "SessionEnded",
    "ServerNotice",
    "ErrorMessage",
    "ErrorCode",
]
