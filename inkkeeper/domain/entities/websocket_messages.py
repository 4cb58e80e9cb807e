"""WebSocket message models for the live timer channel."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


# ===== Client → Server Messages =====


class SessionStart(BaseModel):
    """Timer session initialization message from client."""

    type: Literal["session.start"] = "session.start"
    user_id: str
    book_id: Optional[str] = None


class TimerControl(BaseModel):
    """Timer and app lifecycle controls."""

    type: Literal[
        "timer.start",
        "timer.pause",
        "app.suspend",
        "app.resume",
        "session.finish",
        "session.back",
        "session.discard",
    ]


class SessionSubmit(BaseModel):
    """Final submission of the reflection stage."""

    type: Literal["session.submit"] = "session.submit"
    reflection: str = ""
    start_unit: Optional[int] = Field(default=None, ge=0)
    end_unit: Optional[int] = Field(default=None, ge=0)
    finished: bool = False


# Union type for all client messages
ClientMessage = Union[SessionStart, TimerControl, SessionSubmit]


# ===== Server → Client Messages =====


class SessionReady(BaseModel):
    """Timer session ready confirmation from server."""

    type: Literal["session.ready"] = "session.ready"
    session_id: str
    book_id: str
    book_title: str
    book_format: str
    current_unit: int


class TimerUpdate(BaseModel):
    """Current elapsed time of the timer."""

    type: Literal["timer.update"] = "timer.update"
    elapsed_seconds: int = Field(ge=0)
    running: bool
    stage: str
    can_finish: bool = False


class ConfirmDiscard(BaseModel):
    """Ask the user to confirm throwing away un-submitted time."""

    type: Literal["session.confirm_discard"] = "session.confirm_discard"
    title: str = "End Session?"
    message: str = "Leaving now will discard this session."


class SessionRecorded(BaseModel):
    """Rewards granted for a recorded session."""

    type: Literal["session.recorded"] = "session.recorded"
    ink_gained: int
    xp_gained: int
    units_read: int
    new_book_unit: int
    new_book_status: Optional[str] = None
    message: str


class SessionEnded(BaseModel):
    """Session ended message from server."""

    type: Literal["session.ended"] = "session.ended"
    reason: str
    elapsed_seconds: int = 0


class ServerNotice(BaseModel):
    """Server notice message."""

    type: Literal["notice"] = "notice"
    message: str


class ErrorCode(str, Enum):
    """Error codes for WebSocket errors."""

    INVALID_MESSAGE = "INVALID_MESSAGE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MISSING_PREREQUISITE = "MISSING_PREREQUISITE"
    SUBMISSION_IN_PROGRESS = "SUBMISSION_IN_PROGRESS"
    BACKEND_ERROR = "BACKEND_ERROR"
    AUTH_FAILED = "AUTH_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorMessage(BaseModel):
    """Error message from server."""

    type: Literal["error"] = "error"
    code: ErrorCode
    message: str
    redirect: Optional[str] = None


# Union type for all server messages
ServerMessage = Union[
    SessionReady, TimerUpdate, ConfirmDiscard, SessionRecorded, SessionEnded, ServerNotice, ErrorMessage
]
