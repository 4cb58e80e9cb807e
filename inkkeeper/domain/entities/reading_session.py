"""Reading session entities for the Inkkeeper application."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..clock import utc_now
from .book import BookStatus


class SessionStage(str, Enum):
    """Stage of a live timer session."""

    TIMER = "timer"
    REFLECTION = "reflection"
    SUBMITTING = "submitting"
    RECORDED = "recorded"
    DISCARDED = "discarded"


class ReflectionData(BaseModel):
    """Reflection payload sent alongside a session."""

    model_config = ConfigDict(frozen=True)

    note: str = ""
    prompt: Optional[str] = None


class ReadingSession(BaseModel):
    """A logged reading session. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    book_id: str
    duration_seconds: int = Field(ge=0)
    units_read: int = Field(default=0, ge=0)
    reflection_data: ReflectionData = Field(default_factory=ReflectionData)
    ink_gained: int = Field(default=0, ge=0)
    xp_gained: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class SessionDraft(BaseModel):
    """A completed timer session waiting to be submitted."""

    book_id: Optional[str] = Field(default=None, description="Defaults to the profile's active book")
    duration_seconds: int = Field(ge=0)
    reflection: str = ""
    start_unit: Optional[int] = Field(default=None, ge=0, description="Defaults to the book's current unit")
    end_unit: Optional[int] = Field(default=None, ge=0, description="Required for physical books")
    finished: bool = False

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "book_id": "book-42",
                "duration_seconds": 900,
                "reflection": "The bridge crews finally hold together.",
                "start_unit": 100,
                "end_unit": 130,
                "finished": False,
            }
        }


class LogSessionRequest(BaseModel):
    """Arguments of the backend's atomic session-logging call."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    book_id: str
    companion_id: str
    duration_seconds: int = Field(ge=0)
    units_read: int = Field(ge=0)
    reflection_data: ReflectionData
    ink_gained: int = Field(ge=0)
    xp_gained: int = Field(ge=0)
    new_book_unit: int = Field(ge=0)
    new_book_status: Optional[BookStatus] = None


class SessionResult(BaseModel):
    """What the user earned from a recorded session."""

    ink_gained: int
    xp_gained: int
    units_read: int
    new_book_unit: int
    new_book_status: Optional[BookStatus] = None
    message: str = "Session recorded!"
