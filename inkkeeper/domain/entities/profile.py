"""Profile entities for the Inkkeeper application."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .book import BookFormat


class Profile(BaseModel):
    """User profile holding currency, streak state and active selections."""

    user_id: str
    email: Optional[str] = None
    ink_drops: int = Field(default=0, ge=0)
    active_book_id: Optional[str] = None
    active_companion_id: Optional[str] = None
    current_streak: int = Field(default=0, ge=0)
    streak_freezes_available: int = Field(default=0, ge=0)
    last_session_at: Optional[datetime] = None
    daily_goal_amount: Optional[int] = Field(default=None, ge=1, description="Daily goal in minutes")
    preferred_format: Optional[BookFormat] = None
    timezone: Optional[str] = None

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "user_id": "7f1c0c1e-2b1d-4c55-9f7a-8b1de3a0f001",
                "ink_drops": 120,
                "current_streak": 4,
                "streak_freezes_available": 1,
                "daily_goal_amount": 20,
            }
        }


class StreakFreezeResult(BaseModel):
    """Outcome of asking the backend to spend a streak freeze."""

    success: bool
    freezes_remaining: int = Field(default=0, ge=0)
