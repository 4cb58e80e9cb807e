"""Aggregated views returned to the presentation layer."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from .book import Book
from .companion import CompanionState


class ReadingStats(BaseModel):
    """Lifetime totals shown on the profile and stats screens."""

    total_minutes: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    ink_drops: int = Field(default=0, ge=0)


class JournalEntry(BaseModel):
    """One row of the reading journal."""

    id: str
    created_at: datetime
    duration_seconds: int
    book_title: Optional[str] = None
    cover_url: Optional[str] = None
    note: str = ""
    prompt: Optional[str] = None


class ReadingSummary(BaseModel):
    """Totals over a date range."""

    start_date: date
    end_date: date
    total_minutes_read: int = 0
    total_pages_read: int = 0
    total_sessions: int = 0
    best_day_date: Optional[date] = None
    most_sessions_in_a_day: int = 0


class HomeSnapshot(BaseModel):
    """Everything the home screen shows after a refresh."""

    ink_drops: int = 0
    current_streak: int = 0
    streak_freezes_available: int = 0
    active_book: Optional[Book] = None
    active_companion_id: Optional[str] = None
    companion: Optional[CompanionState] = None
    notices: list[str] = Field(default_factory=list)


class LibraryView(BaseModel):
    """Books grouped by status, active book first."""

    active_book_id: Optional[str] = None
    active: list[Book] = Field(default_factory=list)
    wishlist: list[Book] = Field(default_factory=list)
    finished: list[Book] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.active or self.wishlist or self.finished)
