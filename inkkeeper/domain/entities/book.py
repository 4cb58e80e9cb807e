"""Book entities for the Inkkeeper application."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..clock import utc_now


class BookFormat(str, Enum):
    """How a book is consumed; decides whether units are pages or minutes."""

    PHYSICAL = "physical"
    AUDIO = "audio"


class BookStatus(str, Enum):
    """Shelf status of a book."""

    ACTIVE = "active"
    WISHLIST = "wishlist"
    FINISHED = "finished"


class Book(BaseModel):
    """Book entity as stored by the backend.

    ``current_unit`` is a page number for physical books and a minute
    count for audio books.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str = Field(min_length=1, max_length=300)
    author: str = Field(default="Unknown")
    format: BookFormat = BookFormat.PHYSICAL
    current_unit: int = Field(default=0, ge=0, description="Progress marker (page or minute)")
    total_units: Optional[int] = Field(default=None, ge=1, description="Total pages or minutes")
    status: BookStatus = BookStatus.ACTIVE
    shelf_name: Optional[str] = None
    cover_url: Optional[str] = None
    genre_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def progress_percent(self) -> Optional[int]:
        """Whole-number reading progress, or None when the length is unknown."""
        if not self.total_units:
            return None
        return min(100, round(self.current_unit / self.total_units * 100))


class BookDraft(BaseModel):
    """User input for adding a book to the library."""

    title: str = Field(min_length=1, max_length=300)
    author: str = Field(default="Unknown")
    format: BookFormat = BookFormat.PHYSICAL
    total_units: int = Field(ge=1, description="Total pages or minutes")
    status: Optional[BookStatus] = Field(
        default=None,
        description="Explicit status; chosen from the profile when omitted",
    )
    cover_url: Optional[str] = None
    genre_type: Optional[str] = None

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "title": "The Way of Kings",
                "author": "Brandon Sanderson",
                "format": "physical",
                "total_units": 1007,
            }
        }
