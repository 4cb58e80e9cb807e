"""Authenticated request context passed into domain services."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SessionContext:
    """Who is acting. Services receive this instead of reading global auth state."""

    user_id: str
    access_token: Optional[str] = None
