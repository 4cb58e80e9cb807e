"""Wall-clock helpers shared by the domain layer."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def hours_between(earlier: datetime, later: datetime) -> float:
    """Return the number of hours from ``earlier`` to ``later``.

    Naive datetimes are treated as UTC.
    """
    return (as_utc(later) - as_utc(earlier)).total_seconds() / 3600


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
