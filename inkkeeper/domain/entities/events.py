"""Inbound events for live timer sessions."""

from dataclasses import dataclass
from typing import Optional


class InboundEvent:
    """Base class for inbound events."""

    pass


@dataclass
class StartTimerEvent(InboundEvent):
    """Event to start or resume the timer."""

    pass


@dataclass
class PauseTimerEvent(InboundEvent):
    """Event to pause the timer."""

    pass


@dataclass
class SuspendEvent(InboundEvent):
    """The app moved to the background."""

    pass


@dataclass
class ResumeEvent(InboundEvent):
    """The app returned to the foreground."""

    pass


@dataclass
class FinishTimerEvent(InboundEvent):
    """Event to stop the timer and move on to the reflection stage."""

    pass


@dataclass
class BackEvent(InboundEvent):
    """The user pressed back or close."""

    pass


@dataclass
class DiscardEvent(InboundEvent):
    """The user confirmed discarding the un-submitted session."""

    pass


@dataclass
class SubmitEvent(InboundEvent):
    """Event to submit the completed session."""

    reflection: str = ""
    end_unit: Optional[int] = None
    start_unit: Optional[int] = None
    finished: bool = False


@dataclass
class CloseEvent(InboundEvent):
    """Event to close the session."""

    pass
