"""Domain errors for the Inkkeeper application."""

from typing import Optional


class InkkeeperError(Exception):
    """Base class for all Inkkeeper errors."""

    pass


class SessionValidationError(InkkeeperError, ValueError):
    """A completed session cannot be submitted as entered.

    Recovered locally: the submission is blocked and the message is shown.
    """

    pass


class NotFoundError(InkkeeperError, ValueError):
    """An entity lookup against the backend found nothing."""

    pass


class BackendError(InkkeeperError):
    """The backend rejected a call or could not be reached.

    The message is the backend's own, surfaced unmodified.
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class MissingPrerequisiteError(InkkeeperError):
    """Something the operation depends on (active book, companion) is missing.

    Attributes:
        redirect: Screen the user should be sent to in order to recover.
    """

    def __init__(self, message: str, redirect: str = "library"):
        super().__init__(message)
        self.message = message
        self.redirect = redirect


class SubmissionInProgressError(InkkeeperError):
    """A session submission is already outstanding."""

    pass


class DuplicateBookError(InkkeeperError):
    """The user already has a book with this title."""

    def __init__(self, title: str):
        super().__init__(f'You already have "{title}" in your library.')
        self.title = title
