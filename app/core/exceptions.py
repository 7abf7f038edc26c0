# app/core/exceptions.py
"""
Domain errors raised by the CRUD and service layers.

Endpoints translate these into HTTP responses; the services never import
FastAPI.
"""


class SpeakerQueueError(Exception):
    """Base class for all domain errors."""


class NotFoundError(SpeakerQueueError):
    pass


class ConflictError(SpeakerQueueError):
    """The row was not in the state the operation expected."""


class DuplicateRecordError(SpeakerQueueError):
    """A unique column (email, code) already holds this value."""


class InvalidTransitionError(SpeakerQueueError):
    """The attendee session cannot make the requested transition."""

    def __init__(self, state: str, action: str, reason: str | None = None):
        self.state = state
        self.action = action
        self.reason = reason
        message = f"Cannot {action} while {state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ValidationFailedError(SpeakerQueueError):
    pass
