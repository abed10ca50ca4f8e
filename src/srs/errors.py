"""
Error taxonomy for the scheduling engine.

Only PersistenceError is worth retrying; the others signal a caller bug
and are raised straight back without any recovery.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the scheduling engine."""

    retryable = False


class ValidationError(SchedulerError, ValueError):
    """Raised when input to add/edit/grade is malformed."""


class NotFoundError(SchedulerError, LookupError):
    """Raised when a card id is not in the store."""

    def __init__(self, card_id: str):
        super().__init__(f"Flashcard not found: {card_id}")
        self.card_id = card_id


class EmptyQueueError(SchedulerError):
    """Raised when a review session is started with nothing to review."""


class InvalidStateError(SchedulerError):
    """Raised on an illegal review-session transition."""

    def __init__(self, state: str, action: str, detail: str | None = None):
        message = f"Cannot {action} while session is {state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.state = state
        self.action = action


class PersistenceError(SchedulerError):
    """Raised when the persistence adapter fails or times out."""

    retryable = True
