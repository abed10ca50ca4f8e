"""
Mentora SRS: spaced-repetition scheduling for flashcards.

Components:
- IntervalPolicy: Days until next review per grade and prior review count
- CardStore: Durable flashcard collection and the grade operation
- DueSetQuery: Cards due now, most overdue first
- ReviewSession: State machine over a frozen batch of due cards
- collection_stats: Aggregate progress numbers
"""

from .card_store import CardStore
from .due_query import DueSetQuery, due_cards
from .errors import (
    EmptyQueueError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    SchedulerError,
    ValidationError,
)
from .flashcard import Flashcard, FlashcardPatch, Grade
from .interval_policy import DEFAULT_POLICY, IntervalPolicy, days_until_next_review
from .log_config import configure_logging
from .review_session import ReviewSession, SessionState, SessionSummary
from .stats import CollectionStats, collection_stats

__all__ = [
    # Model
    "Flashcard",
    "FlashcardPatch",
    "Grade",
    # Scheduling
    "IntervalPolicy",
    "DEFAULT_POLICY",
    "days_until_next_review",
    # Storage
    "CardStore",
    # Queries
    "DueSetQuery",
    "due_cards",
    "CollectionStats",
    "collection_stats",
    # Sessions
    "ReviewSession",
    "SessionState",
    "SessionSummary",
    # Errors
    "SchedulerError",
    "ValidationError",
    "NotFoundError",
    "EmptyQueueError",
    "InvalidStateError",
    "PersistenceError",
    # Logging
    "configure_logging",
]
