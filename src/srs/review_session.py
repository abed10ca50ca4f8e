"""
Review Session Controller.

Drives one bounded pass over a frozen snapshot of due cards:

    IDLE --start--> PRESENTING --reveal--> REVEALED --grade--> PRESENTING (next card)
                                                     \\--grade--> COMPLETED (last card)
    any state --cancel--> IDLE

Rules:
- The queue is captured once at start; nothing is added or removed later,
  so each queued card is graded exactly once per session.
- Grading writes through to the CardStore immediately. If the write fails
  the session stays REVEALED so the caller can retry.
- cancel() never waits on an in-flight write. A write that finishes after
  cancellation still commits, but no longer touches session state.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from loguru import logger

from .card_store import CardStore
from .errors import EmptyQueueError, InvalidStateError
from .flashcard import Flashcard, Grade


class SessionState(str, Enum):
    """Where a review session currently is."""

    IDLE = "idle"
    PRESENTING = "presenting"  # Question shown, answer hidden
    REVEALED = "revealed"  # Answer shown, waiting for a grade
    COMPLETED = "completed"  # Every queued card graded


@dataclass
class SessionSummary:
    """Outcome of a finished or cancelled session."""

    total: int
    completed: int
    started_at: datetime
    ended_at: datetime
    cancelled: bool = False
    grade_counts: dict[str, int] = field(default_factory=dict)

    @property
    def completion_rate(self) -> float:
        """Fraction of the queue that was graded."""
        if self.total == 0:
            return 0.0
        return self.completed / self.total


class ReviewSession:
    """
    State machine for reviewing a batch of due cards.

    Usage:
        session = ReviewSession(store)
        session.start(DueSetQuery(store).due_cards())
        session.reveal()
        session.grade(Grade.EASY)
        ...
    """

    def __init__(self, store: CardStore):
        self.store = store

        # Guards the fields below; never held across a store call
        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._queue: tuple[Flashcard, ...] = ()
        self._index = 0
        self._completed = 0
        self._grades: Counter[str] = Counter()
        self._started_at: datetime | None = None
        self._generation = 0
        self._grade_in_flight = False
        self._last_summary: SessionSummary | None = None

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def queue(self) -> tuple[Flashcard, ...]:
        """Frozen snapshot the session was started with."""
        return self._queue

    @property
    def index(self) -> int:
        return self._index

    @property
    def revealed(self) -> bool:
        return self._state is SessionState.REVEALED

    @property
    def completed_count(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return len(self._queue)

    @property
    def remaining(self) -> int:
        return self.total - self._completed

    @property
    def progress(self) -> float:
        """Percent of the queue graded so far."""
        if not self._queue:
            return 0.0
        return self._completed / len(self._queue) * 100

    @property
    def current_card(self) -> Flashcard | None:
        """Card being shown, or None outside PRESENTING/REVEALED."""
        with self._lock:
            if self._state in (SessionState.PRESENTING, SessionState.REVEALED):
                return self._queue[self._index]
            return None

    @property
    def last_summary(self) -> SessionSummary | None:
        """Summary of the most recent completed or cancelled session."""
        return self._last_summary

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self, due_snapshot: Iterable[Flashcard]) -> Flashcard:
        """
        Begin a session over a frozen copy of `due_snapshot`.

        Allowed from IDLE, or from COMPLETED to start the next session.

        Returns:
            The first card to present

        Raises:
            EmptyQueueError: If the snapshot is empty (state unchanged)
            InvalidStateError: If a session is already in progress
        """
        queue = tuple(due_snapshot)
        with self._lock:
            if self._state not in (SessionState.IDLE, SessionState.COMPLETED):
                raise InvalidStateError(self._state.value, "start", "a session is already running")
            if not queue:
                raise EmptyQueueError("No due cards to review")

            self._generation += 1
            self._queue = queue
            self._index = 0
            self._completed = 0
            self._grades = Counter()
            self._grade_in_flight = False
            self._started_at = self.store.now()
            self._state = SessionState.PRESENTING

        logger.info(f"Review session started with {len(queue)} cards")
        return queue[0]

    def reveal(self) -> Flashcard:
        """
        Show the answer of the current card.

        Raises:
            InvalidStateError: Unless PRESENTING
        """
        with self._lock:
            if self._state is not SessionState.PRESENTING:
                raise InvalidStateError(self._state.value, "reveal")
            self._state = SessionState.REVEALED
            return self._queue[self._index]

    def grade(self, grade: Grade | str) -> Flashcard:
        """
        Grade the current card and advance.

        Returns:
            The card's committed snapshot after grading

        Raises:
            ValidationError: If the grade is not easy/medium/hard
            InvalidStateError: Unless REVEALED with no grade already in flight
            PersistenceError: If the store write fails (session stays REVEALED)
        """
        grade = Grade.parse(grade)

        with self._lock:
            if self._state is not SessionState.REVEALED:
                raise InvalidStateError(self._state.value, "grade")
            if self._grade_in_flight:
                raise InvalidStateError(
                    self._state.value, "grade", "a grade for this card is still being saved"
                )
            self._grade_in_flight = True
            generation = self._generation
            card = self._queue[self._index]

        try:
            updated = self.store.grade(card.id, grade)
        except Exception:
            with self._lock:
                if self._generation == generation:
                    self._grade_in_flight = False
            raise

        with self._lock:
            if self._generation != generation:
                logger.debug(f"Grade for {card.id} committed after the session was cancelled")
                return updated

            self._grade_in_flight = False
            self._completed += 1
            self._grades[grade.value] += 1

            finished = self._index + 1 >= len(self._queue)
            if finished:
                self._state = SessionState.COMPLETED
                self._last_summary = self._summarise(cancelled=False)
            else:
                self._index += 1
                self._state = SessionState.PRESENTING

        if finished:
            logger.info(f"Review session completed: {len(self._queue)} cards graded")
        return updated

    def cancel(self) -> None:
        """
        Abandon the session and return to IDLE.

        Cards already graded keep their committed state.
        """
        with self._lock:
            if self._state in (SessionState.PRESENTING, SessionState.REVEALED):
                self._last_summary = self._summarise(cancelled=True)
                logger.info(
                    f"Review session cancelled after {self._completed}/{len(self._queue)} cards"
                )

            self._generation += 1
            self._state = SessionState.IDLE
            self._queue = ()
            self._index = 0
            self._completed = 0
            self._grades = Counter()
            self._grade_in_flight = False
            self._started_at = None

    def _summarise(self, cancelled: bool) -> SessionSummary:
        return SessionSummary(
            total=len(self._queue),
            completed=self._completed,
            started_at=self._started_at or self.store.now(),
            ended_at=self.store.now(),
            cancelled=cancelled,
            grade_counts=dict(self._grades),
        )
