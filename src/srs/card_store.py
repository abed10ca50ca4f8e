"""
Card Store: owns the flashcard collection.

Provides:
- add / add_many / get / cards / edit / delete
- grade, the only operation that moves a card along its schedule

Consistency model:
- The in-memory view is a dict of immutable snapshots that is never mutated
  in place; each commit builds a candidate dict, persists it, and only then
  swaps it in. A failed save leaves the previous view untouched.
- A per-card lock serialises read-modify-write on one id, so two grades of
  the same card can never both start from the same review_count.
- A store-wide commit lock serialises the persist-and-swap step, so writes
  to different cards never drop each other.
- Every adapter call runs on a single I/O worker and is bounded by a
  timeout; lock waits are bounded too. Both surface as PersistenceError.
- A save that times out keeps running on the worker. Until it finishes and
  the last committed collection has been written back over it, further
  writes are rejected with PersistenceError.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable, Iterator, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from config import get_settings

from .errors import NotFoundError, PersistenceError, ValidationError
from .flashcard import (
    EDITABLE_FIELDS,
    GRADE_OWNED_FIELDS,
    Flashcard,
    FlashcardPatch,
    Grade,
    ensure_utc,
    utc_now,
)
from .interval_policy import DEFAULT_POLICY, IntervalPolicy

if TYPE_CHECKING:
    from config import Settings
    from src.persistence.base import PersistenceAdapter


class CardStore:
    """
    Durable collection of flashcards for one learner.

    Each store owns its own state; create one per learner rather than
    sharing a module-level instance.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        policy: IntervalPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        persistence_timeout: float = 5.0,
        lock_timeout: float = 10.0,
        default_mode: str | None = None,
    ):
        """
        Initialize the store and load the persisted collection.

        Args:
            adapter: Persistence backend
            policy: Interval tables (defaults to DEFAULT_POLICY)
            clock: Returns the current time (defaults to UTC now)
            persistence_timeout: Seconds a load/save may take
            lock_timeout: Seconds to wait for a pending write to the same card
            default_mode: Mode given to cards added without one
                (defaults to Settings.default_mode)

        Raises:
            PersistenceError: If the initial load fails or times out
        """
        self.adapter = adapter
        self.policy = policy or DEFAULT_POLICY
        self.clock = clock or utc_now
        self.persistence_timeout = persistence_timeout
        self.lock_timeout = lock_timeout
        self.default_mode = default_mode or get_settings().default_mode

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="card-store-io")
        self._commit_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._card_locks: dict[str, threading.Lock] = {}

        # Cleared while a timed-out save may still land on disk
        self._saves_settled = threading.Event()
        self._saves_settled.set()

        try:
            loaded = self._call_adapter("load", self.adapter.load)
        except PersistenceError:
            self._executor.shutdown(wait=False, cancel_futures=True)
            raise

        self._cards: dict[str, Flashcard] = {card.id: card for card in loaded}
        logger.info(f"CardStore ready with {len(self._cards)} cards via {self.adapter.name}")

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> CardStore:
        """Build a store wired to the configured adapter and interval tables."""
        from src.persistence import create_adapter

        settings = settings or get_settings()
        kwargs: dict[str, Any] = {
            "adapter": create_adapter(settings),
            "policy": IntervalPolicy.from_settings(settings),
            "persistence_timeout": settings.persistence_timeout_seconds,
            "lock_timeout": settings.card_lock_timeout_seconds,
            "default_mode": settings.default_mode,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    # =========================================================================
    # Reads
    # =========================================================================

    def now(self) -> datetime:
        """Current time from the store clock, as aware UTC."""
        return ensure_utc(self.clock())

    def get(self, card_id: str) -> Flashcard:
        """
        Get the current snapshot of a card.

        Raises:
            NotFoundError: If the id is unknown
        """
        card = self._cards.get(card_id)
        if card is None:
            raise NotFoundError(card_id)
        return card

    def cards(self, mode: str | None = None) -> list[Flashcard]:
        """All cards in creation order, optionally filtered by mode."""
        snapshot = self._cards.values()
        if mode is None:
            return list(snapshot)
        return [card for card in snapshot if card.mode == mode]

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    def __iter__(self) -> Iterator[Flashcard]:
        return iter(list(self._cards.values()))

    # =========================================================================
    # Writes
    # =========================================================================

    def add(
        self,
        question: str,
        answer: str,
        mode: str | None = None,
        next_review_at: datetime | None = None,
    ) -> Flashcard:
        """
        Create a new card, due immediately unless a later first review is given.

        Args:
            question: Prompt text (non-empty after trimming)
            answer: Answer text (non-empty after trimming)
            mode: Classification label (defaults to the store's default_mode)
            next_review_at: Optional first review time, not earlier than now

        Returns:
            The new Flashcard

        Raises:
            ValidationError: On empty text or a first review in the past
            PersistenceError: If the save fails
        """
        card = self._new_card(question, answer, mode, next_review_at, self.now())
        self._commit(upserts=[card])
        logger.debug(f"Added card {card.id} (mode={card.mode}, due={card.next_review_at:%Y-%m-%d})")
        return card

    def add_many(
        self,
        pairs: Iterable[tuple[str, str]],
        mode: str | None = None,
    ) -> list[Flashcard]:
        """
        Add a batch of (question, answer) pairs in one save.

        Every pair is validated before anything is written, so either the
        whole batch is added or none of it is.
        """
        now = self.now()
        new_cards = [self._new_card(q, a, mode, None, now) for q, a in pairs]
        if not new_cards:
            return []

        self._commit(upserts=new_cards)
        logger.info(f"Added {len(new_cards)} cards in one batch")
        return new_cards

    def grade(self, card_id: str, grade: Grade | str) -> Flashcard:
        """
        Apply a grade and reschedule the card.

        The interval is looked up with the review count *before* this grade,
        then review_count is incremented, the streak extended on Easy or
        reset otherwise, and last_grade/updated_at stamped.

        Returns:
            The committed snapshot

        Raises:
            ValidationError: If the grade is not easy/medium/hard
            NotFoundError: If the id is unknown
            PersistenceError: If the save fails or times out (nothing changes)
        """
        grade = Grade.parse(grade)
        self.get(card_id)

        with self._card_lock(card_id):
            current = self.get(card_id)
            now = self.now()
            updated = self._revise(
                current,
                last_grade=grade,
                review_count=current.review_count + 1,
                streak=current.streak + 1 if grade is Grade.EASY else 0,
                next_review_at=self.policy.next_review(grade, current.review_count, now),
                updated_at=now,
            )
            self._commit(upserts=[updated])

        logger.debug(
            f"Graded {card_id} {grade.value}: reviews={updated.review_count}, "
            f"streak={updated.streak}, next={updated.next_review_at:%Y-%m-%d}"
        )
        return updated

    def edit(self, card_id: str, patch: FlashcardPatch | Mapping[str, Any]) -> Flashcard:
        """
        Change question/answer/mode, or force the next review time.

        A forced next_review_at bypasses the interval policy on purpose. The
        grade-owned fields (last_grade, review_count, streak) cannot be edited.

        Raises:
            ValidationError: On a forbidden field, empty text, or a forced
                review earlier than the card's creation
            NotFoundError: If the id is unknown
            PersistenceError: If the save fails
        """
        changes = self._parse_patch(patch)
        self.get(card_id)

        with self._card_lock(card_id):
            current = self.get(card_id)
            if not changes:
                return current

            if "next_review_at" in changes:
                forced = ensure_utc(changes["next_review_at"])
                if forced < current.created_at:
                    raise ValidationError(
                        "next_review_at cannot be earlier than the card's creation time"
                    )
                changes["next_review_at"] = forced

            if "mode" in changes:
                changes["mode"] = changes["mode"].strip()
                if not changes["mode"]:
                    raise ValidationError("Mode must not be empty")

            updated = self._revise(current, **changes)
            self._commit(upserts=[updated])

        logger.debug(f"Edited {card_id}: {', '.join(sorted(changes))}")
        return updated

    def delete(self, card_id: str) -> None:
        """
        Permanently remove a card.

        Raises:
            NotFoundError: If the id is unknown
            PersistenceError: If the save fails
        """
        self.get(card_id)

        with self._card_lock(card_id):
            self.get(card_id)
            self._commit(removals=[card_id])

        with self._locks_guard:
            self._card_locks.pop(card_id, None)
        logger.debug(f"Deleted card {card_id}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def wait_for_pending_saves(self, timeout: float | None = None) -> bool:
        """
        Block until no timed-out save is still settling.

        Returns:
            True if storage again matches the in-memory view, False on timeout
        """
        return self._saves_settled.wait(timeout)

    def close(self) -> None:
        """Stop the I/O worker and release the adapter."""
        if not self.wait_for_pending_saves(self.lock_timeout):
            logger.warning("Closing card store while a timed-out save is still pending")
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.adapter.close()

    def __enter__(self) -> CardStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Internals
    # =========================================================================

    def _new_card(
        self,
        question: str,
        answer: str,
        mode: str | None,
        next_review_at: datetime | None,
        now: datetime,
    ) -> Flashcard:
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question must not be empty")
        if not isinstance(answer, str) or not answer.strip():
            raise ValidationError("Answer must not be empty")

        mode = (mode or "").strip() or self.default_mode

        first_review = now
        if next_review_at is not None:
            first_review = ensure_utc(next_review_at)
            if first_review < now:
                raise ValidationError("First review cannot be scheduled in the past")

        try:
            return Flashcard(
                id=str(uuid.uuid4()),
                question=question,
                answer=answer,
                mode=mode,
                last_grade=Grade.MEDIUM,
                review_count=0,
                streak=0,
                next_review_at=first_review,
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

    def _revise(self, card: Flashcard, **changes: Any) -> Flashcard:
        try:
            return card.evolve(**changes)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

    def _parse_patch(self, patch: FlashcardPatch | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(patch, FlashcardPatch):
            return patch.changes()
        if not isinstance(patch, Mapping):
            raise ValidationError("Edit patch must be a mapping or FlashcardPatch")

        owned = GRADE_OWNED_FIELDS.intersection(patch)
        if owned:
            raise ValidationError(f"{', '.join(sorted(owned))} can only change by grading")

        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(map(str, unknown)))}")

        try:
            return FlashcardPatch.model_validate(dict(patch)).changes()
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

    @contextmanager
    def _card_lock(self, card_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._card_locks.setdefault(card_id, threading.Lock())

        if not lock.acquire(timeout=self.lock_timeout):
            raise PersistenceError(f"Timed out waiting for a pending write to card {card_id}")
        try:
            yield
        finally:
            lock.release()

    def _commit(
        self,
        upserts: Iterable[Flashcard] = (),
        removals: Iterable[str] = (),
    ) -> None:
        if not self._commit_lock.acquire(timeout=self.lock_timeout):
            raise PersistenceError("Timed out waiting for the store to accept a write")
        try:
            if not self._saves_settled.is_set():
                raise PersistenceError("A timed-out save is still settling; retry shortly")

            candidate = dict(self._cards)
            for card in upserts:
                candidate[card.id] = card
            for card_id in removals:
                candidate.pop(card_id, None)

            committed = list(self._cards.values())
            self._call_adapter(
                "save",
                self.adapter.save_all,
                list(candidate.values()),
                on_timeout=partial(self._watch_stray_save, committed),
            )
            self._cards = candidate
        finally:
            self._commit_lock.release()

    def _watch_stray_save(self, committed: list[Flashcard], future: Future) -> None:
        """Hold off writes until a timed-out save finishes, then undo it."""
        self._saves_settled.clear()
        future.add_done_callback(partial(self._on_stray_save_done, committed))

    def _on_stray_save_done(self, committed: list[Flashcard], future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            # Adapters are all-or-nothing, so nothing reached storage
            self._saves_settled.set()
            return

        try:
            self._executor.submit(self._restore_committed, committed)
        except RuntimeError:
            logger.warning("Card store closed before a timed-out save could be undone")
            self._saves_settled.set()

    def _restore_committed(self, committed: list[Flashcard]) -> None:
        try:
            self.adapter.save_all(committed)
            logger.info(f"Undid a timed-out save; storage is back to {len(committed)} cards")
        except Exception as e:
            logger.error(f"Could not undo a timed-out save: {e}")
        finally:
            self._saves_settled.set()

    def _call_adapter(
        self,
        action: str,
        fn: Callable[..., Any],
        *args: Any,
        on_timeout: Callable[[Future], None] | None = None,
    ) -> Any:
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError as e:
            raise PersistenceError(f"{action} rejected: store is closed") from e

        try:
            return future.result(timeout=self.persistence_timeout)
        except FutureTimeoutError as e:
            future.cancel()
            if on_timeout is not None:
                on_timeout(future)
            logger.warning(f"Persistence {action} timed out after {self.persistence_timeout}s")
            raise PersistenceError(
                f"{action} timed out after {self.persistence_timeout}s"
            ) from e
        except PersistenceError as e:
            logger.warning(f"Persistence {action} failed: {e}")
            raise
        except Exception as e:
            logger.warning(f"Persistence {action} failed: {e}")
            raise PersistenceError(f"{action} failed: {e}") from e
