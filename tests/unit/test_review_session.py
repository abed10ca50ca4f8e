"""
Unit tests for the review session state machine.

Covers the legal transition path, rejected transitions, write-through
grading, retry after a failed write, and cancellation with a grade still
being saved.
"""

import threading

import pytest

from src.persistence.memory import InMemoryAdapter
from src.srs.card_store import CardStore
from src.srs.due_query import DueSetQuery
from src.srs.errors import EmptyQueueError, InvalidStateError, PersistenceError, ValidationError
from src.srs.flashcard import Grade
from src.srs.review_session import ReviewSession, SessionState


class ControlledAdapter(InMemoryAdapter):
    """Saves can be made to fail, or to block until released."""

    def __init__(self):
        super().__init__()
        self.fail_saves = False
        self.block = False
        self.entered = threading.Event()
        self.release = threading.Event()

    def save_all(self, cards):
        if self.fail_saves:
            raise OSError("disk full")
        if self.block:
            self.entered.set()
            self.release.wait(timeout=5)
        super().save_all(cards)


@pytest.fixture
def two_cards(store):
    return store.add_many([("Card A?", "A"), ("Card B?", "B")])


@pytest.fixture
def session(store):
    return ReviewSession(store)


class TestStart:
    """Tests for starting a session."""

    def test_scenario_c_empty_queue(self, session):
        """start([]) fails and leaves the session idle."""
        with pytest.raises(EmptyQueueError):
            session.start([])
        assert session.state is SessionState.IDLE

    def test_start_presents_first_card(self, session, two_cards):
        first = session.start(two_cards)
        assert first == two_cards[0]
        assert session.state is SessionState.PRESENTING
        assert session.index == 0
        assert session.current_card == two_cards[0]
        assert not session.revealed
        assert session.total == 2

    def test_cannot_start_twice(self, session, two_cards):
        session.start(two_cards)
        with pytest.raises(InvalidStateError):
            session.start(two_cards)
        assert session.state is SessionState.PRESENTING

    def test_queue_is_a_frozen_copy(self, session, store, two_cards):
        """Changes to the caller's list or the store do not alter the queue."""
        snapshot = list(two_cards)
        session.start(snapshot)
        snapshot.clear()
        store.add("Late card", "L")
        assert len(session.queue) == 2
        assert session.queue == tuple(two_cards)


class TestTransitions:
    """Tests for reveal/grade ordering."""

    def test_scenario_d_grade_before_reveal(self, session, two_cards):
        session.start(two_cards)
        with pytest.raises(InvalidStateError):
            session.grade(Grade.EASY)
        assert session.state is SessionState.PRESENTING

    def test_reveal_twice(self, session, two_cards):
        session.start(two_cards)
        session.reveal()
        with pytest.raises(InvalidStateError):
            session.reveal()
        assert session.state is SessionState.REVEALED

    def test_reveal_when_idle(self, session):
        with pytest.raises(InvalidStateError, match="idle"):
            session.reveal()

    def test_grade_when_idle(self, session):
        with pytest.raises(InvalidStateError):
            session.grade(Grade.HARD)

    def test_invalid_grade_keeps_state(self, session, two_cards):
        session.start(two_cards)
        session.reveal()
        with pytest.raises(ValidationError):
            session.grade("excellent")
        assert session.state is SessionState.REVEALED
        assert session.completed_count == 0

    def test_reveal_returns_current_card(self, session, two_cards):
        session.start(two_cards)
        assert session.reveal() == two_cards[0]
        assert session.revealed

    def test_grade_advances_to_next_card(self, session, two_cards):
        session.start(two_cards)
        session.reveal()
        session.grade(Grade.EASY)
        assert session.state is SessionState.PRESENTING
        assert session.index == 1
        assert session.current_card == two_cards[1]
        assert not session.revealed


class TestFullPass:
    """A session over N cards."""

    def test_n_grades_complete_the_session(self, store, session):
        cards = store.add_many([(f"Q{i}", f"A{i}") for i in range(4)])
        session.start(DueSetQuery(store).due_cards())

        grades = [Grade.EASY, Grade.HARD, Grade.MEDIUM, Grade.EASY]
        for grade in grades:
            session.reveal()
            session.grade(grade)

        assert session.state is SessionState.COMPLETED
        assert session.completed_count == 4
        assert session.current_card is None
        assert all(store.get(c.id).review_count == 1 for c in cards)

    def test_grades_write_through(self, store, session, two_cards):
        session.start(two_cards)
        session.reveal()
        result = session.grade(Grade.EASY)
        assert store.get(two_cards[0].id) == result
        assert result.review_count == 1

    def test_progress(self, store, session):
        store.add_many([(f"Q{i}", "A") for i in range(4)])
        session.start(store.cards())
        assert session.progress == 0.0
        session.reveal()
        session.grade(Grade.MEDIUM)
        assert session.progress == 25.0
        assert session.remaining == 3

    def test_summary(self, store, session, two_cards, clock):
        session.start(two_cards)
        clock.advance(minutes=3)
        for grade in (Grade.EASY, Grade.HARD):
            session.reveal()
            session.grade(grade)

        summary = session.last_summary
        assert summary.total == 2
        assert summary.completed == 2
        assert not summary.cancelled
        assert summary.completion_rate == 1.0
        assert summary.grade_counts == {"easy": 1, "hard": 1}
        assert (summary.ended_at - summary.started_at).total_seconds() == 180

    def test_restart_after_completion(self, store, session, two_cards, clock):
        session.start(two_cards[:1])
        session.reveal()
        session.grade(Grade.MEDIUM)
        assert session.state is SessionState.COMPLETED

        session.start(two_cards[1:])
        assert session.state is SessionState.PRESENTING
        assert session.completed_count == 0


class TestGradeFailure:
    """A failed write leaves the session where it was."""

    @pytest.fixture
    def controlled(self):
        return ControlledAdapter()

    @pytest.fixture
    def controlled_store(self, controlled, clock):
        store = CardStore(controlled, clock=clock, persistence_timeout=5.0, lock_timeout=2.0)
        yield store
        controlled.release.set()
        store.close()

    def test_retry_after_failed_grade(self, controlled, controlled_store):
        cards = controlled_store.add_many([("Q1", "A"), ("Q2", "A")])
        session = ReviewSession(controlled_store)
        session.start(cards)
        session.reveal()

        controlled.fail_saves = True
        with pytest.raises(PersistenceError):
            session.grade(Grade.EASY)
        assert session.state is SessionState.REVEALED
        assert session.index == 0
        assert controlled_store.get(cards[0].id).review_count == 0

        controlled.fail_saves = False
        session.grade(Grade.EASY)
        assert session.index == 1
        assert controlled_store.get(cards[0].id).review_count == 1

    def test_cancel_during_in_flight_grade(self, controlled, controlled_store):
        """cancel returns at once; the late write commits but moves nothing."""
        cards = controlled_store.add_many([("Q1", "A"), ("Q2", "A")])
        session = ReviewSession(controlled_store)
        session.start(cards)
        session.reveal()

        controlled.block = True
        results = []
        worker = threading.Thread(target=lambda: results.append(session.grade(Grade.HARD)))
        worker.start()
        assert controlled.entered.wait(timeout=2)

        session.cancel()
        assert session.state is SessionState.IDLE
        assert session.last_summary.cancelled
        assert session.last_summary.completed == 0

        controlled.release.set()
        worker.join(timeout=5)

        assert results and results[0].review_count == 1
        assert controlled_store.get(cards[0].id).review_count == 1
        assert session.state is SessionState.IDLE
        assert session.completed_count == 0

    def test_second_grade_while_in_flight(self, controlled, controlled_store):
        cards = controlled_store.add_many([("Q1", "A"), ("Q2", "A")])
        session = ReviewSession(controlled_store)
        session.start(cards)
        session.reveal()

        controlled.block = True
        worker = threading.Thread(target=session.grade, args=(Grade.EASY,))
        worker.start()
        assert controlled.entered.wait(timeout=2)

        with pytest.raises(InvalidStateError, match="still being saved"):
            session.grade(Grade.EASY)

        controlled.release.set()
        worker.join(timeout=5)
        assert controlled_store.get(cards[0].id).review_count == 1
        assert session.index == 1


class TestCancel:
    """Tests for cancel."""

    def test_cancel_from_idle_is_noop(self, session):
        session.cancel()
        assert session.state is SessionState.IDLE
        assert session.last_summary is None

    def test_cancel_keeps_committed_grades(self, store, session, two_cards):
        session.start(two_cards)
        session.reveal()
        session.grade(Grade.EASY)
        session.cancel()

        assert session.state is SessionState.IDLE
        assert session.queue == ()
        assert store.get(two_cards[0].id).review_count == 1
        assert store.get(two_cards[1].id).review_count == 0
        assert session.last_summary.completed == 1
        assert session.last_summary.completion_rate == 0.5

    def test_start_after_cancel(self, session, two_cards):
        session.start(two_cards)
        session.cancel()
        assert session.start(two_cards) == two_cards[0]
