"""
Due-Set Query: which cards need reviewing now.

Due cards come back most-overdue first (ascending next_review_at), with
created_at and then id as tie-breakers so repeated calls against unchanged
data return the same sequence.
"""

from __future__ import annotations

from datetime import datetime

from .card_store import CardStore
from .flashcard import Flashcard, ensure_utc


def _due_order(card: Flashcard) -> tuple:
    return (card.next_review_at, card.created_at, card.id)


class DueSetQuery:
    """Read-only projection over a CardStore."""

    def __init__(self, store: CardStore):
        self.store = store

    def due_cards(
        self,
        now: datetime | None = None,
        mode: str | None = None,
        limit: int | None = None,
    ) -> list[Flashcard]:
        """
        Get cards whose next review time has passed.

        Args:
            now: Reference time (defaults to the store clock)
            mode: Only cards with this mode
            limit: Maximum cards to return

        Returns:
            Due cards, most overdue first
        """
        now = self.store.now() if now is None else ensure_utc(now)
        due = [card for card in self.store.cards(mode=mode) if card.next_review_at <= now]
        due.sort(key=_due_order)
        if limit is not None:
            due = due[: max(0, limit)]
        return due

    def count(self, now: datetime | None = None, mode: str | None = None) -> int:
        """Count cards due at `now`."""
        return len(self.due_cards(now, mode=mode))

    def next_due_at(self, now: datetime | None = None, mode: str | None = None) -> datetime | None:
        """Earliest review time still in the future, or None if nothing is upcoming."""
        now = self.store.now() if now is None else ensure_utc(now)
        upcoming = [
            card.next_review_at
            for card in self.store.cards(mode=mode)
            if card.next_review_at > now
        ]
        return min(upcoming, default=None)


def due_cards(store: CardStore, now: datetime | None = None) -> list[Flashcard]:
    """Shorthand for DueSetQuery(store).due_cards(now)."""
    return DueSetQuery(store).due_cards(now)
