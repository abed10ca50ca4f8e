"""
Collection statistics.

Aggregate numbers a presentation layer shows next to the review button:
how many cards exist, how many are due, how much reviewing has happened.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from .card_store import CardStore
from .flashcard import ensure_utc


@dataclass
class CollectionStats:
    """Snapshot of a card store's learning progress."""

    total_cards: int = 0
    due_now: int = 0
    total_reviews: int = 0
    average_streak: float = 0.0
    longest_streak: int = 0
    never_reviewed: int = 0
    by_last_grade: dict[str, int] = field(default_factory=dict)
    by_mode: dict[str, int] = field(default_factory=dict)


def collection_stats(store: CardStore, now: datetime | None = None) -> CollectionStats:
    """
    Get overall learning statistics for a store.

    Args:
        store: The card store to summarise
        now: Reference time for the due count (defaults to the store clock)

    Returns:
        CollectionStats
    """
    now = store.now() if now is None else ensure_utc(now)
    cards = store.cards()
    if not cards:
        return CollectionStats()

    streaks = [card.streak for card in cards]
    return CollectionStats(
        total_cards=len(cards),
        due_now=sum(1 for card in cards if card.next_review_at <= now),
        total_reviews=sum(card.review_count for card in cards),
        average_streak=round(sum(streaks) / len(streaks), 2),
        longest_streak=max(streaks),
        never_reviewed=sum(1 for card in cards if card.review_count == 0),
        by_last_grade=dict(Counter(card.last_grade.value for card in cards)),
        by_mode=dict(Counter(card.mode for card in cards)),
    )
