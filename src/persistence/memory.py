"""In-memory persistence, for tests and throwaway stores."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from src.srs.flashcard import Flashcard

from .base import PersistenceAdapter


class InMemoryAdapter(PersistenceAdapter):
    """Keeps the last saved collection as an immutable tuple."""

    name = "memory"

    def __init__(self, cards: Iterable[Flashcard] = ()):
        self._cards: tuple[Flashcard, ...] = tuple(cards)
        self.save_count = 0

    def load(self) -> list[Flashcard]:
        return list(self._cards)

    def save_all(self, cards: Sequence[Flashcard]) -> None:
        self._cards = tuple(cards)
        self.save_count += 1
