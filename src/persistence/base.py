"""
Base Persistence Adapter.

Provides the abstract boundary between the card store and durable storage.
The store treats every call as all-or-nothing: a save either replaces the
whole persisted collection or leaves it as it was.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ClassVar

from src.srs.flashcard import Flashcard


class PersistenceAdapter(ABC):
    """
    Abstract base class for flashcard persistence.

    Subclasses must implement:
    - load(): Return every persisted flashcard
    - save_all(): Replace the persisted collection atomically

    Failures are reported by raising; the card store wraps whatever is
    raised into a PersistenceError.
    """

    name: ClassVar[str] = "base"

    @abstractmethod
    def load(self) -> list[Flashcard]:
        """Return every persisted flashcard."""

    @abstractmethod
    def save_all(self, cards: Sequence[Flashcard]) -> None:
        """Replace the persisted collection with `cards`."""

    def close(self) -> None:
        """Release any held resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
