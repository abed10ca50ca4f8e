"""
Interval Policy: days until the next review.

Each grade tier owns a fixed table of day counts indexed by how many times
the card had been reviewed before this grade. Past the end of a table the
last value is reused, so long-lived cards settle on a stable interval.

Default tables:
    easy:   1, 6, 13, 30, 90
    medium: 1, 3, 7, 21, 60
    hard:   1, 1, 3, 10, 30

For every index, hard <= medium <= easy: a card graded easier is never
shown sooner than the same card graded harder.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from .flashcard import Grade

if TYPE_CHECKING:
    from config import Settings


@dataclass(frozen=True)
class IntervalPolicy:
    """Per-grade interval tables, validated on construction."""

    easy: tuple[int, ...] = (1, 6, 13, 30, 90)
    medium: tuple[int, ...] = (1, 3, 7, 21, 60)
    hard: tuple[int, ...] = (1, 1, 3, 10, 30)

    def __post_init__(self) -> None:
        for grade in Grade:
            table = tuple(int(d) for d in getattr(self, grade.value))
            object.__setattr__(self, grade.value, table)
            if not table:
                raise ValueError(f"{grade.value} interval table is empty")
            if table[0] < 1:
                raise ValueError(f"{grade.value} intervals must be at least 1 day")
            if any(later < earlier for earlier, later in zip(table, table[1:])):
                raise ValueError(f"{grade.value} intervals must be non-decreasing")

        for n in range(self.horizon):
            hard, medium, easy = (self.days(g, n) for g in (Grade.HARD, Grade.MEDIUM, Grade.EASY))
            if not hard <= medium <= easy:
                raise ValueError(
                    f"Interval tables out of order at review {n}: "
                    f"hard={hard}, medium={medium}, easy={easy}"
                )

    @classmethod
    def from_tables(
        cls,
        easy: Sequence[int],
        medium: Sequence[int],
        hard: Sequence[int],
    ) -> IntervalPolicy:
        return cls(easy=tuple(easy), medium=tuple(medium), hard=tuple(hard))

    @classmethod
    def from_settings(cls, settings: Settings) -> IntervalPolicy:
        tables = settings.get_interval_config()
        return cls.from_tables(tables["easy"], tables["medium"], tables["hard"])

    @property
    def horizon(self) -> int:
        """Review count past which every table has stabilised."""
        return max(len(self.easy), len(self.medium), len(self.hard))

    def table(self, grade: Grade) -> tuple[int, ...]:
        return getattr(self, Grade.parse(grade).value)

    def days(self, grade: Grade, review_count: int) -> int:
        """
        Days until the next review.

        Args:
            grade: Grade being applied
            review_count: Card's review count before this grade

        Returns:
            Whole days, always >= 1
        """
        table = self.table(grade)
        index = min(max(review_count, 0), len(table) - 1)
        return table[index]

    def next_review(self, grade: Grade, review_count: int, now: datetime) -> datetime:
        """Timestamp of the next review when grading at `now`."""
        return now + timedelta(days=self.days(grade, review_count))


DEFAULT_POLICY = IntervalPolicy()


def days_until_next_review(
    grade: Grade,
    prior_review_count: int,
    policy: IntervalPolicy = DEFAULT_POLICY,
) -> int:
    """Shorthand for DEFAULT_POLICY.days()."""
    return policy.days(grade, prior_review_count)
