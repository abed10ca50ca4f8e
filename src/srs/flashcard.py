"""
Flashcard: the durable learnable item.

Flashcards are immutable pydantic snapshots. Every change (grading or
editing) produces a new, fully re-validated snapshot that replaces the old
one in the store, so no caller ever holds a reference that mutates under it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

# Fields that only a grade operation may change
GRADE_OWNED_FIELDS = frozenset({"last_grade", "review_count", "streak"})

# Fields an edit patch may carry
EDITABLE_FIELDS = frozenset({"question", "answer", "mode", "next_review_at"})


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Grade(str, Enum):
    """Learner's recall-quality label for one review."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Grade | str) -> Grade:
        """Accept a Grade or a case-insensitive grade name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(f"Unknown grade: {value!r} (expected easy, medium or hard)")


class Flashcard(BaseModel):
    """
    Immutable snapshot of one flashcard.

    Invariants enforced on every snapshot:
    - question and answer are non-empty after trimming (stored trimmed)
    - review_count and streak are non-negative
    - next_review_at is never earlier than created_at
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    question: str
    answer: str
    mode: str
    last_grade: Grade = Grade.MEDIUM
    review_count: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    next_review_at: datetime
    created_at: datetime
    updated_at: datetime

    @field_validator("question", "answer")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("next_review_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _review_not_before_creation(self) -> Flashcard:
        if self.next_review_at < self.created_at:
            raise ValueError("next_review_at must not be earlier than created_at")
        return self

    def evolve(self, **changes: Any) -> Flashcard:
        """Return a re-validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def is_due(self, now: datetime) -> bool:
        """Check if this card is due at the given time."""
        return self.next_review_at <= ensure_utc(now)

    def days_overdue(self, now: datetime) -> int:
        """Whole days past the scheduled review time."""
        delta = ensure_utc(now) - self.next_review_at
        return max(0, delta.days)


class FlashcardPatch(BaseModel):
    """
    Fields an edit may change. Unset fields are left alone.

    Unknown or grade-owned fields raise the engine's ValidationError.
    """

    model_config = ConfigDict(extra="forbid")

    question: str | None = None
    answer: str | None = None
    mode: str | None = None
    next_review_at: datetime | None = None

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True, exclude_none=True)
