"""
SQLAlchemy persistence for flashcards.

One table, `flashcards`, holds the collection. A save replaces every row
inside a single transaction, which gives the all-or-nothing semantics the
card store expects. SQLite is the default backend; any SQLAlchemy URL
(e.g. PostgreSQL) works.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy import DateTime, Integer, String, Text, create_engine, delete, make_url, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from src.srs.errors import PersistenceError
from src.srs.flashcard import Flashcard, Grade

from .base import PersistenceAdapter


class Base(DeclarativeBase):
    pass


class FlashcardRow(Base):
    """Row form of a Flashcard snapshot."""

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    mode: Mapped[str] = mapped_column(String(64), nullable=False)
    last_grade: Mapped[str] = mapped_column(String(16), nullable=False, default=Grade.MEDIUM.value)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    @classmethod
    def from_flashcard(cls, card: Flashcard) -> FlashcardRow:
        return cls(
            id=card.id,
            question=card.question,
            answer=card.answer,
            mode=card.mode,
            last_grade=card.last_grade.value,
            review_count=card.review_count,
            streak=card.streak,
            next_review_at=_to_naive_utc(card.next_review_at),
            created_at=_to_naive_utc(card.created_at),
            updated_at=_to_naive_utc(card.updated_at),
        )

    def to_flashcard(self) -> Flashcard:
        # Naive values read back from the database are UTC; Flashcard attaches the zone
        return Flashcard(
            id=self.id,
            question=self.question,
            answer=self.answer,
            mode=self.mode,
            last_grade=Grade(self.last_grade),
            review_count=self.review_count,
            streak=self.streak,
            next_review_at=self.next_review_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _to_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC so every backend compares them the same way."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SqlAlchemyAdapter(PersistenceAdapter):
    """
    Stores the collection in a relational database.

    Usage:
        adapter = SqlAlchemyAdapter("sqlite:///data/flashcards.db")
        cards = adapter.load()
        adapter.save_all(cards)
        adapter.close()
    """

    name = "sqlalchemy"

    def __init__(self, database_url: str, echo: bool = False):
        """
        Build the engine. The table is created on first load or save.

        Raises:
            PersistenceError: If the URL is unusable or the SQLite
                directory cannot be created
        """
        self.database_url = database_url
        self._schema_ready = False

        try:
            url = make_url(database_url)
            engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
            if url.get_backend_name() == "sqlite":
                # Loads and saves run on the store's I/O worker thread
                engine_kwargs["connect_args"] = {"check_same_thread": False}
                if url.database in (None, "", ":memory:"):
                    engine_kwargs["poolclass"] = StaticPool
                else:
                    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

            self.engine = create_engine(url, **engine_kwargs)
        except (SQLAlchemyError, ImportError, OSError) as e:
            raise PersistenceError(f"Cannot open database {database_url}: {e}") from e

        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        Base.metadata.create_all(bind=self.engine)
        self._schema_ready = True
        logger.info(f"Flashcard table ready at {self.engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    def load(self) -> list[Flashcard]:
        self._ensure_schema()
        with self.session_scope() as session:
            rows = session.scalars(
                select(FlashcardRow).order_by(FlashcardRow.created_at, FlashcardRow.id)
            ).all()
            cards = [row.to_flashcard() for row in rows]

        logger.debug(f"Loaded {len(cards)} flashcards from database")
        return cards

    def save_all(self, cards: Sequence[Flashcard]) -> None:
        self._ensure_schema()
        with self.session_scope() as session:
            session.execute(delete(FlashcardRow))
            session.add_all([FlashcardRow.from_flashcard(card) for card in cards])

        logger.debug(f"Saved {len(cards)} flashcards to database")

    def close(self) -> None:
        self.engine.dispose()
