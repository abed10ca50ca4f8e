"""
Persistence adapters for the card store.

Components:
- PersistenceAdapter: Abstract load/save_all boundary
- InMemoryAdapter: Process-local, for tests and scratch stores
- JsonFileAdapter: Whole collection in one JSON file
- SqlAlchemyAdapter: Relational table (SQLite by default)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import PersistenceAdapter
from .json_file import JsonFileAdapter
from .memory import InMemoryAdapter
from .sqlalchemy_store import SqlAlchemyAdapter

if TYPE_CHECKING:
    from config import Settings


def create_adapter(settings: Settings) -> PersistenceAdapter:
    """Build the adapter selected by `persistence_backend`."""
    backend = settings.persistence_backend
    if backend == "memory":
        return InMemoryAdapter()
    if backend == "json":
        return JsonFileAdapter(settings.flashcards_json_path)
    if backend == "sqlalchemy":
        return SqlAlchemyAdapter(settings.database_url, echo=settings.log_level == "DEBUG")
    raise ValueError(f"Unknown persistence backend: {backend}")


__all__ = [
    "PersistenceAdapter",
    "InMemoryAdapter",
    "JsonFileAdapter",
    "SqlAlchemyAdapter",
    "create_adapter",
]
