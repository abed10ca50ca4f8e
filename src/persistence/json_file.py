"""
JSON file persistence for flashcards.

The whole collection lives in one JSON document:

    {"version": 1, "flashcards": [{...}, ...]}

Saves write a sibling temp file and rename it over the target, so a crash
mid-write never leaves a half-written collection behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from src.srs.errors import PersistenceError
from src.srs.flashcard import Flashcard

from .base import PersistenceAdapter

FORMAT_VERSION = 1


class JsonFileAdapter(PersistenceAdapter):
    """
    Stores the collection as a single JSON file.

    A missing file loads as an empty collection. A file that cannot be
    parsed raises PersistenceError rather than silently starting empty.
    """

    name = "json"

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create directory for {self.path}: {e}") from e

    def load(self) -> list[Flashcard]:
        if not self.path.exists():
            logger.debug(f"No flashcard file at {self.path}, starting empty")
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("flashcards"), list):
            raise PersistenceError(f"Unrecognised flashcard file layout in {self.path}")

        version = data.get("version")
        if version != FORMAT_VERSION:
            raise PersistenceError(f"Unsupported flashcard file version {version!r} in {self.path}")

        try:
            cards = [Flashcard.model_validate(item) for item in data["flashcards"]]
        except PydanticValidationError as e:
            raise PersistenceError(f"Invalid flashcard data in {self.path}: {e}") from e

        logger.debug(f"Loaded {len(cards)} flashcards from {self.path}")
        return cards

    def save_all(self, cards: Sequence[Flashcard]) -> None:
        payload = {
            "version": FORMAT_VERSION,
            "flashcards": [card.model_dump(mode="json") for card in cards],
        }

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved {len(cards)} flashcards to {self.path}")
