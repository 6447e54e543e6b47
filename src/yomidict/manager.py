"""DictionaryManager — main entry point for the yomidict library."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from yomidict import db as _db
from yomidict.config import ImporterConfig, load_config
from yomidict.exceptions import DictionaryNotFoundError, StoreError
from yomidict.importer import DictionaryImport
from yomidict.models import DictionaryMetadata, SweepResult, WordRecord
from yomidict.sweeper import sweep

logger = logging.getLogger(__name__)


class DictionaryManager:
    """Import, list, search and remove dictionaries in one database.

    Call :meth:`start` once before anything else; it clears leftovers of
    earlier runs.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        cache_dir: str | Path | None = None,
        *,
        config: ImporterConfig | None = None,
    ) -> None:
        self.config = config or ImporterConfig()
        self.cache_dir = Path(
            cache_dir if cache_dir is not None else self.config.cache_dir
        ).expanduser()
        self._store = _db.DictionaryStore(
            db_path if db_path is not None else self.config.database
        )

    @classmethod
    def from_config(
        cls,
        source: str | Path | dict[str, Any] | None,
        **overrides: Any,
    ) -> DictionaryManager:
        """Create a manager from a YAML config file, YAML text, or mapping."""
        return cls(config=load_config(source), **overrides)

    @property
    def store(self) -> _db.DictionaryStore:
        return self._store

    def close(self) -> None:
        """Close the database connection."""
        self._store.close()

    def __enter__(self) -> DictionaryManager:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> SweepResult:
        """Clear the extraction cache and remove unfinished dictionaries."""
        result = sweep(self._store, self.cache_dir)
        logger.info(
            f"Start-up sweep removed {result.cache_entries_removed} cache item(s), "
            f"{result.dictionaries_removed} dictionary(ies), "
            f"{result.words_removed} word(s)"
        )
        return result

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def create_import(
        self,
        archive_path: str | Path,
        *,
        on_progress: Callable[[float], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> DictionaryImport:
        """Prepare an import of *archive_path* without running it."""
        return DictionaryImport(
            self._store,
            archive_path,
            self.cache_dir,
            batch_size=self.config.batch_size,
            max_workers=self.config.max_workers,
            on_progress=on_progress,
            on_complete=on_complete,
            progress_precision=self.config.progress_precision,
        )

    def import_dictionary(
        self,
        archive_path: str | Path,
        *,
        on_progress: Callable[[float], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> DictionaryMetadata:
        """Import *archive_path* and return the finished dictionary."""
        return self.create_import(
            archive_path, on_progress=on_progress, on_complete=on_complete
        ).run()

    # ------------------------------------------------------------------
    # Read paths (never raise on query failure)
    # ------------------------------------------------------------------

    def list_dictionaries(self) -> list[DictionaryMetadata]:
        """Completely imported dictionaries, sorted by title."""
        try:
            return self._store.fetch(
                _db.complete_dictionaries(), order_by=("title", "revision")
            )
        except StoreError as e:
            logger.warning(f"Listing dictionaries failed: {e}")
            return []

    def search_words(self, text: str, *, limit: int | None = None) -> list[WordRecord]:
        """Words whose reading or written form contains *text*."""
        if not text.strip():
            return []
        try:
            return self._store.fetch(
                _db.words_containing(text.strip()),
                order_by=("reading", "original_form"),
                limit=limit if limit is not None else self.config.search_limit,
            )
        except StoreError as e:
            logger.warning(f"Searching words for {text!r} failed: {e}")
            return []

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def get_dictionary(self, dictionary_id: str) -> DictionaryMetadata:
        found = self._store.fetch(_db.dictionary_by_id(dictionary_id))
        if not found:
            raise DictionaryNotFoundError(f"Dictionary not found: {dictionary_id!r}")
        return found[0]

    def delete_dictionary(self, dictionary_id: str) -> int:
        """Remove a dictionary and its words. Returns the words removed."""
        dictionary = self.get_dictionary(dictionary_id)
        words_removed = self._store.delete_where(_db.words_by_dictionary(dictionary.id))
        self._store.delete_where(_db.dictionary_by_id(dictionary.id))
        logger.info(f"Removed {dictionary.title} and {words_removed} word(s)")
        return words_removed
