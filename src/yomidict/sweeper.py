"""Start-up cleanup of the extraction cache and unfinished imports."""

from __future__ import annotations

import logging
from pathlib import Path

from yomidict import db as _db
from yomidict.extractor import clear_cache
from yomidict.models import SweepResult

logger = logging.getLogger(__name__)


def sweep(store: _db.DictionaryStore, cache_dir: str | Path) -> SweepResult:
    """Clear the extraction cache and drop dictionaries with no words.

    Meant to run once, before any import or read traffic. Words of an
    unfinished dictionary are deleted before the dictionary itself, and
    words left without any dictionary are deleted last.
    """
    cache_entries = clear_cache(cache_dir)

    orphan_ids = [d.id for d in store.fetch(_db.incomplete_dictionaries())]
    words_removed = 0
    dictionaries_removed = 0
    if orphan_ids:
        words_removed = store.delete_where(_db.words_by_dictionary(*orphan_ids))
        dictionaries_removed = store.delete_where(_db.dictionaries_by_id(*orphan_ids))
        logger.info(
            f"Removed {dictionaries_removed} unfinished dictionary(ies) "
            f"and {words_removed} word(s)"
        )

    stray = store.delete_where(_db.words_without_dictionary())
    if stray:
        logger.info(f"Removed {stray} word(s) without a dictionary")
        words_removed += stray

    return SweepResult(
        cache_entries_removed=cache_entries,
        dictionaries_removed=dictionaries_removed,
        words_removed=words_removed,
    )
