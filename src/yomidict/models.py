"""Domain model dataclasses and enums for yomidict."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


def new_id() -> str:
    """Generate a fresh identifier for a stored record."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ImportState(str, Enum):
    """Stages a dictionary import moves through."""

    IDLE = "idle"
    CHECKING_DUPLICATE = "checking_duplicate"
    EXTRACTING = "extracting"
    COUNTING = "counting"
    IMPORTING = "importing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DictionaryMetadata:
    """An imported dictionary.

    A word count of 0 marks a dictionary whose import never finished; such
    rows are hidden from listings and removed by the sweeper.
    """

    title: str
    revision: str | None = None
    description: str | None = None
    word_count: int = 0
    id: str = field(default_factory=new_id)

    @property
    def is_complete(self) -> bool:
        return self.word_count > 0


@dataclass(frozen=True, slots=True)
class WordRecord:
    """One headword with its reading and definitions."""

    original_form: str
    reading: str
    definitions: tuple[str, ...]
    dictionary_id: str | None = None
    id: str = field(default_factory=new_id)


# ---------------------------------------------------------------------------
# Import bookkeeping
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ImportProgress:
    """Snapshot of how many words have been saved out of the total."""

    saved: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total <= 0:
            return 1.0
        return min(max(self.saved / self.total, 0.0), 1.0)


@dataclass(frozen=True, slots=True)
class SweepResult:
    """What a start-up sweep removed."""

    cache_entries_removed: int
    dictionaries_removed: int
    words_removed: int

    @property
    def is_noop(self) -> bool:
        return not (
            self.cache_entries_removed
            or self.dictionaries_removed
            or self.words_removed
        )
