"""Database connection, DDL, predicates and the store adapter for yomidict."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from yomidict.exceptions import PersistenceError, StoreError
from yomidict.models import DictionaryMetadata, WordRecord

SCHEMA_VERSION = "1.0"

Record = Union[DictionaryMetadata, WordRecord]

# ---------------------------------------------------------------------------
# DEFINITIONS type converter
# ---------------------------------------------------------------------------

def _adapt_definitions(definitions: Sequence[str]) -> str:
    return json.dumps(list(definitions), ensure_ascii=False)


def _convert_definitions(data: bytes) -> tuple[str, ...]:
    if data is None or data == b"":
        return ()
    return tuple(json.loads(data))


sqlite3.register_converter("DEFINITIONS", _convert_definitions)


# ---------------------------------------------------------------------------
# DDL statements
# ---------------------------------------------------------------------------

_DDL = """
-- Meta table
CREATE TABLE IF NOT EXISTS meta (
    key TEXT NOT NULL,
    value TEXT,
    UNIQUE (key)
);

-- Dictionary tables
CREATE TABLE IF NOT EXISTS dictionaries (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    title TEXT NOT NULL,
    revision TEXT,
    description TEXT,
    word_count INTEGER DEFAULT 0 NOT NULL,
    UNIQUE (id)
);
CREATE INDEX IF NOT EXISTS dictionary_title_index ON dictionaries (title, revision);
CREATE INDEX IF NOT EXISTS dictionary_word_count_index ON dictionaries (word_count);

-- Word tables (no foreign key: words are removed by dictionary_id)
CREATE TABLE IF NOT EXISTS words (
    rowid INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    original_form TEXT NOT NULL,
    reading TEXT NOT NULL,
    definitions DEFINITIONS NOT NULL,
    dictionary_id TEXT,
    UNIQUE (id)
);
CREATE INDEX IF NOT EXISTS word_dictionary_index ON words (dictionary_id);
CREATE INDEX IF NOT EXISTS word_reading_index ON words (reading);
CREATE INDEX IF NOT EXISTS word_original_form_index ON words (original_form);
"""

DICTIONARIES = "dictionaries"
WORDS = "words"

_COLUMNS: dict[str, frozenset[str]] = {
    DICTIONARIES: frozenset(
        {"rowid", "id", "title", "revision", "description", "word_count"}
    ),
    WORDS: frozenset(
        {"rowid", "id", "original_form", "reading", "definitions", "dictionary_id"}
    ),
}


def connect(db_path: str | Path = ":memory:") -> sqlite3.Connection:
    """Open a database connection shareable between worker threads."""
    db_path_str = str(db_path)
    conn = sqlite3.connect(
        db_path_str,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
    )
    if db_path_str != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Initialize all tables if they don't exist. Set schema version."""
    conn.executescript(_DDL)
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
        (SCHEMA_VERSION,),
    )
    conn.commit()


def check_schema_version(conn: sqlite3.Connection) -> None:
    """Verify the database schema version is compatible."""
    try:
        row = conn.execute(
            "SELECT value FROM meta WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        # meta table doesn't exist - uninitialized DB
        return
    if row is None:
        return
    version = row[0]
    if version != SCHEMA_VERSION:
        raise StoreError(
            f"Incompatible schema version: {version} "
            f"(expected {SCHEMA_VERSION})"
        )


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Predicate:
    """A parameterized WHERE clause over one table."""

    table: str
    clause: str = "1=1"
    params: tuple[Any, ...] = ()


def all_dictionaries() -> Predicate:
    return Predicate(DICTIONARIES)


def dictionary_by_id(dictionary_id: str) -> Predicate:
    return Predicate(DICTIONARIES, "id = ?", (dictionary_id,))


def dictionaries_by_id(*dictionary_ids: str) -> Predicate:
    if not dictionary_ids:
        return Predicate(DICTIONARIES, "0")
    placeholders = ", ".join("?" for _ in dictionary_ids)
    return Predicate(DICTIONARIES, f"id IN ({placeholders})", tuple(dictionary_ids))


def dictionary_by_title_revision(title: str, revision: str | None) -> Predicate:
    """Complete dictionaries with this title and revision.

    A missing revision only matches another missing revision.
    """
    return Predicate(
        DICTIONARIES,
        "title = ? AND revision IS ? AND word_count > 0",
        (title, revision),
    )


def complete_dictionaries() -> Predicate:
    return Predicate(DICTIONARIES, "word_count > 0")


def incomplete_dictionaries() -> Predicate:
    return Predicate(DICTIONARIES, "word_count = 0")


def all_words() -> Predicate:
    return Predicate(WORDS)


def words_by_dictionary(*dictionary_ids: str) -> Predicate:
    if not dictionary_ids:
        return Predicate(WORDS, "0")
    placeholders = ", ".join("?" for _ in dictionary_ids)
    return Predicate(
        WORDS, f"dictionary_id IN ({placeholders})", tuple(dictionary_ids)
    )


def words_without_dictionary() -> Predicate:
    """Words whose dictionary row no longer exists."""
    return Predicate(
        WORDS,
        "dictionary_id IS NULL OR dictionary_id NOT IN (SELECT id FROM dictionaries)",
    )


def words_containing(text: str) -> Predicate:
    """Words of complete dictionaries whose reading or form contains *text*."""
    escaped = (
        text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    pattern = f"%{escaped}%"
    return Predicate(
        WORDS,
        "(reading LIKE ? ESCAPE '\\' OR original_form LIKE ? ESCAPE '\\') "
        "AND dictionary_id IN (SELECT id FROM dictionaries WHERE word_count > 0)",
        (pattern, pattern),
    )


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------

def _row_to_dictionary(row: sqlite3.Row) -> DictionaryMetadata:
    return DictionaryMetadata(
        id=row["id"],
        title=row["title"],
        revision=row["revision"],
        description=row["description"],
        word_count=row["word_count"],
    )


def _row_to_word(row: sqlite3.Row) -> WordRecord:
    return WordRecord(
        id=row["id"],
        original_form=row["original_form"],
        reading=row["reading"],
        definitions=row["definitions"],
        dictionary_id=row["dictionary_id"],
    )


_ROW_CONVERTERS = {
    DICTIONARIES: _row_to_dictionary,
    WORDS: _row_to_word,
}


# ---------------------------------------------------------------------------
# Store adapter
# ---------------------------------------------------------------------------

class DictionaryStore:
    """SQLite-backed store shared by every import and read path.

    All statements run under one lock, so concurrent shard tasks may share
    a store; writes are grouped through :class:`StoreSession`.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._lock = threading.RLock()
        path: str | Path = self._db_path
        if self._db_path != ":memory:":
            path = Path(self._db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = connect(path)
            check_schema_version(self._conn)
            init_db(self._conn)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self._db_path!r}: {e}") from e

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> DictionaryStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def session(self) -> StoreSession:
        """Start a unit of work for inserting records."""
        return StoreSession(self)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def fetch(
        self,
        predicate: Predicate,
        *,
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Any]:
        """Return the records of ``predicate.table`` matching the predicate."""
        columns = _COLUMNS[predicate.table]
        for column in order_by:
            if column.lstrip("-") not in columns:
                raise ValueError(f"Unknown column for {predicate.table}: {column!r}")
        sql = f"SELECT * FROM {predicate.table} WHERE {predicate.clause}"
        if order_by:
            sql += " ORDER BY " + ", ".join(
                f"{c[1:]} DESC" if c.startswith("-") else c for c in order_by
            )
        params = list(predicate.params)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        convert = _ROW_CONVERTERS[predicate.table]
        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Query on {predicate.table} failed: {e}") from e
        return [convert(r) for r in rows]

    def fetch_count(self, predicate: Predicate) -> int:
        sql = f"SELECT COUNT(*) FROM {predicate.table} WHERE {predicate.clause}"
        try:
            with self._lock:
                return self._conn.execute(sql, predicate.params).fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Count on {predicate.table} failed: {e}") from e

    def delete_where(self, predicate: Predicate) -> int:
        """Delete matching rows and commit. Returns the number removed."""
        sql = f"DELETE FROM {predicate.table} WHERE {predicate.clause}"
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(sql, predicate.params)
        except sqlite3.Error as e:
            raise StoreError(f"Delete on {predicate.table} failed: {e}") from e
        return cur.rowcount

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_word_count(self, dictionary_id: str, word_count: int) -> None:
        """Set the word count of an existing dictionary and commit.

        Raises PersistenceError if the dictionary row is gone, e.g. because
        a sweep removed it while its words were being imported.
        """
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    "UPDATE dictionaries SET word_count = ? WHERE id = ?",
                    (word_count, dictionary_id),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Commit failed: {e}") from e
        if cur.rowcount == 0:
            raise PersistenceError(
                f"Dictionary {dictionary_id!r} was removed during the import"
            )

    def _write(self, records: Sequence[Record]) -> None:
        """Write *records* in a single transaction."""
        dictionaries = [r for r in records if isinstance(r, DictionaryMetadata)]
        words = [r for r in records if isinstance(r, WordRecord)]
        try:
            with self._lock, self._conn:
                for d in dictionaries:
                    self._conn.execute(
                        "INSERT INTO dictionaries "
                        "(id, title, revision, description, word_count) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (d.id, d.title, d.revision, d.description, d.word_count),
                    )
                if words:
                    self._conn.executemany(
                        "INSERT INTO words "
                        "(id, original_form, reading, definitions, dictionary_id) "
                        "VALUES (?, ?, ?, ?, ?)",
                        [
                            (w.id, w.original_form, w.reading,
                             _adapt_definitions(w.definitions), w.dictionary_id)
                            for w in words
                        ],
                    )
        except sqlite3.Error as e:
            raise PersistenceError(f"Commit failed: {e}") from e


class StoreSession:
    """Unit of work: inserted records are buffered until :meth:`commit`."""

    def __init__(self, store: DictionaryStore) -> None:
        self._store = store
        self._pending: list[Record] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def insert(self, record: Record) -> None:
        """Buffer *record* for the next commit."""
        self._pending.append(record)

    def commit(self) -> None:
        """Write all buffered records as one transaction."""
        pending, self._pending = self._pending, []
        if not pending:
            return
        self._store._write(pending)

    def rollback(self) -> None:
        """Discard buffered records."""
        self._pending.clear()
