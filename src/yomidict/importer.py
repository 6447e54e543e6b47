"""Import pipeline for yomidict."""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TypeVar

from yomidict import db as _db
from yomidict.exceptions import (
    DictionaryImportError,
    DuplicateDictionaryError,
    EmptyDictionaryError,
    PersistenceError,
)
from yomidict.extractor import discard_extraction, extract_to_cache, read_index
from yomidict.metadata import decode_metadata, split_archive_files
from yomidict.models import DictionaryMetadata, ImportProgress, ImportState
from yomidict.persister import DEFAULT_BATCH_SIZE, BatchedPersister
from yomidict.progress import PercentageForwarder, ProgressAggregator
from yomidict.scanner import count_words, scan_words

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

DEFAULT_MAX_WORKERS = 4


class DictionaryImport:
    """One run of the import pipeline for a single archive.

    The run moves through ``IDLE``, ``CHECKING_DUPLICATE``, ``EXTRACTING``,
    ``COUNTING``, ``IMPORTING``, ``FINALIZING`` and ``DONE``. Any error moves
    it to ``FAILED`` and is re-raised. Nothing is rolled back: once the
    dictionary row exists it keeps a word count of 0 until ``FINALIZING``,
    so an interrupted import is removed by the next sweep. An archive with
    no importable words fails with :class:`EmptyDictionaryError`. The
    extracted files are removed when the run ends either way.

    Shards are counted, then imported, one task per shard on a bounded
    thread pool. When a shard task fails, tasks that have not started are
    cancelled and running ones stop after committing their current batch;
    the first error is re-raised.
    """

    def __init__(
        self,
        store: _db.DictionaryStore,
        archive_path: str | Path,
        cache_dir: str | Path,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        on_progress: Callable[[float], None] | None = None,
        on_complete: Callable[[], None] | None = None,
        progress_precision: int = 4,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive: {max_workers}")
        self.archive_path = Path(archive_path)
        self.cache_dir = Path(cache_dir)
        self._store = store
        self._batch_size = batch_size
        self._max_workers = max_workers
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._progress_precision = progress_precision

        self.state = ImportState.IDLE
        self.error: Exception | None = None
        self.dictionary: DictionaryMetadata | None = None
        self.directory: Path | None = None
        self.total = 0
        self._aggregator: ProgressAggregator | None = None
        self._stop = threading.Event()

    @property
    def progress(self) -> ImportProgress | None:
        """Saved/total snapshot, available once importing has started."""
        if self._aggregator is None:
            return None
        return self._aggregator.snapshot()

    def run(self) -> DictionaryMetadata:
        """Run the import to completion and return the finished dictionary."""
        if self.state is not ImportState.IDLE:
            raise RuntimeError(f"Import already ran (state: {self.state.value})")
        try:
            metadata = self._check_duplicate()
            shards = self._extract()
            self._count(metadata, shards)
            saved = self._import(shards)
            dictionary = self._finalize(saved)
        except Exception as e:
            self.error = e
            self._set_state(ImportState.FAILED)
            logger.error(f"Import of {self.archive_path.name} failed: {e}")
            raise
        finally:
            if self.directory is not None:
                discard_extraction(self.directory)

        self._set_state(ImportState.DONE)
        if self._on_complete is not None:
            self._on_complete()
        return dictionary

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _check_duplicate(self) -> DictionaryMetadata:
        self._set_state(ImportState.CHECKING_DUPLICATE)
        metadata = decode_metadata(read_index(self.archive_path))
        existing = self._store.fetch_count(
            _db.dictionary_by_title_revision(metadata.title, metadata.revision)
        )
        if existing:
            raise DuplicateDictionaryError(
                f"Dictionary {metadata.title!r} (revision {metadata.revision!r}) "
                "is already imported"
            )
        logger.info(f"Found dictionary: {metadata.title}")
        return metadata

    def _extract(self) -> list[Path]:
        self._set_state(ImportState.EXTRACTING)
        self.directory = extract_to_cache(self.archive_path, self.cache_dir)
        _index_path, shards = split_archive_files(self.directory)
        return shards

    def _count(self, metadata: DictionaryMetadata, shards: Sequence[Path]) -> None:
        self._set_state(ImportState.COUNTING)
        session = self._store.session()
        session.insert(metadata)
        session.commit()
        self.dictionary = metadata

        counts = self._run_shard_tasks(count_words, shards)
        self.total = sum(counts)
        logger.info(
            f"Counted {self.total} word(s) in {len(shards)} shard(s) "
            f"of {metadata.title}"
        )

    def _import(self, shards: Sequence[Path]) -> int:
        self._set_state(ImportState.IMPORTING)
        aggregator = ProgressAggregator(self.total)
        aggregator.subscribe(
            PercentageForwarder(self._on_progress, self._progress_precision)
        )
        self._aggregator = aggregator
        self._run_shard_tasks(self._import_shard, shards)
        return aggregator.saved

    def _import_shard(self, shard: Path) -> int:
        assert self.dictionary is not None and self._aggregator is not None
        persister = BatchedPersister(
            self._store.session(),
            batch_size=self._batch_size,
            on_saved=self._aggregator.add,
            stop_event=self._stop,
        )
        saved = persister.persist(scan_words(shard, self.dictionary.id))
        logger.debug(f"Saved {saved} word(s) from {shard.name}")
        return saved

    def _finalize(self, saved: int) -> DictionaryMetadata:
        self._set_state(ImportState.FINALIZING)
        assert self.dictionary is not None
        if saved == 0:
            raise EmptyDictionaryError(
                f"{self.dictionary.title} has no importable words"
            )
        self._store.update_word_count(self.dictionary.id, saved)
        dictionary = dataclasses.replace(self.dictionary, word_count=saved)
        self.dictionary = dictionary
        logger.info(f"Imported {saved} word(s) into {dictionary.title}")
        return dictionary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: ImportState) -> None:
        logger.debug(f"{self.archive_path.name}: {self.state.value} -> {state.value}")
        self.state = state

    def _run_shard_tasks(
        self, task: Callable[[Path], _T], shards: Sequence[Path]
    ) -> list[_T]:
        """Run *task* once per shard and wait for all of them.

        Results come back in shard order. The first failure stops the rest
        and is re-raised as a :class:`DictionaryImportError`.
        """
        if not shards:
            return []

        first_error: Exception | None = None
        workers = min(self._max_workers, len(shards))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="yomidict-shard"
        ) as executor:
            futures = {executor.submit(task, shard): shard for shard in shards}
            for future in as_completed(futures):
                error = future.exception()
                if error is None:
                    continue
                logger.exception(
                    f"Shard {futures[future].name} failed", exc_info=error
                )
                first_error = error
                self._stop.set()
                for pending in futures:
                    pending.cancel()
                break

        if first_error is not None:
            if isinstance(first_error, DictionaryImportError):
                raise first_error
            raise PersistenceError(f"Shard task failed: {first_error}") from first_error
        return [future.result() for future in futures]


def import_dictionary(
    store: _db.DictionaryStore,
    archive_path: str | Path,
    cache_dir: str | Path,
    **options,
) -> DictionaryMetadata:
    """Import the archive at *archive_path* into *store*.

    Keyword options are those of :class:`DictionaryImport`.
    """
    return DictionaryImport(store, archive_path, cache_dir, **options).run()
