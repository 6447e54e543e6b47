"""Batched insertion of one shard's word records."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from yomidict.db import StoreSession
from yomidict.models import WordRecord

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class BatchedPersister:
    """Insert records through a session, committing every ``batch_size``.

    After each commit ``on_saved`` is called with the number of records the
    commit made durable. :meth:`finish` commits and reports whatever is left,
    possibly zero. One persister serves exactly one shard.
    """

    def __init__(
        self,
        session: StoreSession,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_saved: Callable[[int], object] | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        self._session = session
        self._batch_size = batch_size
        self._on_saved = on_saved
        self._stop_event = stop_event
        self._pending = 0
        self.saved = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def add(self, record: WordRecord) -> None:
        self._session.insert(record)
        self._pending += 1
        if self._pending >= self._batch_size:
            self._commit()

    def finish(self) -> int:
        """Commit the last partial batch. Returns the records saved overall."""
        self._commit()
        return self.saved

    def persist(self, records: Iterable[WordRecord]) -> int:
        """Add every record, then :meth:`finish`.

        If the stop event is set, stops at the next batch boundary; records
        committed so far stay committed.
        """
        for record in records:
            self.add(record)
            if self._pending == 0 and self.stopped:
                logger.debug(f"Stop requested after {self.saved} record(s)")
                break
        return self.finish()

    def _commit(self) -> None:
        count = self._pending
        self._session.commit()
        self._pending = 0
        self.saved += count
        logger.debug(f"Committed batch of {count} record(s)")
        if self._on_saved is not None:
            self._on_saved(count)
