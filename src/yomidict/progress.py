"""Progress accounting shared by concurrent shard tasks."""

from __future__ import annotations

import threading
from collections.abc import Callable

from yomidict.models import ImportProgress

ProgressListener = Callable[[ImportProgress], None]


class ProgressAggregator:
    """Running count of saved words out of a total fixed up front.

    :meth:`add` is the only mutation and is serialized with a lock.
    Listeners are notified while the lock is held, so they observe
    snapshots in increasing order.
    """

    def __init__(self, total: int) -> None:
        if total < 0:
            raise ValueError(f"total must not be negative: {total}")
        self._total = total
        self._saved = 0
        self._lock = threading.Lock()
        self._listeners: list[ProgressListener] = []

    @property
    def total(self) -> int:
        return self._total

    @property
    def saved(self) -> int:
        with self._lock:
            return self._saved

    def snapshot(self) -> ImportProgress:
        with self._lock:
            return ImportProgress(saved=self._saved, total=self._total)

    def subscribe(self, listener: ProgressListener) -> None:
        """Call *listener* with a fresh snapshot after every :meth:`add`."""
        with self._lock:
            self._listeners.append(listener)

    def add(self, count: int) -> int:
        """Record *count* more saved words. Returns the new saved total."""
        if count < 0:
            raise ValueError(f"count must not be negative: {count}")
        with self._lock:
            self._saved += count
            progress = ImportProgress(saved=self._saved, total=self._total)
            for listener in self._listeners:
                listener(progress)
            return self._saved


def truncated_percentage(progress: ImportProgress, precision: int) -> float:
    """Percentage cut (never rounded up) to *precision* decimal places.

    Only a finished import reaches 1.0.
    """
    if progress.total <= 0:
        return 1.0
    scale = 10 ** precision
    saved = min(max(progress.saved, 0), progress.total)
    return (saved * scale // progress.total) / scale


class PercentageForwarder:
    """Forward percentages to a callback, dropping repeats.

    Percentages are truncated to *precision* decimal places first, so many
    small batches do not flood the callback with near-identical values.
    """

    def __init__(
        self,
        callback: Callable[[float], None] | None,
        precision: int = 4,
    ) -> None:
        self._callback = callback
        self._precision = precision
        self._last: float | None = None

    @property
    def last(self) -> float | None:
        return self._last

    def __call__(self, progress: ImportProgress) -> None:
        percentage = truncated_percentage(progress, self._precision)
        if percentage == self._last:
            return
        self._last = percentage
        if self._callback is not None:
            self._callback(percentage)
