"""
Book collection: the snapshot provider consumed by the view engine.

The view engine only needs two things from wherever books are stored:

- ``snapshot()`` returning every record plus a version number that strictly
  increases on each observable mutation
- ``subscribe(callback)`` to be told when that version changes

``BookCollection`` is the in-memory reference implementation. Storage
backends implement ``SnapshotProvider`` the same way.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Tuple
import logging

from .models import BookRecord

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class SnapshotUnavailableError(Exception):
    """Raised by a provider that cannot currently produce a snapshot."""


@dataclass(frozen=True)
class CollectionSnapshot:
    """Immutable view of a collection at one version."""
    records: Tuple[BookRecord, ...]
    version: int

    def __len__(self):
        return len(self.records)


class SnapshotProvider(ABC):
    """Interface the view engine consumes."""

    @abstractmethod
    def snapshot(self) -> CollectionSnapshot:
        """
        Return the current records and collection version.

        Raises:
            SnapshotUnavailableError: If the data cannot be read right now
        """

    @abstractmethod
    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        """Call ``callback`` (no arguments) whenever the version changes."""


class BookCollection(SnapshotProvider):
    """
    In-memory, versioned book collection.

    Records keep insertion order. Each mutation (or each ``batch()`` block)
    bumps the version once and notifies subscribers synchronously.

    Example:
        collection = BookCollection()
        with collection.batch():
            collection.add(book_a)
            collection.add(book_b)
        collection.update(book_a.id, favorite=True)
    """

    def __init__(self, records: Iterable[BookRecord] = ()):
        self._records: Dict[str, BookRecord] = {}
        for record in records:
            self._records[record.id] = record
        self._version = 0
        self._subscribers: List[Callable[[], None]] = []
        self._batch_depth = 0
        self._dirty = False
        self._available = True

    @property
    def version(self) -> int:
        return self._version

    def __len__(self):
        return len(self._records)

    def __contains__(self, book_id: str) -> bool:
        return book_id in self._records

    def get(self, book_id: str) -> BookRecord:
        try:
            return self._records[book_id]
        except KeyError:
            raise KeyError(f"Book '{book_id}' not found") from None

    # =========================================================================
    # SnapshotProvider
    # =========================================================================

    def snapshot(self) -> CollectionSnapshot:
        if not self._available:
            raise SnapshotUnavailableError("Book collection is unavailable")
        return CollectionSnapshot(tuple(self._records.values()), self._version)

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, record: BookRecord) -> None:
        if record.id in self._records:
            raise ValueError(f"Book '{record.id}' already exists")
        self._records[record.id] = record
        self._changed()

    def add_many(self, records: Iterable[BookRecord]) -> int:
        """Add several records as one mutation batch."""
        count = 0
        with self.batch():
            for record in records:
                self.add(record)
                count += 1
        return count

    def update(self, book_id: str, **changes) -> BookRecord:
        """Replace a record with a copy carrying ``changes``."""
        updated = self.get(book_id).evolve(**changes)
        self._records[book_id] = updated
        self._changed()
        return updated

    def remove(self, book_id: str) -> BookRecord:
        record = self.get(book_id)
        del self._records[book_id]
        self._changed()
        return record

    @contextmanager
    def batch(self) -> Iterator['BookCollection']:
        """Group mutations into a single version bump and notification."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._bump()

    def set_available(self, available: bool) -> None:
        """Simulate the backing store going away (or coming back)."""
        if available == self._available:
            return
        self._available = available
        logger.info(f"Book collection {'available' if available else 'unavailable'}")
        self._bump()

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self._bump()

    def _bump(self) -> None:
        self._version += 1
        for callback in list(self._subscribers):
            callback()
