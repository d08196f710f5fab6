"""Single-slot memoization cache for materialized listings."""

from typing import Callable, Optional, Tuple
import logging

from ..models import BookRecord

logger = logging.getLogger(__name__)

Listing = Tuple[BookRecord, ...]


class MemoCache:
    """
    Holds at most one (fingerprint, listing) pair.

    A lookup with the stored fingerprint returns the stored listing; any other
    fingerprint discards the slot and recomputes. Not thread-safe: callers
    must confine it to one execution context.
    """

    def __init__(self):
        self._fingerprint: Optional[int] = None
        self._listing: Optional[Listing] = None
        self.hits = 0
        self.misses = 0

    @property
    def fingerprint(self) -> Optional[int]:
        return self._fingerprint

    def get_or_compute(self, fingerprint: int, compute: Callable[[], Listing]) -> Listing:
        """
        Return the listing for a fingerprint, computing it on a miss.

        Args:
            fingerprint: Fingerprint of the inputs the listing depends on
            compute: Zero-argument callable producing the listing

        Returns:
            Cached or freshly computed listing
        """
        if self._listing is not None and fingerprint == self._fingerprint:
            self.hits += 1
            logger.debug(f"View cache hit ({fingerprint:016x})")
            return self._listing

        self.misses += 1
        listing = tuple(compute())
        self._fingerprint = fingerprint
        self._listing = listing
        logger.debug(f"View cache miss ({fingerprint:016x}), {len(listing)} books")
        return listing

    def clear(self) -> None:
        self._fingerprint = None
        self._listing = None
