"""
Library view service - the materialization engine.

Keeps a stable, deduplicated, ordered listing of the collection for the
current criteria and publishes it to subscribers:

    change notification -> coalescer -> cache/engine -> transition policy -> view

All state lives on one execution context (the scheduler's). Data-change
notifications may arrive from other threads; they are handed over to that
context before anything is touched.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple
import logging
import threading

from ..coalescer import AsyncioScheduler, ChangeCoalescer, ChangeKind, Scheduler
from ..collection import SnapshotProvider, Unsubscribe
from ..config import EngineConfig
from ..criteria import DEFAULT_CRITERIA, Criteria, CriteriaValidationError
from ..models import BookRecord
from ..stats import library_stats
from .cache import MemoCache
from .engine import materialize
from .fingerprint import fingerprint
from .transition import Transition, TransitionPolicy, is_same_listing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedView:
    """
    The listing a rendering layer displays.

    Replaced as a whole on every update, never modified in place.
    ``transition`` describes how this view differs from the one before it
    (the first listing is compared against an empty one). It is None when
    only the degraded flag changed.

    A view can arrive with the same ids in the same order as the previous one
    when only record values changed (rating, flags, status); it is then
    published as ``Transition.IMMEDIATE`` so rows are redrawn in place.
    """
    books: Tuple[BookRecord, ...] = ()
    criteria: Criteria = DEFAULT_CRITERIA
    version: Optional[int] = None
    fingerprint: Optional[int] = None
    transition: Optional[Transition] = None
    degraded: bool = False

    @property
    def count(self) -> int:
        return len(self.books)

    @property
    def ids(self) -> List[str]:
        return [book.id for book in self.books]

    def __len__(self):
        return len(self.books)

    def __iter__(self):
        return iter(self.books)


ViewCallback = Callable[[MaterializedView], Any]


class LibraryViewService:
    """
    Materializes a collection through the current criteria.

    Args:
        provider: Collection snapshot provider
        criteria: Initial criteria (defaults to everything, newest first)
        scheduler: Timer source; defaults to the running asyncio loop
        config: Debounce windows and animation threshold
        policy: Transition policy (defaults to one built from ``config``)

    Example:
        service = LibraryViewService(collection, scheduler=ManualScheduler())
        unsubscribe = service.subscribe(render)
        service.set_search_text("le guin")
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        criteria: Optional[Criteria] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        config: Optional[EngineConfig] = None,
        policy: Optional[TransitionPolicy] = None
    ):
        self.provider = provider
        self.config = config or EngineConfig()
        self.policy = policy or TransitionPolicy(self.config.max_animated_growth)
        self.cache = MemoCache()
        self.scheduler = scheduler or AsyncioScheduler()
        self.coalescer = ChangeCoalescer(
            self._on_settled,
            self.scheduler,
            windows={
                ChangeKind.DATA: self.config.data_debounce_seconds,
                ChangeKind.CRITERIA: self.config.search_debounce_seconds,
            },
            coalesce_tolerance=self.config.coalesce_tolerance_seconds,
        )

        self._criteria = self._validate(criteria if criteria is not None else DEFAULT_CRITERIA)
        self._view = MaterializedView(criteria=self._criteria)
        self._subscribers: List[ViewCallback] = []
        self._owner = threading.get_ident()
        self._closed = False

        self._unsubscribe_provider: Optional[Unsubscribe] = provider.subscribe(self.notify_data_changed)
        self._recompute()

    # =========================================================================
    # Consumer API
    # =========================================================================

    @property
    def criteria(self) -> Criteria:
        return self._criteria

    @property
    def degraded(self) -> bool:
        return self._view.degraded

    @property
    def pending(self) -> FrozenSet[ChangeKind]:
        return self.coalescer.pending

    def current_view(self) -> MaterializedView:
        return self._view

    def subscribe(self, callback: ViewCallback) -> Unsubscribe:
        """
        Register a callback for view updates.

        Returns:
            Function that removes the subscription
        """
        self._check_owner()
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def stats(self) -> Dict[str, Any]:
        """Reading statistics over the books currently in view."""
        return library_stats(self._view.books)

    # =========================================================================
    # Change Entry Points
    # =========================================================================

    def update_criteria(self, criteria: Criteria) -> None:
        """
        Switch to new criteria.

        Search-text edits wait for the search window to settle; any other
        change (status filter, flags, ordering) recomputes immediately.

        Raises:
            CriteriaValidationError: If ``criteria`` is not a valid Criteria
        """
        self._check_owner()
        criteria = self._validate(criteria)
        if criteria == self._criteria:
            return

        previous, self._criteria = self._criteria, criteria
        if previous.differs_only_in_search(criteria):
            self.coalescer.notify(ChangeKind.CRITERIA)
        else:
            logger.debug("Criteria changed, recomputing now")
            self.coalescer.trigger(ChangeKind.CRITERIA)

    def set_search_text(self, text: str) -> None:
        self.update_criteria(self._criteria.replace(search_text=text))

    def notify_data_changed(self) -> None:
        """Called by the provider whenever its version changes."""
        if self._closed:
            return
        if threading.get_ident() != self._owner:
            self.scheduler.call_soon_threadsafe(self.notify_data_changed)
            return
        self.coalescer.notify(ChangeKind.DATA)

    def refresh(self) -> None:
        """Recompute now, absorbing anything pending."""
        self._check_owner()
        self.coalescer.trigger()

    def close(self) -> None:
        """Cancel pending work and detach from the provider."""
        self._closed = True
        self.coalescer.cancel()
        if self._unsubscribe_provider is not None:
            self._unsubscribe_provider()
            self._unsubscribe_provider = None
        self._subscribers.clear()

    # =========================================================================
    # Recomputation
    # =========================================================================

    def _on_settled(self, kinds: FrozenSet[ChangeKind]) -> None:
        if self._closed:
            return
        logger.debug(f"Settled: {', '.join(sorted(k.value for k in kinds)) or 'refresh'}")
        self._recompute()

    def _recompute(self) -> None:
        try:
            snapshot = self.provider.snapshot()
        except Exception as e:
            logger.warning(f"Collection snapshot unavailable, keeping last view: {e}")
            self._set_degraded()
            return

        criteria = self._criteria
        fp = fingerprint(criteria, snapshot.version)
        books = self.cache.get_or_compute(fp, lambda: materialize(snapshot.records, criteria))

        previous = self._view
        if is_same_listing(previous.books, books):
            if previous.degraded:
                logger.info("Collection snapshot available again")
                self._publish(replace(
                    previous, criteria=criteria, version=snapshot.version,
                    fingerprint=fp, transition=None, degraded=False,
                ))
            return

        transition = self.policy.classify(previous.books, books)
        if previous.degraded:
            logger.info("Collection snapshot available again")
        logger.debug(f"View updated: {previous.count} -> {len(books)} books ({transition.value})")
        self._publish(MaterializedView(
            books=books,
            criteria=criteria,
            version=snapshot.version,
            fingerprint=fp,
            transition=transition,
        ))

    def _set_degraded(self) -> None:
        if self._view.degraded:
            return
        self._publish(replace(self._view, transition=None, degraded=True))

    def _publish(self, view: MaterializedView) -> None:
        self._view = view
        for callback in list(self._subscribers):
            try:
                callback(view)
            except Exception:
                logger.exception("View subscriber failed")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _validate(self, criteria: Any) -> Criteria:
        if not isinstance(criteria, Criteria):
            raise CriteriaValidationError(
                f"Expected Criteria, got {type(criteria).__name__}"
            )
        return criteria

    def _check_owner(self) -> None:
        if threading.get_ident() != self._owner:
            raise RuntimeError("LibraryViewService must be used from the thread that created it")

    def __repr__(self):
        return f"<LibraryViewService(books={self._view.count}, degraded={self._view.degraded})>"
