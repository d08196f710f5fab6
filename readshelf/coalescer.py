"""
Change coalescing for the library view.

Bursts of change notifications (background writes to the collection,
keystrokes in the search field) are absorbed here and turned into a single
recomputation once each source has been quiet for its window. Each source
has its own trailing debounce window; a new notification restarts it.

Timers come from a Scheduler, so the same coalescer runs on an asyncio loop
in an application and on a virtual clock in tests.
"""

import asyncio
import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Sources of change notifications."""
    DATA = "data"
    CRITERIA = "criteria"


# =========================================================================
# Schedulers
# =========================================================================

class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. Safe to call more than once."""


class Scheduler(ABC):
    """Source of time and delayed callbacks for one execution context."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds on this scheduler's context."""

    @abstractmethod
    def call_soon_threadsafe(self, callback: Callable[[], Any]) -> None:
        """Hand ``callback`` over from another thread to this scheduler's context."""


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    All callbacks run on the loop's thread, which gives the view engine its
    single-writer guarantee. Create it from inside the loop (or pass the loop
    explicitly).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        return _AsyncioTimer(self.loop.call_later(delay, callback))

    def call_soon_threadsafe(self, callback: Callable[[], Any]) -> None:
        self.loop.call_soon_threadsafe(callback)


class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()


class ManualTimer(TimerHandle):
    def __init__(self, deadline: float, callback: Callable[[], Any]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Time only moves when ``advance`` is called, and due callbacks run inside
    that call in deadline order. Callbacks handed over from other threads are
    queued and run at the start of the next ``advance``. Used by the tests
    and by synchronous callers such as the CLI.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._seq = itertools.count()
        self._inbox: List[Callable[[], Any]] = []
        self._inbox_lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = ManualTimer(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (timer.deadline, next(self._seq), timer))
        return timer

    def call_soon_threadsafe(self, callback: Callable[[], Any]) -> None:
        with self._inbox_lock:
            self._inbox.append(callback)

    @property
    def pending(self) -> int:
        with self._inbox_lock:
            queued = len(self._inbox)
        return queued + sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def _drain_inbox(self) -> int:
        with self._inbox_lock:
            callbacks, self._inbox = self._inbox, []
        for callback in callbacks:
            callback()
        return len(callbacks)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, running every callback that falls due.

        Returns:
            Number of callbacks run
        """
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        target = self._now + seconds
        ran = self._drain_inbox()
        while self._queue and self._queue[0][0] <= target:
            deadline, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = deadline
            timer.cancelled = True
            timer.callback()
            ran += 1
        self._now = target
        return ran

    def run_all(self) -> int:
        """Advance until no timers are left."""
        ran = self._drain_inbox()
        while self.pending:
            live = [deadline for deadline, _, timer in self._queue if not timer.cancelled]
            step = max(min(live) - self._now, 0.0) if live else 0.0
            ran += self.advance(step)
        return ran


# =========================================================================
# Coalescer
# =========================================================================

DEFAULT_WINDOWS = {
    ChangeKind.DATA: 0.1,
    ChangeKind.CRITERIA: 0.3,
}
DEFAULT_COALESCE_TOLERANCE = 0.02


@dataclass
class _Pending:
    token: int
    deadline: float
    handle: TimerHandle


class ChangeCoalescer:
    """
    Trailing debouncer with one quiescence window per change kind.

    The callback receives the set of kinds settled by this recomputation.
    It must read the latest state itself: the coalescer never captures state
    at notification time.

    Args:
        callback: Called with the frozenset of settled kinds
        scheduler: Timer source
        windows: Quiescence window in seconds per kind
        coalesce_tolerance: Other pending windows due within this many seconds
            of a firing window are folded into the same recomputation
    """

    def __init__(
        self,
        callback: Callable[[FrozenSet[ChangeKind]], None],
        scheduler: Scheduler,
        windows: Optional[Dict[ChangeKind, float]] = None,
        coalesce_tolerance: float = DEFAULT_COALESCE_TOLERANCE
    ):
        self._callback = callback
        self.scheduler = scheduler
        self.windows = dict(DEFAULT_WINDOWS)
        if windows:
            self.windows.update(windows)
        for kind, window in self.windows.items():
            if window < 0:
                raise ValueError(f"Quiescence window for {kind.value} must not be negative")
        self.coalesce_tolerance = coalesce_tolerance
        self._pending: Dict[ChangeKind, _Pending] = {}
        self._tokens = itertools.count(1)
        self.recomputations = 0

    @property
    def pending(self) -> FrozenSet[ChangeKind]:
        return frozenset(self._pending)

    def notify(self, kind: ChangeKind) -> None:
        """Record a change; (re)start the window for its kind."""
        window = self.windows[kind]
        if window == 0:
            self.trigger(kind)
            return

        previous = self._pending.pop(kind, None)
        if previous is not None:
            previous.handle.cancel()

        token = next(self._tokens)
        handle = self.scheduler.call_later(window, partial(self._fire, kind, token))
        self._pending[kind] = _Pending(token, self.scheduler.now() + window, handle)
        logger.debug(f"{kind.value} change, recompute in {window * 1000:.0f}ms")

    def trigger(self, kind: Optional[ChangeKind] = None) -> None:
        """Recompute now, absorbing every pending window."""
        kinds = set(self._pending)
        if kind is not None:
            kinds.add(kind)
        self.cancel()
        self._run(frozenset(kinds))

    def cancel(self) -> None:
        """Drop pending windows without recomputing."""
        for entry in self._pending.values():
            entry.handle.cancel()
        self._pending.clear()

    def _fire(self, kind: ChangeKind, token: int) -> None:
        entry = self._pending.get(kind)
        if entry is None or entry.token != token:
            # Superseded by a newer notification or cancelled after it fell due
            logger.debug(f"Ignoring outdated {kind.value} timer")
            return
        del self._pending[kind]

        kinds = {kind}
        now = self.scheduler.now()
        for other, pending in list(self._pending.items()):
            if pending.deadline - now <= self.coalesce_tolerance:
                pending.handle.cancel()
                del self._pending[other]
                kinds.add(other)

        self._run(frozenset(kinds))

    def _run(self, kinds: FrozenSet[ChangeKind]) -> None:
        self.recomputations += 1
        self._callback(kinds)
