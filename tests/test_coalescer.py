"""
Tests for change coalescing and schedulers.

Tests cover:
- ManualScheduler virtual clock
- Trailing debounce per change kind
- Window reset, coalescing of close windows, immediate triggers
- Outdated timer guard
- AsyncioScheduler on a real event loop
"""

import asyncio

import pytest

from readshelf.coalescer import (
    AsyncioScheduler,
    ChangeCoalescer,
    ChangeKind,
    ManualScheduler,
)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def runs():
    return []


@pytest.fixture
def coalescer(scheduler, runs):
    return ChangeCoalescer(runs.append, scheduler)


# =============================================================================
# ManualScheduler
# =============================================================================


class TestManualScheduler:
    """Virtual clock behaviour."""

    def test_runs_due_callbacks_in_deadline_order(self, scheduler):
        order = []
        scheduler.call_later(0.3, lambda: order.append("late"))
        scheduler.call_later(0.1, lambda: order.append("early"))

        assert scheduler.advance(0.5) == 2
        assert order == ["early", "late"]
        assert scheduler.now() == pytest.approx(0.5)

    def test_not_due_yet(self, scheduler):
        fired = []
        scheduler.call_later(1.0, lambda: fired.append(1))
        scheduler.advance(0.5)
        assert fired == []
        assert scheduler.pending == 1

    def test_cancelled_timer_does_not_run(self, scheduler):
        fired = []
        handle = scheduler.call_later(0.1, lambda: fired.append(1))
        handle.cancel()
        scheduler.advance(1)
        assert fired == []

    def test_run_all(self, scheduler):
        fired = []
        scheduler.call_later(5, lambda: fired.append(1))
        scheduler.call_later(10, lambda: scheduler.call_later(1, lambda: fired.append(2)))
        scheduler.run_all()
        assert fired == [1, 2]
        assert scheduler.now() == pytest.approx(11)

    def test_threadsafe_callbacks_run_on_next_advance(self, scheduler):
        fired = []
        scheduler.call_soon_threadsafe(lambda: fired.append(1))
        assert fired == []
        scheduler.advance(0)
        assert fired == [1]

    def test_cannot_go_backwards(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.advance(-1)


# =============================================================================
# Debounce
# =============================================================================


class TestDebounce:
    """Trailing debounce per change kind."""

    def test_single_notification_fires_after_window(self, coalescer, scheduler, runs):
        coalescer.notify(ChangeKind.DATA)

        scheduler.advance(0.09)
        assert runs == []

        scheduler.advance(0.02)
        assert runs == [frozenset({ChangeKind.DATA})]

    def test_burst_of_data_changes_recomputes_once(self, coalescer, scheduler, runs):
        """Given N notifications within the window, exactly one recomputation happens."""
        for _ in range(20):
            coalescer.notify(ChangeKind.DATA)
            scheduler.advance(0.05)

        assert runs == []
        scheduler.advance(0.1)
        assert len(runs) == 1
        assert coalescer.recomputations == 1

    def test_window_resets_on_new_notification(self, coalescer, scheduler, runs):
        coalescer.notify(ChangeKind.CRITERIA)
        scheduler.advance(0.25)
        coalescer.notify(ChangeKind.CRITERIA)
        scheduler.advance(0.25)
        assert runs == []
        scheduler.advance(0.06)
        assert runs == [frozenset({ChangeKind.CRITERIA})]

    def test_separate_windows_per_kind(self, coalescer, scheduler, runs):
        coalescer.notify(ChangeKind.CRITERIA)
        coalescer.notify(ChangeKind.DATA)

        scheduler.advance(0.11)
        assert runs == [frozenset({ChangeKind.DATA})]
        assert coalescer.pending == {ChangeKind.CRITERIA}

        scheduler.advance(0.2)
        assert runs[-1] == frozenset({ChangeKind.CRITERIA})

    def test_close_windows_coalesce(self, scheduler, runs):
        coalescer = ChangeCoalescer(runs.append, scheduler, coalesce_tolerance=0.05)
        coalescer.notify(ChangeKind.CRITERIA)
        scheduler.advance(0.21)
        coalescer.notify(ChangeKind.DATA)  # due at 0.31, criteria due at 0.30

        scheduler.advance(0.2)

        assert runs == [frozenset({ChangeKind.DATA, ChangeKind.CRITERIA})]
        assert coalescer.pending == frozenset()

    def test_custom_windows(self, scheduler, runs):
        coalescer = ChangeCoalescer(runs.append, scheduler, windows={ChangeKind.DATA: 1.0})
        coalescer.notify(ChangeKind.DATA)
        scheduler.advance(0.5)
        assert runs == []
        scheduler.advance(0.6)
        assert len(runs) == 1

    def test_zero_window_fires_immediately(self, scheduler, runs):
        coalescer = ChangeCoalescer(runs.append, scheduler, windows={ChangeKind.DATA: 0})
        coalescer.notify(ChangeKind.DATA)
        assert runs == [frozenset({ChangeKind.DATA})]

    def test_negative_window_rejected(self, scheduler, runs):
        with pytest.raises(ValueError):
            ChangeCoalescer(runs.append, scheduler, windows={ChangeKind.DATA: -0.1})


class TestTriggerAndCancel:
    """Immediate recomputation and cancellation."""

    def test_trigger_absorbs_pending_windows(self, coalescer, scheduler, runs):
        coalescer.notify(ChangeKind.DATA)
        coalescer.notify(ChangeKind.CRITERIA)

        coalescer.trigger()

        assert runs == [frozenset({ChangeKind.DATA, ChangeKind.CRITERIA})]
        scheduler.advance(1)
        assert len(runs) == 1

    def test_trigger_with_kind(self, coalescer, runs):
        coalescer.trigger(ChangeKind.CRITERIA)
        assert runs == [frozenset({ChangeKind.CRITERIA})]

    def test_cancel_drops_pending(self, coalescer, scheduler, runs):
        coalescer.notify(ChangeKind.DATA)
        coalescer.cancel()
        scheduler.advance(1)
        assert runs == []
        assert coalescer.pending == frozenset()

    def test_outdated_timer_is_ignored(self, coalescer, scheduler, runs):
        """A timer that fires after being superseded must not recompute."""
        coalescer.notify(ChangeKind.DATA)
        stale = coalescer._pending[ChangeKind.DATA]
        coalescer.notify(ChangeKind.DATA)

        coalescer._fire(ChangeKind.DATA, stale.token)
        assert runs == []

        scheduler.advance(0.2)
        assert len(runs) == 1

    def test_timer_after_trigger_is_ignored(self, coalescer, runs):
        coalescer.notify(ChangeKind.DATA)
        token = coalescer._pending[ChangeKind.DATA].token
        coalescer.trigger()

        coalescer._fire(ChangeKind.DATA, token)
        assert len(runs) == 1


# =============================================================================
# AsyncioScheduler
# =============================================================================


class TestAsyncioScheduler:
    """Coalescer on a real event loop."""

    def test_debounce_on_event_loop(self):
        runs = []

        async def scenario():
            scheduler = AsyncioScheduler()
            coalescer = ChangeCoalescer(
                runs.append, scheduler, windows={ChangeKind.DATA: 0.2}
            )
            for _ in range(5):
                coalescer.notify(ChangeKind.DATA)
                await asyncio.sleep(0.001)
            await asyncio.sleep(0.5)

        asyncio.run(scenario())
        assert runs == [frozenset({ChangeKind.DATA})]

    def test_threadsafe_handoff(self):
        fired = []

        async def scenario():
            scheduler = AsyncioScheduler()
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, scheduler.call_soon_threadsafe, lambda: fired.append(1))
            await asyncio.sleep(0.01)

        asyncio.run(scenario())
        assert fired == [1]

    def test_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            AsyncioScheduler()
