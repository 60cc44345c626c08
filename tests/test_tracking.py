"""Tests for the tracker stack, runtimes and the transaction coordinator."""

import pytest

from cellflow import Cell, Computed, Runtime, get_runtime, use_runtime
from cellflow._tracking import TrackerStack, TransactionCoordinator, tracking


class TestTrackerStack:
    def test_push_pop_current(self):
        stack = TrackerStack()
        assert stack.current() is None
        outer = stack.push("outer")
        inner = stack.push("inner")
        assert stack.current() is inner
        assert stack.depth == 2
        assert stack.pop() is inner
        assert stack.current() is outer
        stack.pop()
        assert stack.current() is None

    def test_pop_empty_raises(self):
        with pytest.raises(RuntimeError):
            TrackerStack().pop()

    def test_only_top_context_collects(self):
        a = Cell(1)
        b = Cell(2)
        with tracking("outer") as outer:
            a.get()
            with tracking("inner") as inner:
                b.get()
        assert list(outer.cells) == [a]
        assert list(inner.cells) == [b]

    def test_tracking_pops_on_error(self):
        tracker = get_runtime().tracker
        with pytest.raises(ValueError):
            with tracking():
                raise ValueError
        assert tracker.depth == 0

    def test_reads_outside_tracking_register_nothing(self):
        Cell(1).get()
        assert get_runtime().tracker.current() is None

    def test_context_splits_cells_and_computeds(self):
        a = Cell(1)
        c = Computed(lambda: a.get() + 1)
        with tracking() as context:
            c.get()
            a.get()
        assert list(context.cells) == [a]
        assert list(context.computeds) == [c]
        assert context.dependencies() == (a, c)

    def test_computing_chain_order(self):
        stack = TrackerStack()
        first, second = object(), object()
        stack.begin_compute(first)
        stack.begin_compute(second)
        assert stack.computing_chain() == (first, second)
        assert stack.is_computing(first)
        stack.end_compute(first)
        assert not stack.is_computing(first)
        assert stack.computing_chain() == (second,)


class _Recorder:
    """Minimal Notifiable recording how often it was told to notify."""

    def __init__(self, log, name):
        self.log = log
        self.name = name

    def add_listener(self, fn):
        pass

    def remove_listener(self, fn):
        pass

    def notify_listeners(self):
        self.log.append(self.name)


class TestTransactionCoordinator:
    def test_schedule_outside_transaction_is_immediate(self):
        log = []
        TransactionCoordinator().schedule(_Recorder(log, "a"))
        assert log == ["a"]

    def test_schedule_deduplicates(self):
        log = []
        coordinator = TransactionCoordinator()
        a = _Recorder(log, "a")
        b = _Recorder(log, "b")

        def body():
            coordinator.schedule(a)
            coordinator.schedule(b)
            coordinator.schedule(a)
            assert coordinator.pending_count == 2
            assert log == []

        coordinator.run(body)
        assert log == ["a", "b"]
        assert coordinator.pending_count == 0

    def test_nested_runs_flush_once_at_outermost(self):
        log = []
        coordinator = TransactionCoordinator()
        a = _Recorder(log, "a")

        def inner():
            coordinator.schedule(a)
            assert coordinator.depth == 2

        def outer():
            coordinator.run(inner)
            assert log == []

        coordinator.run(outer)
        assert log == ["a"]
        assert coordinator.depth == 0
        assert not coordinator.is_active

    def test_run_returns_result(self):
        assert TransactionCoordinator().run(lambda x: x * 2, 21) == 42

    def test_error_restores_depth_and_flushes(self):
        log = []
        coordinator = TransactionCoordinator()
        a = _Recorder(log, "a")

        def body():
            coordinator.schedule(a)
            raise KeyError("fail")

        with pytest.raises(KeyError):
            coordinator.run(body)
        assert coordinator.depth == 0
        assert log == ["a"]

    def test_end_without_begin_raises(self):
        with pytest.raises(RuntimeError):
            TransactionCoordinator().end()

    def test_listener_error_during_flush_delivers_the_rest(self):
        coordinator = TransactionCoordinator()
        log = []

        class _Boom(_Recorder):
            def notify_listeners(self):
                raise ValueError("listener failed")

        def body():
            coordinator.schedule(_Boom(log, "boom"))
            coordinator.schedule(_Recorder(log, "after"))

        with pytest.raises(ValueError, match="listener failed"):
            coordinator.run(body)
        assert log == ["after"]
        assert coordinator.pending_count == 0
        assert not coordinator.is_active

    def test_first_flush_error_wins(self):
        coordinator = TransactionCoordinator()

        class _Boom:
            def __init__(self, error):
                self.error = error

            def notify_listeners(self):
                raise self.error

        def body():
            coordinator.schedule(_Boom(KeyError("first")))
            coordinator.schedule(_Boom(ValueError("second")))

        with pytest.raises(KeyError, match="first"):
            coordinator.run(body)

    def test_cells_written_in_failing_transaction_still_notify(self):
        x = Cell(0)
        y = Cell(0)
        total = Computed(lambda: x.get() + y.get())
        total.get()
        seen = []

        def boom():
            raise RuntimeError("x listener")

        x.add_listener(boom)
        y.add_listener(lambda: seen.append("y"))
        total.add_listener(lambda: seen.append(total.get()))

        coordinator = get_runtime().transactions

        def body():
            x.set(1)
            y.set(2)

        with pytest.raises(RuntimeError, match="x listener"):
            coordinator.run(body)
        assert seen == ["y", 3]

        # total was read again, so it keeps notifying afterwards
        y.set(5)
        assert seen == ["y", 3, 6, "y"]


class TestRuntime:
    def test_use_runtime_installs_and_restores(self, runtime):
        assert get_runtime() is runtime
        other = Runtime()
        with use_runtime(other) as installed:
            assert installed is other
            assert get_runtime() is other
        assert get_runtime() is runtime

    def test_runtimes_are_isolated(self):
        a = Cell(0)
        seen = []
        a.add_listener(lambda: seen.append(a.peek()))
        rt = get_runtime()
        rt.transactions.begin()
        a.set(1)
        with use_runtime():
            # no transaction in this runtime: delivered immediately
            a.set(2)
            assert seen == [2]
        rt.transactions.end()
        assert seen == [2, 2]

