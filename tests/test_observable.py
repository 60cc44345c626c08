"""Tests for Cell and LazyCell."""

import pytest

from cellflow import Cell, LazyCell, autorun, cell, transaction


class TestCell:
    def test_get_set(self):
        c = Cell(42)
        assert c.get() == 42
        c.set(100)
        assert c.get() == 100

    def test_value_property(self):
        c = cell(1)
        c.value = 5
        assert c.value == 5

    def test_dedup(self):
        """Setting an equal value never reaches listeners."""
        c = Cell(42)
        calls = []
        c.add_listener(lambda: calls.append(c.peek()))
        c.set(42)
        c.value = 42
        assert calls == []

    def test_dedup_is_by_equality_not_identity(self):
        c = Cell([1, 2])
        calls = []
        c.add_listener(lambda: calls.append(1))
        c.set([1, 2])  # different list, equal value
        assert calls == []
        c.set([1, 2, 3])
        assert calls == [1]

    def test_notifies_listeners(self):
        c = Cell("hello")
        seen = []
        c.add_listener(lambda: seen.append(c.value))
        c.set("world")
        assert seen == ["world"]

    def test_listener_added_once(self):
        c = Cell(0)
        calls = []

        def listener():
            calls.append(1)

        c.add_listener(listener)
        c.add_listener(listener)
        c.set(1)
        assert calls == [1]

    def test_listener_order(self):
        c = Cell(0)
        order = []
        c.add_listener(lambda: order.append("a"))
        c.add_listener(lambda: order.append("b"))
        c.set(1)
        assert order == ["a", "b"]

    def test_remove_listener(self):
        c = Cell(0)
        calls = []

        def listener():
            calls.append(1)

        c.add_listener(listener)
        c.remove_listener(listener)
        c.set(1)
        assert calls == []

    def test_remove_unknown_listener_is_noop(self):
        c = Cell(0)
        c.remove_listener(lambda: None)

    def test_listener_may_unsubscribe_itself(self):
        c = Cell(0)
        calls = []

        def once():
            calls.append(1)
            c.remove_listener(once)

        c.add_listener(once)
        c.set(1)
        c.set(2)
        assert calls == [1]

    def test_listener_writing_other_cell(self):
        """A listener writing another cell starts its own notification cycle."""
        a = Cell(0)
        b = Cell(0)
        seen = []
        a.add_listener(lambda: b.set(a.value * 10))
        b.add_listener(lambda: seen.append(b.value))
        a.set(2)
        assert seen == [20]

    def test_update(self):
        c = Cell(3)
        c.update(lambda v: v + 1)
        assert c.peek() == 4

    def test_peek_does_not_track(self):
        c = Cell(1)
        log = []
        autorun(lambda: log.append(c.peek()))
        c.set(2)
        assert log == [1]

    def test_dispose_clears_listeners(self):
        c = Cell(0)
        calls = []
        c.add_listener(lambda: calls.append(1))
        c.dispose()
        c.set(1)  # still succeeds, reaches no one
        assert c.peek() == 1
        assert calls == []
        assert not c.has_listeners

    def test_dispose_twice(self):
        c = Cell(0)
        c.dispose()
        c.dispose()

    def test_listener_errors_propagate(self):
        c = Cell(0)

        def boom():
            raise ValueError("boom")

        c.add_listener(boom)
        with pytest.raises(ValueError, match="boom"):
            c.set(1)
        assert c.peek() == 1

    def test_failing_listener_does_not_starve_others(self):
        c = Cell(0)
        seen = []

        def boom():
            raise ValueError("boom")

        c.add_listener(boom)
        c.add_listener(lambda: seen.append(c.peek()))
        with pytest.raises(ValueError, match="boom"):
            c.set(1)
        assert seen == [1]

    def test_repr(self):
        assert "Cell(5)" in repr(Cell(5))


class TestLazyCell:
    def test_loads_on_first_read(self):
        calls = []

        def loader():
            calls.append(1)
            return "loaded"

        c = LazyCell(loader, "initial")
        assert calls == []
        assert not c.is_loaded
        assert c.get() == "loaded"
        assert c.get() == "loaded"
        assert calls == [1]
        assert c.is_loaded

    def test_load_notifies_listeners(self):
        c = LazyCell(lambda: 10, 0)
        seen = []
        c.add_listener(lambda: seen.append(c.peek()))
        c.get()
        assert seen == [10]

    def test_failing_loader_retries(self):
        attempts = []

        def loader():
            attempts.append(1)
            if len(attempts) == 1:
                raise IOError("offline")
            return 7

        c = LazyCell(loader, 0)
        with pytest.raises(IOError):
            c.get()
        assert not c.is_loaded
        assert not c.is_loading
        assert c.get() == 7

    def test_reload_notifies_once(self):
        source = [1]
        c = LazyCell(lambda: source[0], 0)
        c.get()
        calls = []
        c.add_listener(lambda: calls.append(c.peek()))
        source[0] = 2
        c.reload()
        assert calls == [2]
        c.reload()  # unchanged value still notifies
        assert calls == [2, 2]

    def test_reset(self):
        source = ["a"]
        c = LazyCell(lambda: source[0], "")
        assert c.get() == "a"
        source[0] = "b"
        assert c.get() == "a"
        c.reset()
        assert c.get() == "b"

    def test_tracked_like_a_cell(self):
        c = LazyCell(lambda: 1, 0)
        log = []
        autorun(lambda: log.append(c.get()))
        assert log == [1]
        with transaction():
            c.set(5)
        assert log == [1, 5]
