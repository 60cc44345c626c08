"""Computed values — derived state with automatic dependency tracking.

A Computed wraps a pure function. When evaluated, it records which Cells
and Computeds the function read and caches the result. When any of them
changes, the node is marked dirty and tells its own listeners, without
recomputing. The next read recomputes: push dirty, pull value.

The dependency set is rebuilt from scratch on every recomputation, so a
function that reads different inputs depending on a branch is tracked
exactly.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar, overload

from cellflow._notify import Listener, ListenerSet
from cellflow._tracking import get_runtime

logger = logging.getLogger("cellflow.computed")

T = TypeVar("T")

_UNSET = object()


class CycleError(RuntimeError):
    """A Computed was read again while it was still computing."""

    def __init__(self, chain: tuple[Computed, ...]) -> None:
        self.chain = chain
        path = " -> ".join(node.name for node in chain)
        super().__init__(f"Circular dependency detected in Computed: {path}")


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result.

    With memoize=True, a recompute first compares the current values of the
    previously recorded dependencies against the values seen last time, and
    keeps the cached result when they match. The comparison uses the old
    dependency set, so the first recompute after the set changes always runs
    the function.
    """

    __slots__ = (
        "_fn",
        "_name",
        "_value",
        "_dirty",
        "_force",
        "_failed",
        "_memoize",
        "_memo_key",
        "_cells",
        "_computeds",
        "_listeners",
        "_on_change",
    )

    def __init__(
        self,
        fn: Callable[[], T],
        *,
        memoize: bool = False,
        name: str | None = None,
    ) -> None:
        self._fn = fn
        self._name = name or getattr(fn, "__name__", "computed")
        self._value: Any = _UNSET
        self._dirty = True
        # Set when the memo must not be trusted: never computed, or invalidated.
        self._force = True
        # Last recompute raised; the next upstream change must still notify.
        self._failed = False
        self._memoize = memoize
        self._memo_key: tuple | None = None
        self._cells: dict[Any, None] = {}
        self._computeds: dict[Computed, None] = {}
        self._listeners = ListenerSet()
        # Bound once so add/remove see the same callback.
        self._on_change: Listener = self._mark_dirty

    @property
    def name(self) -> str:
        return self._name

    def get(self) -> T:
        """Read the computed value. Recomputes if dirty.

        The reader is registered even when the recompute raises, so it hears
        about the upstream change that fixes the failure.
        """
        try:
            if self._dirty:
                self._recompute()
        finally:
            get_runtime().tracker.track_computed(self)
        return self._value

    def peek(self) -> T:
        """Read (recomputing if dirty) without registering a dependency."""
        if self._dirty:
            self._recompute()
        return self._value

    @property
    def value(self) -> T:
        return self.get()

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def dependencies(self) -> tuple:
        """Dependencies recorded by the last recompute: cells first, then computeds."""
        return (*self._cells, *self._computeds)

    def _recompute(self) -> None:
        tracker = get_runtime().tracker
        if tracker.is_computing(self):
            error = CycleError((*tracker.computing_chain(), self))
            logger.error("%s", error)
            raise error

        self._unsubscribe()

        skipped = False
        tracker.begin_compute(self)
        context = tracker.push(self)
        try:
            if self._memoize and not self._force:
                key = self._dependency_values()
                skipped = key is not None and key == self._memo_key
                self._memo_key = key
            if not skipped:
                value = self._fn()
        except Exception:
            self._value = _UNSET
            self._memo_key = None
            self._force = True
            self._failed = True
            logger.debug("Recompute of %s failed", self._name, exc_info=True)
            raise
        finally:
            tracker.pop()
            tracker.end_compute(self)
            if not skipped:
                self._cells = context.cells
                self._computeds = context.computeds
            self._subscribe()

        if not skipped:
            self._value = value
        self._dirty = False
        self._force = False
        self._failed = False

    def _dependency_values(self) -> tuple | None:
        if not self._cells and not self._computeds:
            return None
        return (
            tuple(dep.peek() for dep in self._cells),
            tuple(dep.peek() for dep in self._computeds),
        )

    def _subscribe(self) -> None:
        for dep in self._cells:
            dep.add_listener(self._on_change)
        for dep in self._computeds:
            dep.add_listener(self._on_change)

    def _unsubscribe(self) -> None:
        for dep in self._cells:
            dep.remove_listener(self._on_change)
        for dep in self._computeds:
            dep.remove_listener(self._on_change)

    def _mark_dirty(self) -> None:
        """Called when a dependency changed.

        Marks dirty and propagates to our own listeners. Recomputation waits
        for the next read. A node whose last recompute failed is already
        dirty, but its readers still wait for one notification.
        """
        if self._dirty and not self._failed:
            return
        self._dirty = True
        self._failed = False
        get_runtime().transactions.schedule(self)

    def invalidate(self) -> None:
        """Force the next read to run the function, bypassing the memo."""
        self._force = True
        self._mark_dirty()

    # --- Notifiable ---

    def add_listener(self, fn: Listener) -> None:
        self._listeners.add(fn)

    def remove_listener(self, fn: Listener) -> None:
        self._listeners.discard(fn)

    def notify_listeners(self) -> None:
        self._listeners.notify()

    @property
    def has_listeners(self) -> bool:
        return len(self._listeners) > 0

    def dispose(self) -> None:
        """Disconnect from all dependencies and listeners. Safe to call twice."""
        self._unsubscribe()
        self._cells = {}
        self._computeds = {}
        self._listeners.clear()
        self._dirty = True
        self._force = True
        self._failed = False
        self._memo_key = None
        self._value = _UNSET

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"Computed({self._name}, {state})"


@overload
def computed(fn: Callable[[], T]) -> Computed[T]: ...


@overload
def computed(
    fn: None = None, *, memoize: bool = False, name: str | None = None
) -> Callable[[Callable[[], T]], Computed[T]]: ...


def computed(fn=None, *, memoize=False, name=None):
    """Decorator/factory to create a Computed from a function.

    Usage:
        price = Cell(100)
        qty = Cell(2)

        @computed
        def total():
            return price.get() * qty.get()

        total.get()  # 200
        price.set(150)
        total.get()  # 300

        @computed(memoize=True)
        def label():
            return f"{total.get()} items"
    """
    if fn is None:
        return lambda f: Computed(f, memoize=memoize, name=name)
    return Computed(fn, memoize=memoize, name=name)
