"""Cells — observable values that track their readers.

When a Cell is read while a tracker context is collecting (a Computed
recomputing, a Reaction running), the read is registered there. When the
Cell changes, its listeners are notified, right away or at the end of the
surrounding transaction.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from cellflow._notify import Listener, ListenerSet
from cellflow._tracking import get_runtime

T = TypeVar("T")


class Cell(Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_value", "_listeners")

    def __init__(self, value: T) -> None:
        self._value = value
        self._listeners = ListenerSet()

    def get(self) -> T:
        """Read the value. If a tracker context is collecting, registers the dependency."""
        get_runtime().tracker.track_cell(self)
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def set(self, value: T) -> None:
        """Write a new value. Equal values are ignored."""
        old = self._value
        if old is value or old == value:
            return
        self._value = value
        get_runtime().transactions.schedule(self)

    def update(self, fn: Callable[[T], T]) -> None:
        """Write fn(current value)."""
        self.set(fn(self._value))

    @property
    def value(self) -> T:
        return self.get()

    @value.setter
    def value(self, value: T) -> None:
        self.set(value)

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
        """Drop every listener. Later writes still succeed but reach no one."""
        self._listeners.clear()

    def __repr__(self) -> str:
        return f"Cell({self._value!r})"


class LazyCell(Cell[T]):
    """A Cell whose value comes from a loader, run on first read.

    The loaded value is stored through the normal write path, so listeners
    hear about it like any other change. A failing loader leaves the cell
    unloaded; the next read tries again.
    """

    __slots__ = ("_loader", "_loaded", "_loading")

    def __init__(self, loader: Callable[[], T], initial: T) -> None:
        super().__init__(initial)
        self._loader = loader
        self._loaded = False
        self._loading = False

    def get(self) -> T:
        if not self._loaded and not self._loading:
            self._load()
        return super().get()

    def _load(self) -> None:
        self._loading = True
        try:
            value = self._loader()
        finally:
            self._loading = False
        self.set(value)
        self._loaded = True

    def reload(self) -> None:
        """Run the loader now and notify listeners once, even if the value is unchanged."""
        transactions = get_runtime().transactions

        def _reload() -> None:
            self._loaded = False
            self._load()
            transactions.schedule(self)

        transactions.run(_reload)

    def reset(self) -> None:
        """Forget the loaded state; the next read runs the loader again."""
        self._loaded = False
        self._loading = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_loading(self) -> bool:
        return self._loading

    def __repr__(self) -> str:
        state = "loaded" if self._loaded else "unloaded"
        return f"LazyCell({self._value!r}, {state})"


def cell(value: T) -> Cell[T]:
    """Factory for a Cell.

    Usage:
        price = cell(100)
        price.value = 150
    """
    return Cell(value)
