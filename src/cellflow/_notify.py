"""Listener bookkeeping shared by every reactive entity.

Cells and Computed nodes don't inherit notify behaviour from a base class.
Each one owns a ListenerSet and exposes the Notifiable protocol on top of it.
"""

from __future__ import annotations

from typing import Callable, Iterator, Protocol, runtime_checkable

Listener = Callable[[], None]


@runtime_checkable
class Notifiable(Protocol):
    """Anything that can be subscribed to and told to notify."""

    def add_listener(self, fn: Listener) -> None: ...

    def remove_listener(self, fn: Listener) -> None: ...

    def notify_listeners(self) -> None: ...


class ListenerSet:
    """Ordered, deduplicating set of zero-argument callbacks."""

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        # dict keeps insertion order; values unused
        self._listeners: dict[Listener, None] = {}

    def add(self, fn: Listener) -> None:
        self._listeners[fn] = None

    def discard(self, fn: Listener) -> None:
        self._listeners.pop(fn, None)

    def clear(self) -> None:
        self._listeners.clear()

    def notify(self) -> None:
        """Call every listener. Iterates a snapshot so listeners may unsubscribe.

        A listener that raises doesn't stop the rest; the first error is
        re-raised after all of them ran.
        """
        first_error: Exception | None = None
        for fn in list(self._listeners):
            try:
                fn()
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, fn: object) -> bool:
        return fn in self._listeners

    def __iter__(self) -> Iterator[Listener]:
        return iter(list(self._listeners))
