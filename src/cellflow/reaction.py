"""Reactions — side effects triggered by state changes.

A Reaction is the reference consumer of the tracking contract: while its
body runs it is the current dependency-observing context, so every Cell or
Computed read inside registers with it. Afterwards it subscribes to what
was collected and unsubscribes from what is no longer read. UI bindings and
other external consumers plug in the same way through Reaction.track().

Two flavors:
- autorun(fn): runs fn immediately, re-runs when anything it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from cellflow._notify import Listener
from cellflow._tracking import get_runtime

T = TypeVar("T")


class Reaction:
    """A reactive side effect that re-runs when its dependencies change.

    Reactions run eagerly (unlike Computed which is lazy).
    """

    __slots__ = ("_fn", "_dependencies", "_disposed", "_scheduler", "_on_change")

    def __init__(
        self,
        fn: Callable[[], object],
        *,
        scheduler: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        self._fn = fn
        self._dependencies: dict = {}
        self._disposed = False
        # scheduler(run) decides when and where a triggered re-run happens
        self._scheduler = scheduler
        self._on_change: Listener = self._changed

    def track(self, body: Callable[[], T]) -> T:
        """Evaluate body with this reaction collecting dependencies, then resubscribe."""
        tracker = get_runtime().tracker
        context = tracker.push(self)
        try:
            return body()
        finally:
            tracker.pop()
            self._resubscribe(context.dependencies())

    def _resubscribe(self, collected: Iterable) -> None:
        if self._disposed:
            return
        new = dict.fromkeys(collected)
        for dep in self._dependencies:
            if dep not in new:
                dep.remove_listener(self._on_change)
        for dep in new:
            if dep not in self._dependencies:
                dep.add_listener(self._on_change)
        self._dependencies = new

    def _changed(self) -> None:
        # Deduplicated like any entity: one re-run per transaction, however
        # many of our dependencies changed.
        get_runtime().transactions.schedule(self, self._dispatch)

    def _dispatch(self) -> None:
        if self._scheduler is not None:
            self._scheduler(self._run)
        else:
            self._run()

    def _run(self) -> None:
        """Re-evaluate the reaction function, re-tracking dependencies."""
        if self._disposed:
            return
        self.track(self._fn)

    @property
    def dependencies(self) -> tuple:
        return tuple(self._dependencies)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        for dep in self._dependencies:
            dep.remove_listener(self._on_change)
        self._dependencies = {}

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"{type(self).__name__}({getattr(self._fn, '__name__', '?')}, {state})"


class _DataReaction(Reaction):
    """Internal: reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn.
    If the result differs from last time, calls effect_fn with the new value.
    The effect itself is not tracked.
    """

    __slots__ = ("_effect_fn", "_last_value", "_initialized")

    def __init__(
        self,
        data_fn: Callable[[], T],
        effect_fn: Callable[[T], None],
        *,
        scheduler: Callable[[Callable[[], None]], None] | None = None,
    ) -> None:
        super().__init__(data_fn, scheduler=scheduler)
        self._effect_fn = effect_fn
        self._last_value = None
        self._initialized = False

    def _run(self) -> None:
        if self._disposed:
            return
        new_value = self.track(self._fn)
        if not self._initialized or new_value != self._last_value:
            self._last_value = new_value
            self._initialized = True
            self._effect_fn(new_value)


def autorun(
    fn: Callable[[], object],
    *,
    scheduler: Callable[[Callable[[], None]], None] | None = None,
) -> Reaction:
    """Run fn immediately, then re-run whenever anything it reads changes.

    Returns the Reaction (call .dispose() to stop). The initial run is always
    synchronous; scheduler, if given, receives every later re-run.

    Usage:
        counter = Cell(0)
        log = []

        r = autorun(lambda: log.append(counter.get()))
        # log == [0] — ran immediately

        counter.set(1)
        # log == [0, 1] — re-ran because counter changed

        r.dispose()
        counter.set(2)
        # log == [0, 1] — stopped
    """
    r = Reaction(fn, scheduler=scheduler)
    r._run()  # Initial run to establish dependencies
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
    scheduler: Callable[[Callable[[], None]], None] | None = None,
) -> Reaction:
    """Track data_fn's reads; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency notification.

    Usage:
        first = Cell("Alice")
        last = Cell("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.get()} {last.get()}",
            lambda name: effects.append(name),
        )
        # effects == [] — data_fn ran to establish deps, but effect doesn't fire yet

        first.set("Bob")
        # effects == ["Bob Smith"]
    """
    r = _DataReaction(data_fn, effect_fn, scheduler=scheduler)
    if fire_immediately:
        r._run()
    else:
        # Run data_fn to establish deps, but suppress the initial effect
        r._last_value = r.track(data_fn)
        r._initialized = True
    return r
