"""Dependency tracking engine — the heart of cellflow.

Reads are attributed to whoever is currently collecting dependencies: the
top of a TrackerStack. A Computed pushes a context before running its
function and pops it afterwards, so every Cell or Computed read in between
lands in that context.

Batching: writes inside a transaction are applied immediately but their
notifications are deferred to a deduplicated pending set and delivered once
the outermost transaction exits.

All of this state hangs off a Runtime held in a contextvar, so independent
runtimes (one per test, for instance) never see each other's stacks.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

if TYPE_CHECKING:
    from cellflow._notify import Notifiable
    from cellflow.computed import Computed

logger = logging.getLogger("cellflow.transaction")

R = TypeVar("R")


class TrackerContext:
    """One level of dependency collection: the cells and computeds read so far."""

    __slots__ = ("owner", "cells", "computeds")

    def __init__(self, owner: object = None) -> None:
        self.owner = owner
        # dicts as insertion-ordered sets
        self.cells: dict[Any, None] = {}
        self.computeds: dict[Any, None] = {}

    def observe_cell(self, cell: object) -> None:
        self.cells[cell] = None

    def observe_computed(self, node: Computed) -> None:
        self.computeds[node] = None

    def dependencies(self) -> tuple:
        return (*self.cells, *self.computeds)

    def __repr__(self) -> str:
        return f"TrackerContext(owner={self.owner!r}, cells={len(self.cells)}, computeds={len(self.computeds)})"


class TrackerStack:
    """LIFO of tracker contexts plus the chain of computeds being evaluated."""

    __slots__ = ("_stack", "_computing")

    def __init__(self) -> None:
        self._stack: list[TrackerContext] = []
        self._computing: dict[Computed, None] = {}

    def push(self, owner: object = None) -> TrackerContext:
        context = TrackerContext(owner)
        self._stack.append(context)
        return context

    def pop(self) -> TrackerContext:
        if not self._stack:
            raise RuntimeError("tracker stack is empty")
        return self._stack.pop()

    def current(self) -> TrackerContext | None:
        return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        return len(self._stack)

    def track_cell(self, cell: object) -> None:
        """Register a cell read with the innermost collecting context, if any."""
        if self._stack:
            self._stack[-1].observe_cell(cell)

    def track_computed(self, node: Computed) -> None:
        if self._stack:
            self._stack[-1].observe_computed(node)

    # --- Cycle detection ---

    def is_computing(self, node: Computed) -> bool:
        return node in self._computing

    def begin_compute(self, node: Computed) -> None:
        self._computing[node] = None

    def end_compute(self, node: Computed) -> None:
        self._computing.pop(node, None)

    def computing_chain(self) -> tuple[Computed, ...]:
        return tuple(self._computing)


class TransactionCoordinator:
    """Depth-counted batching scope with a deduplicated pending set."""

    __slots__ = ("_depth", "_draining", "_pending")

    def __init__(self) -> None:
        self._depth = 0
        self._draining = False
        # id(entity) -> (entity, deliver); identity-keyed so __eq__ overrides can't merge entities
        self._pending: dict[int, tuple[object, Callable[[], None]]] = {}

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def is_active(self) -> bool:
        return self._depth > 0 or self._draining

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, entity: Notifiable, deliver: Callable[[], None] | None = None) -> None:
        """Notify entity's listeners now, or once the outermost transaction exits.

        deliver replaces entity.notify_listeners for consumers that are not
        themselves observable (a Reaction schedules its own re-run this way).
        """
        if deliver is None:
            deliver = entity.notify_listeners
        if self.is_active:
            self._pending.setdefault(id(entity), (entity, deliver))
        else:
            deliver()

    def begin(self) -> None:
        """Enter a batching scope. Nested scopes are supported."""
        self._depth += 1

    def end(self) -> None:
        """Exit a batching scope. When the outermost scope exits, flush pending notifications."""
        if self._depth == 0:
            raise RuntimeError("end() called without a matching begin()")
        self._depth -= 1
        if self._depth == 0 and not self._draining:
            self._flush()

    def run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        self.begin()
        try:
            return fn(*args, **kwargs)
        finally:
            self.end()

    def _flush(self) -> None:
        """Deliver pending notifications. Entities scheduled during delivery go in a later round.

        A failing delivery does not stop the others; the first error is
        re-raised once the pending set is drained.
        """
        first_error: Exception | None = None
        self._draining = True
        try:
            while self._pending:
                batch = list(self._pending.values())
                self._pending.clear()
                logger.debug("Flushing %d pending notification(s)", len(batch))
                for entity, deliver in batch:
                    try:
                        deliver()
                    except Exception as e:
                        logger.debug("Notification of %r failed", entity, exc_info=True)
                        if first_error is None:
                            first_error = e
        finally:
            self._draining = False
        if first_error is not None:
            raise first_error


class Runtime:
    """Everything the engine keeps per logical thread of control."""

    __slots__ = ("tracker", "transactions")

    def __init__(self) -> None:
        self.tracker = TrackerStack()
        self.transactions = TransactionCoordinator()

    def __repr__(self) -> str:
        return (
            f"Runtime(tracker_depth={self.tracker.depth}, "
            f"transaction_depth={self.transactions.depth})"
        )


_default_runtime = Runtime()

# The active runtime. Threads and tasks that never call use_runtime() share the default.
_current_runtime: contextvars.ContextVar[Runtime] = contextvars.ContextVar(
    "cellflow_runtime", default=_default_runtime
)


def get_runtime() -> Runtime:
    return _current_runtime.get()


@contextmanager
def use_runtime(runtime: Runtime | None = None) -> Iterator[Runtime]:
    """Install a runtime (a fresh one by default) for the duration of the block."""
    runtime = runtime if runtime is not None else Runtime()
    token = _current_runtime.set(runtime)
    try:
        yield runtime
    finally:
        _current_runtime.reset(token)


@contextmanager
def tracking(owner: object = None) -> Iterator[TrackerContext]:
    """Collect every dependency read inside the block into a fresh context."""
    tracker = get_runtime().tracker
    context = tracker.push(owner)
    try:
        yield context
    finally:
        tracker.pop()


def get_pending_count() -> int:
    """Number of entities waiting for the current transaction to flush. Useful for testing."""
    return get_runtime().transactions.pending_count
