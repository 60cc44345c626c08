"""Actions and transactions — batched state mutations.

Writes inside a transaction land immediately, but listener notifications
are deferred and deduplicated until the outermost scope exits. Listeners
therefore see every write of the batch at once, never an intermediate
state, and fire at most once per batch.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, Iterator, ParamSpec, TypeVar

from cellflow._tracking import get_runtime

P = ParamSpec("P")
R = TypeVar("R")


def run_in_transaction(fn: Callable[P, R], *args: P.args, **kwargs: P.kwargs) -> R:
    """Call fn inside a transaction and return its result."""
    return get_runtime().transactions.run(fn, *args, **kwargs)


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all cell writes inside fn.

    Listeners only fire after fn returns, not during.

    Usage:
        counter_a = Cell(0)
        counter_b = Cell(0)

        @action
        def swap():
            a, b = counter_a.get(), counter_b.get()
            counter_a.set(b)
            counter_b.set(a)
            # listeners see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return get_runtime().transactions.run(fn, *args, **kwargs)

    return wrapper


@contextmanager
def transaction() -> Iterator[None]:
    """Context manager for batching writes.

    Usage:
        with transaction():
            counter_a.set(1)
            counter_b.set(2)
            # listeners fire here, after both are set
    """
    transactions = get_runtime().transactions
    transactions.begin()
    try:
        yield
    finally:
        transactions.end()
