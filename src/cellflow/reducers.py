"""Reducer stores — Redux-style state driven by dispatched actions.

A ReduxStore is a Cell whose value only changes through dispatch(): the
reducer maps (state, action) to the next state. Middleware can rewrite or
drop an action before it is reduced and observe the outcome afterwards.
Each dispatch runs in one transaction, so state written by middleware and
the new state reach listeners together.

    def counter(state, act):
        if act.type == "inc":
            return state + act.payload
        return state

    store = ReduxStore(0, counter)
    store.dispatch(Action("inc", 5))
    store.state  # 5
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, TypeVar

from cellflow.action import action
from cellflow.observable import Cell

logger = logging.getLogger("cellflow.reducers")

S = TypeVar("S")


class Action:
    """A named request to change state, with an optional payload."""

    __slots__ = ("type", "payload")

    def __init__(self, type: str, payload: Any = None) -> None:
        self.type = type
        self.payload = payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Action):
            return NotImplemented
        return self.type == other.type and self.payload == other.payload

    def __hash__(self) -> int:
        return hash(self.type)

    def __repr__(self) -> str:
        if self.payload is None:
            return f"Action({self.type!r})"
        return f"Action({self.type!r}, {self.payload!r})"


Reducer = Callable[[S, Action], S]


class Middleware:
    """Hooks around every dispatch. Subclass and override what you need."""

    def before(self, store: ReduxStore, act: Action) -> Action | None:
        """Return the action to reduce, a replacement, or None to drop it."""
        return act

    def after(self, store: ReduxStore, act: Action, state: Any) -> None:
        pass

    def on_error(self, store: ReduxStore, act: Action, error: Exception) -> None:
        pass


class LoggingMiddleware(Middleware):
    """Logs every action and its outcome on the cellflow.reducers logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def before(self, store: ReduxStore, act: Action) -> Action | None:
        logger.log(self.level, "Before: %s", act.type)
        return act

    def after(self, store: ReduxStore, act: Action, state: Any) -> None:
        logger.log(self.level, "After: %s -> %r", act.type, state)

    def on_error(self, store: ReduxStore, act: Action, error: Exception) -> None:
        logger.log(self.level, "Error in %s: %s", act.type, error)


class ReduxStore(Cell[S]):
    """A Cell updated by reducing dispatched actions, with action history."""

    __slots__ = ("_reducer", "_middleware", "_history", "_history_limit", "_history_enabled")

    def __init__(
        self,
        initial: S,
        reducer: Reducer,
        *,
        middleware: Iterable[Middleware] = (),
        history_limit: int = 50,
    ) -> None:
        super().__init__(initial)
        self._reducer = reducer
        self._middleware: list[Middleware] = list(middleware)
        self._history: list[Action] = []
        self._history_limit = history_limit
        self._history_enabled = True

    @property
    def state(self) -> S:
        return self.get()

    @action
    def dispatch(self, act: Action) -> S:
        """Reduce act into the next state and return it.

        A middleware returning None from before() drops the action; the
        state is returned unchanged and nothing is recorded. Reducer errors
        reach every middleware's on_error() and then propagate.
        """
        for mw in self._middleware:
            act = mw.before(self, act)
            if act is None:
                return self.peek()
        try:
            new_state = self._reducer(self.peek(), act)
        except Exception as e:
            logger.debug("Dispatch of %s failed", act.type, exc_info=True)
            for mw in self._middleware:
                mw.on_error(self, act, e)
            raise
        self.set(new_state)
        if self._history_enabled:
            self._history.append(act)
            self._trim_history()
        logger.debug("Action dispatched: %s", act.type)
        for mw in self._middleware:
            mw.after(self, act, new_state)
        return new_state

    def add_middleware(self, mw: Middleware) -> None:
        self._middleware.append(mw)

    @property
    def action_history(self) -> tuple[Action, ...]:
        return tuple(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    @property
    def history_enabled(self) -> bool:
        return self._history_enabled

    @history_enabled.setter
    def history_enabled(self, enabled: bool) -> None:
        self._history_enabled = enabled
        if not enabled:
            self.clear_history()

    @property
    def history_limit(self) -> int:
        return self._history_limit

    @history_limit.setter
    def history_limit(self, limit: int) -> None:
        if limit < 0:
            raise ValueError("history_limit must not be negative")
        self._history_limit = limit
        self._trim_history()

    def _trim_history(self) -> None:
        excess = len(self._history) - self._history_limit
        if excess > 0:
            del self._history[:excess]

    def reset(self, initial: S) -> None:
        """Replace the state without a reducer and forget the history."""
        self.set(initial)
        self.clear_history()

    def __repr__(self) -> str:
        return f"ReduxStore({self._value!r}, history={len(self._history)})"


def combine_reducers(reducers: Mapping[str, Reducer]) -> Reducer:
    """Route each action to the reducer registered for its type.

    Actions with no registered reducer leave the state unchanged.
    """
    table = dict(reducers)

    def reduce(state, act: Action):
        reducer = table.get(act.type)
        if reducer is None:
            return state
        return reducer(state, act)

    return reduce
