"""Async values — the state of a running coroutine, as an observable.

AsyncValue is an immutable snapshot: idle, loading, success(data) or
error(exception). AsyncCell holds one in a Cell and drives it from a
coroutine function, so consumers tracking it re-run when a request starts,
finishes or fails.

    users = AsyncCell()

    autorun(lambda: print(users.get().when(
        idle=lambda: "",
        loading=lambda: "loading...",
        success=lambda data: f"{len(data)} users",
        error=lambda exc: f"failed: {exc}",
    )))

    await users.execute(fetch_users)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from cellflow._notify import Listener
from cellflow.observable import Cell

logger = logging.getLogger("cellflow.async")

T = TypeVar("T")
R = TypeVar("R")


class AsyncState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class AsyncValue(Generic[T]):
    """One state of an async operation. Build with the classmethods."""

    __slots__ = ("state", "data", "error")

    def __init__(
        self,
        state: AsyncState,
        data: T | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.state = state
        self.data = data
        self.error = error

    @classmethod
    def idle(cls) -> AsyncValue[T]:
        return cls(AsyncState.IDLE)

    @classmethod
    def loading(cls) -> AsyncValue[T]:
        return cls(AsyncState.LOADING)

    @classmethod
    def success(cls, data: T) -> AsyncValue[T]:
        return cls(AsyncState.SUCCESS, data=data)

    @classmethod
    def failure(cls, error: BaseException) -> AsyncValue[T]:
        return cls(AsyncState.ERROR, error=error)

    @property
    def is_idle(self) -> bool:
        return self.state is AsyncState.IDLE

    @property
    def is_loading(self) -> bool:
        return self.state is AsyncState.LOADING

    @property
    def is_success(self) -> bool:
        return self.state is AsyncState.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.state is AsyncState.ERROR

    def when(
        self,
        *,
        idle: Callable[[], R],
        loading: Callable[[], R],
        success: Callable[[T], R],
        error: Callable[[BaseException], R],
    ) -> R:
        """Call the handler matching the current state and return its result."""
        if self.state is AsyncState.IDLE:
            return idle()
        if self.state is AsyncState.LOADING:
            return loading()
        if self.state is AsyncState.SUCCESS:
            return success(self.data)
        return error(self.error)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AsyncValue):
            return NotImplemented
        return (
            self.state is other.state
            and self.data == other.data
            and self.error is other.error
        )

    def __hash__(self) -> int:
        return hash((self.state, id(self.error)))

    def __repr__(self) -> str:
        if self.is_success:
            return f"AsyncValue.success({self.data!r})"
        if self.is_error:
            return f"AsyncValue.failure({self.error!r})"
        return f"AsyncValue.{self.state.value}()"


class AsyncCell(Generic[T]):
    """A Cell of AsyncValue driven by coroutine functions.

    Only the most recently started call writes its outcome; a slower call
    that was started earlier finishes without touching the state.
    """

    __slots__ = ("_state", "_generation")

    def __init__(self) -> None:
        self._state: Cell[AsyncValue[T]] = Cell(AsyncValue.idle())
        self._generation = 0

    def get(self) -> AsyncValue[T]:
        return self._state.get()

    def peek(self) -> AsyncValue[T]:
        return self._state.peek()

    @property
    def value(self) -> AsyncValue[T]:
        return self._state.get()

    @property
    def is_loading(self) -> bool:
        return self._state.get().is_loading

    @property
    def is_success(self) -> bool:
        return self._state.get().is_success

    @property
    def is_error(self) -> bool:
        return self._state.get().is_error

    @property
    def data(self) -> T | None:
        return self._state.get().data

    @property
    def error(self) -> BaseException | None:
        return self._state.get().error

    async def __call__(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Await fn(), tracking it in the state. Errors are stored and re-raised."""
        self._generation += 1
        generation = self._generation
        self._state.set(AsyncValue.loading())
        try:
            result = await fn()
        except asyncio.CancelledError:
            if generation == self._generation:
                self._state.set(AsyncValue.idle())
            raise
        except Exception as e:
            logger.debug("Async call failed", exc_info=True)
            if generation == self._generation:
                self._state.set(AsyncValue.failure(e))
            raise
        if generation == self._generation:
            self._state.set(AsyncValue.success(result))
        return result

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> None:
        """Like calling the cell, but errors are only stored in the state."""
        try:
            await self(fn)
        except Exception:
            pass  # kept in the state

    def reset(self) -> None:
        """Back to idle. A call still in flight no longer writes its outcome."""
        self._generation += 1
        self._state.set(AsyncValue.idle())

    # --- Notifiable ---

    def add_listener(self, fn: Listener) -> None:
        self._state.add_listener(fn)

    def remove_listener(self, fn: Listener) -> None:
        self._state.remove_listener(fn)

    def notify_listeners(self) -> None:
        self._state.notify_listeners()

    @property
    def has_listeners(self) -> bool:
        return self._state.has_listeners

    def dispose(self) -> None:
        self._generation += 1
        self._state.dispose()

    def __repr__(self) -> str:
        return f"AsyncCell({self._state.peek()!r})"
