"""Form fields — a Cell with validators and a tracked error message."""

from __future__ import annotations

from typing import TypeVar

from cellflow.observable import Cell
from cellflow.validators import Validator

T = TypeVar("T")


class Field(Cell[T]):
    """A Cell that validates its value.

    The error message lives in its own Cell, so anything that reads .error
    while tracking re-runs when validation results change. Once touched,
    every write re-validates.
    """

    __slots__ = ("_validators", "_error", "_touched")

    def __init__(self, initial: T, validators: list[Validator] | None = None) -> None:
        super().__init__(initial)
        self._validators: list[Validator] = list(validators or [])
        self._error: Cell[str | None] = Cell(None)
        self._touched = False

    def set(self, value: T) -> None:
        super().set(value)
        if self._touched:
            self.validate()

    @property
    def error(self) -> str | None:
        return self._error.get()

    @property
    def touched(self) -> bool:
        return self._touched

    @property
    def is_valid(self) -> bool:
        return self._error.get() is None

    def add_validator(self, validator: Validator) -> None:
        self._validators.append(validator)

    def validate(self) -> bool:
        """Run validators in order; the first failure becomes the error."""
        self._touched = True
        value = self.peek()
        for validator in self._validators:
            message = validator(value)
            if message is not None:
                self._error.set(message)
                return False
        self._error.set(None)
        return True

    def mark_touched(self) -> None:
        self._touched = True
        self.validate()

    def reset(self) -> None:
        self._touched = False
        self._error.set(None)

    def dispose(self) -> None:
        self._error.dispose()
        super().dispose()

    def __repr__(self) -> str:
        return f"Field({self._value!r}, error={self._error.peek()!r})"
