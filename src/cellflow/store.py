"""Store — key-based Cell container with reaction lifecycle.

A Store wraps a schema of named Cells and manages reaction disposers.
reconcile() supports schema evolution: add new keys and re-register reactions
without losing existing values. dispose() tears the whole store down.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from cellflow.action import action
from cellflow.observable import Cell

logger = logging.getLogger("cellflow.store")


class StoreDisposedError(RuntimeError):
    """The store was used after dispose()."""


class _Disposable(Protocol):
    def dispose(self) -> None: ...


class Store:
    """Key-based Cell container with reaction lifecycle."""

    def __init__(self, schema: dict[str, object], initial: dict | None = None) -> None:
        self._cells: dict[str, Cell] = {}
        self._reaction_disposers: list[_Disposable] = []
        self._disposed = False
        for key, default in schema.items():
            value = initial.get(key, default) if initial else default
            self._cells[key] = Cell(value)

    def get(self, key: str) -> object:
        cell = self._cells.get(key)
        return cell.get() if cell is not None else None

    def set(self, key: str, value: object) -> None:
        cell = self._cells.get(key)
        if cell is not None:
            cell.set(value)

    @action
    def update(self, values: dict) -> None:
        for key, value in values.items():
            self.set(key, value)

    def cell(self, key: str) -> Cell:
        self._check_alive()
        try:
            return self._cells[key]
        except KeyError:
            raise KeyError(f"no cell {key!r} in store") from None

    def register(self, key: str, cell: Cell) -> None:
        """Adopt an existing cell under key, replacing any previous one."""
        self._check_alive()
        self._cells[key] = cell

    def has(self, key: str) -> bool:
        return key in self._cells

    def keys(self) -> list[str]:
        return list(self._cells)

    def remove(self, key: str) -> Cell | None:
        """Forget key without disposing its cell. Returns the cell, if any."""
        return self._cells.pop(key, None)

    def reconcile(
        self,
        schema: dict[str, object],
        setup_fn: Callable[[Store], Iterable[_Disposable] | None],
    ) -> None:
        """Schema evolution: add new keys, re-register reactions.

        Existing Cell values are untouched. New keys get defaults.
        Old reactions are disposed. setup_fn(store) -> list[disposer] registers new ones.
        """
        self._check_alive()
        new_keys = [key for key in schema if key not in self._cells]
        for key in new_keys:
            self._cells[key] = Cell(schema[key])
        old_count = len(self._reaction_disposers)
        self._dispose_reactions()
        self._reaction_disposers = list(setup_fn(self) or [])
        logger.info(
            "Reconciled: %d new keys, %d->%d reactions",
            len(new_keys), old_count, len(self._reaction_disposers),
        )

    def _dispose_reactions(self) -> None:
        for d in self._reaction_disposers:
            d.dispose()
        self._reaction_disposers.clear()

    def _check_alive(self) -> None:
        if self._disposed:
            raise StoreDisposedError("store has been disposed")

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Dispose reactions and every cell. Safe to call twice."""
        if self._disposed:
            return
        self._dispose_reactions()
        for cell in self._cells.values():
            cell.dispose()
        self._cells.clear()
        self._disposed = True

    def __repr__(self) -> str:
        return f"Store(keys={len(self._cells)}, reactions={len(self._reaction_disposers)})"
