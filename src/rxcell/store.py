"""Store — key-based Cell container that owns its readers.

A Store wraps a schema of named Cells and keeps the handles of the readers
registered through it, so the object that owns the state can tear all of them
down with one dispose(). reconcile() supports schema evolution: add new keys
and re-register readers without losing existing values.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from rxcell.action import action
from rxcell.cell import Cell
from rxcell.reaction import attach
from rxcell.scheduler import ReaderHandle

logger = logging.getLogger("rxcell.store")


class Store:
    """Key-based Cell container with reader lifecycle."""

    def __init__(self, schema: dict[str, object], initial: dict | None = None) -> None:
        self._cells: dict[str, Cell] = {}
        self._readers: list[ReaderHandle] = []
        for key, default in schema.items():
            value = initial.get(key, default) if initial else default
            self._cells[key] = Cell(value)

    def __contains__(self, key: str) -> bool:
        return key in self._cells

    def cell(self, key: str) -> Cell:
        """The Cell behind key. Raises KeyError for unknown keys."""
        return self._cells[key]

    def get(self, key: str) -> object:
        cell = self._cells.get(key)
        return cell.read() if cell is not None else None

    def set(self, key: str, value: object) -> None:
        cell = self._cells.get(key)
        if cell is not None:
            cell.write(value)

    @action
    def update(self, values: dict) -> None:
        for key, value in values.items():
            self.set(key, value)

    def attach(self, fn: Callable[[], Any]) -> ReaderHandle:
        """Attach a reader that is disposed together with the store."""
        handle = attach(fn)
        self._readers.append(handle)
        return handle

    @property
    def readers(self) -> tuple:
        return tuple(self._readers)

    def reconcile(self, schema: dict[str, object], setup_fn: Callable[[Store], list | None]) -> None:
        """Schema evolution: add new keys, re-register readers.

        Existing Cell values are untouched. New keys get defaults. Old readers
        are disposed. setup_fn(store) -> list[handle] registers new ones.
        """
        new_keys = [key for key in schema if key not in self._cells]
        for key in new_keys:
            self._cells[key] = Cell(schema[key])
        old_count = len(self._readers)
        self._dispose_readers()
        self._readers = list(setup_fn(self) or [])
        logger.info(
            "Reconciled: %d new keys, %d->%d readers",
            len(new_keys), old_count, len(self._readers),
        )

    def _dispose_readers(self) -> None:
        for handle in self._readers:
            if not handle.disposed:
                handle.dispose()
        self._readers.clear()

    def dispose(self) -> None:
        self._dispose_readers()
