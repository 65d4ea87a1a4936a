"""Derived cells — computed state with automatic dependency tracking.

A Derived wraps a function. When evaluated, it tracks which cells the
function reads and caches the result. When any dependency changes, the cached
value is invalidated and the invalidation is forwarded to the derived cell's
own subscribers. On next read, it re-evaluates.

Derived cells are lazy — they only recompute when read.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from rxcell._tracking import reconcile_dependencies
from rxcell.cell import _Subscribable
from rxcell.scheduler import get_scheduler

T = TypeVar("T")

_UNSET = object()


class Derived(_Subscribable, Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_fn", "_value", "_dirty", "_dependencies")

    def __init__(self, fn: Callable[[], T]) -> None:
        super().__init__()
        self._fn = fn
        self._value = _UNSET
        self._dirty = True
        self._dependencies: dict = {}

    @property
    def dependencies(self) -> tuple:
        return tuple(self._dependencies)

    def read(self) -> T:
        """Read the derived value. Recomputes if dirty."""
        try:
            if self._dirty:
                self._recompute()
        finally:
            tracker = get_scheduler().tracker
            # a self-read never becomes an edge
            if tracker.active is not self:
                tracker.track(self)
        return self._value

    def _recompute(self) -> None:
        """Re-evaluate the function, tracking dependencies."""
        scheduler = get_scheduler()
        tracker = scheduler.tracker
        with scheduler.batch():
            tracker.begin_evaluation(self)
            try:
                value = self._fn()
            finally:
                reconcile_dependencies(self, self._dependencies, tracker.end_evaluation())
            self._value = value
            self._dirty = False

    def _invalidate(self) -> None:
        """A dependency changed: mark dirty and pass it on to our subscribers.

        We don't recompute eagerly — that happens on next read().
        """
        if not self._dirty:
            self._dirty = True
            for subscriber in list(self._subscribers):
                subscriber._invalidate()

    def dispose(self) -> None:
        """Disconnect from all dependencies and subscribers."""
        for dep in self._dependencies:
            dep._unsubscribe(self)
        self._dependencies.clear()
        self._subscribers.clear()
        self._dirty = True
        self._value = _UNSET

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"Derived({getattr(self._fn, '__name__', '?')}, {state})"


def derived(fn: Callable[[], T]) -> Derived[T]:
    """Decorator/factory to create a Derived from a function.

    Usage:
        counter = Cell(0)

        @derived
        def doubled():
            return counter.read() * 2

        doubled.read()  # 0
        counter.write(5)
        doubled.read()  # 10
    """
    return Derived(fn)
