"""Actions and transactions — batched cell writes.

Wrapping writes in an @action or `with transaction()` defers all reader and
derived invalidation until the outermost scope exits. This prevents glitchy
intermediate states where some readers have updated but others haven't yet.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, ParamSpec, TypeVar

from rxcell.scheduler import get_scheduler

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all cell writes inside fn.

    Readers only re-run after fn returns, not during.

    Usage:
        a = Cell(0)
        b = Cell(0)

        @action
        def swap():
            x, y = a.peek(), b.peek()
            a.write(y)
            b.write(x)
            # readers see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        scheduler = get_scheduler()
        scheduler.begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            scheduler.end_batch()

    return wrapper


@contextmanager
def transaction():
    """Context manager for batching writes.

    Usage:
        with transaction():
            a.write(1)
            b.write(2)
            # readers re-run here, after both are written
    """
    with get_scheduler().batch():
        yield
