"""Readers — side effects and rendered outputs driven by cell changes.

Three flavors:
- attach(fn): runs fn immediately, re-runs it when any cell it read changes,
  keeping its return value as the reader's output.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
- once(data_fn, effect_fn): like reaction, but disposes itself after the first
  effect.

All of them return a ReaderHandle (call .dispose() to stop).
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from rxcell.scheduler import ReaderHandle, Scheduler, get_scheduler

T = TypeVar("T")


def attach(fn: Callable[[], Any], *, scheduler: Scheduler | None = None) -> ReaderHandle:
    """Run fn immediately, then re-run whenever any cell it reads changes.

    Usage:
        count = Cell(0)
        handle = attach(lambda: str(count.read()))
        # handle.output == "0"

        count.write(1)
        # handle.output == "1"

        dispose(handle)
        count.write(2)
        # handle.output == "1" — stopped
    """
    return (scheduler or get_scheduler()).attach(fn)


def dispose(handle: ReaderHandle) -> None:
    """Detach handle from every cell it reads."""
    handle.scheduler.dispose(handle)


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
    scheduler: Scheduler | None = None,
) -> ReaderHandle:
    """Track data_fn's cells; call effect_fn when the result changes.

    Unlike attach, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency notification. Cells read by effect_fn are not
    tracked.

    Usage:
        first = Cell("Alice")
        last = Cell("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.read()} {last.read()}",
            lambda name: effects.append(name),
        )
        # effects == [] — data_fn ran to establish deps, but effect doesn't fire yet

        first.write("Bob")
        # effects == ["Bob Smith"]

        r.dispose()
    """
    state = {"initialized": False, "last": None}
    sched = scheduler or get_scheduler()

    def _evaluate():
        value = data_fn()
        first = not state["initialized"]
        if not first and value == state["last"]:
            return value
        state["initialized"] = True
        state["last"] = value
        if not first or fire_immediately:
            with sched.tracker.untracked():
                effect_fn(value)
        return value

    _evaluate.__name__ = getattr(data_fn, "__name__", "reaction")
    return sched.attach(_evaluate)


def once(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    scheduler: Scheduler | None = None,
) -> ReaderHandle:
    """Call effect_fn the first time data_fn's result changes, then stop."""
    handle_ref: list[ReaderHandle | None] = [None]

    def _effect(value):
        handle = handle_ref[0]
        if handle is not None and not handle.disposed:
            handle.dispose()
        effect_fn(value)

    handle = reaction(data_fn, _effect, scheduler=scheduler)
    handle_ref[0] = handle
    return handle
