"""Time-based workers built on reaction().

debounce() coalesces a burst of changes into one effect after a quiet period.
interval() lets at most one effect through per window, carrying the latest
value. Both use threading.Timer (daemon=True), so the effect runs on the timer
thread unless a dispatcher is given to marshal it back, e.g.
app.call_from_thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, TypeVar

from rxcell.reaction import reaction
from rxcell.scheduler import ReaderHandle, Scheduler

logger = logging.getLogger("rxcell.workers")

T = TypeVar("T")

Dispatcher = Callable[..., object]


class Worker:
    """Disposable handle for a timer-driven reaction."""

    __slots__ = ("_seconds", "_effect_fn", "_dispatcher", "_timer", "_timer_lock", "_reader", "_disposed")

    def __init__(self, seconds: float, effect_fn: Callable, dispatcher: Dispatcher | None) -> None:
        if seconds < 0:
            raise ValueError("seconds must not be negative")
        self._seconds = seconds
        self._effect_fn = effect_fn
        self._dispatcher = dispatcher
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._reader: ReaderHandle | None = None
        self._disposed = False

    @property
    def reader(self) -> ReaderHandle | None:
        return self._reader

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def pending(self) -> bool:
        """Is an effect waiting on a timer?"""
        with self._timer_lock:
            return self._timer is not None

    def dispose(self) -> None:
        """Stop reacting and cancel any pending effect."""
        with self._timer_lock:
            self._disposed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._reader is not None and not self._reader.disposed:
            self._reader.dispose()

    def _start_timer(self, fire: Callable[[], None]) -> None:
        t = threading.Timer(self._seconds, fire)
        t.daemon = True
        self._timer = t
        t.start()

    def _deliver(self, value) -> None:
        if self._dispatcher is not None:
            self._dispatcher(self._effect_fn, value)
        else:
            self._effect_fn(value)


class _DebounceWorker(Worker):
    __slots__ = ()

    def _on_change(self, value) -> None:
        with self._timer_lock:
            if self._disposed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._start_timer(lambda: self._fire(value))

    def _fire(self, value) -> None:
        with self._timer_lock:
            if self._disposed:
                return
            self._timer = None
        self._deliver(value)


class _IntervalWorker(Worker):
    __slots__ = ("_latest",)

    def __init__(self, seconds, effect_fn, dispatcher) -> None:
        super().__init__(seconds, effect_fn, dispatcher)
        self._latest = None

    def _on_change(self, value) -> None:
        with self._timer_lock:
            if self._disposed:
                return
            self._latest = value
            if self._timer is None:
                self._start_timer(self._fire)

    def _fire(self) -> None:
        with self._timer_lock:
            if self._disposed:
                return
            self._timer = None
            value = self._latest
        self._deliver(value)


def debounce(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    seconds: float,
    *,
    dispatcher: Dispatcher | None = None,
    scheduler: Scheduler | None = None,
) -> Worker:
    """Call effect_fn with the latest value once data_fn has been quiet for seconds.

    Each change cancels the previous timer, so only the last change in a
    burst fires.
    """
    worker = _DebounceWorker(seconds, effect_fn, dispatcher)
    worker._reader = reaction(data_fn, worker._on_change, scheduler=scheduler)
    logger.debug("debounce worker started (%.3fs)", seconds)
    return worker


def interval(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    seconds: float,
    *,
    dispatcher: Dispatcher | None = None,
    scheduler: Scheduler | None = None,
) -> Worker:
    """Call effect_fn at most once per window of seconds, with the latest value.

    The first change opens a window; changes inside it only update the value
    that is delivered when the window closes.
    """
    worker = _IntervalWorker(seconds, effect_fn, dispatcher)
    worker._reader = reaction(data_fn, worker._on_change, scheduler=scheduler)
    logger.debug("interval worker started (%.3fs)", seconds)
    return worker
