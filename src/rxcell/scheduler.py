"""Reader scheduler — runs readers and re-runs them when their cells change.

Each execution context has its own Scheduler (held in a ContextVar, so every
thread gets a fresh one), and each Scheduler owns the DependencyTracker used
while its readers evaluate.

Notifications are queued while a batch, a drain or an evaluation is in
progress and drained once the outermost scope exits. A reader is queued at
most once at a time, so a write inside a reader's own evaluation coalesces
into a single follow-up pass instead of recursing.
"""

from __future__ import annotations

import contextvars
import logging
from collections import Counter
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from rxcell._tracking import DependencyTracker, reconcile_dependencies
from rxcell.errors import ConvergenceError, UseAfterDisposeError

logger = logging.getLogger("rxcell.scheduler")

# The scheduler of the current execution context. Set lazily by get_scheduler()
# and temporarily by Scheduler._evaluate(), so reads inside an evaluation always
# reach the tracker of the scheduler that is running it.
_current: contextvars.ContextVar[Scheduler | None] = contextvars.ContextVar(
    "rxcell_scheduler", default=None
)

DEFAULT_MAX_ITERATIONS = 100


class ReaderHandle:
    """A reader attached to a Scheduler.

    Holds the evaluation function, the output of its last evaluation and the
    cells that evaluation read.
    """

    __slots__ = ("_fn", "_scheduler", "_dependencies", "_output", "_disposed", "_evaluations")

    def __init__(self, fn: Callable[[], Any], scheduler: Scheduler) -> None:
        self._fn = fn
        self._scheduler = scheduler
        self._dependencies: dict = {}
        self._output: Any = None
        self._disposed = False
        self._evaluations = 0

    @property
    def output(self) -> Any:
        """Return value of the last successful evaluation."""
        return self._output

    @property
    def dependencies(self) -> tuple:
        return tuple(self._dependencies)

    @property
    def evaluations(self) -> int:
        return self._evaluations

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def name(self) -> str:
        return getattr(self._fn, "__name__", repr(self._fn))

    def dispose(self) -> None:
        self._scheduler.dispose(self)

    def refresh(self) -> None:
        self._scheduler.refresh(self)

    def _invalidate(self) -> None:
        self._scheduler.schedule(self)

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Reader({self.name}, {state})"


class Scheduler:
    """Owns a dependency tracker and the queue of readers awaiting a re-run."""

    def __init__(self, *, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.max_iterations = max_iterations
        self._tracker = DependencyTracker()
        self._batch_depth = 0
        self._draining = False
        # ordered set: readers run in the order they were queued
        self._pending: dict[ReaderHandle, None] = {}

    @property
    def tracker(self) -> DependencyTracker:
        return self._tracker

    @property
    def pending_count(self) -> int:
        """Number of readers waiting to run. Useful for testing."""
        return len(self._pending)

    @property
    def busy(self) -> bool:
        return self._batch_depth > 0 or self._draining

    # ─── Lifecycle ──────────────────────────────────────────────────────────

    def attach(self, fn: Callable[[], Any]) -> ReaderHandle:
        """Create a reader, evaluate it once and subscribe it to what it read."""
        handle = ReaderHandle(fn, self)
        self.begin_batch()
        try:
            try:
                self._evaluate(handle)
            finally:
                self.end_batch()
        except BaseException:
            # the caller never gets the handle, so nothing may stay subscribed
            if not handle._disposed:
                self.dispose(handle)
            raise
        logger.debug("attached %r to %d cell(s)", handle, len(handle._dependencies))
        return handle

    def dispose(self, handle: ReaderHandle) -> None:
        """Unsubscribe handle from every cell. Later writes never reach it."""
        self._check(handle)
        handle._disposed = True
        self._pending.pop(handle, None)
        for cell in handle._dependencies:
            cell._unsubscribe(handle)
        handle._dependencies.clear()
        logger.debug("disposed %r", handle)

    def refresh(self, handle: ReaderHandle) -> None:
        """Re-run handle even though none of its cells changed."""
        self._check(handle)
        self.schedule(handle)

    def _check(self, handle: ReaderHandle) -> None:
        if handle._disposed:
            raise UseAfterDisposeError(handle)
        if handle._scheduler is not self:
            raise ValueError(f"{handle!r} belongs to a different scheduler")

    # ─── Scheduling ─────────────────────────────────────────────────────────

    def schedule(self, handle: ReaderHandle) -> None:
        """Queue handle for re-evaluation; drain now unless something is in progress."""
        if handle._disposed:
            return
        self._pending[handle] = None
        if not self.busy:
            self._drain()

    def begin_batch(self) -> None:
        """Enter a batching scope. Nested batches are supported."""
        self._batch_depth += 1

    def end_batch(self) -> None:
        """Exit a batching scope. The outermost exit drains the queue."""
        self._batch_depth -= 1
        if self._batch_depth == 0 and not self._draining:
            self._drain()

    @contextmanager
    def batch(self) -> Iterator[None]:
        self.begin_batch()
        try:
            yield
        finally:
            self.end_batch()

    def _drain(self) -> None:
        """Run queued readers until the queue is empty.

        Readers queued while draining (writes made by other readers) run in
        the same drain, after the ones already queued.

        A reader that raises does not stop the drain: the remaining readers
        still run, and the first error is re-raised once the queue is empty.
        Later errors of the same drain are logged.
        """
        if not self._pending:
            return
        self._draining = True
        runs: Counter = Counter()
        error: Exception | None = None
        try:
            while self._pending:
                handle = next(iter(self._pending))
                del self._pending[handle]
                runs[handle] += 1
                if runs[handle] > self.max_iterations:
                    self._pending.clear()
                    logger.error("%r did not settle after %d runs", handle, self.max_iterations)
                    raise ConvergenceError(handle, self.max_iterations)
                try:
                    self._evaluate(handle)
                except Exception as exc:
                    if error is None:
                        error = exc
                    else:
                        logger.error("%r raised while draining", handle, exc_info=exc)
        finally:
            self._draining = False
        logger.debug("drained %d evaluation(s)", sum(runs.values()))
        if error is not None:
            raise error

    def _evaluate(self, handle: ReaderHandle) -> None:
        """Run handle's function under tracking and re-derive its edges."""
        self._tracker.begin_evaluation(handle)
        token = _current.set(self)
        try:
            output = handle._fn()
        finally:
            touched = self._tracker.end_evaluation()
            _current.reset(token)
            # disposed from inside its own evaluation, keep it detached
            if not handle._disposed:
                reconcile_dependencies(handle, handle._dependencies, touched)
        handle._output = output
        handle._evaluations += 1


def get_scheduler() -> Scheduler:
    """The scheduler of the current execution context, created on first use."""
    scheduler = _current.get()
    if scheduler is None:
        scheduler = Scheduler()
        _current.set(scheduler)
    return scheduler


@contextmanager
def use_scheduler(scheduler: Scheduler) -> Iterator[Scheduler]:
    """Make scheduler the current one for the duration of the block."""
    token = _current.set(scheduler)
    try:
        yield scheduler
    finally:
        _current.reset(token)


@contextmanager
def untracked() -> Iterator[None]:
    """Read cells without registering them as dependencies."""
    with get_scheduler().tracker.untracked():
        yield
