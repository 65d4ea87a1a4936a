"""Dependency tracking engine.

A DependencyTracker keeps a stack of evaluation frames for one execution
context. Any cell read while a frame is open registers itself on the innermost
frame, building the dependency graph automatically.

Nesting policy: a different reader (or derived cell) may evaluate inside
another one; its reads belong to its own frame only. A reader that is already
on the stack may not start again, that raises ReentrantEvaluationError.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from rxcell.errors import ReentrantEvaluationError


class _Frame:
    __slots__ = ("owner", "touched")

    def __init__(self, owner) -> None:
        self.owner = owner
        # ordered set: first-read order, each cell once
        self.touched: dict = {}


class DependencyTracker:
    """Records which cells each active evaluation reads."""

    __slots__ = ("_frames",)

    def __init__(self) -> None:
        self._frames: list[_Frame] = []

    @property
    def active(self):
        """The innermost evaluating owner, or None."""
        for frame in reversed(self._frames):
            if frame.owner is not None:
                return frame.owner
        return None

    @property
    def depth(self) -> int:
        return len(self._frames)

    def begin_evaluation(self, owner) -> None:
        """Open a frame for owner. Refuses to nest owner inside itself."""
        for frame in self._frames:
            if frame.owner is owner:
                raise ReentrantEvaluationError(owner)
        self._frames.append(_Frame(owner))

    def end_evaluation(self) -> tuple:
        """Close the innermost frame and return the cells it touched."""
        if not self._frames:
            raise RuntimeError("end_evaluation() called with no evaluation in progress")
        return tuple(self._frames.pop().touched)

    def track(self, cell) -> None:
        """Register cell on the innermost frame, if any."""
        if self._frames:
            frame = self._frames[-1]
            if frame.owner is not None:
                frame.touched[cell] = None

    def readers_touching(self, cell) -> list:
        """Owners of open frames that have already read cell."""
        return [f.owner for f in self._frames if f.owner is not None and cell in f.touched]

    @contextmanager
    def untracked(self) -> Iterator[None]:
        """Reads inside this block are not attributed to any evaluation."""
        self._frames.append(_Frame(None))
        try:
            yield
        finally:
            self._frames.pop()


def reconcile_dependencies(owner, current: dict, touched: tuple) -> None:
    """Bring owner's edges in line with what its last evaluation read.

    Stale edges are removed before new ones are added. Surviving edges are left
    alone so the owner keeps its place in each cell's subscription order.
    """
    fresh = dict.fromkeys(touched)
    for cell in [c for c in current if c not in fresh]:
        cell._unsubscribe(owner)
        del current[cell]
    for cell in fresh:
        if cell not in current:
            cell._subscribe(owner)
            current[cell] = None
