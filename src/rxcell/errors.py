"""Errors raised by rxcell.

All of them point at a caller-side lifecycle bug, so they are raised to the
caller immediately and never retried.
"""


class RxCellError(Exception):
    """Base class for every rxcell error."""


class ReentrantEvaluationError(RxCellError):
    """A reader (or derived cell) was asked to evaluate while already evaluating."""

    def __init__(self, owner) -> None:
        super().__init__(f"{owner!r} is already being evaluated on this context")
        self.owner = owner


class UseAfterDisposeError(RxCellError):
    """A disposed reader handle was passed to a scheduler operation."""

    def __init__(self, handle) -> None:
        super().__init__(f"{handle!r} has already been disposed")
        self.handle = handle


class ConvergenceError(RxCellError):
    """A reader kept re-triggering itself and the drain loop gave up."""

    def __init__(self, handle, iterations: int) -> None:
        super().__init__(
            f"{handle!r} was re-run more than {iterations} times in one pass; "
            "it probably writes a cell it also reads"
        )
        self.handle = handle
        self.iterations = iterations
