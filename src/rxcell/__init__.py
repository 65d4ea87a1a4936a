"""rxcell: observable cells, auto-tracked readers and a coalescing scheduler."""

from importlib.metadata import version as _version

__version__ = _version("rxcell")

from rxcell.errors import (
    ConvergenceError,
    ReentrantEvaluationError,
    RxCellError,
    UseAfterDisposeError,
)
from rxcell._tracking import DependencyTracker
from rxcell.scheduler import ReaderHandle, Scheduler, get_scheduler, use_scheduler, untracked
from rxcell.cell import Cell, CellList, CellDict, set_dispatcher
from rxcell.derived import Derived, derived
from rxcell.reaction import attach, dispose, reaction, once
from rxcell.action import action, transaction
from rxcell.store import Store
from rxcell.workers import Worker, debounce, interval
# textual NOT auto-imported — opt-in only

__all__ = [
    "Cell",
    "CellList",
    "CellDict",
    "Derived",
    "derived",
    "DependencyTracker",
    "ReaderHandle",
    "Scheduler",
    "get_scheduler",
    "use_scheduler",
    "untracked",
    "attach",
    "dispose",
    "reaction",
    "once",
    "action",
    "transaction",
    "Store",
    "set_dispatcher",
    "Worker",
    "debounce",
    "interval",
    "RxCellError",
    "ReentrantEvaluationError",
    "UseAfterDisposeError",
    "ConvergenceError",
]
