"""Cells — observable values that track their readers.

When a cell is read inside a reader evaluation, the dependency is registered
automatically. When the cell changes, every subscribed reader is queued for
re-evaluation, each exactly once, in subscription order.

Writes to one cell are serialized: the value swap and the delivery of all
resulting notifications happen under the cell's lock.

Thread safety: call set_dispatcher() once from the owning thread. After that,
any Cell.write() from a background thread is auto-marshaled. Owning-thread
writes remain synchronous.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, Iterator, TypeVar

from rxcell.scheduler import ReaderHandle, get_scheduler

T = TypeVar("T")
KT = TypeVar("KT")
VT = TypeVar("VT")

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_dispatcher = None
_dispatcher_thread = None


def set_dispatcher(dispatcher: Callable[[Callable[[], None]], object] | None) -> None:
    """Set the dispatcher used for cross-thread Cell writes.

    Call once from the main/UI thread:
        rxcell.set_dispatcher(app.call_from_thread)

    After this, any Cell.write() from another thread is handed to the
    dispatcher. Pass None to go back to direct writes.
    """
    global _dispatcher, _dispatcher_thread
    _dispatcher = dispatcher
    _dispatcher_thread = threading.current_thread() if dispatcher is not None else None


class _Subscribable:
    """Subscriber bookkeeping shared by every cell-like object."""

    __slots__ = ("_subscribers", "_lock")

    def __init__(self) -> None:
        # ordered set: notification follows subscription order
        self._subscribers: dict = {}
        self._lock = threading.RLock()

    @property
    def subscribers(self) -> tuple:
        return tuple(self._subscribers)

    def _track(self) -> None:
        """Register this cell with the evaluation running on this context."""
        get_scheduler().tracker.track(self)

    def _subscribe(self, subscriber) -> None:
        self._subscribers[subscriber] = None

    def _unsubscribe(self, subscriber) -> None:
        self._subscribers.pop(subscriber, None)

    def _notify(self) -> None:
        """Invalidate every subscriber, plus any reader that read us mid-evaluation."""
        scheduler = get_scheduler()
        targets = dict.fromkeys(self._subscribers)
        for owner in scheduler.tracker.readers_touching(self):
            # edges of an evaluation in progress are not installed yet
            if isinstance(owner, ReaderHandle):
                targets.setdefault(owner)
        if not targets:
            return
        with scheduler.batch():
            for target in targets:
                target._invalidate()


class Cell(_Subscribable, Generic[T]):
    """A single observable value with automatic dependency tracking."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    def read(self) -> T:
        """Read the value. If inside an evaluation, registers the dependency."""
        self._track()
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    def write(self, value: T) -> None:
        """Write a new value. Auto-marshals from background threads."""
        if _dispatcher is not None and threading.current_thread() is not _dispatcher_thread:
            _dispatcher(lambda v=value: self._write_direct(v))
        else:
            self._write_direct(value)

    def update(self, fn: Callable[[T], T]) -> None:
        """Write fn(current value). Read and write happen under the cell's lock."""
        if _dispatcher is not None and threading.current_thread() is not _dispatcher_thread:
            _dispatcher(lambda: self._update_direct(fn))
        else:
            self._update_direct(fn)

    def _update_direct(self, fn: Callable[[T], T]) -> None:
        with self._lock:
            self._write_direct(fn(self._value))

    def refresh(self) -> None:
        """Notify subscribers without changing the value. For in-place mutation."""
        with self._lock:
            self._notify()

    def _write_direct(self, value: T) -> None:
        with self._lock:
            old = self._value
            if old is value or old == value:
                return
            self._value = value
            self._notify()

    def __repr__(self) -> str:
        return f"Cell({self._value!r})"


class CellList(_Subscribable, Generic[T]):
    """An observable list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, extend, __setitem__, etc.) notifies subscribers.
    """

    __slots__ = ("_items",)

    def __init__(self, items: list[T] | None = None) -> None:
        super().__init__()
        self._items: list[T] = list(items) if items else []

    # --- Read operations (track) ---

    def __getitem__(self, index: int) -> T:
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        self._track()
        return iter(list(self._items))

    def __contains__(self, item: T) -> bool:
        self._track()
        return item in self._items

    def __bool__(self) -> bool:
        self._track()
        return bool(self._items)

    def read(self) -> list[T]:
        """Snapshot of the items."""
        self._track()
        return list(self._items)

    # --- Write operations (notify) ---

    def append(self, item: T) -> None:
        with self._lock:
            self._items.append(item)
            self._notify()

    def extend(self, items) -> None:
        with self._lock:
            self._items.extend(items)
            self._notify()

    def insert(self, index: int, item: T) -> None:
        with self._lock:
            self._items.insert(index, item)
            self._notify()

    def pop(self, index: int = -1) -> T:
        with self._lock:
            result = self._items.pop(index)
            self._notify()
        return result

    def remove(self, item: T) -> None:
        with self._lock:
            self._items.remove(item)
            self._notify()

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._notify()

    def __setitem__(self, index: int, value: T) -> None:
        with self._lock:
            self._items[index] = value
            self._notify()

    def __delitem__(self, index: int) -> None:
        with self._lock:
            del self._items[index]
            self._notify()

    def __repr__(self) -> str:
        return f"CellList({self._items!r})"


class CellDict(_Subscribable, Generic[KT, VT]):
    """An observable dict that tracks reads and notifies on mutation."""

    __slots__ = ("_data",)

    def __init__(self, data: dict[KT, VT] | None = None) -> None:
        super().__init__()
        self._data: dict[KT, VT] = dict(data) if data else {}

    # --- Read operations (track) ---

    def __getitem__(self, key: KT) -> VT:
        self._track()
        return self._data[key]

    def get(self, key: KT, default: VT | None = None) -> VT | None:
        self._track()
        return self._data.get(key, default)

    def __contains__(self, key: KT) -> bool:
        self._track()
        return key in self._data

    def __len__(self) -> int:
        self._track()
        return len(self._data)

    def __iter__(self) -> Iterator[KT]:
        self._track()
        return iter(list(self._data))

    def keys(self):
        self._track()
        return self._data.keys()

    def values(self):
        self._track()
        return self._data.values()

    def items(self):
        self._track()
        return self._data.items()

    def __bool__(self) -> bool:
        self._track()
        return bool(self._data)

    def read(self) -> dict[KT, VT]:
        """Snapshot of the mapping."""
        self._track()
        return dict(self._data)

    # --- Write operations (notify) ---

    def __setitem__(self, key: KT, value: VT) -> None:
        with self._lock:
            self._data[key] = value
            self._notify()

    def __delitem__(self, key: KT) -> None:
        with self._lock:
            del self._data[key]
            self._notify()

    def pop(self, key: KT, *args) -> VT:
        with self._lock:
            result = self._data.pop(key, *args)
            self._notify()
        return result

    def update(self, other=None, **kwargs) -> None:
        with self._lock:
            if other:
                self._data.update(other)
            if kwargs:
                self._data.update(kwargs)
            self._notify()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._notify()

    def setdefault(self, key: KT, default: VT | None = None) -> VT:
        with self._lock:
            if key not in self._data:
                self._data[key] = default
                self._notify()
            return self._data[key]

    def __repr__(self) -> str:
        return f"CellDict({self._data!r})"
