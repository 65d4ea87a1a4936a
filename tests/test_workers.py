"""Tests for debounce() and interval() workers."""

import threading
import time

import pytest

from rxcell import Cell, debounce, interval


class TestDebounce:
    def test_fires_after_quiet_period(self):
        c = Cell(0)
        received = []
        done = threading.Event()

        def effect(v):
            received.append(v)
            done.set()

        worker = debounce(lambda: c.read(), effect, 0.05)
        c.write(1)
        assert received == []
        assert done.wait(timeout=2)
        assert received == [1]
        worker.dispose()

    def test_burst_delivers_last_value_once(self):
        c = Cell(0)
        received = []
        worker = debounce(lambda: c.read(), received.append, 0.1)
        for i in range(1, 6):
            c.write(i)
        time.sleep(0.3)
        assert received == [5]
        worker.dispose()

    def test_dispose_cancels_pending(self):
        c = Cell(0)
        received = []
        worker = debounce(lambda: c.read(), received.append, 0.05)
        c.write(1)
        assert worker.pending
        worker.dispose()
        time.sleep(0.15)
        assert received == []
        assert worker.disposed
        assert worker.reader.disposed
        assert c.subscribers == ()

    def test_dispatcher(self):
        c = Cell(0)
        received = []
        calls = []
        done = threading.Event()

        def dispatcher(fn, *args):
            calls.append(args)
            fn(*args)
            done.set()

        worker = debounce(lambda: c.read(), received.append, 0.02, dispatcher=dispatcher)
        c.write(7)
        assert done.wait(timeout=2)
        assert calls == [(7,)]
        assert received == [7]
        worker.dispose()

    def test_negative_seconds_rejected(self):
        with pytest.raises(ValueError):
            debounce(lambda: None, lambda v: None, -1)


class TestInterval:
    def test_one_effect_per_window_with_latest_value(self):
        c = Cell(0)
        received = []
        worker = interval(lambda: c.read(), received.append, 0.1)
        c.write(1)
        c.write(2)
        c.write(3)
        time.sleep(0.3)
        assert received == [3]
        worker.dispose()

    def test_new_window_after_fire(self):
        c = Cell(0)
        received = []
        worker = interval(lambda: c.read(), received.append, 0.05)
        c.write(1)
        time.sleep(0.2)
        c.write(2)
        time.sleep(0.2)
        assert received == [1, 2]
        worker.dispose()

    def test_dispose_cancels_pending(self):
        c = Cell(0)
        received = []
        worker = interval(lambda: c.read(), received.append, 0.05)
        c.write(1)
        worker.dispose()
        time.sleep(0.15)
        assert received == []
