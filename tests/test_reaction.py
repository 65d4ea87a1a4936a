"""Tests for attach, reaction, and once."""

from rxcell import Cell, attach, dispose, once, reaction


class TestAttach:
    def test_runs_immediately(self):
        c = Cell(10)
        log = []
        attach(lambda: log.append(c.read()))
        assert log == [10]

    def test_reruns_on_change(self):
        c = Cell(10)
        log = []
        attach(lambda: log.append(c.read()))
        c.write(20)
        assert log == [10, 20]

    def test_dispose_stops(self):
        c = Cell(10)
        log = []
        r = attach(lambda: log.append(c.read()))
        dispose(r)
        c.write(20)
        assert log == [10]  # no additional run


class TestReaction:
    def test_no_initial_effect(self):
        """Without fire_immediately, effect doesn't run on setup."""
        c = Cell("a")
        effects = []
        reaction(lambda: c.read(), lambda v: effects.append(v))
        assert effects == []

    def test_fires_on_change(self):
        c = Cell("a")
        effects = []
        reaction(lambda: c.read(), lambda v: effects.append(v))
        c.write("b")
        assert effects == ["b"]

    def test_fire_immediately(self):
        c = Cell("a")
        effects = []
        reaction(lambda: c.read(), lambda v: effects.append(v), fire_immediately=True)
        assert effects == ["a"]

    def test_dedup_effect(self):
        """Effect only fires when data_fn result actually changes."""
        c = Cell(1)
        effects = []
        reaction(
            lambda: "even" if c.read() % 2 == 0 else "odd",
            lambda v: effects.append(v),
        )
        c.write(3)  # still odd
        assert effects == []
        c.write(4)  # now even
        assert effects == ["even"]

    def test_effect_reads_are_untracked(self):
        trigger = Cell(0)
        other = Cell("x")
        effects = []
        r = reaction(lambda: trigger.read(), lambda v: effects.append((v, other.read())))
        assert r.dependencies == (trigger,)
        other.write("y")
        assert effects == []
        trigger.write(1)
        assert effects == [(1, "y")]

    def test_output_is_data_value(self):
        c = Cell(2)
        r = reaction(lambda: c.read() * 10, lambda v: None)
        assert r.output == 20
        c.write(3)
        assert r.output == 30

    def test_dispose(self):
        c = Cell(1)
        effects = []
        r = reaction(lambda: c.read(), lambda v: effects.append(v))
        c.write(2)
        assert effects == [2]
        r.dispose()
        c.write(3)
        assert effects == [2]  # no more effects


class TestOnce:
    def test_fires_once_then_disposes(self):
        c = Cell(0)
        effects = []
        r = once(lambda: c.read(), lambda v: effects.append(v))
        assert effects == []
        c.write(1)
        assert effects == [1]
        assert r.disposed
        c.write(2)
        assert effects == [1]
        assert c.subscribers == ()
