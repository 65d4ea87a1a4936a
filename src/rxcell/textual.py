"""Textual integration for rxcell. Opt-in — requires textual.

Guard, NoMatches handling and thread marshalling live here, not at callsites.
Textual coupling is isolated in this module; the core stays toolkit-agnostic.
_paused_apps has a single owner (this module): an app id is present exactly
while a pause() block for that app is open.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from rxcell.reaction import attach as _attach, reaction as _reaction

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded readers during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn):
    """Wrap fn so it only runs when the app is safe, on the app's thread."""
    _main = threading.get_ident()

    def _safe(*args):
        try:
            fn(*args)
        except NoMatches:
            pass

    def _guarded(*args):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, *args)
        else:
            _safe(*args)

    return _guarded


def reaction(app, data_fn, effect_fn, *, fire_immediately=False):
    """reaction() that safely bridges to Textual widgets.

    Guards against firing during pause/not-running, catches NoMatches
    from widget queries, and marshals cross-thread calls via call_from_thread.
    """
    return _reaction(data_fn, _guard(app, effect_fn), fire_immediately=fire_immediately)


def attach(app, fn):
    """attach() that safely bridges to Textual widgets.

    The initial run always happens so the reader learns what fn reads. Later
    runs are skipped while the app is paused or not running; a skipped or
    marshaled run keeps the previous dependencies so the reader stays live.
    """
    _main = threading.get_ident()
    handle_ref = [None]

    def _safe():
        try:
            fn()
        except NoMatches:
            pass

    def _evaluate():
        handle = handle_ref[0]
        if handle is None or (is_safe(app) and threading.get_ident() == _main):
            _safe()
            return
        for cell in handle.dependencies:
            cell._track()
        if is_safe(app):
            app.call_from_thread(_safe)

    handle_ref[0] = _attach(_evaluate)
    return handle_ref[0]


def bind(app, widget, render_fn):
    """Keep widget showing render_fn's output, like a reactive Static.

    render_fn reads cells and returns a renderable; every time its result
    changes the widget is updated with widget.update(result).
    """
    return _reaction(render_fn, _guard(app, widget.update), fire_immediately=True)
