"""Textual integration for cellflow. Opt-in — requires textual.

Widgets usually refresh from an autorun or reaction. These wrappers make
such consumers safe to attach to a Textual app: they stay quiet while the
app is not running or while its widget tree is being swapped (see pause()),
ignore NoMatches from queries against widgets that are gone, and hop back
to the app thread when a write happened on a worker thread.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from textual.css.query import NoMatches

from cellflow.reaction import Reaction
from cellflow.reaction import autorun as _autorun
from cellflow.reaction import reaction as _reaction

T = TypeVar("T")

# id(app) for every app currently inside a pause() block.
_paused_apps: set[int] = set()


@contextmanager
def pause(app) -> Iterator[None]:
    """Suspend guarded consumers of app, e.g. while replacing widgets."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn: Callable[..., None]) -> Callable[..., None]:
    """Wrap fn so it only touches widgets when app can take it, on app's thread."""
    owner = threading.get_ident()

    def _call(*args) -> None:
        try:
            fn(*args)
        except NoMatches:
            pass

    def guarded(*args) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != owner:
            app.call_from_thread(_call, *args)
        else:
            _call(*args)

    return guarded


def reaction(
    app,
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """reaction() whose effect is guarded for app."""
    return _reaction(data_fn, _guard(app, effect_fn), fire_immediately=fire_immediately)


def autorun(app, fn: Callable[[], object]) -> Reaction:
    """autorun() whose body is guarded for app.

    Re-runs triggered from another thread are handed to app.call_from_thread
    whole, so the body is still tracked. A run skipped because the app is
    paused re-reads the previous dependencies to stay subscribed.
    """
    owner = threading.get_ident()
    r: Reaction | None = None

    def scheduler(run: Callable[[], None]) -> None:
        if threading.get_ident() != owner:
            app.call_from_thread(run)
        else:
            run()

    def body() -> None:
        if not is_safe(app):
            if r is not None:
                for dep in r.dependencies:
                    dep.get()
            return
        try:
            fn()
        except NoMatches:
            pass

    r = _autorun(body, scheduler=scheduler)
    return r
