"""Textual integration: a live view of the analysis report. Opt-in, requires textual.

    disposer = live_report(app, ctx, "#ati-report")

Every fold on the context re-renders the report into the widget matched by
`selector` (anything with an .update(str) method, e.g. textual.widgets.Static).
Folds arrive on whatever thread the instrumented code runs on; renders are
marshaled through app.call_from_thread. Missing widgets (NoMatches) are
ignored, and nothing renders while the app is not running or is paused.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable

from textual.css.query import NoMatches

from ati.context import Context
from ati.report import format_report
from ati.stream import EventStream

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend rendering, e.g. while the report widget is being replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def live_report(
    app,
    context: Context,
    selector: str,
    *,
    sites: Callable[[str], bool] | None = None,
    debounce: float | None = None,
) -> Callable[[], None]:
    """Keep the widget at `selector` showing context's report. Returns a disposer.

    `sites` restricts refreshes to folds of matching site names; `debounce`
    coalesces bursts of folds into one render.
    """
    main = threading.get_ident()
    owned: list[EventStream[str]] = []
    stream = context.folds
    if sites is not None:
        stream = stream.filter(sites)
        owned.append(stream)
    if debounce:
        stream = stream.debounce(debounce)
        owned.append(stream)

    def _render() -> None:
        try:
            app.query_one(selector).update(format_report(context.partitions()))
        except NoMatches:
            pass

    def _refresh(_site: str | None) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(_render)
        else:
            _render()

    unsubscribe = stream.subscribe(_refresh)
    _refresh(None)

    def dispose() -> None:
        unsubscribe()
        for s in reversed(owned):
            s.dispose()

    return dispose
