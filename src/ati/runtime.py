"""Process-wide default context and the module-level tracking API.

Instrumented code calls ati.track(), ati.get_site() and friends without
passing a Context around. Those resolve, in order:

1. the context installed for the current execution context by use_context()
   (a contextvar, so tests and embedders can isolate runs);
2. the process default, built lazily on first use or installed with
   set_context().
"""

from __future__ import annotations

import contextvars
import threading
from contextlib import contextmanager
from typing import IO, Iterator, TypeVar

from ati.context import Context
from ati.site import Site
from ati.tagged import TaggedValue

T = TypeVar("T")

current_context: contextvars.ContextVar[Context | None] = contextvars.ContextVar(
    "current_context", default=None
)

_default: Context | None = None
_default_lock = threading.Lock()


def get_context() -> Context:
    ctx = current_context.get()
    if ctx is not None:
        return ctx
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Context()
    return _default


def set_context(ctx: Context | None) -> None:
    """Install the process default. None resets it to a fresh lazy default."""
    global _default
    with _default_lock:
        _default = ctx


@contextmanager
def use_context(ctx: Context | None = None) -> Iterator[Context]:
    """Route module-level calls to `ctx` (a new Context if omitted) inside the block."""
    ctx = ctx if ctx is not None else Context()
    token = current_context.set(ctx)
    try:
        yield ctx
    finally:
        current_context.reset(token)


def track(value: T) -> TaggedValue[T]:
    return get_context().track(value)


def get_site(name: str) -> Site:
    return get_context().get_site(name)


def update_site(site: Site) -> int:
    return get_context().update_site(site)


def report(file: IO[str] | None = None) -> str:
    return get_context().report(file)
