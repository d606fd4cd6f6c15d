"""Function stubs: site management around instrumented functions.

A source rewriter (or a human) marks functions with these decorators:

    @instrument
    def f(x, y, z):
        return x + y

Each call to f then:
1. tags scalar arguments that arrive untagged (literals, untracked returns);
2. binds every tagged parameter at "f::ENTER" and folds that site;
3. runs the body with the tagged arguments;
4. tags a scalar return value, binds the parameters plus "RET" at
   "f::EXIT" and folds it.

Non-scalar arguments (lists, dicts, objects) are passed through as opaque
containers and never bound.
"""

from __future__ import annotations

import functools
import inspect
from typing import IO, Callable, TypeVar

from ati.context import Context
from ati.errors import ContextMismatchError
from ati.runtime import get_context
from ati.tagged import TaggedValue, is_scalar

F = TypeVar("F", bound=Callable)

RET = "RET"
ENTER = "ENTER"
EXIT = "EXIT"

_OPAQUE_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def site_name(function: str, point: str) -> str:
    return f"{function}::{point}"


def _retag(ctx: Context, value):
    """Bring a value (back) into tracking. Returns None for opaque values."""
    if isinstance(value, TaggedValue):
        if value.context is not ctx:
            raise ContextMismatchError(f"{value!r} was tracked in a different context")
        return value
    if is_scalar(value):
        return ctx.track(value)
    return None


def instrument(fn: F | None = None, *, name: str | None = None, context: Context | None = None):
    """Decorator: record ENTER/EXIT sites for every call.

    `name` overrides the site prefix (default: the function's __name__).
    `context` pins a Context; by default the current one is resolved per call.
    """
    if fn is None:
        return lambda f: instrument(f, name=name, context=context)

    prefix = name or fn.__name__
    signature = inspect.signature(fn)

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        ctx = context if context is not None else get_context()
        bound = signature.bind(*args, **kwargs)
        bound.apply_defaults()

        params: dict[str, TaggedValue] = {}
        for param, value in bound.arguments.items():
            if signature.parameters[param].kind in _OPAQUE_KINDS:
                continue
            tagged = _retag(ctx, value)
            if tagged is not None:
                bound.arguments[param] = tagged
                params[param] = tagged

        with ctx.site(site_name(prefix, ENTER)) as site:
            for param, value in params.items():
                site.bind(param, value)

        result = fn(*bound.args, **bound.kwargs)
        tagged_result = _retag(ctx, result)

        with ctx.site(site_name(prefix, EXIT)) as site:
            for param, value in params.items():
                site.bind(param, value)
            if tagged_result is not None:
                site.bind(RET, tagged_result)

        return tagged_result if tagged_result is not None else result

    return wrapper


def entrypoint(
    fn: F | None = None,
    *,
    name: str | None = None,
    context: Context | None = None,
    file: IO[str] | None = None,
):
    """Decorator for the program's main function.

    Records empty ENTER/EXIT sites (main's arguments are not tracked) and
    writes the report once main returns.
    """
    if fn is None:
        return lambda f: entrypoint(f, name=name, context=context, file=file)

    prefix = name or fn.__name__

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        ctx = context if context is not None else get_context()
        with ctx.site(site_name(prefix, ENTER)):
            pass
        result = fn(*args, **kwargs)
        with ctx.site(site_name(prefix, EXIT)):
            pass
        ctx.report(file)
        return result

    return wrapper


def untracked(fn: F) -> F:
    """Decorator: boundary into code the engine does not control.

    Tagged arguments are unwrapped before the call (their provenance is
    dropped), and a scalar return value re-enters tracking with a fresh tag.
    """

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        ctx = None
        plain_args = []
        for value in args:
            if isinstance(value, TaggedValue):
                ctx = ctx or value.context
                value = value.unwrap()
            plain_args.append(value)
        plain_kwargs = {}
        for key, value in kwargs.items():
            if isinstance(value, TaggedValue):
                ctx = ctx or value.context
                value = value.unwrap()
            plain_kwargs[key] = value

        result = fn(*plain_args, **plain_kwargs)
        if is_scalar(result):
            return (ctx or get_context()).track(result)
        return result

    return wrapper  # type: ignore[return-value]
