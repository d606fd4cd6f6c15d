"""Fold notifications.

Every successful update_site() publishes the folded site's name on
`Context.folds`, after the context lock is released. Listeners can read
partitions from inside a callback.

    exits = ctx.folds.filter(lambda name: name.endswith("::EXIT"))
    exits.subscribe(print)

Folds arrive on the instrumented program's threads, so listeners must not
assume the main thread. Derived streams (filter, debounce) are owned by the
stream they came from: disposing the source disposes them too.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Disposer = Callable[[], None]


class EventStream(Generic[T]):
    """A list of listeners plus the streams derived from it."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []
        self._derived: list[EventStream] = []
        self._detach: Disposer | None = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @property
    def derived_count(self) -> int:
        return len(self._derived)

    def emit(self, value: T) -> None:
        if self._disposed:
            return
        # A listener may unsubscribe itself mid-emit.
        for listener in tuple(self._listeners):
            listener(value)

    def subscribe(self, listener: Callable[[T], None]) -> Disposer:
        """Add a listener. The returned disposer may be called any number of times."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def filter(self, predicate: Callable[[T], bool]) -> EventStream[T]:
        """Site names for which predicate holds, e.g. one function's sites."""

        def forward(child: EventStream[T], value: T) -> None:
            if predicate(value):
                child.emit(value)

        return self._derive(forward)

    def debounce(self, seconds: float) -> EventStream[T]:
        """The last fold of each burst, once `seconds` pass without another."""
        pending = _Pending(seconds)
        return self._derive(pending.restart, on_dispose=pending.cancel)

    def dispose(self) -> None:
        """Stop emitting, drop listeners, dispose derived streams and detach from the source."""
        self._disposed = True
        self._listeners.clear()
        for child in tuple(self._derived):
            child.dispose()
        self._derived.clear()
        if self._detach is not None:
            detach, self._detach = self._detach, None
            detach()

    def _derive(
        self,
        forward: Callable[[EventStream[T], T], None],
        *,
        on_dispose: Disposer | None = None,
    ) -> EventStream[T]:
        child: EventStream[T] = EventStream()
        unsubscribe = self.subscribe(lambda value: forward(child, value))
        self._derived.append(child)

        def detach() -> None:
            unsubscribe()
            if child in self._derived:
                self._derived.remove(child)
            if on_dispose is not None:
                on_dispose()

        child._detach = detach
        return child


class _Pending:
    """One delayed emit, restarted by every new event."""

    def __init__(self, seconds: float) -> None:
        self._seconds = seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    def restart(self, target: EventStream, value) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._seconds, target.emit, args=(value,))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
