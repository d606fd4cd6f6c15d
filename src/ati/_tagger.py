"""Tag allocation: unique, strictly increasing integer identities.

itertools.count is thread-safe (C-level GIL atomic), so concurrent callers
always receive distinct tags even outside the context lock.
"""

import itertools


class TagAllocator:
    """Issues tags starting at 0. Tags are never reused."""

    __slots__ = ("_counter",)

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start)

    def next(self) -> int:
        return next(self._counter)
