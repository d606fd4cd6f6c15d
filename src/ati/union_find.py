"""Disjoint sets over externally supplied keys.

Elements are identified by a hashable key. Internally each key maps to a slot
index; `parent[i] == i` iff slot i is a set leader. Find compresses paths,
union attaches the lower-rank root under the higher-rank one.

The same structure serves two roles:
- the Ledger, keyed by tags it allocates itself (make_set), recording which
  runtime values have interacted;
- each Site's local structure, keyed by *leader tags borrowed from the
  Ledger*. A site never mints keys of its own, so plain UnionFind has no
  make_set.
"""

from __future__ import annotations

from typing import Generic, Hashable, Iterator, TypeVar

from ati._tagger import TagAllocator

K = TypeVar("K", bound=Hashable)


class UnionFind(Generic[K]):
    """Union-find with path compression and union by rank."""

    __slots__ = ("_index", "_keys", "_parent", "_rank")

    def __init__(self) -> None:
        self._index: dict[K, int] = {}
        self._keys: list[K] = []  # slot -> key, for reporting
        self._parent: list[int] = []
        self._rank: list[int] = []

    def introduce(self, key: K) -> K:
        """Register key as a singleton set. No-op if already present."""
        if key in self._index:
            return key
        slot = len(self._parent)
        self._index[key] = slot
        self._keys.append(key)
        self._parent.append(slot)
        self._rank.append(0)
        return key

    def find(self, key: K) -> K | None:
        """Leader of key's set, or None if key was never introduced."""
        slot = self._index.get(key)
        if slot is None:
            return None
        return self._keys[self._find_slot(slot)]

    def union(self, a: K, b: K) -> K | None:
        """Merge the sets of a and b. Returns the new leader, or None if either is unknown.

        On equal rank the root of `a` wins, so results are deterministic for
        a fixed operation order.
        """
        slot_a = self._index.get(a)
        slot_b = self._index.get(b)
        if slot_a is None or slot_b is None:
            return None
        return self._keys[self._union_slots(slot_a, slot_b)]

    def same_set(self, a: K, b: K) -> bool:
        leader = self.find(a)
        return leader is not None and leader == self.find(b)

    def groups(self) -> dict[K, list[K]]:
        """Current partition: leader -> members, both in introduction order."""
        result: dict[K, list[K]] = {}
        for slot, key in enumerate(self._keys):
            leader = self._keys[self._find_slot(slot)]
            result.setdefault(leader, []).append(key)
        return result

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._keys))

    def _find_slot(self, slot: int) -> int:
        root = slot
        while self._parent[root] != root:
            root = self._parent[root]
        # Second pass: point every visited slot straight at the root.
        while self._parent[slot] != root:
            self._parent[slot], slot = root, self._parent[slot]
        return root

    def _union_slots(self, x: int, y: int) -> int:
        x_root = self._find_slot(x)
        y_root = self._find_slot(y)
        if x_root == y_root:
            return x_root

        if self._rank[x_root] < self._rank[y_root]:
            self._parent[x_root] = y_root
            return y_root
        if self._rank[x_root] > self._rank[y_root]:
            self._parent[y_root] = x_root
            return x_root
        self._parent[y_root] = x_root
        self._rank[x_root] += 1
        return x_root

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._keys)} keys, {len(self.groups())} sets)"


class Ledger(UnionFind[int]):
    """The global interaction union-find. Owns the tag allocator."""

    __slots__ = ("_allocator",)

    def __init__(self, allocator: TagAllocator | None = None) -> None:
        super().__init__()
        self._allocator = allocator if allocator is not None else TagAllocator()

    def make_set(self) -> int:
        """Allocate a fresh tag and register it as a singleton."""
        return self.introduce(self._allocator.next())
