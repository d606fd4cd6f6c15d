"""Sites: named program locations whose variable bindings are observed.

During a visit, bind() records (variable name, tag) pairs. update() folds
them into a persistent partition of variable names, consulting the ledger to
learn each tag's current global interaction class.

The site's own union-find is keyed by *ledger leader tags*, not raw tags:
two variables share a class at a site only if the values bound to them, on
some visit, belonged to the same global interaction class. Two variables
that merely hold equal values stay apart.

Cross-visit replay: the pending list is cleared after each fold, but with
replay_history enabled the site keeps one ledger tag per (variable, global
class) it has seen and re-resolves those on every fold. Interactions that
happen *after* a visit (e.g. the body of the function whose ENTER site was
just folded) then merge classes on the next visit. Ledger classes only
ever merge, so one tag per class is enough to reproduce a full replay.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from ati.errors import UnregisteredTagError
from ati.tagged import TaggedValue
from ati.union_find import Ledger, UnionFind

logger = logging.getLogger("ati.site")

T = TypeVar("T")


class Site:
    """Accumulated observations and variable partition for one location."""

    __slots__ = ("_name", "_pending", "_history", "_uf", "_vars", "_replay", "_visits")

    def __init__(self, name: str, *, replay_history: bool = True) -> None:
        self._name = name
        self._pending: list[tuple[str, int]] = []
        self._history: dict[str, dict[int, None]] = {}  # var -> ordered set of ledger tags
        self._uf: UnionFind[int] = UnionFind()
        self._vars: dict[str, int] = {}  # var -> representative in self._uf
        self._replay = replay_history
        self._visits = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def visits(self) -> int:
        """Number of successful folds."""
        return self._visits

    @property
    def pending(self) -> list[tuple[str, int]]:
        return list(self._pending)

    @property
    def replay_history(self) -> bool:
        return self._replay

    @property
    def history(self) -> dict[str, list[int]]:
        """Ledger tags kept for replay, per variable. One per global class seen."""
        return {name: list(tags) for name, tags in self._history.items()}

    def bind(self, name: str, value: TaggedValue[T]) -> TaggedValue[T]:
        """Record that `name` holds `value` here. Returns value unchanged."""
        self._pending.append((name, value.tag))
        return value

    def discard(self, observations) -> None:
        """Drop specific pending observations (after a failed fold)."""
        bad = set(observations)
        self._pending = [obs for obs in self._pending if obs not in bad]

    def update(self, ledger: Ledger) -> int:
        """Fold pending observations into the partition. Returns how many were folded.

        All tags are resolved before anything is mutated: an unregistered tag
        raises UnregisteredTagError and leaves the site untouched.
        """
        observations = self._replayed() + self._pending
        resolved: list[tuple[str, int]] = []
        missing: list[tuple[str, int]] = []
        for name, tag in observations:
            leader = ledger.find(tag)
            if leader is None:
                missing.append((name, tag))
            else:
                resolved.append((name, leader))
        if missing:
            raise UnregisteredTagError(self._name, missing)

        for name, leader in resolved:
            local = self._uf.introduce(leader)
            old = self._vars.get(name)
            if old is None:
                self._vars[name] = local
            else:
                self._vars[name] = self._uf.union(old, local)

        if self._replay:
            history: dict[str, dict[int, None]] = {}
            for name, leader in resolved:
                history.setdefault(name, {})[leader] = None
            self._history = history
        self._pending.clear()
        self._visits += 1
        logger.debug("Folded %d observations into %s", len(resolved), self._name)
        return len(resolved)

    def _replayed(self) -> list[tuple[str, int]]:
        return [(name, tag) for name, tags in self._history.items() for tag in tags]

    def partition(self) -> dict[str, int]:
        """Variable name -> current class representative.

        Representatives are only meaningful for equality between variables
        of this site.
        """
        return {name: self._uf.find(rep) for name, rep in self._vars.items()}

    def classes(self) -> list[set[str]]:
        """The partition as a list of variable-name sets."""
        by_rep: dict[int, set[str]] = {}
        for name, rep in self.partition().items():
            by_rep.setdefault(rep, set()).add(name)
        return list(by_rep.values())

    def report(self) -> tuple[str, dict[str, int]]:
        return self._name, self.partition()

    def __repr__(self) -> str:
        return f"Site({self._name!r}, vars={len(self._vars)}, pending={len(self._pending)})"
