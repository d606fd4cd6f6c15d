"""Context: the ledger and site registry behind one lock.

This is the only mutation boundary for shared engine state. TaggedValues are
immutable, and a Site is privately owned between get_site() and
update_site(), so everything else needs no synchronization.

Thread safety: one Condition (over an RLock) guards the ledger and the
registry. Every critical section is short. The one wait is in get_site():
a thread asking for a site another thread has checked out waits for the
checkin, which serializes concurrent visits to the same location.
"""

from __future__ import annotations

import logging
import sys
import threading
from contextlib import contextmanager
from typing import IO, Iterator, TypeVar

from ati.errors import SiteCheckedOutError, UnregisteredTagError
from ati.registry import SiteRegistry
from ati.report import format_report
from ati.site import Site
from ati.stream import EventStream
from ati.tagged import TaggedValue
from ati.union_find import Ledger

logger = logging.getLogger("ati.context")

T = TypeVar("T")

# on_unregistered policies
RAISE = "raise"
DROP = "drop"


def _tag_of(value: TaggedValue | int) -> int:
    return value.tag if isinstance(value, TaggedValue) else value


class Context:
    """Owns the global interaction ledger and every Site.

    Options:
        replay_history: re-resolve each variable's past global classes on
            every fold (see ati.site). Disable to keep only the
            variable -> representative map between visits.
        on_unregistered: "raise" propagates UnregisteredTagError from a fold;
            "drop" logs a warning and folds the remaining observations.
    """

    def __init__(self, *, replay_history: bool = True, on_unregistered: str = RAISE) -> None:
        if on_unregistered not in (RAISE, DROP):
            raise ValueError(
                f"on_unregistered must be {RAISE!r} or {DROP!r}, got {on_unregistered!r}"
            )
        self._on_unregistered = on_unregistered
        self._ledger = Ledger()
        self._registry = SiteRegistry(replay_history=replay_history)
        self._cond = threading.Condition(threading.RLock())
        self.folds: EventStream[str] = EventStream()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def registry(self) -> SiteRegistry:
        return self._registry

    # --- Values ---

    def track(self, value: T) -> TaggedValue[T]:
        """Pair value with a fresh ledger tag."""
        with self._cond:
            tag = self._ledger.make_set()
        return TaggedValue(value, tag, self)

    def union_tags(self, a: TaggedValue | int, b: TaggedValue | int) -> int | None:
        """Record that a and b interacted. Returns the merged class leader."""
        with self._cond:
            return self._ledger.union(_tag_of(a), _tag_of(b))

    def find(self, value: TaggedValue | int) -> int | None:
        with self._cond:
            return self._ledger.find(_tag_of(value))

    def same_class(self, a: TaggedValue | int, b: TaggedValue | int) -> bool:
        """Have a and b ever interacted, directly or transitively?"""
        with self._cond:
            return self._ledger.same_set(_tag_of(a), _tag_of(b))

    # --- Sites ---

    def get_site(self, name: str) -> Site:
        """Check out the site for `name`, creating it on first use.

        Waits while another thread holds it. Raises SiteCheckedOutError if
        the calling thread already holds it.
        """
        me = threading.get_ident()
        with self._cond:
            while self._registry.is_checked_out(name):
                if self._registry.owner(name) == me:
                    raise SiteCheckedOutError(name)
                self._cond.wait()
            logger.debug("Checked out %s", name)
            return self._registry.checkout(name)

    def update_site(self, site: Site) -> int:
        """Fold the site's observations and check it back in.

        Returns the number of observations folded. The site is checked in
        even when the fold raises; a failed fold leaves it untouched.

        Only the Site object returned by get_site(), passed back from the
        thread that checked it out, is accepted. Anything else raises
        SiteNotCheckedOutError or SiteOwnershipError before any folding, and
        the checkout stays with its holder.
        """
        with self._cond:
            self._registry.verify(site)
            try:
                folded = self._fold(site)
            finally:
                self._registry.checkin(site)
                self._cond.notify_all()
        self.folds.emit(site.name)
        return folded

    def _fold(self, site: Site) -> int:
        try:
            return site.update(self._ledger)
        except UnregisteredTagError as exc:
            if self._on_unregistered == RAISE:
                raise
            logger.warning(
                "Dropping %d unregistered observation(s) at %s: %s",
                len(exc.observations), site.name, exc.observations,
            )
            site.discard(exc.observations)
            return site.update(self._ledger)

    @contextmanager
    def site(self, name: str) -> Iterator[Site]:
        """Check out a site for the duration of the block, then fold it.

        Usage:
            with ctx.site("f::ENTER") as s:
                s.bind("x", x)
        """
        site = self.get_site(name)
        try:
            yield site
        finally:
            self.update_site(site)

    # --- Reporting ---

    def partitions(self) -> dict[str, dict[str, int]]:
        """Partition of every site not currently checked out."""
        with self._cond:
            return self._registry.report_all()

    def report(self, file: IO[str] | None = None) -> str:
        """Write the textual report (stdout by default) and return it."""
        partitions = self.partitions()
        text = format_report(partitions)
        out = file if file is not None else sys.stdout
        out.write(text)
        out.flush()
        logger.info("Reported %d sites", len(partitions))
        return text

    def __repr__(self) -> str:
        return f"Context(tags={len(self._ledger)}, sites={len(self._registry)})"
