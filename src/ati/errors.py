"""Exceptions raised by the tracking engine.

None of these are expected under correct instrumentation. They exist so that
a broken invariant fails loudly instead of silently corrupting a partition.
"""

from __future__ import annotations


class ATIError(Exception):
    """Base class for all engine errors."""


class UnregisteredTagError(ATIError, KeyError):
    """A site tried to fold an observation whose tag the ledger never issued."""

    def __init__(self, site: str, observations: list[tuple[str, int]]) -> None:
        self.site = site
        self.observations = list(observations)
        names = ", ".join(f"{name}:{tag}" for name, tag in self.observations)
        super().__init__(f"unregistered tag(s) at site {site!r}: {names}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return self.args[0]


class SiteCheckedOutError(ATIError, RuntimeError):
    """The calling thread already holds this site (reentrant checkout)."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"site {name!r} is already checked out by this thread")


class SiteNotCheckedOutError(ATIError, RuntimeError):
    """A site was checked in without a matching checkout, or is not the object checked out."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"site {name!r} was not checked out")


class ContextMismatchError(ATIError, ValueError):
    """Two tagged values from different contexts were combined."""


class SiteOwnershipError(ATIError, RuntimeError):
    """A site was checked in from a thread other than the one that checked it out."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"site {name!r} is checked out by another thread")
