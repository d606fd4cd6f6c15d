"""Site registry: every Site, keyed by name, with exclusive checkout.

A checked-out Site is removed from the registry until it is checked back
in, so the holder can bind() without any lock. The registry itself is not
synchronized: Context serializes all access to it.
"""

from __future__ import annotations

import logging
import threading

from ati.errors import SiteCheckedOutError, SiteNotCheckedOutError, SiteOwnershipError
from ati.site import Site

logger = logging.getLogger("ati.registry")


class SiteRegistry:
    """Owns all sites. Creates a site on first reference to its name.

    A checkout belongs to one Site object and one thread. Only that object,
    checked in from that thread, is accepted back; anything else would
    replace the accumulated partition with a stranger's.
    """

    def __init__(self, *, replay_history: bool = True) -> None:
        self._sites: dict[str, Site] = {}
        self._owners: dict[str, tuple[int, Site]] = {}  # name -> (thread ident, checked-out site)
        self._replay = replay_history

    def checkout(self, name: str) -> Site:
        """Remove and return the site for `name`, creating it if absent."""
        if name in self._owners:
            raise SiteCheckedOutError(name)
        site = self._sites.pop(name, None)
        if site is None:
            site = Site(name, replay_history=self._replay)
            logger.debug("Created site %s", name)
        self._owners[name] = (threading.get_ident(), site)
        return site

    def verify(self, site: Site) -> None:
        """Raise unless `site` is the object the calling thread checked out."""
        entry = self._owners.get(site.name)
        if entry is None or entry[1] is not site:
            raise SiteNotCheckedOutError(site.name)
        if entry[0] != threading.get_ident():
            raise SiteOwnershipError(site.name)

    def checkin(self, site: Site) -> None:
        self.verify(site)
        del self._owners[site.name]
        self._sites[site.name] = site

    def is_checked_out(self, name: str) -> bool:
        return name in self._owners

    def owner(self, name: str) -> int | None:
        """Thread ident holding `name`, or None."""
        entry = self._owners.get(name)
        return entry[0] if entry is not None else None

    def report_all(self) -> dict[str, dict[str, int]]:
        """Report of every registered site. Checked-out sites are skipped."""
        return dict(site.report() for _, site in sorted(self._sites.items()))

    def __contains__(self, name: object) -> bool:
        return name in self._sites

    def __len__(self) -> int:
        return len(self._sites)

    def __getitem__(self, name: str) -> Site:
        return self._sites[name]
