"""ATI: dynamic abstract-type inference for instrumented Python programs."""

from importlib.metadata import version as _version

__version__ = _version("dynamic-ati")

from ati.errors import (
    ATIError,
    ContextMismatchError,
    SiteCheckedOutError,
    SiteNotCheckedOutError,
    SiteOwnershipError,
    UnregisteredTagError,
)
from ati.union_find import UnionFind, Ledger
from ati.tagged import TaggedValue
from ati.site import Site
from ati.registry import SiteRegistry
from ati.context import Context
from ati.runtime import get_context, set_context, use_context, track, get_site, update_site, report
from ati.report import format_report, parse_report, same_partition
from ati.instrument import instrument, entrypoint, untracked
from ati.stream import EventStream
# textual NOT auto-imported, opt-in only

__all__ = [
    "ATIError",
    "ContextMismatchError",
    "SiteCheckedOutError",
    "SiteNotCheckedOutError",
    "SiteOwnershipError",
    "UnregisteredTagError",
    "UnionFind",
    "Ledger",
    "TaggedValue",
    "Site",
    "SiteRegistry",
    "Context",
    "get_context",
    "set_context",
    "use_context",
    "track",
    "get_site",
    "update_site",
    "report",
    "format_report",
    "parse_report",
    "same_partition",
    "instrument",
    "entrypoint",
    "untracked",
    "EventStream",
]
