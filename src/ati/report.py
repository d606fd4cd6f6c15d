"""Textual report format.

    ===ATI-ANALYSIS-START===
    foo::ENTER
    x:3
    y:4
    ---
    foo::EXIT
    ...

Sites are ordered by name and variables by name, so two runs with the same
partition differ at most in the numeric ids.
"""

from __future__ import annotations

from typing import Iterable, Mapping

ANALYSIS_START = "===ATI-ANALYSIS-START===\n"
SITE_DELIM = "---\n"

Partitions = Mapping[str, Mapping[str, int]]


def format_report(partitions: Partitions) -> str:
    lines = [ANALYSIS_START]
    for site in sorted(partitions):
        lines.append(f"{site}\n")
        mapping = partitions[site]
        for var in sorted(mapping):
            lines.append(f"{var}:{mapping[var]}\n")
        lines.append(SITE_DELIM)
    return "".join(lines)


def parse_report(text: str) -> dict[str, dict[str, int]]:
    """Inverse of format_report. Anything before the start delimiter is ignored.

    Raises ValueError on a duplicate site or a malformed variable line.
    """
    start = text.find(ANALYSIS_START)
    if start < 0:
        raise ValueError("report start delimiter not found")
    body = text[start + len(ANALYSIS_START):]

    result: dict[str, dict[str, int]] = {}
    while True:
        end = body.find(SITE_DELIM)
        if end < 0:
            break
        block = body[:end].split("\n")
        body = body[end + len(SITE_DELIM):]

        site = block[0]
        if site in result:
            raise ValueError(f"duplicate site {site!r} in report")
        mapping: dict[str, int] = {}
        for line in block[1:]:
            if not line:
                continue
            var, sep, rep = line.rpartition(":")
            if not sep or not var:
                raise ValueError(f"malformed line {line!r} in site {site!r}")
            mapping[var] = int(rep)
        result[site] = mapping
    return result


def classes(mapping: Mapping[str, int]) -> set[frozenset[str]]:
    """Group variable names by representative."""
    by_rep: dict[int, set[str]] = {}
    for var, rep in mapping.items():
        by_rep.setdefault(rep, set()).add(var)
    return {frozenset(names) for names in by_rep.values()}


def same_partition(actual: Partitions, expected: Partitions) -> bool:
    """True if both describe the same sites and the same classes at each site.

    Ids are compared only up to relabelling.
    """
    if set(actual) != set(expected):
        return False
    return all(classes(actual[site]) == classes(expected[site]) for site in actual)


def diff_partitions(actual: Partitions, expected: Partitions) -> Iterable[str]:
    """Human-readable differences, for assertion messages."""
    for site in sorted(set(actual) | set(expected)):
        if site not in actual:
            yield f"missing site {site}"
        elif site not in expected:
            yield f"unexpected site {site}"
        else:
            got, want = classes(actual[site]), classes(expected[site])
            if got != want:
                yield f"{site}: got {_fmt(got)}, expected {_fmt(want)}"


def _fmt(groups: set[frozenset[str]]) -> str:
    return " ".join("{" + ",".join(sorted(g)) + "}" for g in sorted(groups, key=sorted))
