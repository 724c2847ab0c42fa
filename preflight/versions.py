"""Dotted version parsing and comparison.

Versions are compared component by component as integers, so "5.10.0" sorts
after "5.3.4". Missing components count as zero and anything after the
numeric prefix (e.g. "-4ubuntu2" or "RC1") is ignored.
"""

import re
from typing import Optional

_VERSION_RE = re.compile(r"\s*v?(\d+(?:\.\d+)*)")


def parse_version(version: Optional[str]) -> Optional[tuple[int, ...]]:
    """Parse a version string to a tuple of integers, or None if unparsable."""
    if not version:
        return None

    match = _VERSION_RE.match(str(version))
    if not match:
        return None

    return tuple(int(part) for part in match.group(1).split("."))


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is lower than, equal to or higher than ``right``.

    Raises:
        ValueError: If either version cannot be parsed
    """
    left_tuple = parse_version(left)
    right_tuple = parse_version(right)

    if left_tuple is None or right_tuple is None:
        raise ValueError(f"Cannot compare versions {left!r} and {right!r}")

    # Pad tuples to same length
    max_len = max(len(left_tuple), len(right_tuple))
    lv = left_tuple + (0,) * (max_len - len(left_tuple))
    rv = right_tuple + (0,) * (max_len - len(right_tuple))

    return (lv > rv) - (lv < rv)


def version_at_least(version: Optional[str], minimum: str) -> bool:
    """Check that ``version`` is equal to or higher than ``minimum``.

    An unparsable or missing version never satisfies a minimum.
    """
    try:
        return compare_versions(version, minimum) >= 0
    except ValueError:
        return False


def version_above(version: Optional[str], minimum: str) -> bool:
    """Check that ``version`` is strictly higher than ``minimum``."""
    try:
        return compare_versions(version, minimum) > 0
    except ValueError:
        return False
