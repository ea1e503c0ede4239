"""
Version parsing and comparison for CPAN version strings.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from packaging import version as pkg_version


_DECIMAL_RE = re.compile(r"^(\d+)(?:\.(\d*))?$")
_DOTTED_RE = re.compile(r"^\d+(?:\.\d+)*$")


def normalize_version(value: Optional[object]) -> Optional[str]:
    """Return the version as a string with a single leading ``v`` removed."""
    if value is None:
        return None
    text = str(value).strip()
    if text.startswith("v"):
        text = text[1:]
    return text or None


def _trim(parts: Tuple[int, ...]) -> Tuple[int, ...]:
    parts = tuple(parts)
    while len(parts) > 1 and parts[-1] == 0:
        parts = parts[:-1]
    return parts


def version_key(value: Optional[object]) -> Optional[Tuple[int, ...]]:
    """Build a sortable key for a CPAN version string.

    A leading ``v`` or two or more dots mean a dotted-decimal version
    (``v1.2.3`` -> ``(1, 2, 3)``). Plain decimals split their fraction into
    groups of three digits, so ``1.02`` -> ``(1, 20)`` and ``1.002003`` ->
    ``(1, 2, 3)``. Underscores from trial releases are dropped. Anything else
    falls back to the release tuple of ``packaging.version``; strings that
    cannot be parsed at all return None.
    """
    if value is None:
        return None
    text = str(value).strip()
    dotted = text.startswith("v")
    text = text.lstrip("v").replace("_", "")
    if not text:
        return None

    if dotted or text.count(".") >= 2:
        if _DOTTED_RE.match(text):
            return _trim(tuple(int(part) for part in text.split(".")))
    else:
        match = _DECIMAL_RE.match(text)
        if match:
            integer, fraction = match.groups()
            fraction = fraction or ""
            fraction += "0" * (-len(fraction) % 3)
            groups = [int(fraction[i:i + 3]) for i in range(0, len(fraction), 3)]
            return _trim((int(integer), *groups))

    try:
        return _trim(pkg_version.Version(text).release)
    except pkg_version.InvalidVersion:
        return None


def compare_versions(left: object, right: object) -> int:
    """Three-way compare two version strings.

    Raises ValueError when the versions differ and either cannot be parsed.
    """
    left_key = version_key(left)
    right_key = version_key(right)
    if left_key is None or right_key is None:
        if normalize_version(left) == normalize_version(right):
            return 0
        raise ValueError(f"Cannot compare versions {left!r} and {right!r}")
    return (left_key > right_key) - (left_key < right_key)


def version_satisfied(required: Optional[object], available: Optional[object]) -> bool:
    """Return True when ``available`` is at least ``required``.

    An absent required version is always satisfied.
    """
    if normalize_version(required) is None:
        return True
    if normalize_version(available) is None:
        return False
    try:
        return compare_versions(required, available) <= 0
    except ValueError:
        return False
