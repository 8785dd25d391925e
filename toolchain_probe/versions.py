"""
Version parsing and comparison.

Accepts ``MAJOR.MINOR.PATCH`` with an optional prerelease tag such as ``rc1``,
``a2`` or ``b3``. Anything else is "unknown" and never wins a comparison.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from packaging.version import InvalidVersion, Version


# Optional "-" or "." before the tag is tolerated ("1.0.0-rc1", "1.0.0.rc1")
_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:[-.]?([A-Za-z]+)(\d*))?$")


@dataclass(frozen=True)
class ParsedVersion:
    """
    Parsed version triple with optional prerelease tag.

    Attributes:
        major: Major version
        minor: Minor version
        patch: Patch version
        prerelease: Prerelease tag including numeric suffix (e.g. "rc1"), or None
    """
    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    @property
    def release(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}{self.prerelease or ''}"


def parse_version(raw: str | None) -> ParsedVersion | None:
    """Parse a version string.

    Args:
        raw: Version string, optionally prefixed with a single "v" or "V"

    Returns:
        ParsedVersion, or None if the input does not match exactly
    """
    if not raw or not isinstance(raw, str):
        return None

    text = raw.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]

    m = _VERSION_RE.match(text)
    if not m:
        return None

    major, minor, patch, tag, number = m.groups()
    prerelease = f"{tag}{number}" if tag else None
    return ParsedVersion(int(major), int(minor), int(patch), prerelease)


def _prerelease_newer(current: ParsedVersion, candidate: ParsedVersion) -> bool:
    # Both sides are prereleases of the same triple; defer to PEP 440 ordering
    try:
        return Version(str(candidate)) > Version(str(current))
    except InvalidVersion:
        return False


def is_newer(current: str | None, candidate: str | None) -> bool:
    """Check whether ``candidate`` is a newer version than ``current``.

    A stable release beats a prerelease of the same triple; a prerelease never
    beats the stable release of its triple. Unparsable input on either side
    returns False.
    """
    cur = parse_version(current)
    cand = parse_version(candidate)
    if cur is None or cand is None:
        return False

    if cand.release != cur.release:
        return cand.release > cur.release

    if not cand.is_prerelease:
        return cur.is_prerelease
    if not cur.is_prerelease:
        return False

    return _prerelease_newer(cur, cand)


def compare_versions(v1: str | None, v2: str | None) -> int | None:
    """
    Compare two version strings.

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2, None if either is unknown
        or the two prerelease tags cannot be ordered
    """
    p1 = parse_version(v1)
    p2 = parse_version(v2)
    if p1 is None or p2 is None:
        return None

    if is_newer(v1, v2):
        return -1
    if is_newer(v2, v1):
        return 1
    if p1 == p2:
        return 0
    return None


def select_latest(versions: Iterable[str]) -> tuple[str | None, str | None]:
    """Pick the newest stable and newest prerelease from published versions.

    Unparsable entries are ignored.

    Returns:
        Tuple of (latest_stable, latest_prerelease)
    """
    stable: str | None = None
    prerelease: str | None = None

    for raw in versions:
        parsed = parse_version(raw)
        if parsed is None:
            continue
        if parsed.is_prerelease:
            if prerelease is None or is_newer(prerelease, raw):
                prerelease = raw
        elif stable is None or is_newer(stable, raw):
            stable = raw

    return stable, prerelease
