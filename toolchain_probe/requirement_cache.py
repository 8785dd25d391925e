"""
Short-lived memo store for expensive probe results.

Entries are keyed by probe kind ("python", "poetry", "installation:<package>",
or "installation:<package>@<workspace>" for workspace-scoped probes) and
expire lazily on read. Construct one per consumer; there is no module-level
instance.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300

KIND_PYTHON = "python"
KIND_POETRY = "poetry"


def installation_kind(package: str, workspace: str | os.PathLike | None = None) -> str:
    """Cache kind for an installation result; workspace-scoped when a workspace is given."""
    if workspace:
        return f"installation:{package}@{os.path.abspath(os.fspath(workspace))}"
    return f"installation:{package}"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CachedProbe(Generic[T]):
    """A memoized value and the time it was captured (epoch milliseconds)."""
    value: T
    captured_at_ms: int

    def is_valid(self, now_ms: int, ttl_ms: int) -> bool:
        return now_ms - self.captured_at_ms < ttl_ms


class RequirementCache:
    """
    TTL cache for probe results.

    Args:
        ttl_seconds: Lifetime of each entry
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], int] | None = None):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock or _now_ms
        self._entries: dict[str, CachedProbe[Any]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, kind: str) -> Any | None:
        """Return the cached value for ``kind``, or None when absent or expired."""
        entry = self._entries.get(kind)
        if entry is None:
            self._misses += 1
            return None

        if not entry.is_valid(self._clock(), self.ttl_ms):
            del self._entries[kind]
            self._misses += 1
            logger.debug(f"Requirement cache expired: {kind}")
            return None

        self._hits += 1
        return entry.value

    def set(self, kind: str, value: Any) -> None:
        self._entries[kind] = CachedProbe(value=value, captured_at_ms=self._clock())

    def invalidate(self, kind: str) -> None:
        if self._entries.pop(kind, None) is not None:
            logger.debug(f"Requirement cache invalidated: {kind}")

    def invalidate_all(self) -> None:
        self._entries.clear()
        logger.debug("Requirement cache cleared")

    def stats(self) -> dict[str, Any]:
        """Cache statistics for diagnostics.

        Returns:
            Dict with hit/miss counters and, per kind, the entry age in
            milliseconds and whether it is still valid
        """
        now = self._clock()
        return {
            "ttl_ms": self.ttl_ms,
            "hits": self._hits,
            "misses": self._misses,
            "entries": {
                kind: {
                    "age_ms": now - entry.captured_at_ms,
                    "valid": entry.is_valid(now, self.ttl_ms),
                }
                for kind, entry in sorted(self._entries.items())
            },
        }
