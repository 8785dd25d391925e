"""
Exception hierarchy for toolchain_probe.

Only resolution exhaustion and programmer errors surface as exceptions.
Individual process or filesystem failures are converted to "no answer" at the
lowest level and never cross component boundaries.
"""


class ToolchainProbeError(Exception):
    """Base class for toolchain_probe errors."""
    pass


class ToolNotFound(ToolchainProbeError):
    """Raised when every resolution step for a logical tool failed."""

    def __init__(self, tool: str, attempts: tuple[str, ...] = ()):
        self.tool = tool
        self.attempts = attempts
        detail = f" (tried: {', '.join(attempts)})" if attempts else ""
        super().__init__(f"No executable found for {tool}{detail}")


class CatalogUnavailable(ToolchainProbeError):
    """Raised when no catalog tier, including the static fallback, produced entries."""
    pass


class CacheCorrupt(ToolchainProbeError):
    """Raised when an on-disk catalog document fails to parse or validate."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt catalog cache {path}: {reason}")
