"""
Upgrade detection for the core Python package and the npm CLI.

Latest releases come from the package tools first (``pip index versions``,
``npm view``) and from the registries' JSON APIs when those tools are missing.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass

from .collectors import collect_npm, collect_pypi
from .common import Runner, run_process
from .versions import is_newer, parse_version, select_latest


logger = logging.getLogger(__name__)

STATUS_UP_TO_DATE = "up-to-date"
STATUS_UPDATE_AVAILABLE = "update-available"
STATUS_NOT_INSTALLED = "not-installed"
STATUS_UNKNOWN = "unknown"

AVAILABLE_VERSIONS_RE = re.compile(r"^Available versions:\s*(.+)$", re.MULTILINE)


@dataclass(frozen=True)
class ReleaseInfo:
    """
    Latest published releases of a package.

    Attributes:
        stable: Newest stable release ("" if none)
        prerelease: Newest prerelease ("" if none)
        source: Where the answer came from ("pip-index", "pypi", "npm-view", "npm-registry")
    """
    stable: str = ""
    prerelease: str = ""
    source: str = ""


@dataclass(frozen=True)
class UpdateInfo:
    """
    Installed vs latest comparison.

    Attributes:
        installed: Installed version, None when not installed
        latest: Latest known release, None when unknown
        status: One of up-to-date, update-available, not-installed, unknown
    """
    installed: str | None
    latest: str | None
    status: str

    @property
    def update_available(self) -> bool:
        return self.status == STATUS_UPDATE_AVAILABLE

    @property
    def breaking_change(self) -> bool:
        """Whether the available update is a major version bump."""
        if not self.update_available:
            return False
        current = parse_version(self.installed)
        target = parse_version(self.latest)
        return bool(current and target and target.major > current.major)

    def version_jump_description(self) -> str:
        """Human-readable version jump description."""
        if not self.update_available:
            return self.installed or ""
        if self.breaking_change:
            return f"{self.installed} → {self.latest} (BREAKING)"
        return f"{self.installed} → {self.latest}"

    def to_dict(self) -> dict[str, object]:
        return {
            "installed": self.installed,
            "latest": self.latest,
            "status": self.status,
            "breaking_change": self.breaking_change,
        }


def evaluate_update(installed: str | None, latest: str | None) -> UpdateInfo:
    """Compare an installed version with the latest release."""
    if not installed:
        return UpdateInfo(None, latest, STATUS_NOT_INSTALLED)
    if not latest or parse_version(installed) is None or parse_version(latest) is None:
        return UpdateInfo(installed, latest, STATUS_UNKNOWN)
    if is_newer(installed, latest):
        return UpdateInfo(installed, latest, STATUS_UPDATE_AVAILABLE)
    return UpdateInfo(installed, latest, STATUS_UP_TO_DATE)


def parse_pip_index(output: str, package: str) -> tuple[str, str]:
    """Parse ``pip index versions --pre`` output into (stable, prerelease)."""
    m = AVAILABLE_VERSIONS_RE.search(output or "")
    if m:
        versions = [v.strip() for v in m.group(1).split(",") if v.strip()]
        stable, prerelease = select_latest(versions)
        return stable or "", prerelease or ""

    m = re.search(rf"{re.escape(package)}\s+\(([^)]+)\)", output or "", re.IGNORECASE)
    if not m:
        return "", ""
    latest = m.group(1).strip()
    parsed = parse_version(latest)
    if parsed is None:
        return "", ""
    return ("", latest) if parsed.is_prerelease else (latest, "")


async def latest_release(
    package: str,
    python_commands: tuple[str, ...] = ("python3", "python"),
    runner: Runner | None = None,
    timeout: float = 10,
) -> ReleaseInfo:
    """Latest stable and prerelease of a PyPI package."""
    run = runner or run_process
    for python in python_commands:
        result = await run([python, "-m", "pip", "index", "versions", package, "--pre"], timeout=timeout)
        if not result.ok:
            continue
        stable, prerelease = parse_pip_index(result.stdout, package)
        if stable or prerelease:
            return ReleaseInfo(stable, prerelease, "pip-index")

    stable, prerelease = await asyncio.to_thread(collect_pypi, package, timeout)
    if stable or prerelease:
        return ReleaseInfo(stable, prerelease, "pypi")

    logger.debug(f"No release information for {package}")
    return ReleaseInfo()


async def latest_npm_release(
    package: str,
    runner: Runner | None = None,
    timeout: float = 10,
) -> ReleaseInfo:
    """Latest ``latest``-tagged release of an npm package."""
    run = runner or run_process
    result = await run(["npm", "view", package, "version"], timeout=timeout)
    if result.ok:
        version = result.stdout.strip().splitlines()[-1].strip() if result.stdout.strip() else ""
        if parse_version(version):
            return ReleaseInfo(stable=version, source="npm-view")

    version = await asyncio.to_thread(collect_npm, package, timeout)
    if version:
        return ReleaseInfo(stable=version, source="npm-registry")

    logger.debug(f"No release information for npm package {package}")
    return ReleaseInfo()
