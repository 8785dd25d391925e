"""
Release information from package registries (PyPI JSON API, npm registry).

Network helpers are synchronous; async callers run them in a worker thread.
"""

from __future__ import annotations

import json
import logging
import urllib.request
from typing import Any

from . import __version__
from .versions import select_latest


logger = logging.getLogger(__name__)

USER_AGENT = f"toolchain-probe/{__version__}"


class CollectionError(Exception):
    """Raised when release collection fails."""
    pass


class NetworkError(CollectionError):
    """Raised when network requests fail."""
    pass


def http_get(url: str, timeout: float = 5, headers: dict[str, str] | None = None) -> bytes:
    """Perform HTTP GET request.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds
        headers: Optional HTTP headers

    Returns:
        Response body as bytes

    Raises:
        NetworkError: If request fails
    """
    try:
        default_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        if headers:
            default_headers.update(headers)

        req = urllib.request.Request(url, headers=default_headers)
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read()
    except Exception as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e


def _published(files: Any) -> bool:
    # Releases with no files, or only yanked files, do not count
    if not isinstance(files, list) or not files:
        return False
    return not all(isinstance(f, dict) and f.get("yanked") for f in files)


def collect_pypi(package: str, timeout: float = 5) -> tuple[str, str]:
    """Collect latest releases from the PyPI JSON API.

    Args:
        package: Distribution name
        timeout: Timeout in seconds

    Returns:
        Tuple of (latest_stable, latest_prerelease); "" where none was found
    """
    try:
        data = json.loads(http_get(f"https://pypi.org/pypi/{package}/json", timeout=timeout))
    except (CollectionError, json.JSONDecodeError) as e:
        logger.debug(f"PyPI failed for {package}: {e}")
        return "", ""

    if not isinstance(data, dict):
        return "", ""

    releases = data.get("releases")
    if isinstance(releases, dict) and releases:
        published = [v for v, files in releases.items() if _published(files)]
        stable, prerelease = select_latest(published)
    else:
        stable, prerelease = select_latest([(data.get("info") or {}).get("version", "")])

    logger.debug(f"PyPI {package}: stable={stable} prerelease={prerelease}")
    return stable or "", prerelease or ""


def collect_npm(package: str, timeout: float = 5) -> str:
    """Collect the ``latest`` dist-tag from the npm registry.

    Returns:
        Version string or "" if not found
    """
    try:
        data = json.loads(http_get(f"https://registry.npmjs.org/{package}", timeout=timeout))
    except (CollectionError, json.JSONDecodeError) as e:
        logger.debug(f"npm failed for {package}: {e}")
        return ""

    version = (data.get("dist-tags") or {}).get("latest", "") if isinstance(data, dict) else ""
    if version:
        logger.debug(f"npm {package}: {version}")
    return version or ""
