"""
Version-text extraction and install-location classification.

The classifier is best-effort: a path that matches none of the known layouts
is reported as ``InstallKind.UNKNOWN`` rather than guessed.
"""

from __future__ import annotations

import enum
import os
import re
from pathlib import PurePath


VERSION_RE = re.compile(r"v?(\d+\.\d+\.\d+(?:rc\d+)?(?:a\d+)?(?:b\d+)?)")
BARE_VERSION_RE = re.compile(r"^v?\d+(?:\.\d+)*\S*$")
PIP_VERSION_RE = re.compile(r"^Version:\s*(\S+)", re.MULTILINE)
PIP_LOCATION_RE = re.compile(r"^Location:\s*(.+)$", re.MULTILINE)
POETRY_VERSION_RE = re.compile(r"^\s*version\s+:\s+(\S+)", re.MULTILINE)
PYTHON_VERSION_RE = re.compile(r"Python\s+(\d+)\.(\d+)(?:\.(\d+))?")
POETRY_TOOL_VERSION_RE = re.compile(r"Poetry\s+\(?version\s+([^\s)]+)\)?", re.IGNORECASE)

# pipx prints these next to packages whose exposed apps are dangling
PIPX_BROKEN_MARKERS = ("symlink missing", "unexpected location")

CONDA_DIR_NAMES = {"conda", "miniconda", "miniconda3", "anaconda", "anaconda3", "miniforge3", "mambaforge"}


class InstallKind(str, enum.Enum):
    GLOBAL = "global"
    PROJECT_LOCAL = "project-local"
    UNKNOWN = "unknown"


def extract_version_number(s: str) -> str:
    """Extract version number from string.

    Args:
        s: String potentially containing version

    Returns:
        Version number (e.g., "1.2.3" or "1.2.3rc1") or empty string
    """
    if not s:
        return ""
    m = VERSION_RE.search(s)
    return m.group(1) if m else ""


def is_bare_version(output: str) -> bool:
    """True when output is nothing but a version numeral (e.g. "0.12.3")."""
    text = (output or "").strip()
    return bool(text) and "\n" not in text and bool(BARE_VERSION_RE.match(text))


def structured_version(output: str, markers: tuple[str, ...]) -> str:
    """Version from ``--version`` output that identifies its package.

    Output must mention one of ``markers`` (case-insensitive) and carry a
    version. A bare numeral, which same-named commands from other ecosystems
    print, yields "".
    """
    if not output or is_bare_version(output):
        return ""

    lowered = output.lower()
    if not any(marker.lower() in lowered for marker in markers):
        return ""

    for line in output.splitlines():
        if any(marker.lower() in line.lower() for marker in markers):
            version = extract_version_number(line)
            if version:
                return version
    return extract_version_number(output)


def parse_pip_show(output: str) -> tuple[str, str]:
    """Return (version, location) from ``pip show`` output; "" for missing fields."""
    if not output:
        return "", ""
    version = PIP_VERSION_RE.search(output)
    location = PIP_LOCATION_RE.search(output)
    return (
        version.group(1) if version else "",
        location.group(1).strip() if location else "",
    )


def parse_poetry_show(output: str) -> str:
    m = POETRY_VERSION_RE.search(output or "")
    return m.group(1) if m else ""


def parse_conda_list(output: str, package: str) -> str:
    """Version column of the row whose first token equals ``package``."""
    for line in (output or "").splitlines():
        if line.startswith("#"):
            continue
        fields = line.split()
        if len(fields) >= 2 and fields[0] == package:
            return fields[1]
    return ""


def pipx_listing(output: str, package: str) -> tuple[bool, bool]:
    """Inspect ``pipx list`` output for a package.

    Returns:
        Tuple of (listed, broken)
    """
    listed = False
    broken = False
    in_package = False
    for raw in (output or "").splitlines():
        line = raw.strip()
        if line.startswith("package "):
            in_package = line.split()[1:2] == [package]
            listed = listed or in_package
        # Markers show up on the package line or on the app lines below it
        if in_package and any(marker in line.lower() for marker in PIPX_BROKEN_MARKERS):
            broken = True
    return listed, broken


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path)).replace("\\", "/")


def detect_install_method(path: str) -> str:
    """Detect how a Python package or interpreter was installed.

    Args:
        path: Interpreter, executable or site-packages path

    Returns:
        Installation method string ("pipx", "uv", "pyenv", "conda", "poetry",
        "venv", "system", "user") or "" when unrecognized
    """
    if not path:
        return ""

    normalized = _normalize(path)
    parts = [p.lower() for p in PurePath(normalized).parts]

    if "pipx" in parts:
        return "pipx"
    if "uv/tools" in normalized.lower():
        return "uv"
    if ".pyenv" in parts:
        return "pyenv"
    if any(p in CONDA_DIR_NAMES for p in parts):
        return "conda"
    if "pypoetry" in parts or "virtualenvs" in parts:
        return "poetry"
    if ".venv" in parts or "venv" in parts:
        return "venv"
    if normalized.startswith(("/usr/", "/bin/", "/opt/homebrew/", "/Library/Frameworks/")):
        return "system"
    if ".local" in parts:
        return "user"
    return ""


_METHOD_KINDS = {
    "pipx": InstallKind.GLOBAL,
    "uv": InstallKind.GLOBAL,
    "pyenv": InstallKind.GLOBAL,
    "conda": InstallKind.GLOBAL,
    "system": InstallKind.GLOBAL,
    "user": InstallKind.GLOBAL,
    "poetry": InstallKind.PROJECT_LOCAL,
    "venv": InstallKind.PROJECT_LOCAL,
}


def classify_install_location(path: str | None, workspace: str | None = None) -> InstallKind:
    """Classify an install location as global or project-local.

    Anything below ``workspace`` is project-local. Otherwise the layout decides:
    pipx/uv/pyenv/conda/system/user-site locations are global, Poetry and plain
    virtualenvs are project-local, and everything else is unknown.
    """
    if not path:
        return InstallKind.UNKNOWN

    if workspace:
        root = _normalize(workspace).rstrip("/")
        target = _normalize(path)
        if target == root or target.startswith(root + "/"):
            return InstallKind.PROJECT_LOCAL

    return _METHOD_KINDS.get(detect_install_method(path), InstallKind.UNKNOWN)
