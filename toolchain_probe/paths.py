"""
Filesystem locations used by the probes and caches.

All helpers take an optional ``env`` mapping and ``home`` so tests can point
them at a temporary directory.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from .common import is_windows


APP_DIR_NAME = "toolchain-probe"


def _env(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if env is None else env


def _home(home: str | Path | None) -> Path:
    return Path(home) if home is not None else Path.home()


def default_storage_dir(
    env: Mapping[str, str] | None = None,
    home: str | Path | None = None,
    platform: str | None = None,
) -> Path:
    """Directory holding the catalog cache documents.

    Honors ``TOOLCHAIN_PROBE_STORAGE_DIR``, then ``LOCALAPPDATA`` on Windows or
    ``XDG_CACHE_HOME`` elsewhere, then ``~/.cache``.
    """
    e = _env(env)
    override = e.get("TOOLCHAIN_PROBE_STORAGE_DIR")
    if override:
        return Path(override)

    if is_windows(platform) and e.get("LOCALAPPDATA"):
        return Path(e["LOCALAPPDATA"]) / APP_DIR_NAME

    xdg = e.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return _home(home) / ".cache" / APP_DIR_NAME


def venv_bin_dir(venv: str | Path, platform: str | None = None) -> Path:
    return Path(venv) / ("Scripts" if is_windows(platform) else "bin")


def venv_python(venv: str | Path, platform: str | None = None) -> Path:
    """Interpreter path inside a virtual environment."""
    name = "python.exe" if is_windows(platform) else "python"
    return venv_bin_dir(venv, platform) / name


def pipx_venv_roots(
    env: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> list[Path]:
    """Candidate directories holding pipx-managed virtual environments.

    ``PIPX_HOME`` wins when set; the current default and the pre-1.3 legacy
    location follow.
    """
    e = _env(env)
    h = _home(home)
    roots: list[Path] = []
    if e.get("PIPX_HOME"):
        roots.append(Path(e["PIPX_HOME"]) / "venvs")
    roots.append(h / ".local" / "share" / "pipx" / "venvs")
    roots.append(h / ".local" / "pipx" / "venvs")
    return roots


def pyenv_root(
    env: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> Path:
    e = _env(env)
    if e.get("PYENV_ROOT"):
        return Path(e["PYENV_ROOT"])
    return _home(home) / ".pyenv"


def ancestors(start: str | Path, depth: int) -> list[Path]:
    """Return ``start`` followed by up to ``depth`` parent directories."""
    current = Path(start).absolute()
    chain = [current]
    for _ in range(depth):
        parent = current.parent
        if parent == current:
            break
        chain.append(parent)
        current = parent
    return chain
