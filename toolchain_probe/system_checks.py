"""
Python environment and Poetry checks.

Results of the expensive checks are memoized in a :class:`RequirementCache`
under the ``python`` and ``poetry`` kinds.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .common import Runner, run_process
from .config import Config
from .detection import POETRY_TOOL_VERSION_RE, PYTHON_VERSION_RE
from .requirement_cache import KIND_POETRY, KIND_PYTHON, RequirementCache


logger = logging.getLogger(__name__)

DEBIAN_MARKER = "/etc/debian_version"

FIND_SPEC_SCRIPT = 'import importlib.util, sys; print(1 if importlib.util.find_spec(sys.argv[1]) else 0)'


@dataclass(frozen=True)
class PythonCheckResult:
    """
    Outcome of the interpreter check.

    Attributes:
        available: Whether any configured interpreter answered
        version: Full version text (e.g. "Python 3.12.1")
        version_number: (major, minor) tuple
        meets_minimum_version: Interpreter satisfies the configured minimum
        command: Interpreter command that answered
        venv_support: ``-m venv`` is usable
        core_installed: Core package is importable by that interpreter
        error: Problem description
        recommendation: How to fix the problem
    """
    available: bool
    version: str | None = None
    version_number: tuple[int, int] | None = None
    meets_minimum_version: bool = False
    command: str | None = None
    venv_support: bool = False
    core_installed: bool = False
    error: str | None = None
    recommendation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "version": self.version,
            "version_number": list(self.version_number) if self.version_number else None,
            "meets_minimum_version": self.meets_minimum_version,
            "command": self.command,
            "venv_support": self.venv_support,
            "core_installed": self.core_installed,
            "error": self.error,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class VirtualenvInfo:
    """Virtual environment found for a project ("venv", "poetry" or "none")."""
    type: str
    path: str | None = None

    @property
    def exists(self) -> bool:
        return self.type != "none"


def venv_install_recommendation(
    python_version: str,
    platform: str | None = None,
    debian: bool | None = None,
) -> str:
    """Platform-specific instructions for adding venv support."""
    platform = platform or sys.platform

    if platform.startswith("linux"):
        if debian is None:
            debian = os.path.exists(DEBIAN_MARKER)
        if debian:
            return f"Install venv support:\n  sudo apt update\n  sudo apt install python{python_version}-venv"
        return (
            f"Install venv support for Python {python_version}:\n"
            f"  - Debian/Ubuntu: sudo apt install python{python_version}-venv\n"
            f"  - Fedora/RHEL: sudo dnf install python{python_version}"
        )

    if platform == "darwin":
        return f"Python on macOS should include venv. If not:\n  brew install python@{python_version}"

    if platform.startswith("win"):
        return 'Reinstall Python from python.org and ensure the "pip" option is selected during installation'

    return f"Install Python {python_version} with venv support for your operating system"


def _minimum(config: Config) -> tuple[int, int]:
    parts = config.minimum_python.split(".")
    return int(parts[0]), int(parts[1]) if len(parts) > 1 else 0


def has_poetry_config(project: str | os.PathLike) -> bool:
    """Whether the project's pyproject.toml has a ``[tool.poetry]`` table."""
    pyproject = Path(project) / "pyproject.toml"
    try:
        return "[tool.poetry]" in pyproject.read_text(encoding="utf-8")
    except OSError:
        return False


class SystemChecks:
    """
    Interpreter and Poetry checks.

    Args:
        config: Loaded configuration (python commands, minimum version)
        runner: Process runner (defaults to :func:`run_process`)
        cache: Requirement cache for memoized results
        platform: Platform override for recommendations
    """

    def __init__(
        self,
        config: Config | None = None,
        runner: Runner | None = None,
        cache: RequirementCache | None = None,
        platform: str | None = None,
    ):
        self.config = config or Config()
        self.runner = runner or run_process
        self.cache = cache
        self.platform = platform

    async def _run(self, args: list[str], cwd: str | None = None, timeout: float | None = None):
        return await self.runner(args, cwd=cwd, timeout=timeout or self.config.timeouts.probe_seconds)

    async def check_python_environment(self) -> PythonCheckResult:
        """Find a usable interpreter and check venv support and the core package."""
        if self.cache is not None:
            cached = self.cache.get(KIND_PYTHON)
            if cached is not None:
                logger.debug("Using cached Python environment check")
                return cached

        result = await self._check_python()
        if self.cache is not None:
            self.cache.set(KIND_PYTHON, result)
        return result

    async def _check_python(self) -> PythonCheckResult:
        minimum = _minimum(self.config)
        minimum_text = f"{minimum[0]}.{minimum[1]}"

        for command in self.config.python_commands:
            version_result = await self._run([command, "--version"])
            if not version_result.ok:
                continue

            version = version_result.output.strip()
            logger.debug(f"Found Python: {command} -> {version}")

            m = PYTHON_VERSION_RE.search(version)
            number = (int(m.group(1)), int(m.group(2))) if m else None
            meets = number is not None and number >= minimum

            if not meets:
                found = f"{number[0]}.{number[1]}" if number else "unknown version"
                return PythonCheckResult(
                    available=True,
                    version=version,
                    version_number=number,
                    command=command,
                    error=f"Python {found} found, but Python {minimum_text}+ is required",
                    recommendation=f"Please install Python {minimum_text} or higher. Current: {version}",
                )

            python_version = f"{number[0]}.{number[1]}"
            venv_result = await self._run([command, "-m", "venv", "--help"])
            if not venv_result.ok:
                return PythonCheckResult(
                    available=True,
                    version=version,
                    version_number=number,
                    meets_minimum_version=True,
                    command=command,
                    error=f"Python {python_version} is missing venv support",
                    recommendation=venv_install_recommendation(python_version, self.platform),
                )

            spec_result = await self._run([command, "-c", FIND_SPEC_SCRIPT, self.config.core_module])
            return PythonCheckResult(
                available=True,
                version=version,
                version_number=number,
                meets_minimum_version=True,
                command=command,
                venv_support=True,
                core_installed=spec_result.ok and spec_result.stdout.strip() == "1",
            )

        return PythonCheckResult(
            available=False,
            error="Python not found",
            recommendation=(
                f"Install Python {minimum_text}+ from https://www.python.org/downloads/ "
                "or your package manager"
            ),
        )

    async def is_poetry_installed(self) -> bool:
        if self.cache is not None:
            cached = self.cache.get(KIND_POETRY)
            if cached is not None:
                return cached

        result = await self._run(["poetry", "--version"])
        installed = result.ok
        if self.cache is not None:
            self.cache.set(KIND_POETRY, installed)
        return installed

    async def get_poetry_version(self) -> str | None:
        """Poetry version from ``Poetry (version X)``, raw output if it differs, None if absent."""
        result = await self._run(["poetry", "--version"])
        if not result.ok:
            return None
        m = POETRY_TOOL_VERSION_RE.search(result.stdout)
        return m.group(1) if m else (result.stdout.strip() or None)

    async def poetry_virtualenv(self, project: str | os.PathLike) -> str | None:
        """Path of the Poetry-managed virtualenv for a project, if it exists."""
        if not os.path.isdir(project):
            return None
        result = await self._run(["poetry", "env", "info", "--path"], cwd=os.fspath(project), timeout=5)
        path = result.stdout.strip() if result.ok else ""
        if path and os.path.exists(path):
            logger.debug(f"Poetry virtualenv detected: {path}")
            return path
        return None

    async def detect_virtualenv(self, project: str | os.PathLike) -> VirtualenvInfo:
        """Project ``.venv`` first, then the Poetry-managed environment."""
        venv = Path(project) / ".venv"
        if venv.exists():
            logger.debug(f"Standard .venv detected: {venv}")
            return VirtualenvInfo("venv", str(venv))

        poetry_venv = await self.poetry_virtualenv(project)
        if poetry_venv:
            return VirtualenvInfo("poetry", poetry_venv)

        return VirtualenvInfo("none")
