"""
Executable resolution for logical tools.

Given a logical tool and a working directory, pick the concrete command line to
run, in a fixed priority order:

1. Project-local binary in the working directory or one of its ancestors
2. Global command on PATH answering ``--version``
3. Package-runner indirection (``npx``, ``pipx run``), flagged with a warning

Nothing is cached at this layer.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from .common import Runner, Which, is_windows, run_process
from .config import Config
from .errors import ToolNotFound
from .paths import ancestors


logger = logging.getLogger(__name__)

RUNNER_WARNING = "may differ from project version"


class LogicalTool(str, enum.Enum):
    CLI = "cli"
    CORE = "core"
    PYTHON = "python"
    PIP = "pip"
    PIPX = "pipx"
    POETRY = "poetry"
    NODE = "node"
    NPM = "npm"


class HandleSource(str, enum.Enum):
    PROJECT_LOCAL = "project-local"
    GLOBAL = "global"
    RUNNER = "runner"


@dataclass(frozen=True)
class ToolSpec:
    """
    How to find one logical tool.

    Attributes:
        tool: Logical tool identifier
        posix_paths: Project-local relative paths on POSIX systems
        windows_paths: Project-local relative paths on Windows
        global_commands: Commands looked up on PATH, tried in order
        runner: Package-runner command line, or empty when none exists
    """
    tool: LogicalTool
    posix_paths: tuple[str, ...] = ()
    windows_paths: tuple[str, ...] = ()
    global_commands: tuple[str, ...] = ()
    runner: tuple[str, ...] = ()

    def local_paths(self, platform: str | None = None) -> tuple[str, ...]:
        return self.windows_paths if is_windows(platform) else self.posix_paths


@dataclass(frozen=True)
class ExecutableHandle:
    """
    A concrete way to invoke a logical tool.

    Attributes:
        tool: Logical tool the handle was resolved for
        argv: Command prefix; arguments are appended by :meth:`command`
        source: Which resolution step produced the handle
        path: Filesystem evidence for project-local handles
        warning: Caveat for runner handles
    """
    tool: LogicalTool
    argv: tuple[str, ...]
    source: HandleSource
    path: str | None = None
    warning: str | None = None

    def command(self, *args: str) -> list[str]:
        return [*self.argv, *args]

    def to_dict(self) -> dict[str, object]:
        return {
            "tool": self.tool.value,
            "argv": list(self.argv),
            "source": self.source.value,
            "path": self.path,
            "warning": self.warning,
        }


def _venv_scripts(name: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    posix = (f".venv/bin/{name}",)
    windows = (
        f".venv\\Scripts\\{name}.exe",
        f".venv\\Scripts\\{name}.cmd",
        f".venv\\Scripts\\{name}",
    )
    return posix, windows


def build_tool_specs(config: Config) -> dict[LogicalTool, ToolSpec]:
    """Registry of logical tools for a configuration."""
    cli = config.cli_package
    cli_posix, cli_windows = _venv_scripts(cli)
    py_posix, py_windows = _venv_scripts("python")
    pip_posix, pip_windows = _venv_scripts("pip")
    poetry_posix, poetry_windows = _venv_scripts("poetry")

    specs = [
        ToolSpec(
            LogicalTool.CLI,
            posix_paths=(f".rapidkit/bin/{cli}", *cli_posix),
            windows_paths=(f".rapidkit\\bin\\{cli}.cmd", *cli_windows),
            global_commands=(cli,),
            runner=("npx", "--yes", cli),
        ),
        ToolSpec(
            LogicalTool.CORE,
            posix_paths=cli_posix,
            windows_paths=cli_windows,
            global_commands=(cli,),
            runner=("pipx", "run", "--spec", config.core_package, cli),
        ),
        ToolSpec(
            LogicalTool.PYTHON,
            posix_paths=py_posix,
            windows_paths=py_windows,
            global_commands=config.python_commands,
        ),
        ToolSpec(
            LogicalTool.PIP,
            posix_paths=pip_posix,
            windows_paths=pip_windows,
            global_commands=("pip3", "pip"),
        ),
        ToolSpec(LogicalTool.PIPX, global_commands=("pipx",)),
        ToolSpec(
            LogicalTool.POETRY,
            posix_paths=poetry_posix,
            windows_paths=poetry_windows,
            global_commands=("poetry",),
            runner=("pipx", "run", "poetry"),
        ),
        ToolSpec(LogicalTool.NODE, global_commands=("node",)),
        ToolSpec(LogicalTool.NPM, global_commands=("npm",)),
    ]
    return {spec.tool: spec for spec in specs}


class ExecutableResolver:
    """
    Resolve logical tools to executable handles.

    Args:
        config: Loaded configuration (ancestor depth, timeouts, package names)
        runner: Process runner (defaults to :func:`run_process`)
        which: PATH lookup (defaults to ``shutil.which``)
        platform: Platform override for path layouts
    """

    def __init__(
        self,
        config: Config | None = None,
        runner: Runner | None = None,
        which: Which | None = None,
        platform: str | None = None,
    ):
        self.config = config or Config()
        self.runner = runner or run_process
        self.which = which or shutil.which
        self.platform = platform
        self.specs = build_tool_specs(self.config)

    def spec_for(self, tool: LogicalTool | str) -> ToolSpec:
        """Look up a tool spec; unknown names raise ValueError."""
        return self.specs[LogicalTool(tool)]

    def _project_local(self, spec: ToolSpec, working_directory: str | os.PathLike | None) -> ExecutableHandle | None:
        if working_directory is None:
            return None
        for directory in ancestors(working_directory, self.config.ancestor_depth):
            for relative in spec.local_paths(self.platform):
                candidate = directory / Path(*relative.replace("\\", "/").split("/"))
                if candidate.exists():
                    logger.debug(f"{spec.tool.value}: project-local binary {candidate}")
                    return ExecutableHandle(
                        spec.tool, (str(candidate),), HandleSource.PROJECT_LOCAL, path=str(candidate)
                    )
        return None

    async def _global(self, spec: ToolSpec, working_directory: str | os.PathLike | None) -> ExecutableHandle | None:
        cwd = str(working_directory) if working_directory and os.path.isdir(working_directory) else None
        for command in spec.global_commands:
            result = await self.runner(
                [command, "--version"],
                cwd=cwd,
                timeout=self.config.timeouts.resolve_seconds,
            )
            if result.ok:
                logger.debug(f"{spec.tool.value}: global command {command}")
                return ExecutableHandle(spec.tool, (command,), HandleSource.GLOBAL)
            logger.debug(f"{spec.tool.value}: {command} --version failed ({result.error or result.returncode})")
        return None

    def _package_runner(self, spec: ToolSpec) -> ExecutableHandle | None:
        if not spec.runner or not self.which(spec.runner[0]):
            return None
        logger.debug(f"{spec.tool.value}: falling back to {' '.join(spec.runner)}")
        return ExecutableHandle(spec.tool, spec.runner, HandleSource.RUNNER, warning=RUNNER_WARNING)

    async def resolve(
        self,
        tool: LogicalTool | str,
        working_directory: str | os.PathLike | None = None,
    ) -> ExecutableHandle:
        """Resolve a logical tool for a working directory.

        Raises:
            ValueError: Unknown logical tool
            ToolNotFound: No resolution step produced a handle
        """
        spec = self.spec_for(tool)

        handle = self._project_local(spec, working_directory)
        if handle is None:
            handle = await self._global(spec, working_directory)
        if handle is None:
            handle = self._package_runner(spec)
        if handle is None:
            attempts = [*spec.local_paths(self.platform), *spec.global_commands]
            if spec.runner:
                attempts.append(" ".join(spec.runner))
            raise ToolNotFound(spec.tool.value, tuple(attempts))
        return handle
