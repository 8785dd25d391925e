"""
In-process facade wiring configuration, caches, resolvers and probes together.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Mapping

from .catalog import CatalogCacheStore, CatalogResolver, CatalogResult
from .common import Runner, Which, run_process
from .config import Config
from .detection import extract_version_number
from .errors import ToolNotFound
from .paths import default_storage_dir
from .probe import ECOSYSTEM_NODE, ECOSYSTEM_PYTHON, InstallationProbe, ToolProbeResult
from .render import STATUS_MISSING, STATUS_OK, STATUS_OUTDATED, STATUS_WARNING
from .requirement_cache import RequirementCache
from .resolver import ExecutableHandle, ExecutableResolver, HandleSource, LogicalTool
from .system_checks import PythonCheckResult, SystemChecks
from .upgrade import UpdateInfo, evaluate_update, latest_npm_release, latest_release


logger = logging.getLogger(__name__)


class Toolchain:
    """
    Toolchain discovery facade.

    Args:
        config: Loaded configuration (defaults to built-in defaults)
        runner: Process runner shared by every component
        which: PATH lookup shared by every component
        clock: Epoch-milliseconds clock for the caches
        storage_dir: Catalog cache directory override
        env: Environment used for path lookups
        home: Home directory override for path lookups
        platform: Platform override
    """

    def __init__(
        self,
        config: Config | None = None,
        runner: Runner | None = None,
        which: Which | None = None,
        clock: Callable[[], int] | None = None,
        storage_dir: str | os.PathLike | None = None,
        env: Mapping[str, str] | None = None,
        home: str | None = None,
        platform: str | None = None,
    ):
        self.config = config or Config()
        self.runner = runner or run_process

        self.requirement_cache = RequirementCache(self.config.cache.requirement_ttl_seconds, clock=clock)
        self.resolver = ExecutableResolver(self.config, runner=self.runner, which=which, platform=platform)
        self.installation_probe = InstallationProbe(
            self.config, runner=self.runner, which=which, cache=self.requirement_cache, env=env, home=home
        )

        storage = storage_dir or self.config.cache.storage_dir or default_storage_dir(env, home, platform)
        self.catalog = CatalogResolver(
            self.config,
            executable_resolver=self.resolver,
            runner=self.runner,
            store=CatalogCacheStore(storage),
            clock=clock,
        )
        self.checks = SystemChecks(self.config, runner=self.runner, cache=self.requirement_cache, platform=platform)

    async def resolve_executable(
        self,
        tool: LogicalTool | str,
        working_directory: str | os.PathLike | None = None,
    ) -> ExecutableHandle:
        return await self.resolver.resolve(tool, working_directory)

    async def probe_installation(
        self,
        package: str,
        workspace: str | os.PathLike | None = None,
        ecosystem: str = ECOSYSTEM_PYTHON,
    ) -> ToolProbeResult:
        return await self.installation_probe.probe(package, workspace, ecosystem)

    async def resolve_catalog(self, workspace: str | os.PathLike | None = None) -> CatalogResult:
        return await self.catalog.resolve(workspace)

    def invalidate_catalog(self, workspace: str | os.PathLike | None = None) -> bool:
        return self.catalog.invalidate(workspace)

    def invalidate_requirement_cache(self, kind: str | None = None) -> None:
        """Drop one cached probe kind, or everything when ``kind`` is None."""
        if kind is None:
            self.requirement_cache.invalidate_all()
        else:
            self.requirement_cache.invalidate(kind)

    async def check_python_environment(self) -> PythonCheckResult:
        return await self.checks.check_python_environment()

    async def core_update(self, workspace: str | os.PathLike | None = None) -> UpdateInfo:
        """Installed core package vs the latest PyPI release."""
        installed = await self.probe_installation(self.config.core_package, workspace)
        if not installed.installed:
            return evaluate_update(None, None)
        release = await latest_release(
            self.config.core_package,
            python_commands=self.config.python_commands,
            runner=self.runner,
        )
        return evaluate_update(installed.version, release.stable or release.prerelease or None)

    async def cli_update(self, workspace: str | os.PathLike | None = None) -> UpdateInfo:
        """Installed npm CLI vs the latest npm release."""
        installed = await self.probe_installation(self.config.cli_package, workspace, ECOSYSTEM_NODE)
        if not installed.installed:
            return evaluate_update(None, None)
        release = await latest_npm_release(self.config.cli_package, runner=self.runner)
        return evaluate_update(installed.version, release.stable or None)

    async def _tool_row(self, component: str, tool: LogicalTool, workspace: str | os.PathLike | None) -> dict[str, Any]:
        try:
            handle = await self.resolver.resolve(tool, workspace)
        except ToolNotFound as e:
            return {"component": component, "status": STATUS_MISSING, "version": None, "detail": str(e)}

        result = await self.runner(handle.command("--version"), timeout=self.config.timeouts.probe_seconds)
        version = extract_version_number(result.output) if result.ok else ""
        if handle.source is HandleSource.RUNNER:
            return {"component": component, "status": STATUS_WARNING, "version": version or None,
                    "detail": f"{' '.join(handle.argv)} ({handle.warning})"}
        return {"component": component, "status": STATUS_OK, "version": version or None,
                "detail": handle.path or handle.argv[0]}

    async def _python_row(self) -> dict[str, Any]:
        check = await self.check_python_environment()
        if not check.available:
            return {"component": "python", "status": STATUS_MISSING, "version": None, "detail": check.error}
        version = extract_version_number(check.version or "") or check.version
        if check.error:
            return {"component": "python", "status": STATUS_WARNING, "version": version, "detail": check.error}
        return {"component": "python", "status": STATUS_OK, "version": version, "detail": check.command}

    async def _poetry_row(self, workspace: str | os.PathLike | None) -> dict[str, Any]:
        if not await self.checks.is_poetry_installed():
            return {"component": "poetry", "status": STATUS_MISSING, "version": None, "detail": "poetry not on PATH"}
        version = await self.checks.get_poetry_version()
        detail = ""
        if workspace:
            venv = await self.checks.detect_virtualenv(workspace)
            detail = f"{venv.type}: {venv.path}" if venv.exists else "no virtualenv"
        return {"component": "poetry", "status": STATUS_OK, "version": version, "detail": detail}

    async def _package_row(
        self,
        component: str,
        package: str,
        workspace: str | os.PathLike | None,
        ecosystem: str,
        check_updates: bool,
    ) -> dict[str, Any]:
        result = await self.probe_installation(package, workspace, ecosystem)
        if not result.installed:
            return {"component": component, "status": STATUS_MISSING, "version": None,
                    "detail": f"{package} not installed"}

        kind = result.install_kind.value if result.install_kind else "unknown"
        row = {"component": component, "status": STATUS_OK, "version": result.version,
               "detail": f"{kind} via {result.source_strategy}"}
        if check_updates:
            update = await (self.core_update(workspace) if ecosystem == ECOSYSTEM_PYTHON else self.cli_update(workspace))
            if update.update_available:
                row["status"] = STATUS_OUTDATED
                row["detail"] = f"{row['detail']}, update {update.version_jump_description()}"
        return row

    async def doctor(self, workspace: str | os.PathLike | None = None, check_updates: bool = True) -> list[dict[str, Any]]:
        """Collect one status row per toolchain component.

        Rows are dicts with ``component``, ``status`` (ok, outdated, warning,
        missing), ``version`` and ``detail``.
        """
        rows = await asyncio.gather(
            self._python_row(),
            self._tool_row("pip", LogicalTool.PIP, workspace),
            self._tool_row("pipx", LogicalTool.PIPX, workspace),
            self._poetry_row(workspace),
            self._tool_row("node", LogicalTool.NODE, workspace),
            self._package_row("core package", self.config.core_package, workspace, ECOSYSTEM_PYTHON, check_updates),
            self._package_row("cli package", self.config.cli_package, workspace, ECOSYSTEM_NODE, check_updates),
        )
        return list(rows)
