"""
Installation probing for Python and npm packages.

Each package ecosystem has a fixed, ordered list of detection strategies. A
single driver loop runs them one at a time; the first strategy that returns a
result wins. Strategies never raise: a failing process, a timeout or output
that cannot be verified all mean "no answer", and the next strategy runs.

Strategies that cannot tell a global install from a project-local one return
``InstallKind.UNKNOWN``; the driver settles those through the global tool
registries (pipx, uv) and then the path classifier.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Sequence

from .common import ProcessResult, Runner, Which, run_process
from .config import Config
from .detection import (
    InstallKind,
    classify_install_location,
    parse_conda_list,
    parse_pip_show,
    parse_poetry_show,
    pipx_listing,
    structured_version,
)
from .paths import pipx_venv_roots, pyenv_root, venv_python
from .requirement_cache import RequirementCache, installation_kind


logger = logging.getLogger(__name__)

ECOSYSTEM_PYTHON = "python"
ECOSYSTEM_NODE = "node"

INCONCLUSIVE = "inconclusive"

# Prints the module version (falling back to distribution metadata) and file
IMPORT_SCRIPT = """\
import importlib, sys
dist, name = sys.argv[1], sys.argv[2]
try:
    module = importlib.import_module(name)
except Exception:
    sys.exit(1)
version = getattr(module, "__version__", None)
if not version:
    try:
        from importlib.metadata import version as dist_version
        version = dist_version(dist)
    except Exception:
        sys.exit(1)
print(version)
print(getattr(module, "__file__", "") or "")
"""


@dataclass(frozen=True)
class ToolProbeResult:
    """
    Outcome of one installation probe.

    Attributes:
        installed: Whether the package was found
        version: Raw version string as reported
        install_kind: Global or project-local (None when not installed)
        source_strategy: Strategy that produced the answer
        location: Path evidence, diagnostics only
    """
    installed: bool
    version: str | None = None
    install_kind: InstallKind | None = None
    source_strategy: str = ""
    location: str | None = None

    def __post_init__(self):
        if not self.installed and (self.version or self.install_kind or self.location):
            raise ValueError("A not-installed result cannot carry version, install kind or location")

    @classmethod
    def not_installed(cls, source_strategy: str = INCONCLUSIVE) -> ToolProbeResult:
        return cls(installed=False, source_strategy=source_strategy)

    def to_dict(self) -> dict[str, Any]:
        return {
            "installed": self.installed,
            "version": self.version,
            "install_kind": self.install_kind.value if self.install_kind else None,
            "source_strategy": self.source_strategy,
            "location": self.location,
        }


@dataclass(frozen=True)
class PackageSpec:
    """
    What to look for when probing a package.

    Attributes:
        name: Distribution (PyPI or npm) name
        module: Python import name
        command: Console command the package exposes
        markers: Substrings that identify the package in ``--version`` output
        ecosystem: "python" or "node"
    """
    name: str
    module: str
    command: str
    markers: tuple[str, ...]
    ecosystem: str = ECOSYSTEM_PYTHON


def package_spec(name: str, config: Config, ecosystem: str = ECOSYSTEM_PYTHON) -> PackageSpec:
    """Build the probe description for a package name."""
    if not name or not name.strip():
        raise ValueError("package name must not be empty")
    if ecosystem not in (ECOSYSTEM_PYTHON, ECOSYSTEM_NODE):
        raise ValueError(f"Unknown ecosystem: {ecosystem}")

    name = name.strip()
    if ecosystem == ECOSYSTEM_NODE:
        return PackageSpec(name, module="", command=name, markers=(name,), ecosystem=ECOSYSTEM_NODE)

    if name == config.core_package:
        return PackageSpec(
            name,
            module=config.core_module,
            command=config.cli_package,
            markers=("RapidKit", "Version", name),
        )
    return PackageSpec(name, module=name.replace("-", "_"), command=name, markers=(name, "version"))


@dataclass
class ProbeContext:
    """Everything a strategy needs for one probe."""
    package: PackageSpec
    config: Config
    runner: Runner
    which: Which
    workspace: str | None = None
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)
    home: str | None = None

    async def run(self, args: list[str], cwd: str | None = None) -> ProcessResult:
        return await self.runner(args, cwd=cwd, timeout=self.config.timeouts.probe_seconds)

    async def import_version(self, python: str) -> tuple[str, str]:
        """Import the package with ``python``; returns (version, module file)."""
        result = await self.run([python, "-c", IMPORT_SCRIPT, self.package.name, self.package.module])
        if not result.ok or not result.stdout:
            return "", ""
        lines = result.stdout.splitlines()
        return lines[0].strip(), (lines[1].strip() if len(lines) > 1 else "")


StrategyFn = Callable[[ProbeContext], Awaitable["ToolProbeResult | None"]]


@dataclass(frozen=True)
class Strategy:
    name: str
    run: StrategyFn


def _found(strategy: str, version: str, kind: InstallKind, location: str | None = None) -> ToolProbeResult:
    return ToolProbeResult(
        installed=True,
        version=version,
        install_kind=kind,
        source_strategy=strategy,
        location=location or None,
    )


# Python strategies

async def probe_import(ctx: ProbeContext) -> ToolProbeResult | None:
    for python in ctx.config.python_commands:
        version, location = await ctx.import_version(python)
        if version:
            return _found("import", version, InstallKind.GLOBAL, location)
    return None


async def probe_pip_show(ctx: ProbeContext) -> ToolProbeResult | None:
    commands = [[python, "-m", "pip", "show", ctx.package.name] for python in ctx.config.python_commands]
    commands += [["pip3", "show", ctx.package.name], ["pip", "show", ctx.package.name]]
    for args in commands:
        result = await ctx.run(args)
        if not result.ok:
            continue
        version, location = parse_pip_show(result.stdout)
        if version:
            return _found("pip-show", version, InstallKind.GLOBAL, location)
    return None


async def probe_pyenv(ctx: ProbeContext) -> ToolProbeResult | None:
    listing = await ctx.run(["pyenv", "versions", "--bare"])
    if not listing.ok:
        return None

    root = pyenv_root(ctx.env, ctx.home)
    for line in listing.stdout.splitlines():
        python_version = line.strip()
        if not python_version:
            continue
        pip = root / "versions" / python_version / "bin" / "pip"
        result = await ctx.run([str(pip), "show", ctx.package.name])
        if not result.ok:
            continue
        version, location = parse_pip_show(result.stdout)
        if version:
            return _found("pyenv", version, InstallKind.UNKNOWN, location or str(pip.parent.parent))
    return None


async def probe_pipx_registry(ctx: ProbeContext) -> ToolProbeResult | None:
    pkg = ctx.package
    listing = await ctx.run(["pipx", "list"])
    if not listing.ok:
        return None

    listed, broken = pipx_listing(listing.stdout, pkg.name)
    if not listed:
        return None
    if broken:
        logger.warning(f"pipx lists {pkg.name} but its apps are broken (symlink missing or unexpected location)")
        return None

    exposed = await ctx.run([pkg.command, "--version"])
    version = structured_version(exposed.output, pkg.markers) if exposed.ok else ""
    if not version:
        logger.warning(f"pipx lists {pkg.name} but `{pkg.command} --version` does not confirm it")
        return None

    for root in pipx_venv_roots(ctx.env, ctx.home):
        venv = root / pkg.name
        imported, _ = await ctx.import_version(str(venv_python(venv)))
        if imported:
            return _found("pipx-registry", version, InstallKind.GLOBAL, str(venv))

    logger.warning(f"pipx lists {pkg.name} but importing it from the pipx venv failed")
    return None


async def probe_command(ctx: ProbeContext) -> ToolProbeResult | None:
    pkg = ctx.package
    result = await ctx.run([pkg.command, "--version"])
    if not result.ok:
        return None
    version = structured_version(result.output, pkg.markers)
    if not version:
        logger.debug(f"`{pkg.command} --version` printed no {pkg.name} version: {result.output[:80]!r}")
        return None
    return _found("command", version, InstallKind.GLOBAL, ctx.which(pkg.command))


async def probe_pipx_venv(ctx: ProbeContext) -> ToolProbeResult | None:
    for root in pipx_venv_roots(ctx.env, ctx.home):
        venv = root / ctx.package.name
        python = venv_python(venv)
        if not python.exists():
            continue
        version, _ = await ctx.import_version(str(python))
        if version:
            return _found("pipx-venv", version, InstallKind.GLOBAL, str(venv))
    return None


async def probe_poetry_show(ctx: ProbeContext) -> ToolProbeResult | None:
    if not ctx.workspace or not os.path.isdir(ctx.workspace):
        return None
    result = await ctx.run(["poetry", "show", ctx.package.name], cwd=ctx.workspace)
    if not result.ok:
        return None
    version = parse_poetry_show(result.stdout)
    if not version:
        return None
    return _found("poetry-show", version, InstallKind.PROJECT_LOCAL, ctx.workspace)


async def probe_conda(ctx: ProbeContext) -> ToolProbeResult | None:
    result = await ctx.run(["conda", "list", ctx.package.name])
    if not result.ok:
        return None
    version = parse_conda_list(result.stdout, ctx.package.name)
    if not version:
        return None
    return _found("conda", version, InstallKind.UNKNOWN, ctx.env.get("CONDA_PREFIX"))


# Node strategies

async def probe_npm_global(ctx: ProbeContext) -> ToolProbeResult | None:
    name = ctx.package.name
    result = await ctx.run(["npm", "list", "-g", name, "--depth=0", "--json"])
    # npm exits 1 when the package is missing but still prints JSON
    if not result.stdout:
        return None
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.debug(f"npm list -g output is not JSON: {e}")
        return None
    entry = (data.get("dependencies") or {}).get(name) if isinstance(data, dict) else None
    version = entry.get("version") if isinstance(entry, dict) else None
    if not version:
        return None
    return _found("npm-global", version, InstallKind.GLOBAL, ctx.which(ctx.package.command))


async def probe_node_modules(ctx: ProbeContext) -> ToolProbeResult | None:
    if not ctx.workspace:
        return None
    manifest = Path(ctx.workspace) / "node_modules" / ctx.package.name / "package.json"
    if not manifest.is_file():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Unreadable {manifest}: {e}")
        return None
    version = data.get("version") if isinstance(data, dict) else None
    if not version:
        return None
    return _found("node-modules", str(version), InstallKind.PROJECT_LOCAL, str(manifest.parent))


PYTHON_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("import", probe_import),
    Strategy("pip-show", probe_pip_show),
    Strategy("pyenv", probe_pyenv),
    Strategy("pipx-registry", probe_pipx_registry),
    Strategy("command", probe_command),
    Strategy("pipx-venv", probe_pipx_venv),
    Strategy("poetry-show", probe_poetry_show),
    Strategy("conda", probe_conda),
)

NODE_STRATEGIES: tuple[Strategy, ...] = (
    Strategy("npm-global", probe_npm_global),
    Strategy("node-modules", probe_node_modules),
)


async def listed_in_global_registry(ctx: ProbeContext) -> bool:
    """True when pipx or uv manages the package as a global tool."""
    name = ctx.package.name
    for args in (["pipx", "list", "--short"], ["uv", "tool", "list"]):
        result = await ctx.run(args)
        if not result.ok:
            continue
        for line in result.stdout.splitlines():
            fields = line.split()
            if fields and fields[0] == name:
                return True
    return False


class InstallationProbe:
    """
    Run the strategy cascade for a package.

    Args:
        config: Loaded configuration (package names, timeouts)
        runner: Process runner (defaults to :func:`run_process`)
        which: PATH lookup (defaults to ``shutil.which``)
        cache: Optional requirement cache for installation results
        env: Environment used for path lookups (defaults to os.environ)
        home: Home directory override for path lookups
        strategies: Strategy list used instead of the built-in one for the ecosystem
    """

    def __init__(
        self,
        config: Config | None = None,
        runner: Runner | None = None,
        which: Which | None = None,
        cache: RequirementCache | None = None,
        env: Mapping[str, str] | None = None,
        home: str | None = None,
        strategies: Sequence[Strategy] | None = None,
    ):
        self.config = config or Config()
        self.runner = runner or run_process
        self.which = which or shutil.which
        self.cache = cache
        self.env = os.environ if env is None else env
        self.home = home
        self.strategies = tuple(strategies) if strategies is not None else None

    def strategies_for(self, ecosystem: str) -> tuple[Strategy, ...]:
        if self.strategies is not None:
            return self.strategies
        return NODE_STRATEGIES if ecosystem == ECOSYSTEM_NODE else PYTHON_STRATEGIES

    async def _run_strategy(self, strategy: Strategy, ctx: ProbeContext) -> ToolProbeResult | None:
        budget = self.config.timeouts.strategy_budget_seconds
        try:
            return await asyncio.wait_for(strategy.run(ctx), timeout=budget)
        except asyncio.TimeoutError:
            logger.debug(f"{ctx.package.name}: strategy {strategy.name} exceeded {budget}s")
        except Exception as e:
            logger.debug(f"{ctx.package.name}: strategy {strategy.name} failed: {e}")
        return None

    async def _settle_kind(self, result: ToolProbeResult, ctx: ProbeContext) -> ToolProbeResult:
        if result.install_kind is not InstallKind.UNKNOWN:
            return result

        if await listed_in_global_registry(ctx):
            kind = InstallKind.GLOBAL
        else:
            kind = classify_install_location(result.location, ctx.workspace)
            if kind is InstallKind.UNKNOWN:
                kind = InstallKind.PROJECT_LOCAL
        logger.debug(f"{ctx.package.name}: {result.source_strategy} result classified as {kind.value}")
        return replace(result, install_kind=kind)

    async def probe(
        self,
        package_name: str,
        workspace: str | os.PathLike | None = None,
        ecosystem: str = ECOSYSTEM_PYTHON,
    ) -> ToolProbeResult:
        """Probe whether a package is installed.

        Args:
            package_name: Distribution name (PyPI or npm)
            workspace: Project directory for project-local strategies
            ecosystem: "python" or "node"

        Returns:
            First verified result, or ``ToolProbeResult.not_installed()``

        Raises:
            ValueError: Empty package name or unknown ecosystem
        """
        spec = package_spec(package_name, self.config, ecosystem)
        name = spec.name if ecosystem == ECOSYSTEM_PYTHON else f"npm:{spec.name}"
        cache_key = installation_kind(name, workspace)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        ctx = ProbeContext(
            package=spec,
            config=self.config,
            runner=self.runner,
            which=self.which,
            workspace=str(workspace) if workspace else None,
            env=self.env,
            home=self.home,
        )

        result = ToolProbeResult.not_installed()
        for strategy in self.strategies_for(ecosystem):
            found = await self._run_strategy(strategy, ctx)
            if found is None:
                logger.debug(f"{spec.name}: {strategy.name} had no answer")
                continue
            result = await self._settle_kind(found, ctx)
            logger.debug(f"{spec.name}: {result.version} via {strategy.name} ({result.install_kind.value})")
            break

        if self.cache is not None:
            self.cache.set(cache_key, result)
        return result
