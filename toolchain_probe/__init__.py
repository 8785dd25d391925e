"""
toolchain-probe - Toolchain discovery and resolution engine.

Core Modules:
- Versions: Version parsing and prerelease-aware comparison
- Resolution: Logical tool to concrete executable (project-local, global, package runner)
- Probing: Ordered installation-detection strategies with install-kind classification
- Caching: Short-TTL requirement cache and per-workspace module catalog cache
- Facade: Toolchain service, system checks, upgrade detection, CLI
"""

__version__ = "1.0.0"
__author__ = "toolchain-probe Contributors"

# Versions
from .versions import ParsedVersion, compare_versions, is_newer, parse_version, select_latest

# Errors
from .errors import CacheCorrupt, CatalogUnavailable, ToolchainProbeError, ToolNotFound

# Foundation
from .common import ProcessResult, run_process
from .config import CacheSettings, Config, Timeouts, load_config, load_config_file
from .detection import InstallKind, classify_install_location, detect_install_method

# Resolution and probing
from .resolver import ExecutableHandle, ExecutableResolver, HandleSource, LogicalTool
from .probe import InstallationProbe, ProbeContext, Strategy, ToolProbeResult
from .requirement_cache import CachedProbe, RequirementCache

# Catalog
from .catalog import (
    CatalogCacheStore,
    CatalogResolver,
    CatalogResult,
    ModuleCatalogDocument,
    ModuleRecord,
)

# Supplemental checks
from .system_checks import PythonCheckResult, SystemChecks, VirtualenvInfo
from .upgrade import ReleaseInfo, UpdateInfo, evaluate_update, latest_npm_release, latest_release

# Facade
from .service import Toolchain

# Logging
from .logging_config import setup_logging, get_logger

__all__ = [
    "__version__",
    # Versions
    "ParsedVersion",
    "compare_versions",
    "is_newer",
    "parse_version",
    "select_latest",
    # Errors
    "CacheCorrupt",
    "CatalogUnavailable",
    "ToolchainProbeError",
    "ToolNotFound",
    # Foundation
    "ProcessResult",
    "run_process",
    "CacheSettings",
    "Config",
    "Timeouts",
    "load_config",
    "load_config_file",
    "InstallKind",
    "classify_install_location",
    "detect_install_method",
    # Resolution and probing
    "ExecutableHandle",
    "ExecutableResolver",
    "HandleSource",
    "LogicalTool",
    "InstallationProbe",
    "ProbeContext",
    "Strategy",
    "ToolProbeResult",
    "CachedProbe",
    "RequirementCache",
    # Catalog
    "CatalogCacheStore",
    "CatalogResolver",
    "CatalogResult",
    "ModuleCatalogDocument",
    "ModuleRecord",
    # Supplemental checks
    "PythonCheckResult",
    "SystemChecks",
    "VirtualenvInfo",
    "ReleaseInfo",
    "UpdateInfo",
    "evaluate_update",
    "latest_npm_release",
    "latest_release",
    # Facade
    "Toolchain",
    # Logging
    "setup_logging",
    "get_logger",
]
