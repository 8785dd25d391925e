"""
Configuration file parsing and management.

Supports YAML configuration files (PyYAML) and JSON files, chosen by extension.
Merges configurations from multiple sources (explicit → project → user → system
→ defaults), then applies environment overrides.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .versions import parse_version


logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "TOOLCHAIN_PROBE_CONFIG"
ENV_STORAGE_DIR = "TOOLCHAIN_PROBE_STORAGE_DIR"
ENV_TIMEOUT_SECONDS = "TOOLCHAIN_PROBE_TIMEOUT_SECONDS"

# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".toolchain-probe.yml",                                    # Project root (highest priority)
    ".toolchain-probe.yaml",                                   # Alternative extension
    os.path.expanduser("~/.config/toolchain-probe/config.yml"),  # User global
    "/etc/toolchain-probe/config.yml",                         # System global
]


def _prefer(mine: Any, theirs: Any, default: Any) -> Any:
    return mine if mine != default else theirs


@dataclass(frozen=True)
class Timeouts:
    """
    Time limits for external processes.

    Attributes:
        resolve_seconds: Per-process limit for executable resolution probes
        probe_seconds: Per-process limit inside installation strategies
        strategy_budget_seconds: Total limit for one installation strategy
        catalog_seconds: Per-process limit for live catalog fetches
    """
    resolve_seconds: float = 3.0
    probe_seconds: float = 3.0
    strategy_budget_seconds: float = 8.0
    catalog_seconds: float = 15.0

    def __post_init__(self):
        for name in ("resolve_seconds", "probe_seconds", "strategy_budget_seconds", "catalog_seconds"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0 or value > 120:
                raise ValueError(f"Invalid {name}: {value}. Must be between 0 and 120")

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Timeouts:
        """Create Timeouts from dictionary."""
        return Timeouts(
            resolve_seconds=data.get("resolve_seconds", 3.0),
            probe_seconds=data.get("probe_seconds", 3.0),
            strategy_budget_seconds=data.get("strategy_budget_seconds", 8.0),
            catalog_seconds=data.get("catalog_seconds", 15.0),
        )

    def merge_with(self, other: Timeouts) -> Timeouts:
        d = Timeouts()
        return Timeouts(
            resolve_seconds=_prefer(self.resolve_seconds, other.resolve_seconds, d.resolve_seconds),
            probe_seconds=_prefer(self.probe_seconds, other.probe_seconds, d.probe_seconds),
            strategy_budget_seconds=_prefer(
                self.strategy_budget_seconds, other.strategy_budget_seconds, d.strategy_budget_seconds
            ),
            catalog_seconds=_prefer(self.catalog_seconds, other.catalog_seconds, d.catalog_seconds),
        )


@dataclass(frozen=True)
class CacheSettings:
    """
    Cache lifetimes and storage.

    Attributes:
        requirement_ttl_seconds: Lifetime of memoized probe results
        catalog_ttl_seconds: Freshness window of the on-disk catalog cache
        storage_dir: Catalog cache directory ("" selects the platform default)
    """
    requirement_ttl_seconds: int = 300
    catalog_ttl_seconds: int = 600
    storage_dir: str = ""

    def __post_init__(self):
        if self.requirement_ttl_seconds < 1 or self.requirement_ttl_seconds > 86400:
            raise ValueError(
                f"Invalid requirement_ttl_seconds: {self.requirement_ttl_seconds}. "
                "Must be between 1 and 86400"
            )
        if self.catalog_ttl_seconds < 1 or self.catalog_ttl_seconds > 86400:
            raise ValueError(
                f"Invalid catalog_ttl_seconds: {self.catalog_ttl_seconds}. "
                "Must be between 1 and 86400"
            )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> CacheSettings:
        """Create CacheSettings from dictionary."""
        return CacheSettings(
            requirement_ttl_seconds=data.get("requirement_ttl_seconds", 300),
            catalog_ttl_seconds=data.get("catalog_ttl_seconds", 600),
            storage_dir=str(data.get("storage_dir") or ""),
        )

    def merge_with(self, other: CacheSettings) -> CacheSettings:
        d = CacheSettings()
        return CacheSettings(
            requirement_ttl_seconds=_prefer(
                self.requirement_ttl_seconds, other.requirement_ttl_seconds, d.requirement_ttl_seconds
            ),
            catalog_ttl_seconds=_prefer(self.catalog_ttl_seconds, other.catalog_ttl_seconds, d.catalog_ttl_seconds),
            storage_dir=self.storage_dir or other.storage_dir,
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for toolchain_probe.

    Attributes:
        version: Config schema version
        core_package: Python distribution probed as the core package
        cli_package: npm package (and command) of the secondary CLI
        python_commands: Interpreter commands tried in order
        ancestor_depth: Parent directories searched for project-local binaries
        minimum_python: Minimum supported interpreter version
        timeouts: Process time limits
        cache: Cache lifetimes and storage
        source: Path to the configuration file that was loaded
    """
    version: int = 1
    core_package: str = "rapidkit-core"
    cli_package: str = "rapidkit"
    python_commands: tuple[str, ...] = ("python3", "python")
    ancestor_depth: int = 3
    minimum_python: str = "3.10"
    timeouts: Timeouts = field(default_factory=Timeouts)
    cache: CacheSettings = field(default_factory=CacheSettings)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        if not self.core_package or not self.cli_package:
            raise ValueError("core_package and cli_package must not be empty")

        if not self.python_commands:
            raise ValueError("python_commands must list at least one interpreter command")

        if self.ancestor_depth < 0 or self.ancestor_depth > 10:
            raise ValueError(
                f"Invalid ancestor_depth: {self.ancestor_depth}. Must be between 0 and 10"
            )

        if parse_version(_as_triple(self.minimum_python)) is None:
            raise ValueError(f"Invalid minimum_python: {self.minimum_python}")

    @property
    def core_module(self) -> str:
        """Import name of the core package."""
        return self.core_package.replace("-", "_")

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        commands = data.get("python_commands", ("python3", "python"))
        if isinstance(commands, str):
            commands = (commands,)

        return Config(
            version=data.get("version", 1),
            core_package=data.get("core_package", "rapidkit-core"),
            cli_package=data.get("cli_package", "rapidkit"),
            python_commands=tuple(commands),
            ancestor_depth=data.get("ancestor_depth", 3),
            minimum_python=str(data.get("minimum_python", "3.10")),
            timeouts=Timeouts.from_dict(data.get("timeouts") or {}),
            cache=CacheSettings.from_dict(data.get("cache") or {}),
            source=source,
        )

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        d = Config()
        return Config(
            version=self.version,
            core_package=_prefer(self.core_package, other.core_package, d.core_package),
            cli_package=_prefer(self.cli_package, other.cli_package, d.cli_package),
            python_commands=_prefer(self.python_commands, other.python_commands, d.python_commands),
            ancestor_depth=_prefer(self.ancestor_depth, other.ancestor_depth, d.ancestor_depth),
            minimum_python=_prefer(self.minimum_python, other.minimum_python, d.minimum_python),
            timeouts=self.timeouts.merge_with(other.timeouts),
            cache=self.cache.merge_with(other.cache),
            source=self.source or other.source,
        )


def _as_triple(version: str) -> str:
    parts = version.strip().split(".")
    while len(parts) < 3:
        parts.append("0")
    return ".".join(parts)


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is unreadable or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError) as e:
        logger.debug(f"Could not parse YAML {file_path}: {e}")
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Could not parse JSON {file_path}: {e}")
        return None


def load_config_file(file_path: str) -> Config | None:
    """
    Load configuration from a single file.

    ``.json`` files are parsed as JSON, everything else as YAML.

    Returns:
        Config object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    logger.debug(f"Loading config from: {file_path}")

    if Path(file_path).suffix.lower() == ".json":
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    if data is None:
        logger.debug(f"Invalid config file: {file_path}")
        return None

    try:
        return Config.from_dict(data, source=file_path)
    except (ValueError, TypeError) as e:
        logger.warning(f"Config validation failed for {file_path}: {e}")
        return None


def apply_env_overrides(config: Config, env: Mapping[str, str] | None = None) -> Config:
    """Apply ``TOOLCHAIN_PROBE_*`` environment overrides on top of a config."""
    e = os.environ if env is None else env

    storage_dir = e.get(ENV_STORAGE_DIR)
    if storage_dir:
        config = replace(config, cache=replace(config.cache, storage_dir=storage_dir))

    raw_timeout = e.get(ENV_TIMEOUT_SECONDS)
    if raw_timeout:
        try:
            seconds = float(raw_timeout)
            timeouts = replace(config.timeouts, resolve_seconds=seconds, probe_seconds=seconds)
        except ValueError as err:
            logger.warning(f"Ignoring {ENV_TIMEOUT_SECONDS}={raw_timeout!r}: {err}")
        else:
            config = replace(config, timeouts=timeouts)

    return config


def load_config(
    custom_path: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. $TOOLCHAIN_PROBE_CONFIG
    3. Project .toolchain-probe.yml / .toolchain-probe.yaml
    4. User ~/.config/toolchain-probe/config.yml
    5. System /etc/toolchain-probe/config.yml
    6. Default configuration

    Environment overrides are applied last.

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    e = os.environ if env is None else env
    configs: list[Config] = []

    if custom_path:
        config = load_config_file(custom_path)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)

    locations = list(CONFIG_LOCATIONS)
    if e.get(ENV_CONFIG_PATH):
        locations.insert(0, e[ENV_CONFIG_PATH])

    for location in locations:
        config = load_config_file(location)
        if config is not None:
            configs.append(config)
            logger.debug(f"Found config at: {location}")

    if not configs:
        logger.debug("No config files found, using defaults")
        merged = Config()
    else:
        # First config has highest priority
        merged = configs[0]
        for config in configs[1:]:
            merged = merged.merge_with(config)
        logger.debug(f"Merged {len(configs)} config files")

    return apply_env_overrides(merged, e)
