"""
Module catalog resolution.

Tiers, in order:

1. Fresh on-disk cache for the workspace (younger than the TTL)
2. Live ``modules list --json-schema 1`` from the CLI
3. Legacy live ``modules list --json`` (bare list, wrapped into a schema-1 document)
4. Stale on-disk cache
5. Built-in fallback list (never persisted)

Each workspace gets its own cache file, named after a hash of its path.
"""

from __future__ import annotations

import datetime
import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable

from .common import Runner, run_process
from .config import Config
from .errors import CacheCorrupt, CatalogUnavailable, ToolNotFound
from .fallback_modules import FALLBACK_MODULES
from .paths import default_storage_dir
from .resolver import ExecutableHandle, ExecutableResolver, LogicalTool


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_TTL_SECONDS = 600

SOURCE_LIVE = "live"
SOURCE_CACHE = "cache"
SOURCE_FALLBACK = "fallback"

STATUSES = ("stable", "beta", "experimental")

# Keys modelled explicitly; anything else in a document is carried through as-is
_KNOWN_KEYS = {"schema_version", "generated_at", "filters", "stats", "modules", "source", "fetched_at"}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _utc_timestamp() -> str:
    return (
        datetime.datetime.now(datetime.timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def _slug_tail(slug: str) -> str:
    if not slug:
        return "unknown"
    parts = [p for p in slug.split("/") if p]
    return parts[-1] if parts else slug


@dataclass(frozen=True)
class ModuleRecord:
    """Normalized catalog entry."""

    id: str
    name: str
    version: str = "0.0.0"
    category: str = "unknown"
    description: str = ""
    status: str = "stable"
    tags: tuple[str, ...] = ()
    slug: str = ""

    @classmethod
    def from_raw(cls, record: dict[str, Any]) -> "ModuleRecord":
        """Normalize one raw ``modules`` entry.

        Name comes from ``display_name``, then ``name``, then the last slug
        segment; the id is the raw name lower-cased with whitespace turned
        into underscores.
        """
        slug = record.get("slug") if isinstance(record.get("slug"), str) else ""

        raw_name = record.get("display_name")
        if not isinstance(raw_name, str):
            raw_name = record.get("name")
        name = raw_name if isinstance(raw_name, str) and raw_name.strip() else _slug_tail(slug)

        raw_id = record.get("name") if isinstance(record.get("name"), str) else _slug_tail(slug)
        module_id = "_".join(raw_id.split()).lower() if raw_id.strip() else _slug_tail(slug).lower()

        tags = record.get("tags")
        status = record.get("status")

        return cls(
            id=module_id,
            name=name,
            version=record["version"] if isinstance(record.get("version"), str) else "0.0.0",
            category=record["category"] if isinstance(record.get("category"), str) else "unknown",
            description=record["description"] if isinstance(record.get("description"), str) else "",
            status=status if status in STATUSES else "stable",
            tags=tuple(t for t in tags if isinstance(t, str)) if isinstance(tags, list) else (),
            slug=slug,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "category": self.category,
            "description": self.description,
            "status": self.status,
            "tags": list(self.tags),
            "slug": self.slug,
        }


def normalize_modules(records: Iterable[Any]) -> list[ModuleRecord]:
    return [ModuleRecord.from_raw(r) for r in records if isinstance(r, dict)]


@dataclass
class ModuleCatalogDocument:
    """Versioned catalog document as produced by the CLI and stored on disk."""

    modules: list[dict[str, Any]] = field(default_factory=list)
    schema_version: int = SCHEMA_VERSION
    generated_at: str | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    source: str | None = None
    fetched_at: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def entries(self) -> list[ModuleRecord]:
        return normalize_modules(self.modules)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = dict(self.extra)
        data["schema_version"] = self.schema_version
        if self.generated_at is not None:
            data["generated_at"] = self.generated_at
        if self.filters:
            data["filters"] = self.filters
        if self.stats:
            data["stats"] = self.stats
        data["modules"] = self.modules
        if self.source is not None:
            data["source"] = self.source
        if self.fetched_at is not None:
            data["fetched_at"] = self.fetched_at
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ModuleCatalogDocument | None":
        """Build a document; None when the schema version or module list is wrong."""
        if not isinstance(data, dict):
            return None
        if data.get("schema_version") != SCHEMA_VERSION or not isinstance(data.get("modules"), list):
            return None

        fetched_at = data.get("fetched_at")
        return cls(
            modules=list(data["modules"]),
            schema_version=SCHEMA_VERSION,
            generated_at=data.get("generated_at"),
            filters=data.get("filters") if isinstance(data.get("filters"), dict) else {},
            stats=data.get("stats") if isinstance(data.get("stats"), dict) else {},
            source=data.get("source"),
            fetched_at=fetched_at if isinstance(fetched_at, (int, float)) else None,
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    @classmethod
    def from_legacy(cls, modules: list[Any], fetched_at: int) -> "ModuleCatalogDocument":
        """Wrap a bare ``modules list --json`` array into a schema-1 document."""
        return cls(
            modules=list(modules),
            generated_at=_utc_timestamp(),
            filters={"category": None, "tag": None, "detailed": False},
            stats={"total": len(modules), "returned": len(modules), "invalid": 0},
            source="legacy-json",
            fetched_at=fetched_at,
        )


@dataclass(frozen=True)
class CatalogResult:
    """Resolved catalog: normalized entries, the tier they came from, and the document."""
    entries: list[ModuleRecord]
    source: str
    document: ModuleCatalogDocument | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "modules": [e.to_dict() for e in self.entries],
            "document": self.document.to_dict() if self.document else None,
        }


def workspace_hash(workspace: str | os.PathLike | None) -> str | None:
    """First 8 hex chars of the MD5 of the workspace path, or None."""
    if not workspace:
        return None
    return hashlib.md5(os.fspath(workspace).encode("utf-8")).hexdigest()[:8]


def cache_filename(workspace: str | os.PathLike | None) -> str:
    digest = workspace_hash(workspace)
    return f"modules-catalog-{digest}.json" if digest else "modules-catalog.json"


class CatalogCacheStore:
    """On-disk catalog documents, one file per workspace."""

    def __init__(self, storage_dir: str | os.PathLike):
        self.storage_dir = Path(storage_dir)

    def path_for(self, workspace: str | os.PathLike | None = None) -> Path:
        return self.storage_dir / cache_filename(workspace)

    def load(self, workspace: str | os.PathLike | None = None) -> ModuleCatalogDocument | None:
        """Load the workspace's cached document.

        Returns:
            Document, or None when no cache file exists

        Raises:
            CacheCorrupt: File exists but is not a valid schema-1 document
        """
        path = self.path_for(workspace)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheCorrupt(str(path), str(e))

        document = ModuleCatalogDocument.from_dict(data)
        if document is None:
            raise CacheCorrupt(str(path), "unsupported schema_version or missing modules list")
        return document

    def save(self, document: ModuleCatalogDocument, workspace: str | os.PathLike | None = None) -> Path:
        """Write a document atomically (temp file then rename)."""
        path = self.path_for(workspace)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f"{path.stem}.", suffix=".tmp", delete=False,
            ) as f:
                temp_path = Path(f.name)
                json.dump(document.to_dict(), f, indent=2, ensure_ascii=False)
            temp_path.replace(path)
            temp_path = None
        except OSError as e:
            raise IOError(f"Failed to write catalog cache {path}: {e}")
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
        return path

    def delete(self, workspace: str | os.PathLike | None = None) -> bool:
        path = self.path_for(workspace)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove catalog cache {path}: {e}")
            return False


class CatalogResolver:
    """
    Resolve the module catalog for a workspace.

    Args:
        config: Loaded configuration (TTL, storage dir, timeouts)
        executable_resolver: Resolver used to locate the CLI for live fetches
        runner: Process runner (defaults to :func:`run_process`)
        store: Cache store (defaults to one rooted at the configured storage dir)
        clock: Returns the current time in epoch milliseconds
        fallback: Raw module records served when everything else fails
    """

    def __init__(
        self,
        config: Config | None = None,
        executable_resolver: ExecutableResolver | None = None,
        runner: Runner | None = None,
        store: CatalogCacheStore | None = None,
        clock: Callable[[], int] | None = None,
        fallback: Iterable[dict[str, Any]] = FALLBACK_MODULES,
    ):
        self.config = config or Config()
        self.runner = runner or run_process
        self.executable_resolver = executable_resolver or ExecutableResolver(self.config, runner=self.runner)
        self.store = store or CatalogCacheStore(self.config.cache.storage_dir or default_storage_dir())
        self.clock = clock or _now_ms
        self.fallback = tuple(fallback)
        self.ttl_ms = int(self.config.cache.catalog_ttl_seconds * 1000)

    def _read_cache(self, workspace: str | os.PathLike | None) -> ModuleCatalogDocument | None:
        try:
            return self.store.load(workspace)
        except CacheCorrupt as e:
            logger.warning(f"Ignoring catalog cache: {e}")
            return None

    def _is_fresh(self, document: ModuleCatalogDocument, now: int) -> bool:
        # A timestamp from the future is never fresh
        return bool(document.fetched_at) and 0 <= now - document.fetched_at < self.ttl_ms

    async def _find_cli(self, workspace: str | os.PathLike | None) -> ExecutableHandle | None:
        try:
            return await self.executable_resolver.resolve(LogicalTool.CLI, workspace)
        except ToolNotFound as e:
            logger.debug(f"Live catalog unavailable: {e}")
            return None

    async def _run_cli(self, handle: ExecutableHandle, workspace: str | os.PathLike | None, *args: str) -> Any:
        cwd = os.fspath(workspace) if workspace and os.path.isdir(workspace) else None
        result = await self.runner(handle.command(*args), cwd=cwd, timeout=self.config.timeouts.catalog_seconds)
        if not result.ok:
            logger.debug(f"`{' '.join(handle.command(*args))}` failed ({result.error or result.returncode})")
            return None
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            logger.debug(f"Catalog output is not JSON: {e}")
            return None

    def _persist(self, document: ModuleCatalogDocument, workspace: str | os.PathLike | None) -> None:
        try:
            self.store.save(document, workspace)
        except IOError as e:
            logger.warning(str(e))

    async def resolve(self, workspace_path: str | os.PathLike | None = None) -> CatalogResult:
        """Resolve the catalog for a workspace (or the global one).

        Raises:
            CatalogUnavailable: Every tier failed and the fallback list is empty
        """
        now = self.clock()
        cached = self._read_cache(workspace_path)

        if cached is not None and self._is_fresh(cached, now):
            logger.debug("Module catalog served from fresh cache")
            return CatalogResult(cached.entries, SOURCE_CACHE, cached)

        handle = await self._find_cli(workspace_path)
        if handle is not None:
            payload = await self._run_cli(handle, workspace_path, "modules", "list", "--json-schema", str(SCHEMA_VERSION))
            document = ModuleCatalogDocument.from_dict(payload)
            if document is not None:
                document.fetched_at = now
                self._persist(document, workspace_path)
                return CatalogResult(document.entries, SOURCE_LIVE, document)

            payload = await self._run_cli(handle, workspace_path, "modules", "list", "--json")
            if isinstance(payload, list):
                document = ModuleCatalogDocument.from_legacy(payload, fetched_at=now)
                self._persist(document, workspace_path)
                return CatalogResult(document.entries, SOURCE_LIVE, document)

        if cached is not None:
            logger.info("Live catalog unavailable, using stale cache")
            return CatalogResult(cached.entries, SOURCE_CACHE, cached)

        if not self.fallback:
            raise CatalogUnavailable("No module catalog available (live, cache and fallback all empty)")

        logger.warning("Falling back to the built-in module list")
        return CatalogResult(normalize_modules(self.fallback), SOURCE_FALLBACK, None)

    def invalidate(self, workspace_path: str | os.PathLike | None = None) -> bool:
        """Delete the cached document for one workspace only."""
        removed = self.store.delete(workspace_path)
        if removed:
            logger.debug(f"Invalidated catalog cache {self.store.path_for(workspace_path)}")
        return removed
