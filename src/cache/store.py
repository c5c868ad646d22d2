"""Content-addressed compilation cache.

Entries live under a cache directory as ``<key>.cache`` JSON files, indexed
by ``manifest.json``. The manifest is loaded lazily on the first operation
and written back after every mutation. A single process is assumed to own
the directory for the duration of a build.

Usage:
    cache = CompilationCache(".gherkin-cache", max_size="100MB")
    key = cache.fingerprint(source, rules, "1.0.0", "javascript")
    entry = cache.get(key)
    if entry is None:
        entry = ...  # compile
        cache.set(key, entry)
    cache.evict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import orjson
from pydantic import BaseModel, ValidationError

from cache.models import CacheEntry, CacheManifest, ManifestEntry, utc_now
from contract.artifacts import (
    CACHE_ENTRY_SUFFIX,
    DEFAULT_MAX_CACHE_SIZE,
    MANIFEST_JSON,
    TOOL_VERSION,
    cache_entry_filename,
)
from utils import fingerprint, parse_size

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TypeVar

    _T = TypeVar("_T")

logger = logging.getLogger(__name__)

_JSON_OPTIONS = orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2


class CacheOperationError(Exception):
    """Raised when the storage layer fails during a cache operation."""

    def __init__(self, message: str, *, operation: str, key: str | None = None) -> None:
        self.operation = operation
        self.key = key
        super().__init__(message)


@dataclass(frozen=True)
class CacheStats:
    entries: int
    total_size: int
    hits: int
    misses: int
    hit_rate: float


def _dump_json(model: BaseModel) -> bytes:
    return orjson.dumps(model.model_dump(mode="json"), option=_JSON_OPTIONS)


class CompilationCache:
    """File-backed cache of compiled modules with LRU eviction."""

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        max_size: str | int = DEFAULT_MAX_CACHE_SIZE,
        tool_version: str = TOOL_VERSION,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.max_size = parse_size(max_size)
        self.tool_version = tool_version
        self.manifest_path = self.cache_dir / MANIFEST_JSON
        self._manifest: CacheManifest | None = None
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def fingerprint(
        self,
        source: str,
        rules: str,
        tool_version: str | None,
        target: str,
    ) -> str:
        return fingerprint(
            source,
            rules,
            self.tool_version if tool_version is None else tool_version,
            target,
        )

    def get(self, key: str) -> CacheEntry | None:
        """Return the cached entry for ``key``, or None on a miss.

        A manifest record whose file has disappeared, or whose file no longer
        validates, is dropped and counted as a miss rather than raised.

        Raises:
            CacheOperationError: If the storage layer fails.
        """
        return self._guard("get", key, lambda: self._get(key))

    def set(self, key: str, entry: CacheEntry) -> None:
        """Store ``entry`` under ``key``.

        Never evicts; call ``evict`` to reclaim space.

        Raises:
            CacheOperationError: If the entry or manifest cannot be written.
        """
        self._guard("set", key, lambda: self._set(key, entry))

    def is_valid(self, key: str) -> bool:
        """Check that ``key`` has a readable, well-formed entry.

        Does not touch access times or hit/miss counters.
        """
        try:
            record = self._find(self._ensure_manifest(), key)
            if record is None:
                return False
            path = self._entry_path(record)
            if not path.is_file():
                return False
            return self._read_entry(path) is not None
        except (OSError, CacheOperationError):
            return False

    def evict(self, max_bytes: str | int | None = None) -> list[str]:
        """Remove least-recently-accessed entries until the cache fits.

        Args:
            max_bytes: Byte budget (int or size string); defaults to the
                configured ``max_size``.

        Returns:
            Keys removed, oldest first.

        Raises:
            CacheOperationError: If the manifest cannot be saved.
        """
        limit = self.max_size if max_bytes is None else parse_size(max_bytes)
        return self._guard("evict", None, lambda: self._evict(limit))

    def invalidate(
        self,
        source_hash: str | None,
        rules_hash: str | None,
        tool_version: str | None,
        target: str | None,
    ) -> list[str]:
        """Remove every entry whose stored identity differs from the given one.

        Entries that cannot be read or parsed are removed as well. A ``None``
        component is not compared, so ``invalidate(None, rules_hash, ...)``
        drops everything produced under other rules.

        Returns:
            Keys removed.
        """
        return self._guard(
            "invalidate",
            None,
            lambda: self._invalidate(source_hash, rules_hash, tool_version, target),
        )

    def clear(self, key: str | None = None) -> None:
        """Remove one entry, or every entry when ``key`` is None."""
        self._guard("clear", key, lambda: self._clear(key))

    def stats(self) -> CacheStats:
        manifest = self._guard("stats", None, self._ensure_manifest)
        lookups = self._hits + self._misses
        return CacheStats(
            entries=len(manifest.entries),
            total_size=manifest.total_size,
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
        )

    def keys(self) -> list[str]:
        manifest = self._guard("keys", None, self._ensure_manifest)
        return [record.key for record in manifest.entries]

    # ------------------------------------------------------------------
    # Operation bodies
    # ------------------------------------------------------------------

    def _get(self, key: str) -> CacheEntry | None:
        manifest = self._ensure_manifest()
        record = self._find(manifest, key)
        if record is None:
            return self._miss(key)

        path = self._entry_path(record)
        if not path.is_file():
            logger.warning("Cache entry %s listed in manifest but missing on disk", key)
            self._remove_record(manifest, key)
            self._save_manifest()
            return self._miss(key)

        entry = self._read_entry(path)
        if entry is None:
            logger.warning("Cache entry %s is malformed; discarding it", key)
            self._clear(key)
            return self._miss(key)

        now = utc_now()
        record.last_accessed = now
        manifest.last_updated = now
        self._save_manifest()

        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return entry

    def _set(self, key: str, entry: CacheEntry) -> None:
        manifest = self._ensure_manifest()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        filename = cache_entry_filename(key)
        payload = _dump_json(entry)
        (self.cache_dir / filename).write_bytes(payload)
        size = len(payload)

        now = utc_now()
        record = self._find(manifest, key)
        if record is not None:
            manifest.total_size += size - record.size
            record.size = size
            record.file = filename
            record.last_accessed = now
        else:
            manifest.entries.append(
                ManifestEntry(key=key, file=filename, size=size, last_accessed=now)
            )
            manifest.total_size += size

        manifest.last_updated = now
        self._save_manifest()
        logger.debug("Cached %s (%d bytes)", key, size)

    def _evict(self, limit: int) -> list[str]:
        manifest = self._ensure_manifest()
        manifest.entries.sort(key=lambda record: record.last_accessed)

        removed: list[str] = []
        while manifest.total_size > limit and manifest.entries:
            oldest = manifest.entries.pop(0)
            manifest.total_size -= oldest.size
            self._unlink_quietly(self._entry_path(oldest))
            removed.append(oldest.key)

        manifest.last_updated = utc_now()
        self._save_manifest()

        if removed:
            logger.info(
                "Evicted %d cache entries; %d bytes remain",
                len(removed),
                manifest.total_size,
            )
        return removed

    def _invalidate(
        self,
        source_hash: str | None,
        rules_hash: str | None,
        tool_version: str | None,
        target: str | None,
    ) -> list[str]:
        manifest = self._ensure_manifest()
        stale: list[str] = []

        for record in list(manifest.entries):
            try:
                entry = self._read_entry(self._entry_path(record))
            except OSError:
                entry = None

            if entry is None or not _matches(
                entry, source_hash, rules_hash, tool_version, target
            ):
                stale.append(record.key)

        for key in stale:
            self._clear(key)

        if stale:
            logger.info("Invalidated %d cache entries", len(stale))
        return stale

    def _clear(self, key: str | None) -> None:
        manifest = self._ensure_manifest()

        if key is not None:
            record = self._find(manifest, key)
            filename = record.file if record is not None else cache_entry_filename(key)
            (self.cache_dir / filename).unlink(missing_ok=True)
            self._remove_record(manifest, key)
        else:
            for record in manifest.entries:
                self._unlink_quietly(self._entry_path(record))
            manifest.entries = []
            manifest.total_size = 0

        manifest.last_updated = utc_now()
        self._save_manifest()

    # ------------------------------------------------------------------
    # Manifest and storage helpers
    # ------------------------------------------------------------------

    def _guard(self, operation: str, key: str | None, func: Callable[[], _T]) -> _T:
        try:
            return func()
        except CacheOperationError:
            raise
        except OSError as exc:
            subject = f" for key {key}" if key else ""
            msg = f"Cache {operation} failed{subject}: {exc}"
            raise CacheOperationError(msg, operation=operation, key=key) from exc

    def _miss(self, key: str) -> None:
        self._misses += 1
        logger.debug("Cache miss: %s", key)

    def _ensure_manifest(self) -> CacheManifest:
        if self._manifest is None:
            self._manifest = self._load_manifest()
        return self._manifest

    def _load_manifest(self) -> CacheManifest:
        if not self.manifest_path.is_file():
            return CacheManifest(max_size=self.max_size)

        try:
            manifest = CacheManifest.model_validate_json(self.manifest_path.read_bytes())
        except ValidationError as exc:
            logger.warning(
                "Could not load cache manifest %s; starting empty: %s",
                self.manifest_path,
                exc,
            )
            # Entries without a manifest record can never be reached again.
            for path in self.cache_dir.glob(f"*{CACHE_ENTRY_SUFFIX}"):
                self._unlink_quietly(path)
            return CacheManifest(max_size=self.max_size)

        manifest.max_size = self.max_size
        return manifest

    def _save_manifest(self) -> None:
        manifest = self._ensure_manifest()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.manifest_path.write_bytes(_dump_json(manifest))

    def _entry_path(self, record: ManifestEntry) -> Path:
        return self.cache_dir / record.file

    @staticmethod
    def _find(manifest: CacheManifest, key: str) -> ManifestEntry | None:
        for record in manifest.entries:
            if record.key == key:
                return record
        return None

    @staticmethod
    def _remove_record(manifest: CacheManifest, key: str) -> None:
        for index, record in enumerate(manifest.entries):
            if record.key == key:
                manifest.total_size -= record.size
                del manifest.entries[index]
                return

    @staticmethod
    def _read_entry(path: Path) -> CacheEntry | None:
        """Load and validate an entry file; None if it is not a valid entry."""
        data = path.read_bytes()
        try:
            return CacheEntry.model_validate_json(data)
        except ValidationError:
            return None

    @staticmethod
    def _unlink_quietly(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("Could not remove cache file %s: %s", path, exc)


def _matches(
    entry: CacheEntry,
    source_hash: str | None,
    rules_hash: str | None,
    tool_version: str | None,
    target: str | None,
) -> bool:
    expected = (
        (source_hash, entry.source_hash),
        (rules_hash, entry.rules_hash),
        (tool_version, entry.metadata.tool_version),
        (target, entry.metadata.target),
    )
    return all(want is None or want == have for want, have in expected)


__all__ = ["CacheOperationError", "CacheStats", "CompilationCache"]
