"""Content-addressed compilation cache for gherkin-build."""

from cache.models import CacheEntry, CacheManifest, CacheMetadata, ManifestEntry
from cache.store import CacheOperationError, CacheStats, CompilationCache

__all__ = [
    "CacheEntry",
    "CacheManifest",
    "CacheMetadata",
    "CacheOperationError",
    "CacheStats",
    "CompilationCache",
    "ManifestEntry",
]
