"""Persisted records of the compilation cache.

``CacheEntry`` is the content of one ``<key>.cache`` file; ``CacheManifest``
is ``manifest.json``. Loading either is a pydantic validation step, so a
malformed file fails closed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from contract.artifacts import CACHE_SCHEMA_VERSION


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CacheMetadata(BaseModel):
    """How and when a cached result was produced."""

    timestamp: datetime = Field(default_factory=utc_now)
    duration_ms: int = Field(default=0, ge=0, description="Original compile time")
    model: str = Field(default="", description="Transformer/model identifier")
    tool_version: str
    target: str


class CacheEntry(BaseModel):
    """A cached compilation result."""

    key: str = Field(min_length=1)
    source_hash: str = Field(min_length=1)
    rules_hash: str = Field(min_length=1)
    compiled_code: str = Field(min_length=1)
    generated_tests: str | None = None
    metadata: CacheMetadata


class ManifestEntry(BaseModel):
    """Index record for one stored cache entry."""

    key: str
    file: str = Field(description="Entry filename, relative to the cache dir")
    size: int = Field(ge=0, description="Serialized size in bytes")
    last_accessed: datetime = Field(default_factory=utc_now)


class CacheManifest(BaseModel):
    """Index of every entry the cache believes is on disk."""

    schema_version: int = Field(default=CACHE_SCHEMA_VERSION)
    entries: list[ManifestEntry] = Field(default_factory=list)
    total_size: int = 0
    max_size: int = 0
    last_updated: datetime = Field(default_factory=utc_now)


__all__ = [
    "CacheEntry",
    "CacheManifest",
    "CacheMetadata",
    "ManifestEntry",
    "utc_now",
]
