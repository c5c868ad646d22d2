"""On-disk layout contract for the compilation cache and build outputs.

These names are part of the durable format: a cache directory written by one
process must be readable by the next one unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

# Schema version of manifest.json.
CACHE_SCHEMA_VERSION = 1

TOOL_VERSION = "1.0.0"

MANIFEST_JSON = "manifest.json"
CACHE_ENTRY_SUFFIX = ".cache"

DEFAULT_CACHE_DIR = ".gherkin-cache"
DEFAULT_MAX_CACHE_SIZE = "100MB"

FEATURE_GLOB = "*.feature"


@dataclass(frozen=True)
class TargetSpec:
    """File naming for one compilation target."""

    name: str
    code_suffix: str
    test_suffix: str


TARGET_SPECS: dict[str, TargetSpec] = {
    "javascript": TargetSpec(
        name="javascript",
        code_suffix=".js",
        test_suffix=".test.js",
    ),
    "elixir": TargetSpec(
        name="elixir",
        code_suffix=".ex",
        test_suffix="_test.exs",
    ),
}


def cache_entry_filename(key: str) -> str:
    """Return the storage filename for a cache key."""
    return f"{key}{CACHE_ENTRY_SUFFIX}"


__all__ = [
    "CACHE_ENTRY_SUFFIX",
    "CACHE_SCHEMA_VERSION",
    "DEFAULT_CACHE_DIR",
    "DEFAULT_MAX_CACHE_SIZE",
    "FEATURE_GLOB",
    "MANIFEST_JSON",
    "TARGET_SPECS",
    "TOOL_VERSION",
    "TargetSpec",
    "cache_entry_filename",
]
