"""Stable on-disk contract for gherkin-build.

Treat these exports as the authoritative description of what a cache
directory and an output directory contain.
"""

from contract.artifacts import (
    CACHE_ENTRY_SUFFIX,
    CACHE_SCHEMA_VERSION,
    DEFAULT_CACHE_DIR,
    DEFAULT_MAX_CACHE_SIZE,
    FEATURE_GLOB,
    MANIFEST_JSON,
    TARGET_SPECS,
    TOOL_VERSION,
    TargetSpec,
    cache_entry_filename,
)

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
