"""Consistency verification for a compilation cache directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cache.models import CacheManifest
from contract.artifacts import CACHE_ENTRY_SUFFIX, MANIFEST_JSON

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class CacheConsistencyResult:
    ok: bool
    missing: tuple[str, ...] = field(default_factory=tuple)
    extra: tuple[str, ...] = field(default_factory=tuple)
    size_mismatches: tuple[str, ...] = field(default_factory=tuple)
    total_size_ok: bool = True


def _list_entry_files(cache_dir: Path) -> set[str]:
    return {
        path.name
        for path in cache_dir.iterdir()
        if path.is_file() and path.name.endswith(CACHE_ENTRY_SUFFIX)
    }


def verify_cache(cache_dir: Path) -> CacheConsistencyResult:
    """Verify that a cache manifest agrees with the files beside it.

    Compares the manifest's records with the ``.cache`` files actually in
    the directory, by filename, and checks every recorded size and the
    manifest's running total.

    Args:
        cache_dir: Cache directory containing ``manifest.json``.

    Returns:
        CacheConsistencyResult with sorted lists of missing files (recorded
        but absent), extra files (present but unrecorded) and records whose
        size differs from the file on disk.

    Raises:
        FileNotFoundError: If cache_dir or its manifest does not exist.
        NotADirectoryError: If cache_dir is not a directory.
        ValueError: If the manifest is not a valid manifest.
    """
    if not cache_dir.exists():
        msg = f"Cache directory does not exist: {cache_dir}"
        raise FileNotFoundError(msg)
    if not cache_dir.is_dir():
        msg = f"Cache path is not a directory: {cache_dir}"
        raise NotADirectoryError(msg)

    manifest_path = cache_dir / MANIFEST_JSON
    if not manifest_path.is_file():
        msg = f"Cache manifest does not exist: {manifest_path}"
        raise FileNotFoundError(msg)

    try:
        manifest = CacheManifest.model_validate_json(manifest_path.read_bytes())
    except ValidationError as exc:
        msg = f"Invalid cache manifest {manifest_path}: {exc}"
        raise ValueError(msg) from exc

    recorded = {record.file: record for record in manifest.entries}
    on_disk = _list_entry_files(cache_dir)

    missing = sorted(set(recorded) - on_disk)
    extra = sorted(on_disk - set(recorded))

    size_mismatches = sorted(
        name
        for name in set(recorded) & on_disk
        if (cache_dir / name).stat().st_size != recorded[name].size
    )

    total_size_ok = manifest.total_size == sum(r.size for r in manifest.entries)

    ok = not missing and not extra and not size_mismatches and total_size_ok
    return CacheConsistencyResult(
        ok=ok,
        missing=tuple(missing),
        extra=tuple(extra),
        size_mismatches=tuple(size_mismatches),
        total_size_ok=total_size_ok,
    )
