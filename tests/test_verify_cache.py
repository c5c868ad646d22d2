from __future__ import annotations

from typing import TYPE_CHECKING

import orjson
import pytest

from cache.models import CacheEntry, CacheMetadata
from cache.store import CompilationCache
from contract.artifacts import MANIFEST_JSON
from utils import sha256_text
from verify.verify import CacheConsistencyResult, verify_cache

if TYPE_CHECKING:
    from pathlib import Path


def _populate(cache_dir: Path, *sources: str) -> list[str]:
    cache = CompilationCache(cache_dir)
    keys = []
    for source in sources:
        key = cache.fingerprint(source, "rules", None, "javascript")
        cache.set(
            key,
            CacheEntry(
                key=key,
                source_hash=sha256_text(source),
                rules_hash=sha256_text("rules"),
                compiled_code=f"module.exports = '{source}';",
                metadata=CacheMetadata(tool_version=cache.tool_version, target="javascript"),
            ),
        )
        keys.append(key)
    return keys


def test_verify_cache_requires_cache_dir(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Cache directory does not exist"):
        verify_cache(tmp_path / "missing")


def test_verify_cache_requires_manifest(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()

    with pytest.raises(FileNotFoundError, match="Cache manifest does not exist"):
        verify_cache(cache_dir)


def test_verify_cache_rejects_invalid_manifest(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / MANIFEST_JSON).write_text('{"entries": 3}', encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid cache manifest"):
        verify_cache(cache_dir)


def test_verify_cache_consistent_after_writes(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    _populate(cache_dir, "a", "b", "c")

    assert verify_cache(cache_dir) == CacheConsistencyResult(ok=True)


def test_verify_cache_sorted_drift_report(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    first, second, third = _populate(cache_dir, "a", "b", "c")

    (cache_dir / f"{first}.cache").unlink()
    (cache_dir / f"{second}.cache").write_text("{}", encoding="utf-8")
    (cache_dir / "zz-stray.cache").write_text("{}", encoding="utf-8")
    (cache_dir / "aa-stray.cache").write_text("{}", encoding="utf-8")
    (cache_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    result = verify_cache(cache_dir)

    assert result == CacheConsistencyResult(
        ok=False,
        missing=(f"{first}.cache",),
        extra=("aa-stray.cache", "zz-stray.cache"),
        size_mismatches=(f"{second}.cache",),
        total_size_ok=True,
    )
    assert f"{third}.cache" not in result.size_mismatches


def test_verify_cache_detects_wrong_running_total(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    _populate(cache_dir, "a")
    manifest_path = cache_dir / MANIFEST_JSON
    manifest = orjson.loads(manifest_path.read_bytes())
    manifest["total_size"] += 1
    manifest_path.write_bytes(orjson.dumps(manifest))

    result = verify_cache(cache_dir)

    assert result.ok is False
    assert result.total_size_ok is False
