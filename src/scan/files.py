"""Discovery of ``.feature`` modules under a project root.

The walk prunes directories as it goes, so generated output and cache
directories are never entered, wherever they sit in the tree.
"""

from __future__ import annotations

import os
from fnmatch import fnmatch
from pathlib import Path
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

from contract.artifacts import FEATURE_GLOB

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator


def normalize_skip_path(path: str) -> str:
    """Return a config directory as a root-relative POSIX path ('' for root)."""
    parts = path.replace("\\", "/").split("/")
    return "/".join(part for part in parts if part not in ("", "."))


def _join(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def _root_gitignore(root: Path) -> Callable[[str], bool] | None:
    gitignore_path = root / ".gitignore"
    if not gitignore_path.is_file() or gitignore_path.is_symlink():
        return None
    matcher = cast("Callable[[str], bool]", parse_gitignore(gitignore_path))

    def ignored(path: Path) -> bool:
        try:
            return matcher(str(path))
        except ValueError:
            return False

    return ignored


def _prune_dirs(
    base: Path,
    rel_base: str,
    dirnames: list[str],
    skip: frozenset[str],
    ignored: Callable[[Path], bool] | None,
) -> list[str]:
    kept: list[str] = []
    for name in dirnames:
        path = base / name
        if name.startswith(".") or path.is_symlink():
            continue
        if _join(rel_base, name) in skip:
            continue
        if ignored is not None and ignored(path):
            continue
        kept.append(name)
    return sorted(kept)


def _selected(rel_path: str, include: Iterable[str], exclude: Iterable[str]) -> bool:
    include = list(include)
    if include and not any(fnmatch(rel_path, pat) for pat in include):
        return False
    return not any(fnmatch(rel_path, pat) for pat in exclude)


def find_feature_files(
    directory: Path,
    *,
    skip_paths: Iterable[str] = (),
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
) -> Iterator[Path]:
    """Find every ``.feature`` module under ``directory``.

    Hidden directories and symlinks are never entered or returned, so
    discovery cannot leave the root. Directories matched by the root
    ``.gitignore`` or listed in ``skip_paths`` are pruned whole.

    Args:
        directory: Project root to search
        skip_paths: Root-relative directories to prune, such as the output,
            generated-test and cache directories; nested paths are honoured
        include_patterns: Optional fnmatch patterns over the relative path;
            if provided, files must match at least one
        exclude_patterns: Optional fnmatch patterns; matching files are
            dropped

    Yields:
        Paths sorted by relative POSIX path, for a deterministic registry
        order.

    Raises:
        NotADirectoryError: If ``directory`` is not a directory.
    """
    if not directory.is_dir():
        msg = f"Path is not a directory: {directory}"
        raise NotADirectoryError(msg)

    skip = frozenset(p for p in map(normalize_skip_path, skip_paths) if p)
    ignored = _root_gitignore(directory)
    found: list[tuple[str, Path]] = []

    for current, dirnames, filenames in os.walk(directory):
        base = Path(current)
        rel_base = normalize_skip_path(base.relative_to(directory).as_posix())
        dirnames[:] = _prune_dirs(base, rel_base, dirnames, skip, ignored)

        for name in filenames:
            if not fnmatch(name, FEATURE_GLOB):
                continue
            path = base / name
            if path.is_symlink() or not path.is_file():
                continue
            if ignored is not None and ignored(path):
                continue
            rel_path = _join(rel_base, name)
            if _selected(rel_path, include_patterns or (), exclude_patterns or ()):
                found.append((rel_path, path))

    found.sort()
    for _, path in found:
        yield path


__all__ = ["find_feature_files", "normalize_skip_path"]
