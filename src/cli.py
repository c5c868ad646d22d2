"""Command-line interface for gherkin-build."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from cache.store import CacheOperationError
from graph.builder import UnknownDependencyError
from graph.registry import DuplicateModuleError
from pipeline.compile import build_order, open_cache
from pipeline.context import ContextBuildError, CyclicDependencyError, build_context
from rules.config import ConfigError, load_config, resolve_output_dir
from rules.loader import RulesLoader, RulesLoadError
from utils import SizeParseError
from verify.verify import verify_cache


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root (default: .)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gherkin-build")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    order_parser = subparsers.add_parser(
        "order", help="Print the module compile order"
    )
    _add_common_paths(order_parser)

    cache_parser = subparsers.add_parser("cache", help="Manage the compilation cache")
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command", required=True)

    stats_parser = cache_subparsers.add_parser("stats", help="Show cache statistics")
    _add_common_paths(stats_parser)

    clear_parser = cache_subparsers.add_parser("clear", help="Remove cache entries")
    _add_common_paths(clear_parser)
    clear_parser.add_argument(
        "--key",
        default=None,
        help="Remove only this entry (default: remove everything)",
    )

    evict_parser = cache_subparsers.add_parser(
        "evict", help="Evict least-recently-used entries"
    )
    _add_common_paths(evict_parser)
    evict_parser.add_argument(
        "--max-size",
        default=None,
        help="Size budget such as '10MB' (default: config cache.max_size)",
    )

    prune_parser = cache_subparsers.add_parser(
        "prune", help="Drop entries built under other rules, version or target"
    )
    _add_common_paths(prune_parser)

    verify_parser = cache_subparsers.add_parser(
        "verify", help="Check the manifest against the files on disk"
    )
    _add_common_paths(verify_parser)

    return parser


def _handle_order(root: Path) -> int:
    try:
        context = build_context(root)
        order = build_order(context)
    except CyclicDependencyError as exc:
        for cycle in exc.cycles:
            sys.stderr.write(f"{cycle.message}\n")
        return 1
    except (DuplicateModuleError, UnknownDependencyError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1

    for name in order:
        sys.stdout.write(f"{name}\n")
    return 0


def _handle_stats(root: Path) -> int:
    config = load_config(root)
    cache = open_cache(root, config)
    stats = cache.stats()
    sys.stdout.write(f"entries: {stats.entries}\n")
    sys.stdout.write(f"total_size: {stats.total_size}\n")
    sys.stdout.write(f"max_size: {cache.max_size}\n")
    return 0


def _handle_clear(root: Path, key: str | None) -> int:
    config = load_config(root)
    open_cache(root, config).clear(key)
    return 0


def _handle_evict(root: Path, max_size: str | None) -> int:
    config = load_config(root)
    removed = open_cache(root, config).evict(max_size)
    sys.stdout.write(f"evicted: {len(removed)}\n")
    return 0


def _handle_prune(root: Path) -> int:
    config = load_config(root)
    rules = RulesLoader().load(config.target, root / config.rules_path)
    removed = open_cache(root, config).invalidate(
        None,
        rules.content_hash,
        config.tool_version,
        config.target,
    )
    sys.stdout.write(f"pruned: {len(removed)}\n")
    return 0


def _handle_verify(root: Path) -> int:
    cache_dir = resolve_output_dir(root, load_config(root).cache.dir)
    try:
        result = verify_cache(cache_dir)
    except (FileNotFoundError, NotADirectoryError, ValueError) as exc:
        sys.stderr.write(f"cache-dir: {cache_dir}\n")
        sys.stderr.write(f"error: {exc}\n")
        return 2
    if not result.ok:
        for label, names in (
            ("missing", result.missing),
            ("extra", result.extra),
            ("size-mismatch", result.size_mismatches),
        ):
            for name in names:
                sys.stderr.write(f"{label}: {name}\n")
        if not result.total_size_ok:
            sys.stderr.write("total-size: manifest total does not match entries\n")
        return 1
    return 0


def _dispatch(args: argparse.Namespace, root: Path) -> int:
    if args.command == "order":
        return _handle_order(root)

    if args.cache_command == "stats":
        return _handle_stats(root)

    if args.cache_command == "clear":
        return _handle_clear(root, args.key)

    if args.cache_command == "evict":
        return _handle_evict(root, args.max_size)

    if args.cache_command == "prune":
        return _handle_prune(root)

    if args.cache_command == "verify":
        return _handle_verify(root)

    raise AssertionError


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    root = Path(args.root).expanduser().resolve()

    try:
        return _dispatch(args, root)
    except (ConfigError, ContextBuildError, RulesLoadError, SizeParseError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2
    except CacheOperationError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
