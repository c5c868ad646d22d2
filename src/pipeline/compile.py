"""Incremental compilation of a whole project."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from cache.models import CacheEntry, CacheMetadata
from cache.store import CompilationCache
from contract.artifacts import TARGET_SPECS
from pipeline.context import CyclicDependencyError, build_context
from pipeline.transform import (
    DependencyContext,
    TransformationError,
    TransformRequest,
)
from rules.config import load_config, resolve_output_dir
from rules.loader import RulesLoader
from utils import fingerprint, sha256_text

if TYPE_CHECKING:
    from cache.store import CacheStats
    from pipeline.context import ProjectContext
    from pipeline.transform import Transformer, TransformResult
    from rules.config import AIConfig, BuildConfig
    from rules.loader import LanguageRules

logger = logging.getLogger(__name__)


class ModuleStatus(str, Enum):
    COMPILED = "compiled"
    CACHED = "cached"
    FAILED = "failed"


@dataclass(frozen=True)
class ModuleOutcome:
    name: str
    status: ModuleStatus
    key: str | None = None
    output_path: Path | None = None
    test_path: Path | None = None
    error: str | None = None


@dataclass
class BuildReport:
    """Result of ``compile_project``: one outcome per module, in build order."""

    outcomes: list[ModuleOutcome] = field(default_factory=list)
    invalidated: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)
    cache_stats: CacheStats | None = None

    @property
    def ok(self) -> bool:
        return all(outcome.status != ModuleStatus.FAILED for outcome in self.outcomes)

    def count(self, status: ModuleStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def outcome(self, name: str) -> ModuleOutcome | None:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None


def open_cache(root: Path, config: BuildConfig) -> CompilationCache:
    """Create the project's cache from configuration."""
    return CompilationCache(
        resolve_output_dir(root, config.cache.dir),
        max_size=config.cache.max_size,
        tool_version=config.tool_version,
    )


def build_order(context: ProjectContext) -> list[str]:
    """Return modules with dependencies before their dependents.

    ``resolve_order`` lists dependents first; compiling walks it backwards.

    Raises:
        CyclicDependencyError: Carrying every detected cycle.
    """
    order = context.compile_order()
    if not order and context.graph.nodes:
        raise CyclicDependencyError(context.cycles())
    return list(reversed(order))


def _dependency_context(context: ProjectContext, name: str) -> tuple[DependencyContext, ...]:
    deps: list[DependencyContext] = []
    for dep_name in dict.fromkeys(context.dependencies(name)):
        descriptor = context.module(dep_name)
        if descriptor is None:
            continue
        deps.append(
            DependencyContext(
                name=descriptor.name,
                exports=descriptor.declared_exports,
                source_location=descriptor.source_location,
            )
        )
    return tuple(deps)


def _call_transformer(
    transformer: Transformer, request: TransformRequest, ai: AIConfig
) -> TransformResult:
    """Call the transformer, retrying retryable failures with doubling backoff."""
    attempt = 0
    while True:
        try:
            return transformer.transform(request)
        except TransformationError as exc:
            if not exc.retryable or attempt >= ai.max_retries:
                raise
            wait = ai.retry_delay * (2**attempt)
            attempt += 1
            logger.warning(
                "Retrying %s in %.1fs (%d/%d): %s",
                request.module,
                wait,
                attempt,
                ai.max_retries,
                exc,
            )
            time.sleep(wait)


def _transform(
    transformer: Transformer,
    request: TransformRequest,
    *,
    key: str,
    rules: LanguageRules,
    config: BuildConfig,
) -> CacheEntry:
    start = time.perf_counter()
    result = _call_transformer(transformer, request, config.ai)
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    if not result.code.strip():
        msg = "Transformer returned no code"
        raise TransformationError(msg, module=request.module)

    return CacheEntry(
        key=key,
        source_hash=sha256_text(request.source),
        rules_hash=rules.content_hash,
        compiled_code=result.code,
        generated_tests=result.generated_tests,
        metadata=CacheMetadata(
            duration_ms=result.duration_ms or elapsed_ms,
            model=result.model or config.ai.model,
            tool_version=config.tool_version,
            target=config.target,
        ),
    )


def _write_outputs(
    name: str,
    entry: CacheEntry,
    *,
    out_dir: Path,
    test_dir: Path,
    target: str,
) -> tuple[Path, Path | None]:
    spec = TARGET_SPECS[target]
    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / f"{name}{spec.code_suffix}"
    output_path.write_text(entry.compiled_code, encoding="utf-8")

    test_path: Path | None = None
    if entry.generated_tests:
        test_dir.mkdir(parents=True, exist_ok=True)
        test_path = test_dir / f"{name}{spec.test_suffix}"
        test_path.write_text(entry.generated_tests, encoding="utf-8")

    return output_path, test_path


def compile_project(
    *,
    root: Path,
    transformer: Transformer,
    config: BuildConfig | None = None,
    force: bool = False,
    rules_loader: RulesLoader | None = None,
) -> BuildReport:
    """Compile every module of a project, reusing cached results.

    Modules are compiled dependencies-first. For each one the cache
    fingerprint of (source, rules, tool version, target) is looked up; only
    a miss reaches the transformer, and its result is stored. Transformer
    failures marked retryable are retried up to ``ai.max_retries`` times. A
    module whose dependency failed is not compiled. When ``cache.auto_evict``
    is set the cache is trimmed to ``cache.max_size`` once at the end.

    A ``rules_loader`` reused across builds skips re-reading an unchanged
    rules file. When the file did change, entries built from other rules are
    pruned before compiling.

    Args:
        root: Project root directory.
        transformer: Transformation collaborator.
        config: Optional configuration; loaded from the root when omitted.
        force: Skip cache lookups (results are still stored).
        rules_loader: Optional loader kept by callers that build repeatedly.

    Returns:
        BuildReport with one outcome per module.

    Raises:
        CyclicDependencyError: If the modules form a dependency cycle.
        DuplicateModuleError, UnknownDependencyError: From graph building.
        RulesLoadError: If the rules file cannot be loaded.
        CacheOperationError: If the cache storage fails.
    """
    if config is None:
        config = load_config(root)

    context = build_context(root, config)
    order = build_order(context)

    loader = rules_loader or RulesLoader()
    rules_path = root / config.rules_path
    previous = loader.get_cached(config.target)
    if previous is not None and not loader.has_changed(config.target, rules_path):
        rules = previous
    else:
        rules = loader.load(config.target, rules_path)

    cache = open_cache(root, config) if config.cache.enabled else None
    out_dir = resolve_output_dir(root, config.output.dir)
    test_dir = resolve_output_dir(root, config.output.test_dir)

    report = BuildReport()
    rules_changed = previous is not None and previous.content_hash != rules.content_hash
    if cache is not None and rules_changed:
        logger.info("Rules for %s changed; pruning stale cache entries", config.target)
        report.invalidated = cache.invalidate(
            None, rules.content_hash, config.tool_version, config.target
        )

    failed: set[str] = set()

    for name in order:
        descriptor = context.module(name)
        if descriptor is None:
            continue

        blocked = [
            dep
            for dep in dict.fromkeys(descriptor.declared_dependencies)
            if dep in failed
        ]
        if blocked:
            failed.add(name)
            report.outcomes.append(
                ModuleOutcome(
                    name=name,
                    status=ModuleStatus.FAILED,
                    error=f"Dependency failed: {', '.join(blocked)}",
                )
            )
            continue

        try:
            # Bytes, not read_text: newline translation would hide CRLF edits.
            source = Path(descriptor.source_location).read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            failed.add(name)
            report.outcomes.append(
                ModuleOutcome(name=name, status=ModuleStatus.FAILED, error=str(exc))
            )
            continue

        key = fingerprint(source, rules.content, config.tool_version, config.target)
        entry = cache.get(key) if cache is not None and not force else None
        status = ModuleStatus.CACHED

        if entry is None:
            request = TransformRequest(
                module=name,
                source=source,
                rules=rules.content,
                target=config.target,
                dependencies=_dependency_context(context, name),
            )
            try:
                entry = _transform(
                    transformer, request, key=key, rules=rules, config=config
                )
            except TransformationError as exc:
                logger.error("Failed to compile %s: %s", name, exc)
                failed.add(name)
                report.outcomes.append(
                    ModuleOutcome(
                        name=name,
                        status=ModuleStatus.FAILED,
                        key=key,
                        error=str(exc),
                    )
                )
                continue

            if cache is not None:
                cache.set(key, entry)
            status = ModuleStatus.COMPILED

        output_path, test_path = _write_outputs(
            name, entry, out_dir=out_dir, test_dir=test_dir, target=config.target
        )
        logger.info("%s %s -> %s", status.value, name, output_path)
        report.outcomes.append(
            ModuleOutcome(
                name=name,
                status=status,
                key=key,
                output_path=output_path,
                test_path=test_path,
            )
        )

    if cache is not None:
        if config.cache.auto_evict:
            report.evicted = cache.evict(config.cache.max_size_bytes)
        report.cache_stats = cache.stats()

    return report


__all__ = [
    "BuildReport",
    "ModuleOutcome",
    "ModuleStatus",
    "build_order",
    "compile_project",
    "open_cache",
]
