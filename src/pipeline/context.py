"""Project context: discovery, registry and dependency graph for one build."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from graph.algos import detect_cycles, resolve_order
from graph.builder import build_graph
from graph.registry import ModuleDescriptor, ModuleRegistry
from parse.features import parse_many
from rules.config import load_config
from scan.files import find_feature_files

if TYPE_CHECKING:
    from pathlib import Path

    from graph.algos import Cycle
    from graph.builder import DependencyGraph
    from parse.features import ParsedFeature
    from rules.config import BuildConfig

logger = logging.getLogger(__name__)


class ContextBuildError(Exception):
    """Raised when the project root cannot be used to build a context."""


class CyclicDependencyError(Exception):
    """Raised by the orchestrator when no compile order exists."""

    def __init__(self, cycles: list[Cycle]) -> None:
        self.cycles = cycles
        lines = "\n".join(f"  - {cycle.message}" for cycle in cycles)
        super().__init__(f"Circular dependencies detected:\n{lines}")


@dataclass
class ProjectContext:
    """Everything a build knows about the project's modules.

    Owns the registry and the graph; nothing here is global.
    """

    root: Path
    config: BuildConfig
    registry: ModuleRegistry
    graph: DependencyGraph
    parsed: dict[str, ParsedFeature] = field(default_factory=dict)

    @property
    def skipped(self) -> list[ParsedFeature]:
        """Files excluded from the registry because of structural errors."""
        return [feature for feature in self.parsed.values() if not feature.ok]

    def compile_order(self) -> list[str]:
        return resolve_order(self.graph)

    def cycles(self) -> list[Cycle]:
        return detect_cycles(self.graph)

    def module(self, name: str) -> ModuleDescriptor | None:
        return self.registry.lookup(name)

    def dependencies(self, name: str) -> list[str]:
        return self.registry.dependencies_of(name)


def build_context(root: Path, config: BuildConfig | None = None) -> ProjectContext:
    """Discover and parse feature files, then build the registry and graph.

    Args:
        root: Project root directory.
        config: Optional configuration; loaded from the root when omitted.

    Raises:
        ContextBuildError: If the root does not exist or is not a directory.
        DuplicateModuleError: If two files declare the same feature name.
        UnknownDependencyError: If a module imports an unregistered name.
        ConfigError: If the config file is invalid.
    """
    if not root.is_dir():
        msg = f"Root directory not found: {root}"
        raise ContextBuildError(msg)

    if config is None:
        config = load_config(root)

    feature_files = find_feature_files(
        root,
        skip_paths=(config.output.dir, config.output.test_dir, config.cache.dir),
        include_patterns=config.include or None,
        exclude_patterns=config.exclude or None,
    )
    parsed = parse_many(feature_files)

    registry = ModuleRegistry()
    registry.register(ModuleDescriptor.from_parsed(feature) for feature in parsed.values())

    for feature in parsed.values():
        if not feature.ok:
            logger.warning(
                "Skipping %s: %s",
                feature.file_path,
                "; ".join(issue.message for issue in feature.errors),
            )

    graph = build_graph(registry)
    logger.info(
        "Discovered %d modules (%d dependency edges)",
        len(graph.nodes),
        graph.edge_count(),
    )

    return ProjectContext(
        root=root,
        config=config,
        registry=registry,
        graph=graph,
        parsed=parsed,
    )


__all__ = [
    "ContextBuildError",
    "CyclicDependencyError",
    "ProjectContext",
    "build_context",
]
