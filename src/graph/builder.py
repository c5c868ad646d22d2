"""Dependency graph construction from a module registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from graph.registry import ModuleRegistry


class UnknownDependencyError(Exception):
    """Raised when a module imports a name that is not a registered module."""

    def __init__(self, module: str, dependency: str) -> None:
        self.module = module
        self.dependency = dependency
        super().__init__(
            f'Module "{module}" depends on an unknown module "{dependency}"'
        )


@dataclass
class DependencyGraph:
    """Module -> dependency edges and their transpose.

    Nodes and edge sets are frozen after construction. The only field ever
    written afterwards is ``compile_order``, once, by ``resolve_order``.
    """

    nodes: frozenset[str]
    edges: Mapping[str, frozenset[str]]
    reverse_edges: Mapping[str, frozenset[str]]
    node_order: tuple[str, ...] = field(default_factory=tuple)
    compile_order: tuple[str, ...] | None = None

    def dependencies(self, name: str) -> frozenset[str]:
        return self.edges.get(name, frozenset())

    def dependents(self, name: str) -> frozenset[str]:
        return self.reverse_edges.get(name, frozenset())

    def edge_count(self) -> int:
        return sum(len(targets) for targets in self.edges.values())


def build_graph(registry: ModuleRegistry) -> DependencyGraph:
    """Build the dependency graph for every registered module.

    Args:
        registry: Registry snapshot to build from.

    Returns:
        A DependencyGraph whose ``reverse_edges`` is the exact transpose of
        ``edges``.

    Raises:
        UnknownDependencyError: On the first declared dependency that is not
            a registered module. No partial graph is returned.
    """
    node_order = tuple(registry.names())
    nodes = frozenset(node_order)

    edges: dict[str, set[str]] = {name: set() for name in node_order}
    reverse_edges: dict[str, set[str]] = {name: set() for name in node_order}

    for descriptor in registry:
        for dependency in descriptor.declared_dependencies:
            if dependency not in nodes:
                raise UnknownDependencyError(descriptor.name, dependency)
            edges[descriptor.name].add(dependency)
            reverse_edges[dependency].add(descriptor.name)

    return DependencyGraph(
        nodes=nodes,
        edges=MappingProxyType({k: frozenset(v) for k, v in edges.items()}),
        reverse_edges=MappingProxyType(
            {k: frozenset(v) for k, v in reverse_edges.items()}
        ),
        node_order=node_order,
    )


__all__ = ["DependencyGraph", "UnknownDependencyError", "build_graph"]
