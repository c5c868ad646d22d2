"""Graph algorithms over a built DependencyGraph."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from graph.builder import DependencyGraph


@dataclass(frozen=True)
class Cycle:
    """A closed dependency chain; the first module is repeated at the end."""

    modules: tuple[str, ...]

    @property
    def message(self) -> str:
        return f"Circular dependency: {' -> '.join(self.modules)}"

    def __str__(self) -> str:
        return self.message


class _CycleSearchState:
    """Mutable state container for the cycle-reporting DFS."""

    def __init__(self) -> None:
        self.visited: set[str] = set()
        self.on_stack: set[str] = set()
        self.path: list[str] = []
        self.cycles: list[Cycle] = []


def _visit(root: str, graph: DependencyGraph, state: _CycleSearchState) -> None:
    """Depth-first visit from ``root`` recording every back edge as a cycle.

    Iterative, so dependency chains deeper than the interpreter's recursion
    limit are walked like any other.
    """
    state.visited.add(root)
    state.on_stack.add(root)
    state.path.append(root)
    stack: list[tuple[str, Iterator[str]]] = [
        (root, iter(sorted(graph.dependencies(root))))
    ]

    while stack:
        node, pending = stack[-1]
        dependency = next(pending, None)
        if dependency is None:
            stack.pop()
            state.on_stack.discard(node)
            state.path.pop()
            continue

        if dependency not in state.visited:
            state.visited.add(dependency)
            state.on_stack.add(dependency)
            state.path.append(dependency)
            stack.append((dependency, iter(sorted(graph.dependencies(dependency)))))
        elif dependency in state.on_stack:
            start = state.path.index(dependency)
            chain = (*state.path[start:], dependency)
            state.cycles.append(Cycle(modules=chain))


def _iter_nodes(graph: DependencyGraph) -> list[str]:
    if graph.node_order:
        return list(graph.node_order)
    return sorted(graph.nodes)


def detect_cycles(graph: DependencyGraph) -> list[Cycle]:
    """Report every circular dependency chain in the graph.

    The DFS restarts from each unvisited node, so independent cycles in
    separate components are all reported. The graph is not modified, and
    repeated calls return equal results.

    Args:
        graph: Graph to inspect.

    Returns:
        List of cycles; empty when the graph is acyclic.
    """
    state = _CycleSearchState()

    for node in _iter_nodes(graph):
        if node not in state.visited:
            _visit(node, graph, state)

    return state.cycles


def resolve_order(graph: DependencyGraph) -> list[str]:
    """Compute a linear processing order with Kahn-style elimination.

    A node becomes eligible once every module that depends on it has been
    emitted, so dependents come before their dependencies (``Mathematics``
    before ``Utils`` when Mathematics imports Utils). Ties are broken by
    queue insertion order.

    Args:
        graph: Graph to order. A successful order is memoized on it.

    Returns:
        Every node exactly once, or an empty list when a cycle prevents a
        complete order. Use ``detect_cycles`` to learn which modules are
        involved.
    """
    if graph.compile_order is not None:
        return list(graph.compile_order)

    nodes = _iter_nodes(graph)
    remaining = {node: len(graph.dependents(node)) for node in nodes}
    queue: deque[str] = deque(node for node in nodes if remaining[node] == 0)
    order: list[str] = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for dependency in sorted(graph.dependencies(node)):
            remaining[dependency] -= 1
            if remaining[dependency] == 0:
                queue.append(dependency)

    if len(order) != len(graph.nodes):
        return []

    graph.compile_order = tuple(order)
    return order


__all__ = [
    "Cycle",
    "_CycleSearchState",
    "_visit",
    "detect_cycles",
    "resolve_order",
]
