from __future__ import annotations

import pytest

from graph.algos import Cycle, detect_cycles, resolve_order
from graph.builder import DependencyGraph, UnknownDependencyError, build_graph
from graph.registry import ModuleDescriptor, ModuleRegistry


def _graph(modules: dict[str, list[str]]) -> DependencyGraph:
    registry = ModuleRegistry()
    registry.register(
        ModuleDescriptor(
            name=name,
            source_location=f"{name}.feature",
            declared_dependencies=tuple(deps),
        )
        for name, deps in modules.items()
    )
    return build_graph(registry)


def _assert_sound(graph: DependencyGraph) -> None:
    for source, targets in graph.edges.items():
        assert source in graph.nodes
        for target in targets:
            assert target in graph.nodes
            assert source in graph.reverse_edges[target]
    for target, sources in graph.reverse_edges.items():
        assert target in graph.nodes
        for source in sources:
            assert source in graph.nodes
            assert target in graph.edges[source]


def test_build_graph_edges_are_exact_transpose() -> None:
    graph = _graph(
        {
            "Utils": [],
            "Logic": ["Utils"],
            "Mathematics": ["Utils", "Logic"],
            "App": ["Mathematics", "Utils"],
        }
    )

    _assert_sound(graph)
    assert graph.edges["Mathematics"] == frozenset({"Utils", "Logic"})
    assert graph.reverse_edges["Utils"] == frozenset({"Logic", "Mathematics", "App"})
    assert graph.edge_count() == 5


def test_build_graph_unknown_dependency_aborts() -> None:
    registry = ModuleRegistry()
    registry.register(
        [
            ModuleDescriptor(name="Utils", source_location="u.feature"),
            ModuleDescriptor(
                name="Mathematics",
                source_location="m.feature",
                declared_dependencies=("Utils", "Geometry"),
            ),
        ]
    )

    with pytest.raises(UnknownDependencyError) as exc_info:
        build_graph(registry)

    assert exc_info.value.module == "Mathematics"
    assert exc_info.value.dependency == "Geometry"


def test_graph_edges_are_read_only() -> None:
    graph = _graph({"Utils": []})

    with pytest.raises(TypeError):
        graph.edges["Other"] = frozenset()  # type: ignore[index]


def test_resolve_order_puts_dependents_first() -> None:
    graph = _graph({"Utils": [], "Mathematics": ["Utils"]})

    order = resolve_order(graph)

    assert sorted(order) == ["Mathematics", "Utils"]
    assert order.index("Mathematics") < order.index("Utils")


def test_resolve_order_contains_every_node_once_when_acyclic() -> None:
    graph = _graph(
        {
            "A": ["B", "C"],
            "B": ["D"],
            "C": ["D"],
            "D": [],
            "Lonely": [],
        }
    )

    assert detect_cycles(graph) == []
    order = resolve_order(graph)

    assert sorted(order) == ["A", "B", "C", "D", "Lonely"]
    for source, targets in graph.edges.items():
        for target in targets:
            assert order.index(source) < order.index(target)


def test_resolve_order_is_memoized() -> None:
    graph = _graph({"Utils": [], "Mathematics": ["Utils"]})

    first = resolve_order(graph)
    assert graph.compile_order == tuple(first)

    graph.compile_order = ("Sentinel",)
    assert resolve_order(graph) == ["Sentinel"]


def test_cyclic_graph_yields_empty_order_and_cycles() -> None:
    graph = _graph({"A": ["B"], "B": ["C"], "C": ["A"], "D": ["A"]})

    cycles = detect_cycles(graph)

    assert cycles == [Cycle(modules=("A", "B", "C", "A"))]
    assert cycles[0].message == "Circular dependency: A -> B -> C -> A"
    assert resolve_order(graph) == []
    assert graph.compile_order is None


def test_detect_cycles_reports_independent_cycles() -> None:
    graph = _graph(
        {
            "A": ["B"],
            "B": ["A"],
            "X": ["Y"],
            "Y": ["Z"],
            "Z": ["X"],
            "Free": [],
        }
    )

    cycles = detect_cycles(graph)

    assert [cycle.modules for cycle in cycles] == [
        ("A", "B", "A"),
        ("X", "Y", "Z", "X"),
    ]


def test_detect_cycles_self_loop() -> None:
    graph = _graph({"Selfish": ["Selfish"]})

    assert detect_cycles(graph) == [Cycle(modules=("Selfish", "Selfish"))]
    assert resolve_order(graph) == []


def test_detect_cycles_is_idempotent_and_pure() -> None:
    graph = _graph({"A": ["B"], "B": ["A"]})
    edges_before = dict(graph.edges)

    assert detect_cycles(graph) == detect_cycles(graph)
    assert dict(graph.edges) == edges_before


def test_empty_graph() -> None:
    graph = _graph({})

    assert detect_cycles(graph) == []
    assert resolve_order(graph) == []


def test_detect_cycles_handles_chains_deeper_than_recursion_limit() -> None:
    names = [f"M{i:05d}" for i in range(5000)]
    chain = {name: [names[i + 1]] for i, name in enumerate(names[:-1])}
    chain[names[-1]] = []

    graph = _graph(chain)

    assert detect_cycles(graph) == []
    order = resolve_order(graph)
    assert order[0] == names[0]
    assert order[-1] == names[-1]


def test_detect_cycles_reports_long_ring() -> None:
    names = [f"M{i:05d}" for i in range(3000)]
    ring = {name: [names[(i + 1) % len(names)]] for i, name in enumerate(names)}

    cycles = detect_cycles(_graph(ring))

    assert len(cycles) == 1
    assert cycles[0].modules == (*names, names[0])
    assert resolve_order(_graph(ring)) == []
