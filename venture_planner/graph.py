"""
Venture Planner — dependency graph (NetworkX).

Shared by the task scheduler and the simulator's monthly stage pipeline:
nodes are registered with the names they depend on, the resolver returns a
deterministic topological order and refuses cyclic graphs.
"""

from __future__ import annotations

from typing import Any, Iterable

import networkx as nx

from .errors import CycleError


class DependencyGraph:
    """
    Directed dependency graph with:
     - insertion-order-stable topological ordering
     - cycle detection reporting the offending path
     - missing-dependency reporting
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self._dependencies: dict[str, tuple[str, ...]] = {}
        self._position: dict[str, int] = {}
        self._order_cache: list[str] | None = None

    def add_node(self, name: str, dependencies: Iterable[str] = ()):
        """Register `name`; an edge dep -> name is added for every dependency."""
        deps = tuple(dependencies)
        self._dependencies[name] = deps
        self._position.setdefault(name, len(self._position))
        self.graph.add_node(name)
        for dep in deps:
            self.graph.add_edge(dep, name)
        self._order_cache = None

    def __contains__(self, name: str) -> bool:
        return name in self._dependencies

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        return self._dependencies[name]

    def missing_dependencies(self) -> dict[str, list[str]]:
        """Map of node -> dependencies that were never registered."""
        missing = {}
        for name, deps in self._dependencies.items():
            unknown = [d for d in deps if d not in self._dependencies]
            if unknown:
                missing[name] = unknown
        return missing

    def find_cycle(self) -> list[str] | None:
        """Nodes along one cycle, in dependency order, or None."""
        try:
            edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return None
        return [u for u, _ in edges]

    def validate(self) -> bool:
        """Acyclic and every dependency exists."""
        return nx.is_directed_acyclic_graph(self.graph) and not self.missing_dependencies()

    def resolve_order(self) -> list[str]:
        """Topological order of registered nodes; raises CycleError."""
        if self._order_cache is not None:
            return self._order_cache
        cycle = self.find_cycle()
        if cycle is not None:
            raise CycleError(cycle)
        order = nx.lexicographical_topological_sort(
            self.graph, key=lambda n: self._position.get(n, len(self._position))
        )
        self._order_cache = [n for n in order if n in self._dependencies]
        return self._order_cache

    def to_dict(self) -> dict[str, Any]:
        """Serialize graph structure for output."""
        return {
            "nodes": [
                {"name": name, "deps": list(deps)}
                for name, deps in self._dependencies.items()
            ],
            "edges": list(self.graph.edges()),
            "order": self.resolve_order(),
        }
