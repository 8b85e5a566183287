"""Dependency graph for service startup ordering.

This module provides the ServiceDescriptor record and the DependencyGraph
that maps service names to descriptors, keeps the graph acyclic as edges are
added, and yields a stable topological order.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from graphlib import TopologicalSorter

from apphost.errors import CycleError, UnknownServiceError
from apphost.protocols import ReadinessProbe, StartAction


@dataclass(frozen=True)
class ServiceDescriptor:
    """Immutable registration record for a service.

    Attributes:
        name: Unique service name.
        start: Start action, sync or async.
        ready: Readiness probe, or None when the service is ready once started.
        dependencies: Names of services that must be Ready before this one starts.
        readiness_timeout: Per-service override of the host readiness timeout.
        index: Registration order, used as the topological tie-break.

    """

    name: str
    start: StartAction = field(compare=False)
    ready: ReadinessProbe | None = field(default=None, compare=False)
    dependencies: frozenset[str] = frozenset()
    readiness_timeout: float | None = None
    index: int = 0


class DependencyGraph:
    """Acyclic mapping from service name to descriptor.

    Maintains a reverse index for dependent queries. Edges are validated
    before insertion so the graph never holds a cycle.
    """

    def __init__(self) -> None:
        """Initialise an empty graph."""
        self._descriptors: dict[str, ServiceDescriptor] = {}
        self._dependents: dict[str, set[str]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def add(self, descriptor: ServiceDescriptor) -> None:
        """Add a node. Callers are responsible for name uniqueness."""
        self._descriptors[descriptor.name] = descriptor
        self._dependents.setdefault(descriptor.name, set())
        for dep in descriptor.dependencies:
            self._dependents.setdefault(dep, set()).add(descriptor.name)

    def get(self, name: str) -> ServiceDescriptor:
        """Get the descriptor for a service.

        Raises:
            UnknownServiceError: If the service is not in the graph.

        """
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownServiceError(f"Service '{name}' is not registered") from None

    def descriptors(self) -> list[ServiceDescriptor]:
        """Return all descriptors in registration order."""
        return sorted(self._descriptors.values(), key=lambda d: d.index)

    def add_edge(self, dependent: str, dependency: str) -> ServiceDescriptor:
        """Record that ``dependent`` waits for ``dependency``.

        Args:
            dependent: The service that must wait.
            dependency: The service that must be Ready first.

        Returns:
            The updated descriptor of the dependent.

        Raises:
            UnknownServiceError: If either service is not in the graph.
            CycleError: If the edge would create a cycle. The graph is unchanged.

        """
        current = self.get(dependent)
        self.get(dependency)

        if dependency in current.dependencies:
            return current

        # The new edge closes a cycle iff dependent is already reachable
        # from dependency along existing edges.
        path = self._find_path(dependency, dependent)
        if path is not None:
            cycle = " -> ".join([dependent, *path])
            raise CycleError(
                f"Dependency '{dependent}' -> '{dependency}' "
                f"creates a cycle: {cycle}"
            )

        updated = replace(current, dependencies=current.dependencies | {dependency})
        self._descriptors[dependent] = updated
        self._dependents[dependency].add(dependent)
        return updated

    def _find_path(self, source: str, target: str) -> list[str] | None:
        """Depth-first search along dependency edges from source to target."""
        stack: list[tuple[str, list[str]]] = [(source, [source])]
        visited: set[str] = set()
        while stack:
            node, path = stack.pop()
            if node == target:
                return path
            if node in visited:
                continue
            visited.add(node)
            for dep in self._descriptors[node].dependencies:
                if dep not in visited:
                    stack.append((dep, [*path, dep]))
        return None

    def get_dependencies(self, name: str) -> frozenset[str]:
        """Get the services that this service depends on directly."""
        return self.get(name).dependencies

    def get_dependents(self, name: str) -> set[str]:
        """Get the services that depend on this service directly."""
        return set(self._dependents.get(name, set()))

    def get_transitive_dependents(self, name: str) -> set[str]:
        """Get every service that depends on this service, directly or not."""
        # Iterative traversal to avoid recursion limits on deep chains
        found: set[str] = set()
        to_visit = list(self._dependents.get(name, set()))
        while to_visit:
            current = to_visit.pop()
            if current not in found:
                found.add(current)
                to_visit.extend(self._dependents.get(current, set()))
        return found

    def topological_order(self) -> list[str]:
        """Return all services in dependency order.

        Among services with no ordering constraint between them, the one
        registered first comes first.
        """
        descriptors = self._descriptors
        remaining = {name: len(d.dependencies) for name, d in descriptors.items()}
        heap = [(d.index, d.name) for d in descriptors.values() if not d.dependencies]
        heapq.heapify(heap)

        order: list[str] = []
        while heap:
            _, name = heapq.heappop(heap)
            order.append(name)
            for dependent in self._dependents.get(name, set()):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(heap, (descriptors[dependent].index, dependent))
        return order

    def create_sorter(self) -> TopologicalSorter[str]:
        """Create a new prepared TopologicalSorter for parallel launching.

        Each call creates a fresh sorter instance - the sorter is stateful
        and calling done() on one instance does not affect other instances.
        """
        sorter: TopologicalSorter[str] = TopologicalSorter(
            {name: set(d.dependencies) for name, d in self._descriptors.items()}
        )
        sorter.prepare()
        return sorter

    def get_depth(self) -> int:
        """Get the number of sequential startup levels in the graph."""
        sorter = self.create_sorter()
        depth = 0
        while sorter.is_active():
            ready = sorter.get_ready()
            if not ready:
                break
            sorter.done(*ready)
            depth += 1
        return depth
