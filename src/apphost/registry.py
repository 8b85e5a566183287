"""Service registry: the registration API for the launcher."""

import logging

from apphost.errors import DuplicateNameError
from apphost.graph import DependencyGraph, ServiceDescriptor
from apphost.protocols import ReadinessProbe, Service, StartAction

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Holds named service descriptors and their dependency edges.

    A registry is constructed explicitly and handed to a Launcher; there is
    no process-wide instance.
    """

    def __init__(self) -> None:
        """Initialise an empty registry."""
        self._graph = DependencyGraph()
        logger.debug("ServiceRegistry initialized")

    @property
    def graph(self) -> DependencyGraph:
        """Dependency graph backing this registry."""
        return self._graph

    def __contains__(self, name: object) -> bool:
        return name in self._graph

    def __len__(self) -> int:
        return len(self._graph)

    @property
    def names(self) -> list[str]:
        """Registered service names in registration order."""
        return [d.name for d in self._graph.descriptors()]

    def register(
        self,
        name: str,
        start: StartAction,
        ready: ReadinessProbe | None = None,
        readiness_timeout: float | None = None,
    ) -> ServiceDescriptor:
        """Register a service.

        Args:
            name: Unique service name.
            start: Start action (sync or async callable).
            ready: Readiness probe. When omitted the service is Ready as
                soon as its start action returns.
            readiness_timeout: Override of the host readiness timeout.

        Returns:
            The new service descriptor.

        Raises:
            DuplicateNameError: If the name is already registered.
            ValueError: If the name is empty or the timeout is not positive.

        """
        if not name:
            raise ValueError("Service name must not be empty")
        if name in self._graph:
            raise DuplicateNameError(f"Service '{name}' is already registered")
        if readiness_timeout is not None and readiness_timeout <= 0:
            raise ValueError(
                f"readiness_timeout for '{name}' must be positive, "
                f"got {readiness_timeout}"
            )

        descriptor = ServiceDescriptor(
            name=name,
            start=start,
            ready=ready,
            readiness_timeout=readiness_timeout,
            index=len(self._graph),
        )
        self._graph.add(descriptor)
        logger.debug("Registered service: %s", name)
        return descriptor

    def register_service(
        self,
        name: str,
        service: Service,
        readiness_timeout: float | None = None,
    ) -> ServiceDescriptor:
        """Register an object implementing the Service protocol."""
        return self.register(
            name,
            service.start,
            ready=service.is_ready,
            readiness_timeout=readiness_timeout,
        )

    def add_dependency(self, dependent_name: str, dependency_name: str) -> None:
        """Record that ``dependent_name`` must wait for ``dependency_name``.

        Raises:
            UnknownServiceError: If either service is not registered.
            CycleError: If the edge would create a cycle.

        """
        self._graph.add_edge(dependent_name, dependency_name)
        logger.debug("Service '%s' waits for '%s'", dependent_name, dependency_name)

    def get(self, name: str) -> ServiceDescriptor:
        """Get the descriptor for a registered service.

        Raises:
            UnknownServiceError: If the service is not registered.

        """
        return self._graph.get(name)

    def startup_order(self) -> list[str]:
        """Return the order in which services would be started."""
        return self._graph.topological_order()
