"""Protocols for services managed by the launcher."""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias, runtime_checkable

StartAction: TypeAlias = Callable[[], object | Awaitable[object]]
"""Sync or async callable that starts a service. Its return value is ignored."""

ReadinessProbe: TypeAlias = Callable[[], bool | Awaitable[bool]]
"""Sync or async callable that reports whether a service is ready."""


@runtime_checkable
class Service(Protocol):
    """Protocol for an externally implemented service.

    The launcher treats a service as opaque: it only needs a way to start it
    and a way to ask whether it has become ready. Both methods may be plain
    functions or coroutines.

    Example:
        ```python
        class ProductsService:
            def start(self) -> None:
                self._server = spawn_catalogue()

            def is_ready(self) -> bool:
                return self._server.accepting_connections

        registry.register_service("products", ProductsService())
        ```

    """

    def start(self) -> object | Awaitable[object]:
        """Start the service."""
        ...

    def is_ready(self) -> bool | Awaitable[bool]:
        """Return True once the service can satisfy requests from dependents."""
        ...
