"""Error types for service registration and launch failures."""


class AppHostError(Exception):
    """Base exception for all apphost errors."""


# -----------------------------------------------------------------------------
# Registration errors (raised to the caller, registry left unchanged)
# -----------------------------------------------------------------------------


class DuplicateNameError(AppHostError):
    """Raised when a service name is registered twice."""


class UnknownServiceError(AppHostError):
    """Raised when a referenced service has not been registered."""


class CycleError(AppHostError):
    """Raised when a dependency edge would create a cycle."""


class ManifestParseError(AppHostError):
    """Raised when a host manifest cannot be read, validated or resolved."""


# -----------------------------------------------------------------------------
# Runtime errors (recorded per service in the run result)
# -----------------------------------------------------------------------------


class StartActionError(AppHostError):
    """Raised when a service's start action fails."""


class DependencyTimeoutError(AppHostError):
    """Raised when a dependency does not become ready in time."""


class ReadinessTimeoutError(DependencyTimeoutError):
    """Raised when a started service does not report ready within its timeout."""


class DependencyFailedError(AppHostError):
    """Raised when a service cannot start because a dependency failed."""


class ServiceCancelledError(AppHostError):
    """Raised when shutdown is requested before a service became ready."""
