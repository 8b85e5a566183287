"""apphost - Dependency-ordered service bootstrapper."""

from apphost.errors import (
    AppHostError,
    CycleError,
    DependencyFailedError,
    DependencyTimeoutError,
    DuplicateNameError,
    ManifestParseError,
    ReadinessTimeoutError,
    ServiceCancelledError,
    StartActionError,
    UnknownServiceError,
)
from apphost.graph import DependencyGraph, ServiceDescriptor
from apphost.launcher import Launcher
from apphost.manifest import (
    build_registry,
    load_host,
    parse_manifest,
    resolve_config,
)
from apphost.models import (
    HostConfig,
    HostManifest,
    RunResult,
    ServiceDefinition,
    ServiceResult,
    ServiceState,
)
from apphost.protocols import Service
from apphost.registry import ServiceRegistry

__all__ = [
    # Registry
    "DependencyGraph",
    "ServiceDescriptor",
    "ServiceRegistry",
    "Service",
    # Launcher
    "Launcher",
    # Models
    "HostConfig",
    "HostManifest",
    "RunResult",
    "ServiceDefinition",
    "ServiceResult",
    "ServiceState",
    # Manifest
    "build_registry",
    "load_host",
    "parse_manifest",
    "resolve_config",
    # Errors
    "AppHostError",
    "CycleError",
    "DependencyFailedError",
    "DependencyTimeoutError",
    "DuplicateNameError",
    "ManifestParseError",
    "ReadinessTimeoutError",
    "ServiceCancelledError",
    "StartActionError",
    "UnknownServiceError",
]
