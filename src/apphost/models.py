"""Pydantic models for host configuration, manifests and run results."""

from __future__ import annotations

import os
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Pattern for import references: "package.module:attribute"
_IMPORT_REF_PATTERN = r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$"


class ServiceState(str, Enum):
    """States in the service lifecycle.

    Transitions only move forward:
    registered -> starting -> {ready, failed}, or registered -> failed
    when a dependency fails or shutdown is requested before start.
    """

    REGISTERED = "registered"
    STARTING = "starting"
    READY = "ready"
    FAILED = "failed"


# =============================================================================
# Configuration
# =============================================================================


class HostConfig(BaseModel):
    """Launcher configuration.

    Defaults are explicit: a service that is not ready after
    ``readiness_timeout`` seconds fails, and there is no retry.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    readiness_timeout: float = Field(default=30.0, gt=0)
    """Seconds to wait for a started service to report ready."""

    poll_interval: float = Field(default=0.1, gt=0)
    """Seconds between readiness probe calls."""

    max_concurrency: int = Field(default=10, ge=1)
    """Maximum number of services starting or awaiting readiness at once."""

    @classmethod
    def from_properties(cls, properties: dict[str, Any]) -> Self:
        """Create configuration from a properties dictionary with validation.

        Raises:
            ValidationError: If properties are invalid or unknown.

        """
        return cls.model_validate(properties)

    @classmethod
    def from_env(cls) -> Self:
        """Create configuration from APPHOST_* environment variables.

        Unset variables fall back to the model defaults.

        Raises:
            ValidationError: If a variable holds an invalid value.

        """
        properties: dict[str, Any] = {}
        for field_name in cls.model_fields:
            value = os.getenv(f"APPHOST_{field_name.upper()}")
            if value:
                properties[field_name] = value
        return cls.from_properties(properties)

    def with_overrides(self, **overrides: Any) -> Self:  # noqa: ANN401
        """Return a validated copy with the non-None overrides applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return type(self).model_validate({**self.model_dump(), **updates})


# =============================================================================
# Host manifest
# =============================================================================


class ConfigOverrides(BaseModel):
    """Partial host configuration declared in a manifest."""

    model_config = ConfigDict(extra="forbid")

    readiness_timeout: float | None = Field(default=None, gt=0)
    poll_interval: float | None = Field(default=None, gt=0)
    max_concurrency: int | None = Field(default=None, ge=1)


class ServiceDefinition(BaseModel):
    """Definition of a single service in a host manifest."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None

    start: str = Field(pattern=_IMPORT_REF_PATTERN)
    """Import reference of the start action, e.g. ``eshop.products:start``."""

    ready: str | None = Field(default=None, pattern=_IMPORT_REF_PATTERN)
    """Import reference of the readiness probe. Ready on start if omitted."""

    depends_on: list[str] = Field(default_factory=list)
    readiness_timeout: float | None = Field(default=None, gt=0)

    @field_validator("depends_on", mode="before")
    @classmethod
    def coerce_single_dependency(cls, value: Any) -> Any:  # noqa: ANN401
        """Allow ``depends_on: products`` as shorthand for a one-item list."""
        if isinstance(value, str):
            return [value]
        return value


class HostManifest(BaseModel):
    """Top-level host manifest model."""

    name: str
    description: str | None = None
    config: ConfigOverrides = Field(default_factory=ConfigOverrides)
    services: dict[str, ServiceDefinition] = Field(min_length=1)


# =============================================================================
# Run results
# =============================================================================


class ServiceResult(BaseModel):
    """Terminal outcome of a single service in a run."""

    name: str
    state: ServiceState
    error: str | None = None
    error_type: str | None = None
    started: bool = False
    """Whether the start action was invoked."""

    start_sequence: int | None = None
    """Position of this service in the run's start order."""

    duration_seconds: float = 0.0


class RunResult(BaseModel):
    """Summary of a launcher run, keyed by service name in registration order."""

    services: dict[str, ServiceResult] = Field(default_factory=dict)
    total_duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def ready(self) -> list[str]:
        """Names of services that ended Ready."""
        return [n for n, r in self.services.items() if r.state is ServiceState.READY]

    @property
    def failed(self) -> list[str]:
        """Names of services that ended Failed."""
        return [n for n, r in self.services.items() if r.state is ServiceState.FAILED]

    @property
    def all_ready(self) -> bool:
        """True when every registered service ended Ready."""
        return len(self.ready) == len(self.services)

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 when all services are Ready, 1 otherwise."""
        return 0 if self.all_ready else 1

    @property
    def start_order(self) -> list[str]:
        """Names of started services, ordered by when they were started."""
        started = [r for r in self.services.values() if r.start_sequence is not None]
        return [r.name for r in sorted(started, key=lambda r: r.start_sequence or 0)]
