"""YAML parser for host manifests.

This module parses host manifest files into validated Pydantic models and
builds a ServiceRegistry from them, resolving start actions and readiness
probes from ``module:attribute`` import references.
"""

import logging
import os
import re
from importlib.metadata import EntryPoint
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from apphost.errors import ManifestParseError
from apphost.models import HostConfig, HostManifest
from apphost.registry import ServiceRegistry

logger = logging.getLogger(__name__)

# Pattern for environment variable substitution: ${VAR_NAME}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def parse_manifest(path: Path) -> HostManifest:
    """Parse a host manifest from a YAML file with environment variable substitution.

    Args:
        path: Path to the manifest YAML file.

    Returns:
        Validated HostManifest model.

    Raises:
        ManifestParseError: If the file cannot be read, YAML is invalid,
            environment variables are missing, or validation fails.

    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ManifestParseError(f"Manifest file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ManifestParseError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ManifestParseError(f"Cannot read manifest file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestParseError(f"Manifest {path} must contain a mapping")

    data = _substitute_env_vars(data, path)

    return parse_manifest_from_dict(cast(dict[str, Any], data))


def _substitute_env_vars(value: Any, path: Path) -> Any:  # noqa: ANN401
    """Recursively substitute ${VAR_NAME} patterns with environment variable values.

    Raises:
        ManifestParseError: If an environment variable is not defined.

    """
    if isinstance(value, str):
        return _substitute_string(value, path)
    if isinstance(value, dict):
        dict_value = cast(dict[str, Any], value)
        return {k: _substitute_env_vars(v, path) for k, v in dict_value.items()}
    if isinstance(value, list):
        list_value = cast(list[Any], value)
        return [_substitute_env_vars(item, path) for item in list_value]
    return value


def _substitute_string(value: str, path: Path) -> str:
    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ManifestParseError(
                f"Environment variable '{var_name}' is not defined "
                f"(referenced in {path})"
            )
        return env_value

    return _ENV_VAR_PATTERN.sub(replace_match, value)


def parse_manifest_from_dict(data: dict[str, Any]) -> HostManifest:
    """Parse a host manifest directly from a dictionary.

    No environment variable substitution is performed.

    Raises:
        ManifestParseError: If the dict structure is invalid.

    """
    try:
        return HostManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestParseError(f"Invalid manifest structure: {e}") from e


def resolve_reference(reference: str) -> Any:  # noqa: ANN401
    """Import the object named by a ``module:attribute`` reference.

    Raises:
        ManifestParseError: If the reference cannot be imported or is not callable.

    """
    entry_point = EntryPoint(name=reference, value=reference, group="apphost.services")
    try:
        target = entry_point.load()
    except Exception as e:
        # Importing a service module can raise anything
        raise ManifestParseError(f"Cannot resolve '{reference}': {e}") from e
    if not callable(target):
        raise ManifestParseError(f"'{reference}' does not refer to a callable")
    return target


def build_registry(manifest: HostManifest) -> ServiceRegistry:
    """Build a ServiceRegistry from a parsed manifest.

    Services are registered in manifest order, then dependency edges are added.

    Raises:
        ManifestParseError: If a start action or probe cannot be resolved.
        UnknownServiceError: If ``depends_on`` names an undeclared service.
        CycleError: If the declared dependencies contain a cycle.

    """
    registry = ServiceRegistry()
    for name, definition in manifest.services.items():
        registry.register(
            name,
            resolve_reference(definition.start),
            ready=resolve_reference(definition.ready) if definition.ready else None,
            readiness_timeout=definition.readiness_timeout,
        )

    for name, definition in manifest.services.items():
        for dependency in definition.depends_on:
            registry.add_dependency(name, dependency)

    logger.info(
        "Host '%s' built with %d services", manifest.name, len(manifest.services)
    )
    return registry


def resolve_config(
    manifest: HostManifest, base_config: HostConfig | None = None
) -> HostConfig:
    """Compute the effective configuration of a manifest.

    The manifest's ``config`` block overrides ``base_config`` (which
    defaults to the environment-derived configuration).

    Raises:
        ManifestParseError: If an ``APPHOST_*`` variable or the ``config``
            block holds an invalid value.

    """
    try:
        base = base_config or HostConfig.from_env()
        return base.with_overrides(**manifest.config.model_dump())
    except ValidationError as e:
        raise ManifestParseError(f"Invalid host configuration: {e}") from e


def load_host(
    path: Path, base_config: HostConfig | None = None
) -> tuple[ServiceRegistry, HostConfig]:
    """Parse a manifest file and build its registry and effective configuration.

    Raises:
        ManifestParseError: If the manifest or its configuration is invalid.
        UnknownServiceError: If ``depends_on`` names an undeclared service.
        CycleError: If the declared dependencies contain a cycle.

    """
    manifest = parse_manifest(path)
    config = resolve_config(manifest, base_config)
    return build_registry(manifest), config
