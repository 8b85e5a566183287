"""CLI command implementations for manifest validation and startup order."""

from __future__ import annotations

import logging
from pathlib import Path

from apphost.cli.errors import cli_error_handler
from apphost.cli.formatting import OutputFormatter
from apphost.logging import setup_logging
from apphost.manifest import build_registry, parse_manifest, resolve_config

logger = logging.getLogger(__name__)


def validate_manifest_command(manifest_path: Path, log_level: str = "INFO") -> None:
    """CLI command implementation for validating host manifests.

    Parses the manifest, computes its effective configuration (including
    APPHOST_* variables), resolves every start action and readiness probe,
    and checks the dependency graph without starting anything.

    Args:
        manifest_path: Path to the host manifest YAML file
        log_level: Logging level

    """
    setup_logging(level=log_level)

    with cli_error_handler("validate", "Manifest validation failed"):
        manifest = parse_manifest(manifest_path)
        config = resolve_config(manifest)
        registry = build_registry(manifest)
        OutputFormatter().format_manifest_validation(manifest, registry, config)


def show_order_command(manifest_path: Path, log_level: str = "INFO") -> None:
    """CLI command implementation for printing the startup order.

    Args:
        manifest_path: Path to the host manifest YAML file
        log_level: Logging level

    """
    setup_logging(level=log_level)

    with cli_error_handler("order", "Cannot compute startup order"):
        registry = build_registry(parse_manifest(manifest_path))
        OutputFormatter().format_startup_order(registry)
