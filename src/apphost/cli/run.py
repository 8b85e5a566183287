"""CLI command implementation for starting a host."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from apphost.cli.errors import CLIError, cli_error_handler
from apphost.cli.formatting import OutputFormatter
from apphost.errors import AppHostError
from apphost.launcher import Launcher
from apphost.logging import setup_logging
from apphost.manifest import load_host
from apphost.models import HostConfig, RunResult
from apphost.registry import ServiceRegistry

logger = logging.getLogger(__name__)


def _load_host(
    manifest_path: Path,
    readiness_timeout: float | None,
    max_concurrency: int | None,
) -> tuple[ServiceRegistry, HostConfig]:
    """Load the manifest and apply CLI overrides to its configuration.

    Raises:
        CLIError: If the manifest or configuration is invalid.

    """
    try:
        registry, config = load_host(manifest_path)
        config = config.with_overrides(
            readiness_timeout=readiness_timeout, max_concurrency=max_concurrency
        )
    except (AppHostError, ValidationError) as e:
        logger.error("Loading host failed: %s", e)
        raise CLIError(
            f"Failed to load host manifest: {e}",
            command="run",
            original_error=e,
        ) from e
    logger.info("Host loaded with %d services", len(registry))
    return registry, config


def execute_host_command(
    manifest_path: Path,
    readiness_timeout: float | None = None,
    max_concurrency: int | None = None,
    verbose: bool = False,
    log_level: str = "INFO",
) -> int:
    """CLI command implementation for starting the services of a manifest.

    Args:
        manifest_path: Path to the host manifest YAML file
        readiness_timeout: Override of the readiness timeout in seconds
        max_concurrency: Override of the maximum concurrent launches
        verbose: Enable verbose output
        log_level: Logging level

    Returns:
        Process exit code: 0 when every service is Ready, 1 otherwise.

    """
    effective_log_level = "DEBUG" if verbose else log_level
    setup_logging(level=effective_log_level)

    formatter = OutputFormatter()
    result: RunResult | None = None

    with cli_error_handler("run", "Startup failed"):
        registry, config = _load_host(manifest_path, readiness_timeout, max_concurrency)
        formatter.show_startup_banner(manifest_path, config, log_level, verbose)

        result = Launcher(registry, config).run(handle_signals=True)

        formatter.format_run_result(result, verbose)
        formatter.show_completion_summary(result)

    return result.exit_code if result is not None else 1
