"""Main entry point for apphost.

This module provides the command-line interface, including commands for:
- Starting the services declared in a host manifest
- Validating a host manifest
- Showing the startup order of a host manifest
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from apphost.cli import (
    execute_host_command,
    show_order_command,
    validate_manifest_command,
)

# Load environment variables (APPHOST_* configuration) from .env in the
# working directory
load_dotenv(Path.cwd() / ".env")

app = typer.Typer(name="apphost", no_args_is_help=True)

ManifestArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to the host manifest YAML file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]

LogLevelOption = Annotated[
    str,
    typer.Option(
        "--log-level",
        help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        case_sensitive=False,
    ),
]


@app.command()
def run(
    manifest: ManifestArgument,
    readiness_timeout: Annotated[
        float | None,
        typer.Option(
            "--readiness-timeout",
            help="Seconds a service may take to become ready (overrides manifest)",
            min=0.001,
        ),
    ] = None,
    max_concurrency: Annotated[
        int | None,
        typer.Option(
            "--max-concurrency",
            help="Maximum number of services starting at once (overrides manifest)",
            min=1,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable CLI verbose output (sets log level to DEBUG)",
        ),
    ] = False,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Start every service in dependency order and wait until each is ready.

    Exits with code 0 when all services are ready, 1 otherwise.

    Example:
        apphost run eshoplite.yaml --readiness-timeout 60 -v

    """
    exit_code = execute_host_command(
        manifest, readiness_timeout, max_concurrency, verbose, log_level
    )
    raise typer.Exit(exit_code)


@app.command()
def validate(manifest: ManifestArgument, log_level: LogLevelOption = "INFO") -> None:
    """Validate a host manifest without starting any service."""
    validate_manifest_command(manifest, log_level)


@app.command()
def order(manifest: ManifestArgument, log_level: LogLevelOption = "INFO") -> None:
    """Show the order in which services will be started."""
    show_order_command(manifest, log_level)


if __name__ == "__main__":
    app()
