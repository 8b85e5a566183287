"""CLI error handling for apphost."""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing_extensions import override

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from apphost.errors import AppHostError

logger = logging.getLogger(__name__)
console = Console()


class CLIError(AppHostError):
    """A command failure ready to be shown to the user.

    Wraps manifest, registry and configuration errors so that ``run``,
    ``validate`` and ``order`` all report them in one panel format. The
    wrapped exception is kept in ``original_error`` for logging.
    """

    def __init__(
        self,
        message: str,
        command: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialise the error.

        Args:
            message: What went wrong, e.g. "Failed to load host manifest: ..."
            command: The apphost command that failed ("run", "validate", "order")
            original_error: The apphost or pydantic error being reported

        """
        super().__init__(message)
        self.command = command
        self.original_error = original_error

    @override
    def __str__(self) -> str:
        message = super().__str__()
        return f"apphost {self.command}: {message}" if self.command else message


def _show_error(title: str, error: CLIError) -> None:
    logger.error("%s: %s", title, error)
    console.print(
        Panel(
            f"[red]{escape(str(error))}[/red]",
            title=f"❌ {title}",
            border_style="red",
        )
    )


@contextmanager
def cli_error_handler(command: str, title: str) -> Generator[None]:
    """Context manager for unified CLI error handling.

    Catches exceptions, displays them as Rich error panels, and exits
    with code 1. Handles both pre-wrapped CLIError and raw exceptions.

    Args:
        command: CLI command name for error context.
        title: Panel title for the error display.

    """
    try:
        yield
    except CLIError as e:
        _show_error(title, e)
        raise typer.Exit(1) from e
    except Exception as e:
        cli_error = CLIError(str(e), command=command, original_error=e)
        _show_error(title, cli_error)
        raise typer.Exit(1) from cli_error
