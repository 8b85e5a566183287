"""CLI command implementations for apphost."""

from apphost.cli.errors import CLIError
from apphost.cli.run import execute_host_command
from apphost.cli.validate import show_order_command, validate_manifest_command

__all__ = [
    "CLIError",
    "execute_host_command",
    "show_order_command",
    "validate_manifest_command",
]
