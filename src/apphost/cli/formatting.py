"""Output formatting for apphost CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from apphost.models import HostConfig, HostManifest, RunResult, ServiceState
from apphost.registry import ServiceRegistry

logger = logging.getLogger(__name__)
console = Console()


class OutputFormatter:
    """Handles formatting CLI output for different commands."""

    # Status text constants
    STATUS_READY = "[green]Ready[/green]"
    STATUS_FAILED = "[red]Failed[/red]"

    def show_startup_banner(
        self,
        manifest_path: Path,
        config: HostConfig,
        log_level: str,
        verbose: bool = False,
    ) -> None:
        """Show startup banner for the run command.

        Args:
            manifest_path: Path to the host manifest
            config: Effective launcher configuration
            log_level: Current log level
            verbose: Whether verbose mode is enabled

        """
        startup_panel = Panel(
            f"[bold cyan]🚀 Starting services[/bold cyan]\n\n"
            f"[bold]Manifest:[/bold] {manifest_path}\n"
            f"[bold]Readiness Timeout:[/bold] {config.readiness_timeout:g}s\n"
            f"[bold]Max Concurrency:[/bold] {config.max_concurrency}\n"
            f"[bold]Log Level:[/bold] {log_level}{' (verbose)' if verbose else ''}",
            title="🧭 apphost",
            border_style="cyan",
        )
        console.print(startup_panel)

    def format_run_result(self, result: RunResult, verbose: bool = False) -> None:
        """Format and print the per-service outcome of a run.

        Args:
            result: RunResult from the launcher.
            verbose: Also show start order and error types.

        """
        table = Table(
            title="📊 Service Startup Summary",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Service", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Duration", style="blue")
        if verbose:
            table.add_column("Start #", style="dim")
            table.add_column("Error Type", style="yellow")

        for name, service in result.services.items():
            ready = service.state is ServiceState.READY
            duration = f"{service.duration_seconds:.2f}s" if service.started else "-"
            row = [name, self.STATUS_READY if ready else self.STATUS_FAILED, duration]
            if verbose:
                sequence = service.start_sequence
                row.append("-" if sequence is None else str(sequence + 1))
                row.append(service.error_type or "-")
            table.add_row(*row)

        console.print(table)

        failed = [s for s in result.services.values() if s.state is ServiceState.FAILED]
        if failed:
            console.print("\n[bold red]❌ Failed Service Details:[/bold red]")
        for service in failed:
            console.print(
                Panel(
                    f"[red]{escape(service.error or 'Unknown error')}[/red]",
                    title=f"Error in {service.name}",
                    border_style="red",
                )
            )

    def show_completion_summary(self, result: RunResult) -> None:
        """Show completion summary banner."""
        if result.all_ready:
            headline = "[bold green]✅ All services ready[/bold green]"
            border = "green"
        elif result.cancelled:
            headline = "[bold yellow]⚠️  Startup cancelled[/bold yellow]"
            border = "yellow"
        else:
            headline = "[bold red]❌ Some services failed[/bold red]"
            border = "red"

        console.print(
            Panel(
                f"{headline}\n\n"
                f"[bold]Total Services:[/bold] {len(result.services)}\n"
                f"[bold]Ready:[/bold] {len(result.ready)}\n"
                f"[bold]Failed:[/bold] {len(result.failed)}\n"
                f"[bold]Duration:[/bold] {result.total_duration_seconds:.2f}s",
                title="🎉 Completion Summary",
                border_style=border,
            )
        )

    def format_manifest_validation(
        self, manifest: HostManifest, registry: ServiceRegistry, config: HostConfig
    ) -> None:
        """Format and print manifest validation results."""
        success_content = f"""
[green]✅ Manifest validation successful![/green]

[bold]Name:[/bold] {manifest.name}
[bold]Description:[/bold] {manifest.description or "-"}
[bold]Services:[/bold] {len(registry)}
[bold]Startup Levels:[/bold] {registry.graph.get_depth()}
[bold]Readiness Timeout:[/bold] {config.readiness_timeout:g}s
[bold]Max Concurrency:[/bold] {config.max_concurrency}
        """.strip()

        console.print(
            Panel(
                success_content,
                title="📋 Manifest Validation Results",
                border_style="green",
            )
        )
        self.format_dependency_tree(registry)

    def format_dependency_tree(self, registry: ServiceRegistry) -> None:
        """Print services grouped by startup level."""
        if not len(registry):
            return

        graph = registry.graph
        tree = Tree("[bold blue]🔄 Service Dependencies[/bold blue]")
        sorter = graph.create_sorter()
        level = 0
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=lambda n: graph.get(n).index)
            level_branch = tree.add(f"[dim]Level {level}[/dim]")
            for name in ready:
                branch = level_branch.add(f"[cyan]{name}[/cyan]")
                dependencies = sorted(graph.get_dependencies(name))
                if dependencies:
                    branch.add(f"Waits for: [blue]{', '.join(dependencies)}[/blue]")
                sorter.done(name)
            level += 1

        console.print(tree)
        logger.debug("Host has %d services", len(registry))

    def format_startup_order(self, registry: ServiceRegistry) -> None:
        """Print the order in which services will be started."""
        table = Table(
            title="🔢 Startup Order", show_header=True, header_style="bold magenta"
        )
        table.add_column("#", style="dim")
        table.add_column("Service", style="cyan", no_wrap=True)
        table.add_column("Waits For", style="blue")

        for position, name in enumerate(registry.startup_order(), start=1):
            dependencies = sorted(registry.graph.get_dependencies(name))
            table.add_row(str(position), name, ", ".join(dependencies) or "-")

        console.print(table)
