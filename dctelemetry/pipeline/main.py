"""CLI entry point for the telemetry acquisition layer.

Provides commands to run a refresh, inspect the operational surface
(reachability and circuit breakers), diagnose single endpoints and serve
mock upstreams for local development.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import click
import uvicorn
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from dctelemetry.models.config import AcquisitionConfig, ConfigManager
from dctelemetry.models.data_models import (
    CircuitSnapshot,
    DiagnosisReport,
    StatusReport,
    TelemetrySnapshot,
)
from dctelemetry.pipeline.orchestrator import TelemetryOrchestrator
from dctelemetry.pipeline.output import JSONOutputFormatter


console = Console()

config_option = click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)


def _load_config(config: Path, log_level: Optional[str] = None, **overrides) -> AcquisitionConfig:
    cli_overrides = dict(overrides)
    if log_level is not None:
        cli_overrides["log_level"] = log_level.upper()
    return ConfigManager(config).load_config(cli_overrides)


def _fail(e: Exception) -> None:
    console.print(f"\n[red]Error:[/red] {e}", style="bold red")
    if "--debug" in sys.argv:
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0", prog_name="dctelemetry")
def main() -> None:
    """
    DC Telemetry - Resilient acquisition of rack power and sensor data.

    Reads from the primary store when available and falls back to remote
    APIs protected by retries, pagination and per-endpoint circuit breakers.

    Examples:

        # Run one refresh with default configuration
        $ dctelemetry fetch

        # Serve the default dataset when every source fails
        $ dctelemetry fetch --use-mock-on-fail

        # Check what an endpoint answers
        $ dctelemetry diagnose "http://localhost:8001/odata/racks?$top=50"
    """


@main.command()
@config_option
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Output JSON file path (overrides config)",
)
@log_level_option
@click.option(
    "--use-mock-on-fail",
    is_flag=True,
    help="Serve the default dataset when every source fails",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable progress spinner (useful for CI/CD)",
)
def fetch(
    config: Path,
    output: Optional[Path],
    log_level: Optional[str],
    use_mock_on_fail: bool,
    no_progress: bool,
) -> None:
    """Fetch racks and sensors once and save a JSON snapshot."""
    try:
        acquisition_config = _load_config(
            config, log_level, use_mock_on_fail=True if use_mock_on_fail else None
        )
        output_path = output if output else acquisition_config.output_path

        _display_config_summary(acquisition_config, no_progress)

        snapshot = asyncio.run(_run_with_progress(acquisition_config, no_progress))

        formatter = JSONOutputFormatter()
        formatter.save(snapshot, str(output_path))

        _display_snapshot(snapshot, output_path, no_progress)
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Refresh interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _fail(e)


@main.command()
@config_option
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Also save the status report as JSON",
)
@click.option(
    "--refresh",
    is_flag=True,
    help="Run one refresh first so breaker states and sources are populated",
)
@log_level_option
def status(config: Path, output: Optional[Path], refresh: bool, log_level: Optional[str]) -> None:
    """Show reachability of configured endpoints and circuit breaker states."""
    try:
        acquisition_config = _load_config(config, log_level)
        report = asyncio.run(_status_report(TelemetryOrchestrator(acquisition_config), refresh))

        if output:
            JSONOutputFormatter().save(report, str(output))

        _display_status(report)
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Status check interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _fail(e)


@main.command()
@click.argument("url")
@config_option
@click.option(
    "--include-response",
    is_flag=True,
    help="Attach the decoded response body to the report",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Also save the diagnosis report as JSON",
)
@log_level_option
def diagnose(
    url: str,
    config: Path,
    include_response: bool,
    output: Optional[Path],
    log_level: Optional[str],
) -> None:
    """Diagnose a single API endpoint."""
    try:
        acquisition_config = _load_config(config, log_level)
        report = asyncio.run(
            TelemetryOrchestrator(acquisition_config).diagnose(url, include_response)
        )

        if output:
            JSONOutputFormatter().save(report, str(output))

        _display_diagnosis(report)
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Diagnosis interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _fail(e)


@main.command()
@click.argument("url")
@config_option
@log_level_option
def ping(url: str, config: Path, log_level: Optional[str]) -> None:
    """Check whether URL answers; exit code 0 when reachable, 1 otherwise."""
    try:
        acquisition_config = _load_config(config, log_level)
        reachable = asyncio.run(TelemetryOrchestrator(acquisition_config).ping(url))

        if reachable:
            console.print(f"[green]✓ Reachable:[/green] {url}")
            sys.exit(0)
        console.print(f"[red]✗ Unreachable:[/red] {url}")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Ping interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        _fail(e)


@main.command("serve-mock")
@click.option(
    "--server",
    type=click.Choice(["racks", "sensors"]),
    default="racks",
    help="Which mock upstream to serve",
)
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", "-p", type=int, default=8001, help="Port to listen on")
def serve_mock(server: str, host: str, port: int) -> None:
    """Serve a mock upstream API for local development."""
    os.environ["SERVER_NAME"] = server
    console.print(f"[cyan]Serving mock {server} API on http://{host}:{port}[/cyan]")
    uvicorn.run("dctelemetry.mock_servers.app:create_app", factory=True, host=host, port=port)


async def _status_report(orchestrator: TelemetryOrchestrator, refresh: bool) -> StatusReport:
    if refresh:
        await orchestrator.run()
    return await orchestrator.status()


async def _run_with_progress(config: AcquisitionConfig, no_progress: bool) -> TelemetrySnapshot:
    """
    Run one refresh, with a spinner unless disabled.

    Args:
        config: Acquisition configuration
        no_progress: Whether to disable the spinner

    Returns:
        Telemetry snapshot
    """
    orchestrator = TelemetryOrchestrator(config)

    if no_progress:
        console.print("[cyan]Fetching telemetry...[/cyan]")
        return await orchestrator.run()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("[cyan]Fetching racks and sensors...", total=None)
        snapshot = await orchestrator.run()
        progress.update(task_id, total=1, completed=1)
        return snapshot


def _display_config_summary(config: AcquisitionConfig, no_progress: bool) -> None:
    """Display configuration summary before running."""
    if no_progress:
        return

    console.print("\n[bold cyan]Acquisition Configuration[/bold cyan]")
    for endpoint in config.endpoints:
        console.print(f"  {endpoint.name}: {endpoint.url or '[dim]not configured[/dim]'}")
    console.print(f"  Retries: {config.retries} (base delay {config.retry_delay}s)")
    console.print(
        f"  Circuit Breaker: {config.circuit_breaker_failure_threshold} failures, "
        f"{config.circuit_breaker_reset_timeout}s reset"
    )
    console.print(f"  Page Size: {config.page_size} (max {config.max_pages} pages)")
    console.print(f"  Mock On Fail: {config.use_mock_on_fail}")
    console.print()


def _display_snapshot(snapshot: TelemetrySnapshot, output_path: Path, no_progress: bool) -> None:
    """Display final refresh summary."""
    if no_progress:
        console.print(f"✓ Refresh complete: {len(snapshot.racks)} racks, {len(snapshot.sensors)} sensors")
        for endpoint, state in snapshot.circuit_breakers.items():
            console.print(f"  circuit {state.status.value}: {endpoint} ({state.failure_count} failures)")
        console.print(f"✓ Output saved to: {output_path}")
        return

    console.print("\n[bold green]Refresh Complete![/bold green]\n")

    source_table = Table(title="Data Sources")
    source_table.add_column("Data Set", style="cyan")
    source_table.add_column("Served By", style="green")
    source_table.add_column("Records", justify="right", style="green")
    source_table.add_column("Error", style="yellow")

    for name, served in snapshot.sources.items():
        source_table.add_row(
            name,
            served.served_by.value,
            str(served.record_count),
            served.error or "",
        )

    console.print(source_table)
    _display_breakers(snapshot.circuit_breakers)
    console.print(f"Duration: {snapshot.duration_seconds:.2f}s")
    console.print()
    console.print(f"[bold]Output saved to:[/bold] {output_path}")
    console.print()


def _display_status(report: StatusReport) -> None:
    """Display reachability and breaker tables."""
    endpoint_table = Table(title="Endpoints")
    endpoint_table.add_column("Name", style="cyan")
    endpoint_table.add_column("URL")
    endpoint_table.add_column("Reachable", justify="center")

    for endpoint in report.endpoints:
        endpoint_table.add_row(
            endpoint.name,
            endpoint.url or "-",
            "[green]yes[/green]" if endpoint.reachable else "[red]no[/red]",
        )
    console.print(endpoint_table)

    _display_breakers(report.circuit_breakers)


def _display_breakers(circuit_breakers: Dict[str, CircuitSnapshot]) -> None:
    """Display per-endpoint circuit breaker states."""
    if not circuit_breakers:
        console.print("[dim]No circuit breaker activity yet[/dim]")
        return

    breaker_table = Table(title="Circuit Breakers")
    breaker_table.add_column("Endpoint", style="cyan")
    breaker_table.add_column("State")
    breaker_table.add_column("Failures", justify="right")

    for endpoint, snapshot in circuit_breakers.items():
        breaker_table.add_row(endpoint, snapshot.status.value, str(snapshot.failure_count))
    console.print(breaker_table)


def _display_diagnosis(report: DiagnosisReport) -> None:
    """Display a diagnosis report."""
    table = Table(title=f"Diagnosis: {report.url}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Reachable", "yes" if report.is_reachable else "no")
    table.add_row("Status Code", str(report.status_code) if report.status_code is not None else "-")
    table.add_row(
        "Response Time",
        f"{report.response_time_ms:.1f} ms" if report.response_time_ms is not None else "-",
    )
    table.add_row("Content Type", report.content_type or "-")
    table.add_row(
        "Structure",
        report.response_structure.value if report.response_structure else "-",
    )
    table.add_row("Pageable", "yes" if report.is_pageable else "no")
    if report.error_code or report.error_details:
        table.add_row("Error", f"{report.error_code or ''} {report.error_details or ''}".strip())
    if report.sample_keys:
        table.add_row("Sample Keys", ", ".join(report.sample_keys))
    console.print(table)

    if report.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for recommendation in report.recommendations:
            console.print(f"  • {recommendation}")
    console.print()


if __name__ == "__main__":
    main()
