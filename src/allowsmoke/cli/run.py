"""``allowsmoke run``: execute the allow smoke test and print a summary."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from allowsmoke._internal.config import load_config
from allowsmoke._internal.errors import AllowSmokeError
from allowsmoke.dsl.options import Options
from allowsmoke.dsl.scenario import ALLOW_PATH, AllowScenario
from allowsmoke.engine.worker import run_smoke

if TYPE_CHECKING:
    from allowsmoke.engine.models import RunSummary

console = Console(stderr=True)


def _print_summary(summary: RunSummary) -> None:
    """Print the final summary table after the run completes."""
    table = Table(
        title="Run Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Scenario", summary.scenario_name)
    table.add_row("VUs", str(summary.vus))
    table.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    table.add_row("Elapsed", f"{summary.elapsed_seconds:.1f}s")
    table.add_row("Iterations", str(summary.iterations))
    table.add_row("Iterations/sec", f"{summary.iterations_per_second:.1f}")
    table.add_row("Requests", str(summary.requests))
    table.add_row("Requests/sec", f"{summary.requests_per_second:.1f}")
    table.add_row("Failed Requests", str(summary.failed_requests))
    table.add_row("Transport Errors", str(summary.transport_errors))
    for status in sorted(summary.status_counts):
        table.add_row(f"HTTP {status}", str(summary.status_counts[status]))

    console.print(table)


def run_cmd(
    vus: int = typer.Option(
        30,
        "--vus",
        "-u",
        help="Concurrent virtual users.",
        min=1,
    ),
    duration: str = typer.Option(
        "30s",
        "--duration",
        "-d",
        help="Run duration, e.g. 30s, 1m30s, 500ms.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Root URL of the rate limiter (default: $ALLOWSMOKE_BASE_URL or http://localhost:8080).",
    ),
    sleep: float = typer.Option(
        0.1,
        "--sleep",
        help="Pause after every request, in seconds.",
        min=0.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON log lines.",
    ),
) -> None:
    """Run the allow smoke test and print a summary."""
    try:
        config = load_config()
        options = Options(vus=vus, duration=duration)
        scenario = AllowScenario(
            base_url=base_url or config.base_url,
            sleep_seconds=sleep,
        )
    except AllowSmokeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Target:[/bold]   POST {scenario.base_url}{ALLOW_PATH}?key=user-N\n"
            f"[bold]VUs:[/bold]      {options.vus}\n"
            f"[bold]Duration:[/bold] {options.duration}\n"
            f"[bold]Sleep:[/bold]    {scenario.sleep_seconds}s",
            title="allowsmoke",
            border_style="cyan",
        )
    )

    try:
        summary = run_smoke(
            scenario,
            options,
            request_timeout=config.request_timeout,
            grace_period=config.grace_period,
            log_level=logging.DEBUG if verbose else logging.INFO,
            json_logs=json_logs,
        )
    except AllowSmokeError as exc:
        console.print(f"[red]Smoke run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(summary)
    console.print("[green]Smoke run completed.[/green]")
