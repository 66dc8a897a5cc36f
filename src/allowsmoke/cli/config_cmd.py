"""``allowsmoke config``: show the settings the environment resolves to."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from allowsmoke._internal.config import Backend, load_config, load_target_settings
from allowsmoke._internal.errors import AllowSmokeError

console = Console()


def config_cmd() -> None:
    """Print the effective run and serve settings from ALLOWSMOKE_* variables."""
    try:
        config = load_config()
        settings = load_target_settings()
    except AllowSmokeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(title="allowsmoke configuration", show_header=True, header_style="bold cyan")
    table.add_column("Command", style="dim")
    table.add_column("Setting", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("run", "Base URL", config.base_url)
    table.add_row("run", "Request timeout", f"{config.request_timeout:g}s")
    table.add_row("run", "Grace period", f"{config.grace_period:g}s")
    table.add_row("serve", "Backend", settings.backend.value)
    table.add_row("serve", "Capacity", str(settings.capacity))
    table.add_row("serve", "Refill", f"{settings.refill_per_second:g}/s")
    idle = "off" if settings.idle_evict_seconds <= 0 else f"{settings.idle_evict_seconds:g}s"
    table.add_row("serve", "Idle eviction", idle)
    if settings.backend is Backend.REDIS:
        table.add_row("serve", "Redis URL", settings.redis_url)
        table.add_row("serve", "Fail mode", settings.fail_mode.value)

    console.print(table)
