"""``allowsmoke serve``: run the local ``/v1/allow`` target."""

from __future__ import annotations

import dataclasses
import logging

import typer
from aiohttp import web
from rich.console import Console

from allowsmoke._internal.config import Backend, FailMode, check_redis_url, load_target_settings
from allowsmoke._internal.errors import AllowSmokeError
from allowsmoke._internal.logging import setup_logging
from allowsmoke.target.server import create_app

console = Console(stderr=True)


def serve_cmd(
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        help="Interface to bind.",
    ),
    port: int = typer.Option(
        8080,
        "--port",
        "-p",
        help="Port to listen on.",
        min=1,
        max=65535,
    ),
    capacity: int | None = typer.Option(
        None,
        "--capacity",
        help="Bucket capacity per key (default: $ALLOWSMOKE_CAPACITY or 10).",
        min=1,
    ),
    refill_per_second: float | None = typer.Option(
        None,
        "--refill-per-second",
        help="Tokens added per key per second (default: $ALLOWSMOKE_REFILL_PER_SECOND or 5.0).",
        min=0.000001,
    ),
    idle_evict_seconds: float | None = typer.Option(
        None,
        "--idle-evict-seconds",
        help="Drop buckets idle this long; 0 disables (default: $ALLOWSMOKE_IDLE_EVICT_SECONDS or 0).",
        min=0.0,
    ),
    backend: Backend | None = typer.Option(
        None,
        "--backend",
        help="Where buckets live (default: $ALLOWSMOKE_BACKEND or memory).",
        case_sensitive=False,
    ),
    redis_url: str | None = typer.Option(
        None,
        "--redis-url",
        help="Redis URL for the redis backend (default: $ALLOWSMOKE_REDIS_URL or redis://localhost:6379/0).",
    ),
    fail_mode: FailMode | None = typer.Option(
        None,
        "--fail-mode",
        help="Answer when Redis fails: open allows, closed denies (default: $ALLOWSMOKE_FAIL_MODE or open).",
        case_sensitive=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Serve POST /v1/allow until interrupted."""
    try:
        settings = load_target_settings()
        if redis_url is not None:
            check_redis_url(redis_url, "--redis-url")
    except AllowSmokeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    overrides = {
        "capacity": capacity,
        "refill_per_second": refill_per_second,
        "idle_evict_seconds": idle_evict_seconds,
        "backend": backend,
        "redis_url": redis_url,
        "fail_mode": fail_mode,
    }
    settings = dataclasses.replace(
        settings,
        **{name: value for name, value in overrides.items() if value is not None},
    )

    setup_logging(level=logging.DEBUG if verbose else logging.INFO)
    store = settings.backend.value
    if settings.backend is Backend.REDIS:
        store = f"redis at {settings.redis_url}, fail {settings.fail_mode.value}"
    console.print(
        f"[cyan]Serving[/cyan] POST http://{host}:{port}/v1/allow "
        f"(capacity={settings.capacity}, refill={settings.refill_per_second}/s, {store})"
    )
    web.run_app(create_app(settings), host=host, port=port, print=None)
