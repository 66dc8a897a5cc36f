"""Main Typer application, entry point for the ``allowsmoke`` CLI."""

from __future__ import annotations

import typer

from allowsmoke import __version__
from allowsmoke.cli.config_cmd import config_cmd
from allowsmoke.cli.run import run_cmd
from allowsmoke.cli.serve import serve_cmd

_ENV_EPILOG = (
    "Environment: ALLOWSMOKE_BASE_URL, ALLOWSMOKE_TIMEOUT, ALLOWSMOKE_GRACE_PERIOD (run); "
    "ALLOWSMOKE_CAPACITY, ALLOWSMOKE_REFILL_PER_SECOND, ALLOWSMOKE_IDLE_EVICT_SECONDS, "
    "ALLOWSMOKE_BACKEND, ALLOWSMOKE_REDIS_URL, ALLOWSMOKE_FAIL_MODE (serve). "
    "Flags override the environment."
)

app = typer.Typer(
    name="allowsmoke",
    help="Smoke-load a rate limiter's POST /v1/allow endpoint, or serve one locally.",
    epilog=_ENV_EPILOG,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run the allow smoke test against --base-url.")(run_cmd)
app.command("serve", help="Serve a local token-bucket /v1/allow target.")(serve_cmd)
app.command("config", help="Show the settings ALLOWSMOKE_* variables resolve to.")(config_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"allowsmoke {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """allowsmoke: per-key rate-limit smoke testing for /v1/allow."""
