"""Synchronous entry point that runs a smoke session on a uvloop event loop."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from allowsmoke._internal.logging import get_logger, setup_logging
from allowsmoke.engine.session import SmokeSession

if TYPE_CHECKING:
    from allowsmoke.dsl.options import Options
    from allowsmoke.dsl.scenario import AllowScenario
    from allowsmoke.engine.models import RunSummary

logger = get_logger("engine.worker")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_smoke(
    scenario: AllowScenario,
    options: Options,
    *,
    request_timeout: float = 60.0,
    grace_period: float = 5.0,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> RunSummary:
    """Run ``scenario`` with ``options`` in the current process.

    Args:
        scenario: The scenario to run on every iteration.
        options: Virtual-user count and run duration.
        request_timeout: Total timeout per request in seconds.
        grace_period: Seconds in-flight iterations get to finish.
        log_level: Logging level for the ``allowsmoke`` logger.
        json_logs: Emit JSON log lines instead of human-readable ones.

    Returns:
        RunSummary of the finished run.

    Raises:
        EngineError: If the session fails.
    """
    setup_logging(level=log_level, json_format=json_logs)
    _install_uvloop()

    return asyncio.run(
        _run_session(
            scenario,
            options,
            request_timeout=request_timeout,
            grace_period=grace_period,
        )
    )


async def _run_session(
    scenario: AllowScenario,
    options: Options,
    *,
    request_timeout: float,
    grace_period: float,
) -> RunSummary:
    session = SmokeSession(
        scenario,
        options,
        request_timeout=request_timeout,
        grace_period=grace_period,
    )
    return await session.run()
