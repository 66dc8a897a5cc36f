"""Smoke session lifecycle management and signal handling."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from allowsmoke._internal.errors import EngineError
from allowsmoke._internal.logging import get_logger
from allowsmoke.dsl.http_client import HttpClient
from allowsmoke.engine._user_utils import shutdown_all_users
from allowsmoke.engine.models import RunSummary

if TYPE_CHECKING:
    from allowsmoke.dsl.http_client import RequestRecord
    from allowsmoke.dsl.options import Options
    from allowsmoke.dsl.scenario import AllowScenario

logger = get_logger("engine.session")


class SessionState(Enum):
    """State machine for a smoke session."""

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class SmokeSession:
    """Runs a scenario with a fixed number of virtual users for a fixed time.

    All users start together and each loops over the scenario with its own
    zero-based iteration index until the duration elapses or ``stop()`` is
    called. Requests are observed through the users' ``HttpClient`` record
    callbacks and tallied into a ``RunSummary``.

    State machine: CREATED -> RUNNING -> STOPPING -> COMPLETED
                                      -> FAILED (on error)
    """

    def __init__(
        self,
        scenario: AllowScenario,
        options: Options,
        *,
        request_timeout: float = 60.0,
        grace_period: float = 5.0,
    ) -> None:
        """Initialize a smoke session.

        Args:
            scenario: The scenario to run on every iteration.
            options: Virtual-user count and run duration.
            request_timeout: Total timeout per request in seconds.
            grace_period: Seconds in-flight iterations get to finish after
                the duration has elapsed.
        """
        self._scenario = scenario
        self._options = options
        self._request_timeout = request_timeout
        self._grace_period = grace_period

        self._state = SessionState.CREATED
        self._user_tasks: list[tuple[int, asyncio.Task[None]]] = []
        self._stop_event = asyncio.Event()
        self._summary = RunSummary(
            scenario_name=scenario.name,
            vus=options.vus,
            duration_seconds=options.duration_seconds,
        )

    @property
    def state(self) -> SessionState:
        """Return the current session state."""
        return self._state

    @property
    def active_user_count(self) -> int:
        """Return the number of virtual users still running."""
        return sum(1 for _, t in self._user_tasks if not t.done())

    async def run(self) -> RunSummary:
        """Execute the full session lifecycle.

        Returns:
            The RunSummary of the finished run.

        Raises:
            EngineError: If the session encounters an unexpected error.
        """
        duration = self._options.duration_seconds
        logger.info(
            "Starting smoke session: scenario=%s, vus=%d, duration=%.1fs, target=%s",
            self._scenario.name,
            self._options.vus,
            duration,
            self._scenario.base_url,
        )

        self._install_signal_handlers()
        start_time = time.monotonic()
        self._state = SessionState.RUNNING

        try:
            for user_id in range(self._options.vus):
                task = asyncio.create_task(
                    self._run_virtual_user(user_id),
                    name=f"virtual-user-{user_id}",
                )
                self._user_tasks.append((user_id, task))

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=duration)

        except Exception as exc:
            self._state = SessionState.FAILED
            logger.exception("Smoke session failed")
            raise EngineError("Smoke session failed") from exc
        finally:
            if self._state != SessionState.FAILED:
                self._state = SessionState.STOPPING
            await shutdown_all_users(self._user_tasks, self._stop_event, self._grace_period)
            self._remove_signal_handlers()

        self._summary.elapsed_seconds = time.monotonic() - start_time
        self._state = SessionState.COMPLETED
        logger.info(
            "Smoke session completed: elapsed=%.1fs, iterations=%d, requests=%d, failed=%d",
            self._summary.elapsed_seconds,
            self._summary.iterations,
            self._summary.requests,
            self._summary.failed_requests,
        )
        return self._summary

    async def stop(self) -> None:
        """Request an early, graceful end of the run."""
        if self._state == SessionState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._state = SessionState.STOPPING
            self._stop_event.set()

    def _record(self, record: RequestRecord) -> None:
        summary = self._summary
        summary.requests += 1
        if record.error is not None or record.status_code == 0:
            summary.transport_errors += 1
        else:
            summary.status_counts[record.status_code] = (
                summary.status_counts.get(record.status_code, 0) + 1
            )

    async def _run_virtual_user(self, user_id: int) -> None:
        """Loop the scenario for one virtual user until the stop event is set.

        Args:
            user_id: Unique identifier for this virtual user.
        """
        async with HttpClient(
            base_url=self._scenario.base_url,
            record_callback=self._record,
            vu_id=user_id,
            timeout=self._request_timeout,
        ) as client:
            iteration = 0
            try:
                while not self._stop_event.is_set():
                    try:
                        await self._scenario.iteration(client, iteration)
                    except asyncio.CancelledError:
                        raise
                    except Exception:
                        logger.debug(
                            "Iteration %d failed for user %d",
                            iteration,
                            user_id,
                            exc_info=True,
                            extra={"vu_id": user_id},
                        )
                    self._summary.iterations += 1
                    iteration += 1
            except asyncio.CancelledError:
                logger.debug(
                    "User %d cancelled in iteration %d",
                    user_id,
                    iteration,
                    extra={"vu_id": user_id},
                )

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers that end the run early."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self._state = SessionState.STOPPING
            self._stop_event.set()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
