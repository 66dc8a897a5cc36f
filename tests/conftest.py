"""Shared test fixtures for the allowsmoke test suite."""

from __future__ import annotations

import asyncio
import os
import socket
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from allowsmoke._internal.config import TargetSettings
from allowsmoke.target.server import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@pytest.fixture
def closed_port_url() -> str:
    """URL of a localhost port nothing listens on."""
    return f"http://127.0.0.1:{_get_free_port()}"


# =============================================================================
# Recording server: stands in for the rate limiter and remembers requests
# =============================================================================


@dataclass
class ReceivedRequest:
    """A request as seen by the recording server."""

    received_at: float
    method: str
    path: str
    query: list[tuple[str, str]]
    body: bytes


@dataclass
class RecordingServer:
    """Base URL of a running recording server and the requests it received."""

    base_url: str
    requests: list[ReceivedRequest]


_REQUESTS_KEY: web.AppKey[list[ReceivedRequest]] = web.AppKey("requests", list)
_STATUS_KEY: web.AppKey[int] = web.AppKey("status", int)


async def _record_handler(request: web.Request) -> web.Response:
    """Remember the request and answer with the configured status."""
    body = await request.read()
    request.app[_REQUESTS_KEY].append(
        ReceivedRequest(
            received_at=time.monotonic(),
            method=request.method,
            path=request.path,
            query=list(request.query.items()),
            body=body,
        )
    )
    status = request.app[_STATUS_KEY]
    return web.json_response({"allowed": status == 200}, status=status)


def _create_recording_app(status: int = 200) -> tuple[web.Application, list[ReceivedRequest]]:
    requests: list[ReceivedRequest] = []
    app = web.Application()
    app[_REQUESTS_KEY] = requests
    app[_STATUS_KEY] = status
    app.router.add_route("*", "/{path:.*}", _record_handler)
    return app, requests


async def _start_app(app: web.Application) -> tuple[web.AppRunner, str]:
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    return runner, f"http://127.0.0.1:{port}"


@pytest.fixture
async def recording_server() -> AsyncIterator[RecordingServer]:
    """Recording server answering 200 to every request."""
    app, requests = _create_recording_app(status=200)
    runner, base_url = await _start_app(app)
    yield RecordingServer(base_url=base_url, requests=requests)
    await runner.cleanup()


@pytest.fixture
async def failing_server() -> AsyncIterator[RecordingServer]:
    """Recording server answering 500 to every request."""
    app, requests = _create_recording_app(status=500)
    runner, base_url = await _start_app(app)
    yield RecordingServer(base_url=base_url, requests=requests)
    await runner.cleanup()


async def _slow_handler(request: web.Request) -> web.Response:
    """Answer after two seconds, long enough to outlive a short grace period."""
    await asyncio.sleep(2.0)
    return web.json_response({"allowed": True})


@pytest.fixture
async def slow_server() -> AsyncIterator[str]:
    """Server whose every response takes two seconds; returns its base URL."""
    app = web.Application()
    app.router.add_route("*", "/{path:.*}", _slow_handler)
    runner, base_url = await _start_app(app)
    yield base_url
    await runner.cleanup()


@pytest.fixture
async def target_server_factory() -> AsyncIterator[Callable[[TargetSettings], Awaitable[str]]]:
    """Start local ``/v1/allow`` targets with given settings; returns their base URLs."""
    runners: list[web.AppRunner] = []

    async def _start(settings: TargetSettings) -> str:
        runner, base_url = await _start_app(create_app(settings))
        runners.append(runner)
        return base_url

    yield _start

    for runner in runners:
        await runner.cleanup()


# =============================================================================
# Sync fixture for CLI tests, where the run blocks the main thread
# =============================================================================


@pytest.fixture
def sync_recording_server() -> Iterator[RecordingServer]:
    """Recording server running in a background thread."""
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []
    app, requests = _create_recording_app(status=200)

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield RecordingServer(base_url=f"http://127.0.0.1:{port}", requests=requests)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


# =============================================================================
# Redis
# =============================================================================


@pytest.fixture
def closed_redis_url() -> str:
    """Redis URL of a localhost port nothing listens on."""
    return f"redis://127.0.0.1:{_get_free_port()}/0"


@pytest.fixture
def redis_url() -> str:
    """URL of a live Redis for tests that need one; skips when unset."""
    url = os.environ.get("ALLOWSMOKE_TEST_REDIS_URL")
    if not url:
        pytest.skip("ALLOWSMOKE_TEST_REDIS_URL not set")
    return url
