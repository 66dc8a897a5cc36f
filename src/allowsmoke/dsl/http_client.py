"""Instrumented HTTP client that reports every request to the engine."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

if TYPE_CHECKING:
    from collections.abc import Callable


def _noop_callback(record: RequestRecord) -> None:
    """Default no-op record callback."""


@dataclass
class RequestRecord:
    """Raw record emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        method: HTTP method (GET, POST, etc.).
        url: Full request URL, without query string.
        status_code: HTTP response status code (0 if the request failed).
        latency_ms: Response time in milliseconds.
        error: Error message if the request failed, None otherwise.
        vu_id: ID of the virtual user that made the request.
    """

    timestamp: float
    method: str
    url: str
    status_code: int
    latency_ms: float
    error: str | None = None
    vu_id: int = 0

    @property
    def failed(self) -> bool:
        """True for transport failures and 4xx/5xx responses."""
        return self.error is not None or self.status_code >= 400


class HttpClient:
    """Async HTTP client wrapping ``aiohttp.ClientSession``.

    Every request is timed and reported through ``record_callback``,
    whether it succeeds, returns an error status or fails in transport.
    Transport failures are reported and then re-raised.

    Attributes:
        base_url: Base URL prepended to all request paths.
        headers: Headers applied to every request. Empty by default so the
            client sends aiohttp's defaults only.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        record_callback: Callable[[RequestRecord], None] | None = None,
        vu_id: int = 0,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = dict(headers or {})
        self._record_callback = record_callback or _noop_callback
        self._vu_id = vu_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def post(self, path: str, **kwargs: object) -> aiohttp.ClientResponse:
        """Send a POST request to ``base_url + path``.

        Args:
            path: URL path appended to base_url.
            **kwargs: Additional keyword arguments passed to aiohttp,
                e.g. ``params={"key": "user-1"}``.

        Returns:
            The aiohttp response object. The body is not read.
        """
        return await self._request("POST", path, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: object,
    ) -> aiohttp.ClientResponse:
        """Send an HTTP request and report a ``RequestRecord`` for it.

        Raises:
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = f"{self.base_url}{path}"

        start = time.monotonic()
        status_code = 0
        error: str | None = None

        try:
            resp = await self._session.request(
                method,
                url,
                headers=dict(self.headers),
                **kwargs,  # type: ignore[arg-type]
            )
            status_code = resp.status
        except asyncio.CancelledError:
            error = "Cancelled"
            raise
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            raise
        finally:
            self._record_callback(
                RequestRecord(
                    timestamp=start,
                    method=method,
                    url=url,
                    status_code=status_code,
                    latency_ms=(time.monotonic() - start) * 1000,
                    error=error,
                    vu_id=self._vu_id,
                )
            )

        return resp
