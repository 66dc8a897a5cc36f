"""The allow-endpoint smoke scenario and its key derivation."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiohttp

from allowsmoke._internal.config import DEFAULT_BASE_URL

if TYPE_CHECKING:
    from allowsmoke.dsl.http_client import HttpClient

KEY_PREFIX = "user-"
KEY_SPACE = 100
ALLOW_PATH = "/v1/allow"


def key_for_iteration(iteration: int) -> str:
    """Return the rate-limit key used by the given iteration.

    Keys cycle through ``user-0`` .. ``user-99``, so ``key_for_iteration(i)``
    equals ``key_for_iteration(i + 100)``.

    Raises:
        ValueError: If ``iteration`` is negative.
    """
    if iteration < 0:
        msg = f"iteration must be >= 0, got {iteration}"
        raise ValueError(msg)
    return f"{KEY_PREFIX}{iteration % KEY_SPACE}"


class AllowScenario:
    """POST ``/v1/allow?key=user-N`` once, then pause.

    The response is released unread: status codes and bodies are only
    visible to the engine through the client's request records.

    Attributes:
        name: Scenario name shown in logs and the run summary.
        base_url: Root URL of the rate limiter under test.
        sleep_seconds: Pause after every request.
    """

    name = "allow smoke"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        sleep_seconds: float = 0.1,
    ) -> None:
        if sleep_seconds < 0:
            msg = f"sleep_seconds must be >= 0, got {sleep_seconds}"
            raise ValueError(msg)
        self.base_url = base_url
        self.sleep_seconds = sleep_seconds

    async def iteration(self, client: HttpClient, iteration: int) -> None:
        """Run one iteration for the calling virtual user.

        Args:
            client: The virtual user's HTTP client.
            iteration: Zero-based iteration index of this virtual user.
        """
        key = key_for_iteration(iteration)
        try:
            resp = await client.post(ALLOW_PATH, params={"key": key})
        except (aiohttp.ClientError, TimeoutError):
            # Already reported through the client's request record.
            pass
        else:
            resp.release()

        await asyncio.sleep(self.sleep_seconds)
