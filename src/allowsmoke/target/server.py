"""aiohttp application serving ``POST /v1/allow`` from a per-key limiter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from aiohttp import web

from allowsmoke._internal.logging import get_logger
from allowsmoke.target.limiter import RateLimiter, build_limiter

if TYPE_CHECKING:
    from allowsmoke._internal.config import TargetSettings

logger = get_logger("target.server")

LIMITER_KEY: web.AppKey[RateLimiter] = web.AppKey("limiter", RateLimiter)


async def _allow_handler(request: web.Request) -> web.Response:
    """Answer 200 when the key's bucket has a token, 429 otherwise."""
    key = request.query.get("key", "")
    if not key:
        return web.json_response({"error": "query parameter 'key' is required"}, status=400)

    result = await request.app[LIMITER_KEY].allow(key)
    if result.allowed:
        return web.json_response(result.to_json(), status=200)

    return web.json_response(
        result.to_json(),
        status=429,
        headers={"Retry-After": str(result.retry_after_seconds)},
    )


async def _close_limiter(app: web.Application) -> None:
    limiter = app[LIMITER_KEY]
    await limiter.close()
    logger.info(
        "Target stopped: allowed=%d, denied=%d",
        limiter.allowed_count,
        limiter.denied_count,
    )


def create_app(settings: TargetSettings, limiter: RateLimiter | None = None) -> web.Application:
    """Build the target application.

    Args:
        settings: Bucket sizing, idle eviction window and backend choice.
        limiter: Limiter to serve from. Built from ``settings`` when omitted.

    Returns:
        An aiohttp application with the limiter stored under ``LIMITER_KEY``.
    """
    app = web.Application()
    app[LIMITER_KEY] = build_limiter(settings) if limiter is None else limiter
    app.router.add_post("/v1/allow", _allow_handler)
    app.on_cleanup.append(_close_limiter)
    logger.debug(
        "Target app created: backend=%s, capacity=%d, refill_per_second=%.2f, idle_evict_seconds=%.1f",
        settings.backend.value,
        settings.capacity,
        settings.refill_per_second,
        settings.idle_evict_seconds,
    )
    return app
