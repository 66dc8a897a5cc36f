"""allowsmoke: smoke-load a rate limiter's /v1/allow endpoint."""

from __future__ import annotations

from allowsmoke.dsl.http_client import HttpClient, RequestRecord
from allowsmoke.dsl.options import Options, parse_duration
from allowsmoke.dsl.scenario import AllowScenario, key_for_iteration
from allowsmoke.engine.models import RunSummary
from allowsmoke.engine.worker import run_smoke

__version__ = "0.1.0"

__all__ = [
    "AllowScenario",
    "HttpClient",
    "Options",
    "RequestRecord",
    "RunSummary",
    "key_for_iteration",
    "parse_duration",
    "run_smoke",
]
