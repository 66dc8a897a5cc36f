"""Allow-endpoint smoke test: 30 virtual users for 30 seconds.

Each iteration POSTs /v1/allow?key=user-<iteration mod 100> and sleeps
100ms. Start the rate limiter (or ``allowsmoke serve``) first, then:

    python examples/allow_smoke.py

The same run is available as ``allowsmoke run --vus 30 --duration 30s``.
"""

from __future__ import annotations

from allowsmoke import AllowScenario, Options, run_smoke

options = Options(vus=30, duration="30s")


if __name__ == "__main__":
    summary = run_smoke(AllowScenario("http://localhost:8080", sleep_seconds=0.1), options)
    print(f"{summary.iterations} iterations, {summary.requests} requests, {summary.failed_requests} failed")  # noqa: T201
