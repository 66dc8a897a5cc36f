"""Run summary returned by a smoke session."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RunSummary:
    """Counts collected over one smoke run.

    Attributes:
        scenario_name: Name of the scenario that was run.
        vus: Configured number of virtual users.
        duration_seconds: Configured run duration.
        elapsed_seconds: Wall-clock time from start to the last user stopping.
        iterations: Completed scenario iterations across all users.
        requests: HTTP requests issued across all users.
        transport_errors: Requests that failed without a response.
        status_counts: Response count per HTTP status code.
    """

    scenario_name: str
    vus: int
    duration_seconds: float
    elapsed_seconds: float = 0.0
    iterations: int = 0
    requests: int = 0
    transport_errors: int = 0
    status_counts: dict[int, int] = field(default_factory=dict)

    @property
    def failed_requests(self) -> int:
        """Transport failures plus 4xx/5xx responses."""
        errors = sum(count for status, count in self.status_counts.items() if status >= 400)
        return self.transport_errors + errors

    @property
    def requests_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.requests / self.elapsed_seconds

    @property
    def iterations_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.iterations / self.elapsed_seconds
