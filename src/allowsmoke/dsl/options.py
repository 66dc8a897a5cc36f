"""Run options: virtual-user count and duration."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from allowsmoke._internal.errors import ConfigError

_UNIT_SECONDS = {
    "h": 3600.0,
    "m": 60.0,
    "s": 1.0,
    "ms": 0.001,
}

# "ms" must be tried before "m".
_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(text: str) -> float:
    """Parse a duration string into seconds.

    Accepts a sequence of ``<number><unit>`` parts with units ``h``, ``m``,
    ``s`` and ``ms`` (``"30s"``, ``"1m30s"``, ``"500ms"``, ``"1.5s"``), or a
    bare number meaning seconds.

    Raises:
        ConfigError: If the string is empty, malformed or not positive.
    """
    value = text.strip()
    if not value:
        msg = "duration must not be empty"
        raise ConfigError(msg)

    try:
        seconds = float(value)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _PART.finditer(value):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
            pos = match.end()
        if pos != len(value):
            msg = f"invalid duration: {text!r} (expected e.g. '30s', '1m30s', '500ms')"
            raise ConfigError(msg) from None

    if not math.isfinite(seconds) or seconds <= 0:
        msg = f"duration must be positive, got: {text!r}"
        raise ConfigError(msg)

    return seconds


@dataclass(frozen=True)
class Options:
    """How many virtual users to run, and for how long.

    Attributes:
        vus: Number of concurrent virtual users.
        duration: Total wall-clock run time, e.g. ``"30s"``.
    """

    vus: int = 30
    duration: str = "30s"

    def __post_init__(self) -> None:
        if self.vus < 1:
            msg = f"vus must be >= 1, got: {self.vus}"
            raise ConfigError(msg)
        # Fail at construction rather than when the run starts.
        parse_duration(self.duration)

    @property
    def duration_seconds(self) -> float:
        """The parsed ``duration`` in seconds."""
        return parse_duration(self.duration)
