"""Custom exception hierarchy for allowsmoke."""

from __future__ import annotations


class AllowSmokeError(Exception):
    """Base exception for all allowsmoke errors.

    The CLI catches this class to turn any allowsmoke-specific failure
    into a readable message and a non-zero exit code.
    """


class ConfigError(AllowSmokeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - A duration string such as ``"30x"`` cannot be parsed.
        - ``vus`` is lower than 1.
        - An ``ALLOWSMOKE_*`` environment variable has an invalid value.
    """


class EngineError(AllowSmokeError):
    """Raised when a smoke session fails for reasons other than HTTP errors."""
