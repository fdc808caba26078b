"""
Exception classes for the build arena.

Centralized location for all custom exceptions to avoid circular imports.
Every arena error carries the HTTP status it is surfaced with.
"""


class ArenaError(Exception):
    """Base exception for all arena errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ArenaError):
    """Malformed matchup or vote request."""

    status_code = 400


class NotFound(ArenaError):
    """Unknown matchup or model."""

    status_code = 404


class NotEligible(ArenaError):
    """No qualifying prompts, models or pair."""

    status_code = 409


class TransactionConflict(ArenaError):
    """The vote/rating unit of work failed and was rolled back."""

    status_code = 409


class SamplingExhausted(ArenaError):
    """Every lane failed to produce a matchup."""

    status_code = 500


class MissingBuild(ArenaError):
    """A selected model has no seeded build for the prompt and settings."""

    status_code = 500


class ConfigurationError(Exception):
    """Base exception for configuration-related errors."""
    pass
