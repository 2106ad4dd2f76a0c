"""Exceptions raised by the recommendation engine"""


class RecommenderError(Exception):
    """Base exception for the project."""


class InsufficientDataError(RecommenderError):
    """A strategy has no signal to work with; the engine falls back to the next one."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UpstreamUnavailableError(RecommenderError):
    """Raised when the rental data store cannot be read."""


class ConfigurationError(RecommenderError):
    """Raised when engine configuration is invalid or cannot be loaded."""
