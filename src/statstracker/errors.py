"""Custom exception types for the stats tracker CLIs."""


class StatsTrackerError(Exception):
    """Base exception for all recoverable stats tracker errors."""


class ConfigurationError(StatsTrackerError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(StatsTrackerError):
    """Raised when an API token is unavailable in the environment."""


class ApiError(StatsTrackerError):
    """Raised when an upstream API request fails or returns an unexpected response."""


class CacheError(StatsTrackerError):
    """Raised when the local cache cannot be read, written, or decoded."""


class CacheMiss(StatsTrackerError):
    """Raised by a cache lookup when the key is absent or its entry has expired."""


class CorrelationError(StatsTrackerError):
    """Raised when a single record cannot be correlated across systems."""
