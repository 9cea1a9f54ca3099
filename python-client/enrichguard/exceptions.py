"""Exceptions raised by enrichguard.

Downstream failures never surface as exceptions from ``fetch``; these
cover configuration mistakes and the timeout primitive only.
"""


class EnrichGuardError(Exception):
    """Base class for enrichguard errors."""

    pass


class ConfigurationError(EnrichGuardError, ValueError):
    """Raised at construction time for invalid configuration."""

    pass


class CallTimeoutError(EnrichGuardError):
    """Raised when an awaited operation exceeds its time budget."""

    def __init__(self, message: str = "", timeout: float = 0.0):
        super().__init__(message)
        self.timeout = timeout
