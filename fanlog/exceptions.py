"""
Exceptions raised by the fanlog logging facade.

Construction problems (bad paths, bad rotation settings) are fatal and
surface as ConfigurationError. Everything that can go wrong while a record
is being written is contained inside the facade: a logging failure must
never crash the host application.
"""

from typing import Any


class FanlogError(Exception):
    """
    Base exception for all fanlog errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured output."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(FanlogError):
    """Raised when the logger cannot be built from its configuration."""

    def __init__(
        self,
        message: str = "Invalid logger configuration",
        details: dict[str, Any] | None = None
    ):
        super().__init__(message=message, details=details)


class RedactionTraversalError(FanlogError):
    """Raised when redaction walks into a cyclic structure."""

    def __init__(self, key: Any = None, details: dict[str, Any] | None = None):
        self.key = key
        super().__init__(
            message=f"Cyclic structure under key {key!r}",
            details=details,
        )


class SinkWriteError(FanlogError):
    """Raised when a stream's sink fails to persist a record."""

    def __init__(
        self,
        stream: str,
        message: str = "Failed to write log record",
        details: dict[str, Any] | None = None
    ):
        self.stream = stream
        details = {"stream": stream, **(details or {})}
        super().__init__(message=message, details=details)
