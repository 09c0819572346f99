"""fanlog: structured logging fanned out to console and file streams.

This package configures multiple output streams on top of structlog and
the standard library, redacts sensitive request data, and normalizes
variadic log-call arguments into a single structured record.
"""

from .config import ConsoleMode, LoggerConfig, OutputWay, RotationConfig, Severity
from .exceptions import ConfigurationError, FanlogError, RedactionTraversalError, SinkWriteError
from .filters import RedactionRule, sanitize
from .logger import StructuredLogger
from .normalizer import LogRecord, normalize
from .serializers import Serializers, serialize_error, serialize_request, serialize_response
from .streams import RotationPolicy, Stream, build_streams

__all__ = [
    "StructuredLogger",
    "LoggerConfig",
    "RotationConfig",
    "Severity",
    "OutputWay",
    "ConsoleMode",
    "Stream",
    "RotationPolicy",
    "build_streams",
    "LogRecord",
    "normalize",
    "sanitize",
    "RedactionRule",
    "Serializers",
    "serialize_request",
    "serialize_response",
    "serialize_error",
    "FanlogError",
    "ConfigurationError",
    "RedactionTraversalError",
    "SinkWriteError",
]
