"""Output streams and the registry that builds them from configuration.

A Stream wraps one sink: a dedicated stdlib logger with a single handler,
formatted through structlog's ProcessorFormatter. The stream holds the
severity threshold, an optional content filter and, for rotating files,
the rotation policy.
"""

import functools
import logging
import os
import re
import socket
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from re import Pattern
from typing import Any

import structlog

from .config import ConsoleMode, LoggerConfig, OutputWay, RotationConfig, Severity
from .console import PrettyConsoleRenderer
from .exceptions import ConfigurationError, SinkWriteError
from .filters import mark_circular
from .serializers import DEFAULT_SERIALIZERS

logger = structlog.get_logger(__name__)


class _RaiseOnErrorMixin:
    """Let write failures propagate instead of printing them to stderr."""

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        raise


class ConsoleHandler(_RaiseOnErrorMixin, logging.StreamHandler):
    """Console sink handler."""


class FileSinkHandler(_RaiseOnErrorMixin, logging.FileHandler):
    """Plain file sink handler."""


class RotatingFileSinkHandler(_RaiseOnErrorMixin, TimedRotatingFileHandler):
    """Time-rotated file sink handler."""


_PERIOD_RE = re.compile(r"^\s*(\d*)\s*([hdw])\s*$", re.IGNORECASE)
_PERIOD_ALIASES = {"hourly": "1h", "daily": "1d", "weekly": "1w"}


@dataclass(frozen=True)
class RotationPolicy:
    """When to rotate a log file and how many rotated files to keep."""

    period: str
    count: int
    when: str
    interval: int

    @classmethod
    def parse(cls, period: str, count: int) -> "RotationPolicy":
        """Parse a duration string such as "6h", "1d", "2w" or "daily".

        Raises
        ------
            ConfigurationError: If the period or count is invalid

        """
        match = _PERIOD_RE.match(_PERIOD_ALIASES.get(period.strip().lower(), period))
        if not match:
            raise ConfigurationError(
                f"Invalid rotation period: {period!r}",
                details={"period": period},
            )
        if count < 1:
            raise ConfigurationError(
                f"Invalid rotation count: {count!r}",
                details={"count": count},
            )

        amount = int(match.group(1) or 1)
        unit = match.group(2).lower()
        if amount < 1:
            raise ConfigurationError(
                f"Invalid rotation period: {period!r}",
                details={"period": period},
            )

        if unit == "h":
            return cls(period=period, count=count, when="H", interval=amount)
        if unit == "d":
            return cls(period=period, count=count, when="D", interval=amount)
        return cls(period=period, count=count, when="D", interval=amount * 7)

    @classmethod
    def from_config(cls, rotation: RotationConfig) -> "RotationPolicy":
        return cls.parse(rotation.period, rotation.count)

    def create_handler(self, path: str) -> RotatingFileSinkHandler:
        return RotatingFileSinkHandler(
            path,
            when=self.when,
            interval=self.interval,
            backupCount=self.count,
            encoding="utf-8",
        )


@dataclass(frozen=True)
class Stream:
    """A named output destination with its own threshold and filter."""

    name: str
    level: Severity
    sink: logging.Logger
    match: Pattern[str] | None = None
    rotation: RotationPolicy | None = None
    path: str | None = None

    def accepts(self, text: str) -> bool:
        """Whether a record rendered as ``text`` passes the content filter."""
        return self.match is None or self.match.search(text) is not None

    def enabled_for(self, severity: Severity) -> bool:
        return severity.is_at_least(self.level)

    def write(self, severity: Severity, event_dict: dict[str, Any]) -> None:
        """Hand a record to the sink, which applies its own threshold.

        Raises
        ------
            SinkWriteError: If the sink fails to write the record

        """
        args, kwargs = structlog.stdlib.ProcessorFormatter.wrap_for_formatter(
            self.sink, severity.value, event_dict
        )
        try:
            self.sink.log(severity.levelno, *args, **kwargs)
        except Exception as e:
            raise SinkWriteError(self.name, details={"error": str(e)}) from e

    def close(self) -> None:
        for handler in list(self.sink.handlers):
            self.sink.removeHandler(handler)
            handler.close()


def add_service_info(service_name: str) -> Callable[..., dict[str, Any]]:
    """Create a processor adding service name, hostname and pid."""
    hostname = socket.gethostname()

    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("name", service_name)
        event_dict.setdefault("hostname", hostname)
        event_dict.setdefault("pid", os.getpid())
        return event_dict

    return processor


def _create_formatter(config: LoggerConfig, renderer: Any) -> logging.Formatter:
    """Create the processor chain run by a sink at write time."""
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            DEFAULT_SERIALIZERS,
            mark_circular,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_info(config.service_name),
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _create_stream(
    name: str,
    level: Severity,
    handler: logging.Handler,
    renderer: Any,
    config: LoggerConfig,
    rotation: RotationPolicy | None = None,
    path: str | None = None,
) -> Stream:
    handler.setLevel(level.levelno)
    handler.setFormatter(_create_formatter(config, renderer))

    # Not registered with the logging manager: nothing else can reach it
    sink = logging.Logger(f"fanlog.{config.service_name}.{name}", level.levelno)
    sink.propagate = False
    sink.addHandler(handler)

    pattern = config.match.get(name)
    return Stream(
        name=name,
        level=level,
        sink=sink,
        match=re.compile(pattern) if pattern is not None else None,
        rotation=rotation,
        path=path,
    )


def _build_stdout_streams(config: LoggerConfig) -> dict[str, Stream]:
    if config.mode is ConsoleMode.JSON:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = PrettyConsoleRenderer(mode=config.mode)

    stream = _create_stream(
        "stdout", config.level, ConsoleHandler(sys.stdout), renderer, config
    )
    return {stream.name: stream}


def _ensure_base_path(log_path: str) -> Path:
    path = Path(log_path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot create log directory {log_path}: {e}",
            details={"log_path": log_path},
        ) from e
    if not path.is_dir():
        raise ConfigurationError(
            f"Log path is not a directory: {log_path}",
            details={"log_path": log_path},
        )
    if not os.access(path, os.W_OK):
        raise ConfigurationError(
            f"Log directory is not writable: {log_path}",
            details={"log_path": log_path},
        )
    return path


def _open_handler(factory: Callable[[str], logging.Handler], path: str) -> logging.Handler:
    try:
        return factory(path)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot open log file {path}: {e}", details={"path": path}
        ) from e


def _build_file_streams(config: LoggerConfig) -> dict[str, Stream]:
    _ensure_base_path(config.log_path)

    prefix = f"{config.log_path}{config.domain}_{config.env}"
    errors_path = f"{prefix}.error.log"
    all_path = f"{prefix}.log"

    rotation: RotationPolicy | None = None
    if config.rotation.enabled:
        rotation = RotationPolicy.from_config(config.rotation)
        factory: Callable[[str], logging.Handler] = rotation.create_handler
        names = ("rotation-errors", "rotation-all")
    else:
        factory = functools.partial(FileSinkHandler, encoding="utf-8")
        names = ("file-errors", "file-all")

    renderer = structlog.processors.JSONRenderer()
    streams: dict[str, Stream] = {}
    try:
        for name, level, path in (
            (names[0], Severity.ERROR, errors_path),
            (names[1], config.level, all_path),
        ):
            handler = _open_handler(factory, path)
            streams[name] = _create_stream(
                name, level, handler, renderer, config, rotation=rotation, path=path
            )
    except ConfigurationError:
        close_streams(streams.values())
        raise
    return streams


_STREAM_BUILDERS: dict[OutputWay, Callable[[LoggerConfig], dict[str, Stream]]] = {
    OutputWay.STDOUT: _build_stdout_streams,
    OutputWay.FILE: _build_file_streams,
}


def build_streams(config: LoggerConfig) -> dict[str, Stream]:
    """Build every stream requested by the configuration, in order.

    Args:
    ----
        config: Logger configuration

    Returns:
    -------
        Streams keyed by name

    Raises:
    ------
        ConfigurationError: If a stream cannot be built

    """
    streams: dict[str, Stream] = {}
    try:
        for output_way in config.output_ways:
            streams.update(_STREAM_BUILDERS[output_way](config))
    except ConfigurationError:
        close_streams(streams.values())
        raise

    for name in config.match:
        if name not in streams:
            logger.warning("match_pattern_unused", stream=name, streams=list(streams))

    return streams


def close_streams(streams: Iterable[Stream]) -> None:
    """Close every stream, carrying on past individual failures."""
    for stream in streams:
        try:
            stream.close()
        except Exception as e:
            logger.warning("stream_close_failed", stream=stream.name, error=str(e))
