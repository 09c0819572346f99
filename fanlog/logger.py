"""The StructuredLogger facade.

A StructuredLogger builds its streams once, from configuration, and fans
every log call out to them:

    log = StructuredLogger(domain="billing", output_ways=["File"])
    log.info("charge created", {"amount": 42}, req)
    log.error(exc, {"order_id": order_id})

Arguments are normalized into a single record (see ``normalize``); each
stream then applies its content filter and severity threshold. A failing
stream never prevents delivery to the others, and never raises into the
caller.
"""

from collections.abc import Mapping
from types import MappingProxyType, TracebackType
from typing import Any, Self

import structlog
from pydantic import ValidationError

from .config import LoggerConfig, Severity
from .exceptions import ConfigurationError, SinkWriteError
from .normalizer import normalize, render_safe_text
from .streams import Stream, build_streams, close_streams

logger = structlog.get_logger(__name__)


def _load_config(
    config: LoggerConfig | Mapping[str, Any] | None, options: dict[str, Any]
) -> LoggerConfig:
    try:
        if isinstance(config, LoggerConfig):
            if not options:
                return config
            return LoggerConfig(**{**config.model_dump(), **options})
        return LoggerConfig(**{**dict(config or {}), **options})
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid logger configuration",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


class StructuredLogger:
    """Multi-destination structured logger.

    Args:
    ----
        config: A LoggerConfig, a mapping of options, or None to read the
            LOG_ environment variables
        streams: Prebuilt streams to use instead of building them from
            the configuration
        **options: Option overrides applied on top of ``config``

    Raises:
    ------
        ConfigurationError: If the configuration is invalid or a stream
            cannot be built

    """

    def __init__(
        self,
        config: LoggerConfig | Mapping[str, Any] | None = None,
        *,
        streams: Mapping[str, Stream] | None = None,
        **options: Any,
    ) -> None:
        self.config = _load_config(config, options)
        if streams is None:
            streams = build_streams(self.config)
        self._streams = dict(streams)
        self._closed = False

    @property
    def streams(self) -> Mapping[str, Stream]:
        """Read-only view of the registered streams."""
        return MappingProxyType(self._streams)

    @property
    def closed(self) -> bool:
        return self._closed

    def log(self, severity: Severity | str, *args: Any) -> None:
        """Normalize ``args`` and dispatch the record to every stream.

        A call without arguments writes nothing.

        Raises
        ------
            ValueError: If ``severity`` is not a known severity name

        """
        severity = Severity(severity)
        if self._closed:
            return

        record = normalize(args)
        if record.is_empty:
            return
        event_dict = record.to_event_dict()
        text: str | None = None

        for stream in self._streams.values():
            if stream.match is not None:
                if text is None:
                    text = render_safe_text(record)
                if not stream.accepts(text):
                    continue
            try:
                stream.write(severity, dict(event_dict))
            except SinkWriteError as e:
                logger.warning("stream_write_failed", stream=e.stream, **e.to_dict())
            except Exception as e:
                logger.warning("stream_write_failed", stream=stream.name, error=str(e))

    def trace(self, *args: Any) -> None:
        self.log(Severity.TRACE, *args)

    def debug(self, *args: Any) -> None:
        self.log(Severity.DEBUG, *args)

    def info(self, *args: Any) -> None:
        self.log(Severity.INFO, *args)

    def warn(self, *args: Any) -> None:
        self.log(Severity.WARN, *args)

    warning = warn

    def error(self, *args: Any) -> None:
        self.log(Severity.ERROR, *args)

    def fatal(self, *args: Any) -> None:
        self.log(Severity.FATAL, *args)

    def close(self) -> None:
        """Release every stream. Later log calls are ignored."""
        if self._closed:
            return
        self._closed = True
        close_streams(self._streams.values())

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
