"""Global pytest configuration and fixtures."""
import json
import logging
import os
import re
from collections.abc import Callable, Generator

import pytest
import structlog

from fanlog.config import LoggerConfig, Severity
from fanlog.streams import Stream


class RecordingHandler(logging.Handler):
    """Handler keeping every formatted record as a parsed JSON dict."""

    def __init__(self) -> None:
        super().__init__()
        self.records: list[dict] = []
        self.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.add_log_level,
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(json.loads(self.format(record)))


class BrokenHandler(logging.Handler):
    """Handler failing on every write, like a full disk."""

    def emit(self, record: logging.LogRecord) -> None:
        raise OSError("No space left on device")


@pytest.fixture(autouse=True)
def clean_log_env(monkeypatch) -> None:
    """Keep LOG_ variables from the host environment out of the tests."""
    for key in list(os.environ):
        if key.upper().startswith("LOG_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def broken_handler() -> logging.Handler:
    """A handler whose every write fails."""
    return BrokenHandler()


@pytest.fixture
def make_stream() -> Generator[Callable[..., Stream], None, None]:
    """Factory for in-memory streams.

    The handler is reachable as ``stream.sink.handlers[0]``.
    """
    created: list[Stream] = []

    def _make_stream(
        name: str,
        level: Severity = Severity.TRACE,
        match: str | None = None,
        handler: logging.Handler | None = None,
    ) -> Stream:
        handler = handler or RecordingHandler()
        sink = logging.Logger(f"test.{name}", level.levelno)
        sink.propagate = False
        sink.addHandler(handler)
        stream = Stream(
            name=name,
            level=level,
            sink=sink,
            match=re.compile(match) if match is not None else None,
        )
        created.append(stream)
        return stream

    yield _make_stream

    for stream in created:
        stream.close()


@pytest.fixture
def stdout_config() -> LoggerConfig:
    """Console-only configuration; needs no domain or directory."""
    return LoggerConfig(output_ways=["Stdout"], mode="simple")


@pytest.fixture
def file_config(tmp_path) -> LoggerConfig:
    """File-only configuration writing into a temporary directory."""
    return LoggerConfig(
        output_ways=["File"],
        domain="billing",
        env="test",
        service_name="billing-api",
        log_path=str(tmp_path / "logs"),
    )


@pytest.fixture
def read_log() -> Callable[..., list[dict]]:
    """Parse a JSON-lines log file."""

    def _read_log(path) -> list[dict]:
        if not os.path.exists(path):
            return []
        with open(path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    return _read_log
