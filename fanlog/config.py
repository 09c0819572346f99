"""Configuration for the fanlog logging facade.

This module holds everything the facade reads at construction time:
- Severity levels and their mapping onto stdlib level numbers
- Output ways (console and file destinations)
- Console rendering modes
- File rotation settings
- The LoggerConfig settings model (environment variables prefixed LOG_)
"""

import logging
import os
import re
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Severity(str, Enum):
    """Log severities, from least to most severe."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @classmethod
    def _missing_(cls, value: object) -> "Severity | None":
        if isinstance(value, str):
            name = value.strip().lower()
            name = _SEVERITY_ALIASES.get(name, name)
            for member in cls:
                if member.value == name:
                    return member
        return None

    @property
    def levelno(self) -> int:
        """Stdlib logging level number for this severity."""
        return _LEVELNO[self]

    def is_at_least(self, threshold: "Severity") -> bool:
        """Whether this severity is at least as severe as ``threshold``."""
        return self.levelno >= threshold.levelno


_SEVERITY_ALIASES = {"warning": "warn", "critical": "fatal"}

_LEVELNO = {
    Severity.TRACE: TRACE,
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class OutputWay(str, Enum):
    """Destinations a logger can write to."""

    FILE = "File"
    STDOUT = "Stdout"

    @classmethod
    def _missing_(cls, value: object) -> "OutputWay | None":
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class ConsoleMode(str, Enum):
    """Console rendering modes."""

    SHORT = "short"
    LONG = "long"
    SIMPLE = "simple"
    JSON = "json"


class RotationConfig(BaseModel):
    """Rotation settings shared by the rotating file streams.

    Attributes
    ----------
        enabled: Use rotating files instead of plain files
        period: How often to rotate, e.g. "6h", "1d", "1w" or "daily"
        count: Number of rotated files to keep

    """

    enabled: bool = False
    period: str = "6h"
    count: int = Field(default=10, ge=1)


class LoggerConfig(BaseSettings):
    """Configuration for a StructuredLogger.

    Values are read from constructor arguments first, then from environment
    variables with the prefix LOG_. For example:
    - LOG_LEVEL=debug
    - LOG_OUTPUT_WAYS='["Stdout"]'
    - LOG_ROTATION__ENABLED=true

    Attributes
    ----------
        env: Deployment tag, used in file names
        output_ways: Destinations to build streams for
        service_name: Identifier written as ``name`` in every record
        domain: Identifier used in file names (required for file output)
        level: Minimum severity for the console and "all" files
        mode: Console rendering mode
        log_path: Base directory for log files, always ends with a separator
        rotation: Rotation settings for file output
        match: Optional regex filter per stream name

    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default="development", description="Deployment tag")
    output_ways: list[OutputWay] = Field(
        default_factory=lambda: [OutputWay.FILE, OutputWay.STDOUT],
        description="Ordered output destinations",
    )
    service_name: str = Field(default="localhost", description="Service identifier")
    domain: str | None = Field(
        default=None, description="Identifier used in log file names"
    )
    level: Severity = Field(default=Severity.INFO, description="Minimum severity")
    mode: ConsoleMode = Field(
        default=ConsoleMode.SHORT, description="Console rendering mode"
    )
    log_path: str = Field(
        default="/var/log/app/", description="Base directory for log files"
    )
    rotation: RotationConfig = Field(default_factory=RotationConfig)
    match: dict[str, str] = Field(
        default_factory=dict, description="Regex filter per stream name"
    )

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: Any) -> Any:
        """Accept any casing and the stdlib spellings of warn and fatal."""
        if isinstance(v, str):
            name = v.strip().lower()
            return _SEVERITY_ALIASES.get(name, name)
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def validate_mode(cls, v: Any) -> Any:
        """Lowercase the console mode."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("output_ways", mode="before")
    @classmethod
    def validate_output_ways(cls, v: Any) -> Any:
        """Accept a single name and drop duplicates, keeping order."""
        if isinstance(v, str | OutputWay):
            v = [v]
        if isinstance(v, list | tuple):
            seen: list[OutputWay] = []
            for item in v:
                way = OutputWay(item)
                if way not in seen:
                    seen.append(way)
            return seen
        return v

    @field_validator("log_path")
    @classmethod
    def validate_log_path(cls, v: str) -> str:
        """Ensure the base path ends with a path separator."""
        if not v:
            raise ValueError("log_path must not be empty")
        if not v.endswith(("/", "\\")):
            v = v + os.sep
        return v

    @field_validator("match")
    @classmethod
    def validate_match(cls, v: dict[str, str]) -> dict[str, str]:
        """Reject filters that are not valid regular expressions."""
        for stream_name, pattern in v.items():
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(
                    f"Invalid match pattern for stream {stream_name!r}: {e}"
                ) from e
        return v

    @model_validator(mode="after")
    def validate_domain_for_file_output(self) -> Self:
        """File names are derived from the domain, so file output needs one."""
        if OutputWay.FILE in self.output_ways and not self.domain:
            raise ValueError("domain must be set when File is an output way")
        return self
