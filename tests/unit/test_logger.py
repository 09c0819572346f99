"""Tests for the StructuredLogger facade."""
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from fanlog.config import LoggerConfig, Severity
from fanlog.exceptions import ConfigurationError
from fanlog.logger import StructuredLogger
from fanlog.streams import Stream


def _records(stream: Stream) -> list[dict]:
    return stream.sink.handlers[0].records


@pytest.fixture
def console_only() -> LoggerConfig:
    return LoggerConfig(output_ways=["Stdout"])


class TestConstruction:
    """Test building a logger from configuration."""

    def test_invalid_options_raise_configuration_error(self):
        """Test validation failures surface as ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            StructuredLogger(output_ways=["File"])

        assert isinstance(exc_info.value.__cause__, ValidationError)
        assert exc_info.value.details["errors"]

    def test_invalid_level(self):
        """Test an unknown level is a configuration error."""
        with pytest.raises(ConfigurationError):
            StructuredLogger(output_ways=["Stdout"], level="loud")

    def test_unusable_path(self, tmp_path):
        """Test a bad base path is fatal at construction."""
        blocker = tmp_path / "file"
        blocker.write_text("x")

        with pytest.raises(ConfigurationError):
            StructuredLogger(output_ways=["File"], domain="d", log_path=str(blocker))

    def test_mapping_config(self, capsys):
        """Test options may be passed as a mapping."""
        with StructuredLogger({"output_ways": ["Stdout"], "mode": "simple"}) as log:
            assert list(log.streams) == ["stdout"]
            log.info("hello", "world")

        assert " INFO: hello world" in capsys.readouterr().out

    def test_options_override_config(self, console_only):
        """Test keyword options are applied on top of a config object."""
        log = StructuredLogger(console_only, streams={}, level="debug")

        assert log.config.level is Severity.DEBUG
        assert console_only.level is Severity.INFO

    def test_streams_view_is_read_only(self, console_only, make_stream):
        """Test the stream registry cannot be changed after construction."""
        log = StructuredLogger(console_only, streams={"a": make_stream("a")})

        with pytest.raises(TypeError):
            log.streams["b"] = make_stream("b")


class TestDispatch:
    """Test fan-out of log calls to streams."""

    def test_normalized_record_reaches_every_stream(self, console_only, make_stream):
        """Test one call is written once to each stream."""
        first, second = make_stream("first"), make_stream("second")
        log = StructuredLogger(console_only, streams={"first": first, "second": second})

        log.info("order", "created", {"order_id": 7})

        for stream in (first, second):
            [entry] = _records(stream)
            assert entry == {"order_id": 7, "event": "order created", "level": "info"}

    def test_threshold(self, console_only, make_stream):
        """Test warn reaches an info stream but not an error stream."""
        errors = make_stream("file-errors", level=Severity.ERROR)
        all_ = make_stream("file-all", level=Severity.INFO)
        log = StructuredLogger(console_only, streams={"file-errors": errors, "file-all": all_})

        log.warn("careful")

        assert _records(errors) == []
        assert [r["event"] for r in _records(all_)] == ["careful"]

    def test_match_predicate(self, console_only, make_stream):
        """Test a stream with a predicate only gets matching records."""
        filtered = make_stream("filtered", match="boom")
        plain = make_stream("plain")
        log = StructuredLogger(console_only, streams={"filtered": filtered, "plain": plain})

        log.info("all quiet")
        log.info("big", "boom")
        log.info({"code": "boom-1"})

        assert [r.get("event") for r in _records(filtered)] == ["big boom", None]
        assert len(_records(plain)) == 3

    def test_match_on_quote_stripped_text(self, console_only, make_stream):
        """Test predicates see the JSON rendering without double quotes."""
        stream = make_stream("filtered", match="event: boom")
        log = StructuredLogger(console_only, streams={"filtered": stream})

        log.info("boom", {"k": 1})

        assert len(_records(stream)) == 1

    def test_anchored_match_on_text(self, console_only, make_stream):
        """Test anchored patterns see the bare text of a text-only call."""
        stream = make_stream("filtered", match="^hello")
        log = StructuredLogger(console_only, streams={"filtered": stream})

        log.info("hello", "world")
        log.info("say", "hello")

        assert [r["event"] for r in _records(stream)] == ["hello world"]

    def test_match_on_error(self, console_only, make_stream):
        """Test predicates can match on the error's text."""
        stream = make_stream("filtered", match="boom")
        log = StructuredLogger(console_only, streams={"filtered": stream})

        log.error(ValueError("boom"))

        assert len(_records(stream)) == 1

    def test_sink_failure_isolated(self, console_only, make_stream, broken_handler):
        """Test a failing stream doesn't prevent delivery to the others."""
        broken = make_stream("broken", handler=broken_handler)
        healthy = make_stream("healthy")
        log = StructuredLogger(console_only, streams={"broken": broken, "healthy": healthy})

        with patch("fanlog.logger.logger") as mock_logger:
            log.error("still delivered")

        assert [r["event"] for r in _records(healthy)] == ["still delivered"]
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "stream_write_failed"
        assert mock_logger.warning.call_args[1]["stream"] == "broken"
        assert mock_logger.warning.call_args[1]["error"] == "SinkWriteError"
        assert "No space left" in mock_logger.warning.call_args[1]["details"]["error"]

    def test_unexpected_stream_failure_isolated(self, console_only, make_stream):
        """Test any exception from a stream is contained."""
        odd = MagicMock(spec=Stream)
        odd.name = "odd"
        odd.match = None
        odd.write.side_effect = RuntimeError("unexpected")
        healthy = make_stream("healthy")
        log = StructuredLogger(console_only, streams={"odd": odd, "healthy": healthy})

        with patch("fanlog.logger.logger"):
            log.info("delivered")

        assert len(_records(healthy)) == 1

    def test_empty_call_writes_nothing(self, console_only, make_stream):
        """Test a call without arguments is not dispatched."""
        stream = make_stream("all")
        log = StructuredLogger(console_only, streams={"all": stream})

        log.info()
        log.error()

        assert _records(stream) == []

    def test_streams_get_independent_event_dicts(self, console_only):
        """Test each stream receives its own copy of the event dict."""
        first = MagicMock(spec=Stream)
        first.match = None
        second = MagicMock(spec=Stream)
        second.match = None
        log = StructuredLogger(console_only, streams={"a": first, "b": second})

        log.info({"k": 1})

        first_dict = first.write.call_args[0][1]
        second_dict = second.write.call_args[0][1]
        assert first_dict == second_dict == {"k": 1}
        assert first_dict is not second_dict


class TestSeverities:
    """Test severity entry points."""

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("trace", "trace"),
            ("debug", "debug"),
            ("info", "info"),
            ("warn", "warning"),
            ("warning", "warning"),
            ("error", "error"),
            ("fatal", "fatal"),
        ],
    )
    def test_convenience_methods(self, console_only, make_stream, method, level):
        """Test each wrapper logs at its own severity."""
        stream = make_stream("all")
        log = StructuredLogger(console_only, streams={"all": stream})

        getattr(log, method)("message")

        assert _records(stream)[0]["level"] == level

    def test_severity_names(self, console_only, make_stream):
        """Test log accepts severity names and aliases."""
        stream = make_stream("all")
        log = StructuredLogger(console_only, streams={"all": stream})

        log.log("WARNING", "a")
        log.log(Severity.ERROR, "b")

        assert [r["level"] for r in _records(stream)] == ["warning", "error"]

    def test_unknown_severity(self, console_only, make_stream):
        """Test unknown severities are rejected."""
        log = StructuredLogger(console_only, streams={"all": make_stream("all")})

        with pytest.raises(ValueError):
            log.log("loud", "x")


class TestLifecycle:
    """Test releasing the logger's streams."""

    def test_close(self, console_only):
        """Test close releases every stream once."""
        stream = MagicMock(spec=Stream)
        stream.name = "s"
        stream.match = None
        log = StructuredLogger(console_only, streams={"s": stream})

        log.close()
        log.close()

        stream.close.assert_called_once()
        assert log.closed

    def test_log_after_close_is_ignored(self, console_only):
        """Test logging after close writes nothing."""
        stream = MagicMock(spec=Stream)
        stream.name = "s"
        stream.match = None
        log = StructuredLogger(console_only, streams={"s": stream})
        log.close()

        log.info("too late")

        stream.write.assert_not_called()

    def test_context_manager(self, console_only):
        """Test the logger closes when the block exits."""
        stream = MagicMock(spec=Stream)
        stream.name = "s"
        stream.match = None

        with StructuredLogger(console_only, streams={"s": stream}) as log:
            log.info("inside")

        stream.write.assert_called_once()
        stream.close.assert_called_once()
