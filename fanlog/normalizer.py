"""Normalization of variadic log-call arguments into one record."""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LogRecord:
    """The structured form of one log call.

    The three parts are independent: a single call may carry an error,
    merged fields and a text fragment at the same time.
    """

    error: BaseException | None = None
    fields: dict[str, Any] = field(default_factory=dict)
    text: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.error is None and not self.fields and self.text is None

    def to_event_dict(self) -> dict[str, Any]:
        """Build the structlog event dict written to the sinks."""
        event_dict = dict(self.fields)
        if self.error is not None:
            event_dict["err"] = self.error
        if self.text is not None:
            event_dict["event"] = self.text.rstrip(" ")
        return event_dict


def normalize(args: Iterable[Any]) -> LogRecord:
    """Fold log-call arguments, in order, into a single LogRecord.

    - Exceptions become the record's error; the last one wins.
    - Mappings are merged into the record's fields; later keys overwrite.
    - Anything else is appended to the text fragment, followed by a space.

    Args:
    ----
        args: The positional arguments of a log call

    Returns:
    -------
        The normalized record

    """
    record = LogRecord()
    for value in args:
        if isinstance(value, BaseException):
            record.error = value
        elif isinstance(value, Mapping):
            record.fields.update(value)
        else:
            record.text = (record.text or "") + f"{value} "
    return record


def render_safe_text(record: LogRecord) -> str:
    """Render a record as text for match predicates.

    A record holding only text renders as the text fragment itself, so
    anchored patterns such as ``^hello`` see the message. Other records
    render as the JSON of their event dict. Values JSON cannot encode are
    rendered with ``repr``, and cyclic records fall back to ``repr`` of the
    whole event dict. Double quotes are stripped from the result.
    """
    if record.error is None and not record.fields and record.text is not None:
        payload: Any = record.text
    else:
        payload = record.to_event_dict()
    try:
        text = json.dumps(payload, default=repr, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(payload)
    return text.replace('"', "")
