"""Serializers for request, response and error values.

A value logged under one of the type tags ``req``, ``res`` or ``err`` is
replaced at write time by a flat, loggable dict. Request and response
headers, bodies and query strings are redacted on the way.
"""

import traceback
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from .filters import sanitize

logger = structlog.get_logger(__name__)

Serializer = Callable[[Any], dict[str, Any]]


def _field(source: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an object, whichever ``source`` is."""
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)


def serialize_request(req: Any) -> dict[str, Any]:
    """Extract the loggable parts of an HTTP request."""
    return {
        "meta": {
            "request_id": _field(req, "request_id"),
            "user_id": _field(req, "user_id"),
        },
        "url": _field(req, "url"),
        "method": _field(req, "method"),
        "original_url": _field(req, "original_url"),
        "params": _field(req, "params"),
        "headers": sanitize(_field(req, "headers")),
        "body": sanitize(_field(req, "body")),
        "query": sanitize(_field(req, "query")),
    }


def serialize_response(res: Any) -> dict[str, Any]:
    """Extract the loggable parts of an HTTP response."""
    return {
        "headers": sanitize(_field(res, "headers")),
        "status_code": _field(res, "status_code"),
        "response_time": _field(res, "response_time"),
    }


def _format_stack(err: Any) -> str | None:
    if not isinstance(err, BaseException):
        return _field(err, "stack")
    return "".join(traceback.format_exception(type(err), err, err.__traceback__))


def serialize_error(err: Any) -> dict[str, Any]:
    """Extract the loggable parts of an error.

    ``name`` is the error's ``error_type`` when it carries one, otherwise
    its class name.
    """
    name = _field(err, "error_type")
    if name is None and isinstance(err, BaseException):
        name = type(err).__name__

    message = _field(err, "message")
    if message is None and isinstance(err, BaseException):
        message = str(err)

    return {
        "id": _field(err, "id"),
        "code": _field(err, "code"),
        "name": name,
        "status_code": _field(err, "status_code"),
        "level": _field(err, "level"),
        "message": message,
        "context": _field(err, "context"),
        "help": _field(err, "help"),
        "stack": _format_stack(err),
        "hide_stack": bool(_field(err, "hide_stack", False)),
    }


class Serializers:
    """A serializer set keyed by type tag.

    Instances are structlog processors: every tagged value present in the
    event dict is replaced by its serialized form.
    """

    def __init__(self, serializers: Mapping[str, Serializer] | None = None) -> None:
        self.serializers = dict(
            serializers
            if serializers is not None
            else {
                "req": serialize_request,
                "res": serialize_response,
                "err": serialize_error,
            }
        )

    def serialize(self, tag: str, value: Any) -> Any:
        """Serialize ``value`` with the serializer for ``tag``.

        Unknown tags and serializer failures return ``value`` unchanged.
        """
        serializer = self.serializers.get(tag)
        if serializer is None or value is None:
            return value
        try:
            return serializer(value)
        except Exception as e:
            logger.warning("serializer_failed", tag=tag, error=str(e))
            return value

    def __call__(
        self, _: Any, __: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for tag in self.serializers:
            if tag in event_dict:
                event_dict[tag] = self.serialize(tag, event_dict[tag])
        return event_dict


DEFAULT_SERIALIZERS = Serializers()
