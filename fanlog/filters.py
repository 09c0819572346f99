"""Sensitive-key redaction for structured log data.

Request and response serializers run headers, bodies and query strings
through ``sanitize`` before a record is written. Any mapping key that
matches one of the sensitive-key rules is dropped from the copy, at every
nesting depth.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from re import Pattern
from typing import Any

import structlog

from .exceptions import RedactionTraversalError

logger = structlog.get_logger(__name__)

CIRCULAR = "[Circular]"


@dataclass(frozen=True)
class RedactionRule:
    """A pattern matched against mapping keys."""

    name: str
    pattern: Pattern[str]
    description: str = ""

    def matches(self, key: str) -> bool:
        return self.pattern.search(key) is not None


SENSITIVE_KEY_RULES: tuple[RedactionRule, ...] = (
    RedactionRule(
        name="password",
        pattern=re.compile(r"password", re.IGNORECASE),
        description="Passwords and password confirmations",
    ),
    RedactionRule(
        name="authorization",
        pattern=re.compile(r"authorization", re.IGNORECASE),
        description="Authorization headers and tokens",
    ),
    RedactionRule(
        name="cookie",
        pattern=re.compile(r"cookie", re.IGNORECASE),
        description="Cookie and Set-Cookie headers",
    ),
    RedactionRule(
        name="pin",
        pattern=re.compile(r"pin", re.IGNORECASE),
        description="PIN codes",
    ),
)


def is_sensitive_key(key: Any) -> bool:
    """Whether ``key`` names a field that must not be logged.

    Only string keys can be sensitive.
    """
    if not isinstance(key, str):
        return False
    return any(rule.matches(key) for rule in SENSITIVE_KEY_RULES)


def _is_container(value: Any) -> bool:
    return isinstance(value, Mapping | list)


def _items(container: Mapping | list) -> Any:
    if isinstance(container, Mapping):
        return container.items()
    return enumerate(container)


def _empty_like(container: Mapping | list) -> dict | list:
    return {} if isinstance(container, Mapping) else []


def _put(target: dict | list, key: Any, value: Any) -> None:
    if isinstance(target, dict):
        target[key] = value
    else:
        target.append(value)


def _descend(key: Any, child: Any, ancestors: frozenset[int]) -> frozenset[int]:
    """Return the ancestor set for ``child``, refusing to re-enter a cycle."""
    if id(child) in ancestors:
        raise RedactionTraversalError(key)
    return ancestors | {id(child)}


def sanitize(value: Any) -> Any:
    """Return a copy of ``value`` without sensitive keys.

    Mappings are copied into plain dicts and walked at every depth, lists
    are walked so mappings nested inside them are sanitized as well. Any
    other value is returned unchanged. The input is never mutated.

    A reference back to one of its own ancestors is not followed: it is
    written as the ``CIRCULAR`` marker. The ancestor itself is already in
    the copy, redacted.

    Args:
    ----
        value: The structure to sanitize

    Returns:
    -------
        The sanitized copy

    """
    if not isinstance(value, Mapping):
        return value

    root = _empty_like(value)
    stack: list[tuple[Mapping | list, dict | list, frozenset[int]]] = [
        (value, root, frozenset({id(value)}))
    ]

    while stack:
        source, target, ancestors = stack.pop()
        for key, child in _items(source):
            if isinstance(source, Mapping) and is_sensitive_key(key):
                continue

            if not _is_container(child):
                _put(target, key, child)
                continue

            try:
                child_ancestors = _descend(key, child, ancestors)
            except RedactionTraversalError as e:
                logger.debug("redaction_cycle_skipped", key=e.key)
                _put(target, key, CIRCULAR)
                continue

            copy = _empty_like(child)
            _put(target, key, copy)
            stack.append((child, copy, child_ancestors))

    return root


def mark_circular(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Processor replacing back-references in the event dict with ``CIRCULAR``.

    Renderers get an acyclic copy, so a record holding a cyclic value is
    still written. Nothing is redacted here.
    """
    root: dict[str, Any] = {}
    stack: list[tuple[Mapping | list, dict | list, frozenset[int]]] = [
        (event_dict, root, frozenset({id(event_dict)}))
    ]

    while stack:
        source, target, ancestors = stack.pop()
        for key, child in _items(source):
            if not _is_container(child):
                _put(target, key, child)
            elif id(child) in ancestors:
                _put(target, key, CIRCULAR)
            else:
                copy = _empty_like(child)
                _put(target, key, copy)
                stack.append((child, copy, ancestors | {id(child)}))

    return root
