"""Argument normalization for transport entry points.

Host logging integrations call a transport in two shapes:

- ``(record, on_complete)`` where ``record`` is a mapping with ``level``,
  ``message`` and ``metadata`` (or ``meta``) keys, or a ``LogRecordInput``;
- ``(level, message[, metadata][, on_complete])`` positionally, where a
  callable in the third slot is the completion callback and metadata is
  absent.

``normalize_call`` folds both into one ``NormalizedCall`` or reports a
``MalformedCall`` before any processing happens.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from graphlog.core.ports.transport import CompletionCallback
from graphlog.schemas.log_entry import LogRecordInput

_MAX_POSITIONAL = 4


class MalformedRecordError(TypeError):
    """Exception raised when a log call cannot be normalized."""

    pass


@dataclass(slots=True, frozen=True)
class NormalizedCall:
    """A log call that parsed into a record."""

    record: LogRecordInput
    on_complete: CompletionCallback | None = None


@dataclass(slots=True, frozen=True)
class MalformedCall:
    """A log call that could not be parsed.

    ``on_complete`` is kept when one was found so the failure can still be
    reported through it.
    """

    reason: str
    on_complete: CompletionCallback | None = None

    def error(self) -> MalformedRecordError:
        return MalformedRecordError(self.reason)


ParsedCall = NormalizedCall | MalformedCall


def _find_callback(args: Sequence[Any]) -> CompletionCallback | None:
    for arg in reversed(args):
        if callable(arg) and not isinstance(arg, (Mapping, LogRecordInput)):
            return arg
    return None


def _build_record(
    level: Any,
    message: Any,
    metadata: Any,
    default_level: str,
) -> LogRecordInput | str:
    """Apply defaults; return the record or a reason string."""
    if level is None or level == "":
        level = default_level
    if not isinstance(level, str):
        return f"level must be a string, got {type(level).__name__}"

    if message is None:
        message = ""
    elif not isinstance(message, str):
        message = str(message)

    if metadata is None:
        metadata = {}

    return LogRecordInput(level=level, message=message, metadata=metadata)


def _from_record_value(record: Any, default_level: str) -> LogRecordInput | str:
    if isinstance(record, LogRecordInput):
        return record
    metadata = record.get("metadata")
    if metadata is None:
        metadata = record.get("meta")
    return _build_record(record.get("level"), record.get("message"), metadata, default_level)


def normalize_call(args: Sequence[Any], default_level: str = "info") -> ParsedCall:
    """Normalize the positional arguments of one log call.

    Args:
        args: Positional arguments as received by the entry point.
        default_level: Level used when the call supplies none.

    Returns:
        ParsedCall: ``NormalizedCall`` on success, ``MalformedCall`` otherwise.

    Examples:
        >>> cb = lambda *a: None
        >>> normalize_call(("warn", "low disk", cb)).record.metadata
        {}
        >>> normalize_call(({"level": "info", "message": "up"},)).record.message
        'up'
    """
    args = tuple(args)
    if not args:
        return MalformedCall("log call requires at least one argument")
    if len(args) > _MAX_POSITIONAL:
        return MalformedCall(
            f"log call takes at most {_MAX_POSITIONAL} arguments, got {len(args)}",
            _find_callback(args),
        )

    first = args[0]

    # Named-fields record: (record) or (record, on_complete)
    if isinstance(first, (Mapping, LogRecordInput)):
        rest = args[1:]
        if len(rest) > 1:
            return MalformedCall("unexpected arguments after log record", _find_callback(rest))
        on_complete = rest[0] if rest else None
        if on_complete is not None and not callable(on_complete):
            return MalformedCall(
                f"completion callback must be callable, got {type(on_complete).__name__}"
            )
        record = _from_record_value(first, default_level)
        if isinstance(record, str):
            return MalformedCall(record, on_complete)
        return NormalizedCall(record, on_complete)

    if not isinstance(first, str):
        return MalformedCall(
            f"first argument must be a level or a log record, got {type(first).__name__}",
            _find_callback(args[1:]),
        )

    # Positional: (level, message[, metadata][, on_complete])
    level = first
    message = args[1] if len(args) > 1 else None
    metadata: Any = None
    on_complete: Any = None

    if len(args) == 3:
        if callable(args[2]):
            on_complete = args[2]
        else:
            metadata = args[2]
    elif len(args) == 4:
        metadata, on_complete = args[2], args[3]
        if on_complete is not None and not callable(on_complete):
            return MalformedCall(
                f"completion callback must be callable, got {type(on_complete).__name__}"
            )

    record = _build_record(level, message, metadata, default_level)
    if isinstance(record, str):
        return MalformedCall(record, on_complete)
    return NormalizedCall(record, on_complete)


__all__ = [
    "MalformedCall",
    "MalformedRecordError",
    "NormalizedCall",
    "ParsedCall",
    "normalize_call",
]
