"""Log entry schemas.

``LogRecordInput`` is one normalized log call. ``LogNode`` is the entity
persisted to Neo4j for it.
"""

import json
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pythonjsonlogger.json import JsonEncoder


def serialize_metadata(metadata: Any) -> str:
    """Serialize log metadata to the string stored on the node.

    Absent or empty metadata (``None``, ``{}``, ``[]``, ``""``) becomes an
    empty string. Anything else is JSON text; values JSON cannot represent
    natively (datetimes, UUIDs, exceptions, ...) go through python-json-logger's
    encoder.

    Examples:
        >>> serialize_metadata({})
        ''
        >>> serialize_metadata({"user_id": 42})
        '{"user_id": 42}'
    """
    if metadata is None:
        return ""
    if isinstance(metadata, (Mapping, Sequence)) and len(metadata) == 0:
        return ""
    return json.dumps(metadata, cls=JsonEncoder, ensure_ascii=False)


class LogRecordInput(BaseModel):
    """One log call after argument normalization and defaulting.

    Examples:
        >>> record = LogRecordInput(level="error", message="disk full", metadata={"mount": "/"})
        >>> record.level
        'error'
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    level: str = Field(..., min_length=1, description="Severity level name")
    message: str = Field(default="", description="Log message text")
    metadata: Any = Field(default=None, description="Structured metadata, if any")


class LogNode(BaseModel):
    """Persisted log node.

    Examples:
        >>> node = LogNode.from_record(LogRecordInput(level="info", message="started"))
        >>> node.metadata
        ''
        >>> sorted(node.to_properties())
        ['level', 'message', 'metadata', 'timestamp']
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="When the record was processed (UTC)")
    level: str = Field(..., min_length=1)
    message: str = Field(default="")
    metadata: str = Field(default="", description="JSON text of the record metadata")

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
        return value.astimezone(UTC)

    @classmethod
    def from_record(cls, record: LogRecordInput, now: datetime | None = None) -> "LogNode":
        """Build the node for ``record``, stamping it with the current UTC time."""
        return cls(
            timestamp=now or datetime.now(UTC),
            level=record.level,
            message=record.message,
            metadata=serialize_metadata(record.metadata),
        )

    def to_properties(self) -> dict[str, Any]:
        """Return the property mapping written to the graph."""
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "metadata": self.metadata,
        }


__all__ = ["LogNode", "LogRecordInput", "serialize_metadata"]
