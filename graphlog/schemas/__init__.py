"""Pydantic schemas for log records and persisted log nodes."""

from graphlog.schemas.log_entry import LogNode, LogRecordInput, serialize_metadata

__all__ = ["LogNode", "LogRecordInput", "serialize_metadata"]
