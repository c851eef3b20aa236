"""Log transports and host logging integrations."""

from graphlog.transport.handler import ExcludeLoggersFilter, Neo4jLogHandler, to_logging_level
from graphlog.transport.neo4j_transport import Neo4jTransport
from graphlog.transport.normalize import (
    MalformedCall,
    MalformedRecordError,
    NormalizedCall,
    normalize_call,
)

__all__ = [
    "ExcludeLoggersFilter",
    "MalformedCall",
    "MalformedRecordError",
    "Neo4jLogHandler",
    "Neo4jTransport",
    "NormalizedCall",
    "normalize_call",
    "to_logging_level",
]
