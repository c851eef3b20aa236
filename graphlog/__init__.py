"""graphlog - persist log records as Neo4j nodes."""

from graphlog.common.config import ConfigurationError, TransportOptions
from graphlog.graph.errors import PersistenceError
from graphlog.schemas.log_entry import LogNode, LogRecordInput
from graphlog.transport import MalformedRecordError, Neo4jLogHandler, Neo4jTransport

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "LogNode",
    "LogRecordInput",
    "MalformedRecordError",
    "Neo4jLogHandler",
    "Neo4jTransport",
    "PersistenceError",
    "TransportOptions",
]
