"""Neo4j persistence for log nodes."""

from graphlog.graph.client import AsyncNeo4jClient
from graphlog.graph.errors import PersistenceError
from graphlog.graph.models import FieldSpec, NodeModel, SchemaValidationError, log_node_model

__all__ = [
    "AsyncNeo4jClient",
    "FieldSpec",
    "NodeModel",
    "PersistenceError",
    "SchemaValidationError",
    "log_node_model",
]
