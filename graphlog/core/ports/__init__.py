"""Port interfaces between transports, their host and the graph store."""

from graphlog.core.ports.graph_store import GraphStorePort
from graphlog.core.ports.transport import CompletionCallback, TransportPort

__all__ = ["CompletionCallback", "GraphStorePort", "TransportPort"]
