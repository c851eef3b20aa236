"""GraphStorePort - Port interface for the graph database collaborator.

Transports depend on this protocol rather than on the neo4j driver, so a
store can be swapped (or faked in tests) without touching transport code.
``graphlog.graph.client.AsyncNeo4jClient`` implements it.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class GraphStorePort(Protocol):
    """Port interface for node creation in a graph database."""

    def declare_model(self, label: str, fields: Mapping[str, Any]) -> Any:
        """Register the property schema for ``label`` before any write."""
        ...

    async def create(self, label: str, properties: Mapping[str, Any]) -> Any:
        """Create one node under ``label``.

        Raises:
            Exception: If the write fails; transports report it via callback.
        """
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...


__all__ = ["GraphStorePort"]
