"""Async Neo4j client used to persist log nodes.

Wraps a lazily created ``AsyncDriver`` with node model declarations, a single
``create`` write operation, health checks and lifecycle management.

Follows project standards:
- Type hints on all functions
- Throw errors early (no fallbacks, no retries)
- JSON structured logging
- Correlation ID tracking
"""

from collections.abc import Mapping
from types import TracebackType
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from graphlog.common.logging import get_logger
from graphlog.common.tracing import get_correlation_id
from graphlog.graph.errors import PersistenceError
from graphlog.graph.models import FieldSpec, NodeModel

logger = get_logger(__name__)


class AsyncNeo4jClient:
    """Async Neo4j client with declared node models.

    The driver is created on first use, so constructing a client performs no
    I/O and needs no running event loop. All writes share the driver's
    connection pool; the driver supports concurrent independent queries.

    Attributes:
        uri: Bolt/neo4j URI of the server.
        database: Target database name, or None for the server default.

    Example:
        >>> client = AsyncNeo4jClient("bolt://localhost:7687", "neo4j", "secret")
        >>> client.declare_model("Log", {"message": {"type": "string", "required": True}})
        >>> node_id = await client.create("Log", {"message": "hello"})
        >>> await client.close()
    """

    def __init__(
        self,
        uri: str,
        username: str,
        password: str,
        database: str | None = None,
    ) -> None:
        self.uri = uri
        self.database = database
        self._auth = (username, password)
        self._driver: AsyncDriver | None = None
        self._models: dict[str, NodeModel] = {}

        logger.debug(
            "Neo4j client initialized",
            extra={
                "uri": uri,
                "database": database,
                "correlation_id": get_correlation_id(),
            },
        )

    def get_driver(self) -> AsyncDriver:
        """Return the driver, creating it on first call.

        Raises:
            PersistenceError: If the driver cannot be created (bad URI scheme, ...).
        """
        if self._driver is None:
            try:
                self._driver = AsyncGraphDatabase.driver(self.uri, auth=self._auth)
            except (DriverError, ValueError) as e:
                logger.error(
                    "Failed to create Neo4j driver",
                    extra={
                        "uri": self.uri,
                        "error": str(e),
                        "correlation_id": get_correlation_id(),
                    },
                )
                raise PersistenceError(f"Failed to create Neo4j driver for {self.uri}: {e}") from e

            logger.info(
                "Neo4j driver created",
                extra={"uri": self.uri, "correlation_id": get_correlation_id()},
            )

        return self._driver

    def declare_model(
        self,
        label: str,
        fields: Mapping[str, FieldSpec | Mapping[str, Any] | str],
    ) -> NodeModel:
        """Register the schema for nodes stored under ``label``.

        Redeclaring a label replaces the previous model.
        """
        model = NodeModel(label, fields)
        self._models[label] = model
        logger.debug(
            "Declared node model",
            extra={"label": label, "fields": list(model.fields)},
        )
        return model

    def get_model(self, label: str) -> NodeModel | None:
        return self._models.get(label)

    async def create(self, label: str, properties: Mapping[str, Any]) -> str:
        """Create one node under ``label``.

        Args:
            label: Label of a previously declared model.
            properties: Node properties; validated against the model.

        Returns:
            str: Element ID of the created node.

        Raises:
            PersistenceError: If no model is declared for ``label``, the
                properties fail validation, or the write fails.
        """
        model = self._models.get(label)
        if model is None:
            raise PersistenceError(f"No model declared for label '{label}'")

        cleaned = model.validate(properties)
        query = f"CREATE (n:`{label}`) SET n = $properties RETURN elementId(n) AS node_id"

        try:
            result = await self.get_driver().execute_query(
                query,
                {"properties": cleaned},
                database_=self.database,
            )
        except (Neo4jError, DriverError, OSError) as e:
            raise PersistenceError(f"Failed to create {label} node: {e}") from e

        records = result.records
        if not records:
            raise PersistenceError(f"Neo4j returned no node for {label} create")
        return str(records[0]["node_id"])

    async def health_check(self) -> bool:
        """Check if Neo4j is reachable.

        Returns:
            bool: True if the server answered, False otherwise.
        """
        try:
            await self.get_driver().verify_connectivity()
            return True
        except (Neo4jError, DriverError, OSError, PersistenceError) as e:
            logger.warning(
                "Neo4j health check failed",
                extra={"error": str(e), "correlation_id": get_correlation_id()},
            )
            return False

    async def close(self) -> None:
        """Close the driver. Safe to call when no driver was created."""
        if self._driver is not None:
            logger.info(
                "Closing Neo4j connection",
                extra={"uri": self.uri, "correlation_id": get_correlation_id()},
            )
            await self._driver.close()
            self._driver = None

    async def __aenter__(self) -> "AsyncNeo4jClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


# Export public API
__all__ = ["AsyncNeo4jClient", "PersistenceError"]
