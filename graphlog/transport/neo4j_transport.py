"""Neo4jTransport - persists log records as Neo4j nodes.

One ``submit`` issues one asynchronous ``CREATE`` and reports the outcome
through a completion callback: ``on_complete(None, True)`` on success,
``on_complete(error)`` on failure. A ``"logged"`` event carrying the level is
emitted on a later loop turn for every accepted record, unless the transport
is silent.
"""

import asyncio
from collections.abc import Mapping
from functools import partial
from typing import Any

from graphlog.common.config import TransportOptions, build_options, get_config
from graphlog.common.events import EventEmitter
from graphlog.common.logging import get_logger
from graphlog.core.ports.graph_store import GraphStorePort
from graphlog.core.ports.transport import CompletionCallback
from graphlog.graph.client import AsyncNeo4jClient
from graphlog.graph.errors import PersistenceError
from graphlog.graph.models import log_node_model
from graphlog.schemas.log_entry import LogNode, LogRecordInput
from graphlog.transport.normalize import MalformedCall, MalformedRecordError, normalize_call

logger = get_logger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Neo4jTransport(EventEmitter):
    """Log transport writing one Neo4j node per record.

    Options are validated before any database handle exists; missing or
    empty ``endpoint``, ``username`` or ``password`` raise
    ``ConfigurationError``. The node model is declared on the store at
    construction.

    Attributes:
        name: Transport identifier.
        level: Minimum level the host should route to this transport.
        node_label: Label of persisted log nodes.
        silent: When True, no ``"logged"`` events are emitted.
        store: Graph store the nodes are written to.
        options: The validated options.

    Example:
        >>> transport = Neo4jTransport(
        ...     endpoint="bolt://localhost:7687", username="neo4j", password="secret"
        ... )
        >>> transport.on("logged", lambda level: print("accepted", level))
        >>> transport.log("info", "service started", {"port": 8080}, on_done)
    """

    name = "Neo4jTransport"

    def __init__(
        self,
        options: TransportOptions | Mapping[str, Any] | None = None,
        /,
        *,
        store: GraphStorePort | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__()

        if isinstance(options, TransportOptions):
            options = options.model_dump()
        self.options = build_options(options, **kwargs)

        self.level = self.options.min_level
        self.node_label = self.options.node_label
        self.silent = self.options.silent

        if store is None:
            store = AsyncNeo4jClient(
                self.options.endpoint,
                self.options.username,
                self.options.password.get_secret_value(),
                database=self.options.database,
            )
        self.store = store
        self.store.declare_model(self.node_label, log_node_model(self.node_label).fields)

        self._pending: set[asyncio.Future[Any]] = set()

        logger.debug(
            "Neo4j transport initialized",
            extra={"node_label": self.node_label, "min_level": self.level, "silent": self.silent},
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "Neo4jTransport":
        """Build a transport from ``GRAPHLOG_*`` environment settings.

        Raises:
            ConfigurationError: If the environment lacks endpoint, username
                or password.
        """
        options = get_config().transport_options()
        options.update(overrides)
        return cls(options)

    def log(self, *args: Any, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Accept one record in any supported argument shape.

        Supported shapes: ``(record[, on_complete])`` and
        ``(level, message[, metadata][, on_complete])``.

        Raises:
            MalformedRecordError: If the call cannot be parsed and carries no
                callback to report through.
        """
        parsed = normalize_call(args, self.level)

        if isinstance(parsed, MalformedCall):
            if parsed.on_complete is None:
                raise parsed.error()
            self._resolve_loop(loop).call_soon_threadsafe(parsed.on_complete, parsed.error())
            return

        self.submit(parsed.record, parsed.on_complete, loop=loop)

    def submit(
        self,
        record: LogRecordInput | Mapping[str, Any],
        on_complete: CompletionCallback | None = None,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Persist one record.

        Returns immediately. The timestamp is taken now; the notification and
        the write happen on ``loop`` (default: the running loop of the calling
        thread). Calls from another thread are handed to ``loop`` safely.

        Args:
            record: The record to persist.
            on_complete: Called exactly once with ``(None, True)`` on success or
                ``(error)`` on failure.
            loop: Event loop to run the write on.

        Raises:
            RuntimeError: If no event loop is available.
        """
        target = self._resolve_loop(loop)

        if not isinstance(record, (LogRecordInput, Mapping)):
            error = MalformedRecordError(
                f"{self.name}.submit expects a mapping or LogRecordInput, "
                f"got {type(record).__name__}"
            )
            target.call_soon_threadsafe(self._finish, on_complete, error)
            return

        if not isinstance(record, LogRecordInput):
            parsed = normalize_call((record,), self.level)
            if isinstance(parsed, MalformedCall):
                target.call_soon_threadsafe(self._finish, on_complete, parsed.error())
                return
            record = parsed.record

        # Metadata that JSON cannot encode (non-string keys, cycles) fails here
        try:
            node = LogNode.from_record(record)
        except (TypeError, ValueError) as e:
            target.call_soon_threadsafe(self._finish, on_complete, e)
            return

        if _running_loop() is target:
            self._dispatch(node, on_complete, target)
        else:
            target.call_soon_threadsafe(self._dispatch, node, on_complete, target)

    async def flush(self) -> None:
        """Wait for writes issued on the current loop to finish."""
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Wait for in-flight writes, then close the store."""
        await self.flush()
        await self.store.close()

    def _resolve_loop(self, loop: asyncio.AbstractEventLoop | None) -> asyncio.AbstractEventLoop:
        target = loop or _running_loop()
        if target is None:
            raise RuntimeError(
                f"{self.name} needs a running event loop or an explicit loop to write logs"
            )
        return target

    def _dispatch(
        self,
        node: LogNode,
        on_complete: CompletionCallback | None,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        if not self.silent:
            loop.call_soon(self.emit, "logged", node.level)

        try:
            future = asyncio.ensure_future(
                self.store.create(self.node_label, node.to_properties()), loop=loop
            )
        except Exception as e:
            loop.call_soon(self._finish, on_complete, e)
            return

        self._pending.add(future)
        future.add_done_callback(partial(self._complete, on_complete))

    def _complete(self, on_complete: CompletionCallback | None, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if future.cancelled():
            self._finish(on_complete, PersistenceError(f"{self.node_label} write was cancelled"))
            return
        self._finish(on_complete, future.exception())

    def _finish(self, on_complete: CompletionCallback | None, error: BaseException | None) -> None:
        if on_complete is None:
            return
        if error is None:
            on_complete(None, True)
            return
        if not isinstance(error, (PersistenceError, MalformedRecordError)):
            wrapped = PersistenceError(f"Failed to write {self.node_label} node: {error}")
            wrapped.__cause__ = error
            error = wrapped
        on_complete(error)


__all__ = ["Neo4jTransport"]
