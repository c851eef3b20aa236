"""stdlib ``logging`` integration for Neo4jTransport.

``Neo4jLogHandler`` routes ``logging`` records into a transport. Handler
level filtering is the host's job, so the handler level is set from the
transport's minimum level and stdlib logging does the rest.
"""

import asyncio
import logging
import sys
import threading
import traceback
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from pythonjsonlogger.core import RESERVED_ATTRS

from graphlog.common.config import ConfigurationError
from graphlog.common.tracing import get_correlation_id
from graphlog.schemas.log_entry import LogRecordInput
from graphlog.transport.neo4j_transport import Neo4jTransport

# npm-style level names with no stdlib equivalent
_EXTRA_LEVELS = {
    "http": 15,
    "verbose": 15,
    "silly": 5,
    "trace": 5,
}

_EXCLUDED_LOGGERS = ("graphlog", "neo4j")

ErrorCallback = Callable[[logging.LogRecord, BaseException], None]


def to_logging_level(level: str) -> int:
    """Map a level name such as ``"info"`` or ``"warn"`` to a stdlib level.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    value = logging.getLevelName(level.upper())
    if isinstance(value, int):
        return value
    if level.lower() in _EXTRA_LEVELS:
        return _EXTRA_LEVELS[level.lower()]
    raise ConfigurationError(f"Unknown log level: {level!r}")


class ExcludeLoggersFilter(logging.Filter):
    """Drop records emitted by the given logger trees.

    Keeps the handler from writing graphlog's own diagnostics and the neo4j
    driver's logging back into Neo4j.
    """

    def __init__(self, prefixes: Iterable[str] = _EXCLUDED_LOGGERS) -> None:
        super().__init__()
        self.prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        return not any(name == p or name.startswith(p + ".") for p in self.prefixes)


class _BackgroundLoop:
    """Event loop running on a daemon thread for hosts without one."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(
            target=self._run, name="graphlog-writer", daemon=True
        )
        self.thread.start()

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro: Any, timeout: float | None) -> Any:
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join()
        self.loop.close()


def _is_running_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


def _print_failure(record: logging.LogRecord, error: BaseException) -> None:
    if logging.raiseExceptions and sys.stderr:
        sys.stderr.write(f"--- graphlog: failed to persist record from {record.name} ---\n")
        traceback.print_exception(error, file=sys.stderr)


class Neo4jLogHandler(logging.Handler):
    """Logging handler that persists records through a Neo4jTransport.

    The event loop used for writes is, in order: the ``loop`` argument, the
    loop running in the emitting thread, or a private background loop thread
    started on first use.

    Each record becomes a log node with the lower-cased level name, the
    formatted message, and metadata made of the record's ``extra`` fields,
    the logger name, exception/stack text when present and the current
    correlation ID.

    Example:
        >>> transport = Neo4jTransport(endpoint="bolt://localhost:7687",
        ...                            username="neo4j", password="secret")
        >>> logging.getLogger().addHandler(Neo4jLogHandler(transport))
        >>> logging.getLogger("billing").warning("card declined", extra={"order": 17})
    """

    def __init__(
        self,
        transport: Neo4jTransport,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        on_error: ErrorCallback | None = None,
        flush_timeout: float | None = 5.0,
    ) -> None:
        super().__init__(level=to_logging_level(transport.level))
        self.transport = transport
        self.flush_timeout = flush_timeout
        self._loop = loop
        self._background: _BackgroundLoop | None = None
        self._on_error = on_error or _print_failure
        self._pending = 0
        self._idle = threading.Condition()
        self._formatter = logging.Formatter()
        self.addFilter(ExcludeLoggersFilter())

    @classmethod
    def from_options(cls, **options: Any) -> "Neo4jLogHandler":
        """Build a handler and its transport from transport options."""
        return cls(Neo4jTransport(**options))

    @property
    def pending(self) -> int:
        """Number of writes issued but not yet completed."""
        with self._idle:
            return self._pending

    def emit(self, record: logging.LogRecord) -> None:
        """Hand ``record`` to the transport without blocking."""
        try:
            entry = LogRecordInput(
                level=record.levelname.lower(),
                message=record.getMessage(),
                metadata=self.build_metadata(record),
            )
            loop = self._target_loop()
            with self._idle:
                self._pending += 1
            try:
                self.transport.submit(entry, partial(self._on_complete, record), loop=loop)
            except Exception:
                self._release()
                raise
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

    def build_metadata(self, record: logging.LogRecord) -> dict[str, Any]:
        """Collect the metadata persisted alongside ``record``."""
        metadata = {
            key: value
            for key, value in record.__dict__.items()
            if key not in RESERVED_ATTRS and not key.startswith("_")
        }
        metadata["logger"] = record.name

        if record.exc_info:
            metadata["exc_info"] = self._formatter.formatException(record.exc_info)
        if record.stack_info:
            metadata["stack_info"] = self._formatter.formatStack(record.stack_info)

        correlation_id = get_correlation_id()
        if correlation_id is not None:
            metadata.setdefault("correlation_id", correlation_id)

        return metadata

    def flush(self) -> None:
        """Wait for outstanding writes on the background loop.

        Loops owned by the application are never blocked on; they finish
        their writes on their own schedule.
        """
        background = self._background
        if background is None or threading.current_thread() is background.thread:
            return
        with self._idle:
            self._idle.wait_for(lambda: self._pending == 0, self.flush_timeout)

    def close(self) -> None:
        """Flush, close the transport and stop the background loop.

        When writes ran on a loop the application owns and no ``loop`` was
        given, the transport is left open; close it with
        ``await transport.close()``.
        """
        self.acquire()
        try:
            self.flush()
            if self._background is not None:
                self._background.run(self.transport.close(), self.flush_timeout)
                self._background.stop()
                self._background = None
            elif self._loop is not None and not self._loop.is_closed():
                if _is_running_loop(self._loop):
                    self._loop.create_task(self.transport.close())
                elif not self._loop.is_running():
                    self._loop.run_until_complete(self.transport.close())
                else:
                    asyncio.run_coroutine_threadsafe(
                        self.transport.close(), self._loop
                    ).result(self.flush_timeout)
        finally:
            self.release()
            super().close()

    def _target_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            pass
        if self._background is None:
            self._background = _BackgroundLoop()
        return self._background.loop

    def _on_complete(
        self,
        record: logging.LogRecord,
        error: BaseException | None = None,
        result: bool | None = None,
    ) -> None:
        self._release()
        if error is not None:
            self._on_error(record, error)

    def _release(self) -> None:
        with self._idle:
            self._pending -= 1
            self._idle.notify_all()


__all__ = ["ExcludeLoggersFilter", "Neo4jLogHandler", "to_logging_level"]
