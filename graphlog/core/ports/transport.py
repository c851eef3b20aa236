"""TransportPort - capability set a log transport exposes to its host.

A host logging integration (such as ``Neo4jLogHandler``) only relies on
these members, so any object providing them can be plugged in.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

CompletionCallback = Callable[..., Any]


@runtime_checkable
class TransportPort(Protocol):
    """Port interface for log transports."""

    name: str
    level: str
    silent: bool

    def log(self, *args: Any, loop: Any = None) -> None:
        """Accept one record in any supported argument shape."""
        ...

    def submit(
        self,
        record: Any,
        on_complete: CompletionCallback | None = None,
        *,
        loop: Any = None,
    ) -> None:
        """Persist one normalized record and report through ``on_complete``.

        ``on_complete(None, True)`` on success, ``on_complete(error)`` on
        failure; called exactly once.
        """
        ...

    def on(self, event: str, listener: Callable[..., Any]) -> Any:
        """Subscribe to transport events such as ``"logged"``."""
        ...


__all__ = ["CompletionCallback", "TransportPort"]
