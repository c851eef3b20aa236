"""Minimal event emitter for transport lifecycle notifications.

Listeners subscribe by event name (for example ``"logged"``) and are called
with the positional arguments passed to ``emit``.
"""

from collections.abc import Callable
from typing import Any

from graphlog.common.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Dispatches named events to registered listeners.

    Listeners run synchronously inside ``emit`` in registration order. A
    listener that raises is logged and does not prevent the remaining
    listeners from running.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` to ``event``.

        Returns the listener so this can be used as a decorator.
        """
        self._listeners.setdefault(event, []).append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Subscribe ``listener`` for a single emission of ``event``."""

        def _once(*args: Any) -> Any:
            self.off(event, _once)
            return listener(*args)

        self.on(event, _once)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove ``listener`` from ``event``. Unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener registered for ``event``.

        Returns:
            bool: True if at least one listener was registered.
        """
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(*args)
            except Exception as e:
                logger.error(
                    f"Listener for '{event}' failed: {e}",
                    exc_info=True,
                    extra={"event": event},
                )
        return bool(listeners)


__all__ = ["EventEmitter", "Listener"]
