"""Minimal publish/subscribe notifier."""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class _Once:
    """Wraps a listener registered with once()."""

    def __init__(self, emitter: "EventEmitter", event: str, listener: Listener):
        self.emitter = emitter
        self.event = event
        self.listener = listener

    def __call__(self, *args: Any) -> Any:
        self.emitter.off(self.event, self)
        return self.listener(*args)


def _unwrap(listener: Listener) -> Listener:
    return listener.listener if isinstance(listener, _Once) else listener


class EventEmitter:
    """
    Named-event notifier.

    Listeners run synchronously, in registration order, on whichever thread
    calls emit(). A listener that raises is logged and skipped; the rest
    still run.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, listener: Listener) -> "EventEmitter":
        """
        Subscribe a listener to an event.

        Args:
            event: Event name
            listener: Callable invoked with the emitted arguments

        Returns:
            The emitter, for chaining
        """
        if not callable(listener):
            raise TypeError("listener must be callable")
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return self

    def once(self, event: str, listener: Listener) -> "EventEmitter":
        """Subscribe a listener that is removed after its first call."""
        if not callable(listener):
            raise TypeError("listener must be callable")
        return self.on(event, _Once(self, event, listener))

    def off(self, event: str, listener: Listener) -> bool:
        """
        Unsubscribe a listener.

        Returns True if found and removed, False otherwise. Listeners added
        with once() can be removed by passing the original callable.
        """
        with self._lock:
            registered = self._listeners.get(event, [])
            for index, candidate in enumerate(registered):
                if candidate is listener or _unwrap(candidate) is listener:
                    del registered[index]
                    if not registered:
                        del self._listeners[event]
                    return True
        return False

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener of an event with the given arguments.

        Returns:
            True if the event had listeners, False otherwise
        """
        with self._lock:
            snapshot = list(self._listeners.get(event, ()))
        for listener in snapshot:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %r event raised", event)
        return bool(snapshot)

    def listeners(self, event: str) -> List[Listener]:
        """Return a copy of the listeners registered for an event."""
        with self._lock:
            return [_unwrap(listener) for listener in self._listeners.get(event, ())]

    def remove_all_listeners(self, event: Optional[str] = None) -> None:
        """Drop the listeners of one event, or of every event."""
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)
