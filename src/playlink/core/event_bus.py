import logging
import threading
from typing import Any, Callable, Iterable

log = logging.getLogger("playlink.event_bus")


class EventBus:
    """Publish/subscribe event system for in-process notifications.

    Carries transport lifecycle events, media element events and
    session updates for the UI, so none of them hold direct
    references to each other.

    A bus created with ``event_types`` only accepts those names;
    subscribing to or publishing anything else raises ValueError.
    """

    def __init__(self, event_types: Iterable[str] = None):
        self.event_types = frozenset(event_types) if event_types is not None else None
        self._handlers: dict[str, list[Callable]] = {}
        self._lock = threading.Lock()

    def _check(self, event_type: str) -> None:
        if self.event_types is not None and event_type not in self.event_types:
            raise ValueError(f"Unknown event type: {event_type!r}")

    def subscribe(self, event_type: str, callback: Callable) -> Callable[[], None]:
        """Register ``callback``; returns a function that removes it again."""
        self._check(event_type)
        with self._lock:
            self._handlers.setdefault(event_type, []).append(callback)
        log.debug("Subscribed to '%s': %s", event_type,
                  getattr(callback, "__name__", callback))
        return lambda: self.unsubscribe(event_type, callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        # == rather than identity: bound methods are recreated on each access
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers:
                self._handlers[event_type] = [cb for cb in handlers if cb != callback]

    def handler_count(self, event_type: str) -> int:
        with self._lock:
            return len(self._handlers.get(event_type, ()))

    def publish(self, event_type: str, data: Any = None) -> None:
        self._check(event_type)
        with self._lock:
            handlers = tuple(self._handlers.get(event_type, ()))

        for callback in handlers:
            try:
                callback(data)
            except Exception:
                log.exception("Handler %s failed on '%s'",
                              getattr(callback, "__name__", callback), event_type)
