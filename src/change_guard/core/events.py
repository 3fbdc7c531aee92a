"""Lifecycle notifications for the safe-change pipeline.

Components publish events on an :class:`EventBus`; callers subscribe with
plain callables. Delivery is synchronous and fire-and-forget: a failing
listener is logged and never affects the publisher.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any


class SafeChangeEvent(str, Enum):
    """Named events emitted while validating, applying and rolling back changes."""

    VALIDATION_STARTED = "validation_started"
    VALIDATION_COMPLETED = "validation_completed"
    VALIDATION_FAILED = "validation_failed"
    APPLICATION_STARTED = "application_started"
    APPLICATION_COMPLETED = "application_completed"
    APPLICATION_FAILED = "application_failed"
    ROLLBACK_STARTED = "rollback_started"
    ROLLBACK_COMPLETED = "rollback_completed"
    ROLLBACK_FAILED = "rollback_failed"
    DEPENDENCY_CHECK_STARTED = "dependency_check_started"
    DEPENDENCY_CHECK_COMPLETED = "dependency_check_completed"
    DEPENDENCIES_AFFECTED = "dependencies_affected"

    def __str__(self) -> str:
        """Return string representation of event."""
        return self.value


EventPayload = Mapping[str, Any]
Listener = Callable[[SafeChangeEvent, EventPayload], None]


class EventBus:
    """Observer registry for :class:`SafeChangeEvent` notifications.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> unsubscribe = bus.subscribe(
        ...     SafeChangeEvent.APPLICATION_COMPLETED, lambda e, p: seen.append(p)
        ... )
        >>> bus.emit(SafeChangeEvent.APPLICATION_COMPLETED, {"unit_id": "Btn"})
        >>> seen
        [{'unit_id': 'Btn'}]
    """

    def __init__(self) -> None:
        """Initialize an empty bus."""
        self._listeners: dict[SafeChangeEvent | None, list[Listener]] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def subscribe(self, event: SafeChangeEvent, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for one event.

        Returns:
            A callable that removes the subscription when invoked.
        """
        return self._add(event, listener)

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every event."""
        return self._add(None, listener)

    def unsubscribe(self, event: SafeChangeEvent | None, listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not subscribed."""
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener not in listeners:
                return False
            listeners.remove(listener)
            return True

    def emit(self, event: SafeChangeEvent, payload: EventPayload | None = None) -> None:
        """Deliver ``event`` to its listeners and to catch-all listeners."""
        data: EventPayload = payload if payload is not None else {}
        with self._lock:
            targets = [*self._listeners.get(event, []), *self._listeners.get(None, [])]
        self.logger.debug(f"Emitting {event} to {len(targets)} listener(s)")
        for listener in targets:
            try:
                listener(event, data)
            except Exception:
                self.logger.exception(f"Listener for {event} raised; ignoring")

    def listener_count(self, event: SafeChangeEvent | None = None) -> int:
        """Number of listeners registered for ``event`` (None = catch-all)."""
        with self._lock:
            return len(self._listeners.get(event, []))

    def _add(self, event: SafeChangeEvent | None, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(event, listener)

        return _unsubscribe
