"""Domain event fan-out for workflow changes."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

VEHICLE_MOVED = "vehicle_moved"
PRIORITY_CHANGED = "priority_changed"

EventListener = Callable[[str, dict[str, Any]], None]

_lock = threading.RLock()
_listeners: list[EventListener] = []


def register_listener(listener: EventListener) -> None:
    """Register a callback invoked as ``listener(event_name, payload)``.

    Registering the same callable twice is a no-op.
    """
    with _lock:
        if listener not in _listeners:
            _listeners.append(listener)


def unregister_listener(listener: EventListener) -> None:
    with _lock:
        try:
            _listeners.remove(listener)
        except ValueError:
            pass


def clear_listeners() -> None:
    """Remove all listeners. Intended for tests."""
    with _lock:
        _listeners.clear()


def publish(event_name: str, payload: dict[str, Any]) -> None:
    """Deliver an event to every listener. Listener failures are logged only."""
    with _lock:
        listeners = list(_listeners)
    for listener in listeners:
        try:
            listener(event_name, payload)
        except Exception:
            logger.exception("Workflow event listener failed for %s", event_name)
