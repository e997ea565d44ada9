"""
Event dispatch between the world runtime and its collaborators.

The render/scene sink, UI and audio layers subscribe to named events
instead of being called directly.  Dispatch is synchronous and happens on
the thread that produced the event.

Usage:
    from world_runtime.events import EventBus, INSTANCE_SPAWNED

    bus = EventBus()
    bus.subscribe(INSTANCE_SPAWNED, lambda payload: print(payload['instance_id']))
"""

import logging
import threading

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Event names
# ---------------------------------------------------------------------------

SURFACE_CHANGED = 'surface_changed'
INSTANCE_SPAWNED = 'instance_spawned'
INSTANCE_DESPAWNED = 'instance_despawned'
AREA_ENTERED = 'area_entered'
AREA_EXITED = 'area_exited'
WEATHER_CHANGED = 'weather_changed'

EVENT_NAMES = frozenset([
    SURFACE_CHANGED,
    INSTANCE_SPAWNED,
    INSTANCE_DESPAWNED,
    AREA_ENTERED,
    AREA_EXITED,
    WEATHER_CHANGED,
])


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

class EventBus:
    """
    Minimal publish/subscribe hub.

    Subscriber exceptions are logged and swallowed here so a broken UI or
    audio hook can never stop the world update loop.
    """

    def __init__(self):
        self._subscribers = {}
        self._lock = threading.Lock()

    def subscribe(self, event_name, callback):
        """
        Register *callback* for *event_name*.

        Args:
            event_name: One of the module-level event name constants.
            callback:   Callable taking a single payload dict.

        Raises:
            ValueError: If *event_name* is not a known event.
        """
        if event_name not in EVENT_NAMES:
            raise ValueError("Unknown event: {!r}".format(event_name))
        with self._lock:
            self._subscribers.setdefault(event_name, []).append(callback)

    def unsubscribe(self, event_name, callback):
        """Remove *callback*; returns True if it was subscribed."""
        with self._lock:
            callbacks = self._subscribers.get(event_name, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
        return False

    def emit(self, event_name, **payload):
        """Deliver *payload* to every subscriber of *event_name*."""
        with self._lock:
            callbacks = list(self._subscribers.get(event_name, ()))
        payload['event'] = event_name
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                log.exception("Subscriber for %s failed", event_name)

    def subscriber_count(self, event_name):
        with self._lock:
            return len(self._subscribers.get(event_name, ()))
