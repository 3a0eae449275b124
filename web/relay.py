"""Change relay: fans store changes out to connected dashboards."""

import json
import logging
import queue
import threading
import weakref
from typing import Optional

from fleet.loader import ChangeEvent, FleetStore, Watch

logger = logging.getLogger(__name__)

VEHICLE_UPDATE = "vehicle-update"


def format_sse(event: str, data: Optional[dict] = None) -> str:
    """Format one server-sent event."""
    return f"event: {event}\ndata: {json.dumps(data or {})}\n\n"


class Subscription:
    """A connected dashboard's handle on the relay."""

    def __init__(self, relay: "ChangeRelay", maxsize: int = 16):
        self._relay = relay
        self._queue: "queue.Queue[str]" = queue.Queue(maxsize)
        self.closed = False

    def deliver(self, event: str) -> bool:
        """Queue an event without blocking. False if dropped."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            # Client isn't reading; it will catch up on its next full fetch
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next event, or None if nothing arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.closed = True
        self._relay.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ChangeRelay:
    """
    Publish/subscribe relay for vehicle changes.

    Attach it to a FleetStore; every committed write triggers a single
    "vehicle-update" to each subscriber. Writes arriving within
    `debounce_seconds` of the first one are collapsed into one event.
    Subscribers are held weakly: a dropped connection handle just disappears.
    Events are not persisted, a disconnected client receives nothing.
    """

    def __init__(self, debounce_seconds: float = 0.25):
        self.debounce_seconds = debounce_seconds
        self._subscribers: "weakref.WeakSet[Subscription]" = weakref.WeakSet()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._watch: Optional[Watch] = None

    def attach(self, store: FleetStore) -> None:
        self._watch = store.watch(self.on_change)

    @property
    def healthy(self) -> bool:
        """False once the store watch has failed; it is not re-established."""
        return self._watch is not None and self._watch.active

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        with self._lock:
            self._subscribers.add(sub)
        logger.debug("Subscriber connected (%d total)", self.subscriber_count)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(sub)
        logger.debug("Subscriber disconnected (%d total)", self.subscriber_count)

    def on_change(self, event: ChangeEvent) -> None:
        """Store listener: schedule a broadcast for this change."""
        if self.debounce_seconds <= 0:
            self.broadcast()
            return
        with self._lock:
            if self._timer is not None:
                return
            self._timer = threading.Timer(self.debounce_seconds, self._flush)
            self._timer.daemon = True
            self._timer.start()

    def _flush(self) -> None:
        with self._lock:
            self._timer = None
        self.broadcast()

    def broadcast(self) -> int:
        """Send one vehicle-update to every subscriber. Returns delivered count."""
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for sub in subscribers:
            if sub.deliver(VEHICLE_UPDATE):
                delivered += 1
        logger.debug("Broadcast %s to %d subscriber(s)", VEHICLE_UPDATE, delivered)
        return delivered

    def close(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
