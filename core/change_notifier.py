"""
Change Notifier: in-process push channel for "data changed" events

Events name the relation that changed and, for units, which indices. They
carry no state: a subscriber reacts by re-reading (reconciling), never by
applying the event. Delivery is at-least-once and unordered, and includes
events caused by the engine's own writes.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple
import itertools
import logging
import threading

logger = logging.getLogger(__name__)

RELATION_UNITS = "units"
RELATION_METADATA = "cycle_metadata"
RELATION_HISTORY = "history"


@dataclass(frozen=True)
class ChangeEvent:
    relation: str
    indices: Optional[Tuple[int, ...]] = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "type": "change",
            "relation": self.relation,
            "indices": list(self.indices) if self.indices is not None else None,
            "reason": self.reason,
        }


@dataclass
class ChangeNotifier:
    """
    Thread-safe subscriber registry

    Sync routes run in FastAPI's thread pool, so publish() may be called
    from any thread. Callbacks must not block; the WebSocket endpoint hands
    events to its event loop with call_soon_threadsafe.
    """
    _subscribers: Dict[int, Callable[[ChangeEvent], None]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _ids: "itertools.count" = field(default_factory=lambda: itertools.count(1))

    def subscribe(self, on_signal: Callable[[ChangeEvent], None]) -> int:
        with self._lock:
            handle = next(self._ids)
            self._subscribers[handle] = on_signal
        logger.debug(f"Subscriber {handle} registered")
        return handle

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            self._subscribers.pop(handle, None)
        logger.debug(f"Subscriber {handle} removed")

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.items())

        for handle, callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                # one broken subscriber must not starve the others
                logger.error(
                    f"Subscriber {handle} failed on {event.relation} event: {e}",
                    exc_info=True
                )

    def publish_all(self, events) -> None:
        for event in events:
            self.publish(event)


notifier = ChangeNotifier()


def get_notifier() -> ChangeNotifier:
    """FastAPI dependency"""
    return notifier
