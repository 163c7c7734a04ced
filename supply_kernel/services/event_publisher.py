"""
TransitionPublisher -- in-process transition event stream.

Responsibility:
    Fans committed ``TransitionEvent``s out to subscribers (notification
    toasts, audit exporters, dashboards).  The workflow engine publishes
    only after its unit of work commits, so subscribers never observe a
    transition that was rolled back.

Architecture position:
    Kernel > Services -- imperative shell.  No database access.

Invariants enforced:
    - Delivery order equals subscription order, and events of one command
      are delivered in the order they were recorded.
    - A failing subscriber is logged with its traceback and skipped; it
      affects neither the caller nor the remaining subscribers.
"""

from collections.abc import Callable, Iterable
from threading import Lock

from supply_kernel.domain.dtos import TransitionEvent
from supply_kernel.logging_config import get_logger

logger = get_logger("services.events")

Subscriber = Callable[[TransitionEvent], None]


class TransitionPublisher:
    """Synchronous publish/subscribe hub for transition events."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, events: Iterable[TransitionEvent]) -> None:
        with self._lock:
            subscribers = tuple(self._subscribers)

        for event in events:
            for callback in subscribers:
                try:
                    callback(event)
                except Exception:
                    logger.error(
                        "subscriber_failed",
                        extra={
                            "subscriber": getattr(callback, "__qualname__", repr(callback)),
                            "entity_type": event.entity_type,
                            "entity_id": event.entity_id,
                            "to_state": event.to_state,
                        },
                        exc_info=True,
                    )
