from threading import Lock
from typing import Callable, Dict, List
import logging

ALL_EVENTS = "*"


class EventBus:
    """
    In-process event bus shared by the pipeline.
    Handler failures are logged and never reach the publisher.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}
        self._lock = Lock()
        self._logger = logging.getLogger(__name__)

    def subscribe(self, event_type: str, handler: Callable) -> None:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        self._logger.debug(f"Subscribed to event: {event_type}")

    def subscribe_to_all(self, handler: Callable) -> None:
        self.subscribe(ALL_EVENTS, handler)

    def publish(self, event) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, []))
            handlers += self._handlers.get(ALL_EVENTS, [])

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self._logger.error(f"Event handler failed: {event.event_type} - {str(e)}")

    def unsubscribe(self, event_type: str, handler: Callable) -> None:
        with self._lock:
            if event_type in self._handlers and handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)
