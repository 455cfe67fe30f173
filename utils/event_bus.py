"""
In-process event bus for booking events.

Publications are fire-and-forget: listeners run synchronously, and a
failing listener is logged without affecting the publisher or the other
listeners.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

JOB_CREATED = "job_created"
JOB_CANCELED = "job_canceled"
SESSION_ENDED = "session_ended"

Listener = Callable[[Dict[str, Any]], None]


class InMemoryEventBus:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event_name: str, listener: Listener) -> None:
        self._listeners[event_name].append(listener)

    def publish(self, event_name: str, payload: Dict[str, Any]) -> None:
        self.logger.info(f"Event {event_name} published for job {payload.get('job_id')}")
        for listener in self._listeners.get(event_name, []):
            try:
                listener(payload)
            except Exception as e:
                self.logger.error(f"Listener for {event_name} failed: {e}")
