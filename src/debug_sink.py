"""
Debug event fan-out for the in-app debug console.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime

logger = logging.getLogger(__name__)

DEBUG_CATEGORIES = ("request", "response", "error", "cache")


@dataclass(frozen=True)
class DebugEvent:
    timestamp: datetime
    category: str
    message: str


class DebugSink:
    """
    Synchronous publish/subscribe of debug events.

    Observers are called in subscription order. One observer raising does not
    stop delivery to the rest.
    """

    def __init__(self):
        self._observers = []
        self._lock = threading.Lock()

    def subscribe(self, observer):
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def unsubscribe(self, observer):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def publish(self, category, message):
        """
        Deliver an event to every observer.

        Args:
            category: One of ``DEBUG_CATEGORIES``
            message: Free-form text

        Returns:
            The delivered DebugEvent
        """
        if category not in DEBUG_CATEGORIES:
            raise ValueError(f"Unknown debug category: {category}")

        event = DebugEvent(datetime.now(), category, str(message))
        with self._lock:
            observers = list(self._observers)

        for observer in observers:
            try:
                observer(event)
            except Exception:
                logger.exception("Debug observer %r failed", observer)
        return event


class DebugLog:
    """Observer that keeps the most recent ``limit`` events."""

    def __init__(self, limit=1000):
        self._events = deque(maxlen=limit)
        self._lock = threading.Lock()

    def __call__(self, event):
        with self._lock:
            self._events.append(event)

    def __len__(self):
        return len(self._events)

    def entries(self):
        with self._lock:
            return list(self._events)

    def clear(self):
        with self._lock:
            self._events.clear()
