"""Lightweight synchronous event bus used to publish session progress."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, DefaultDict, Dict, List

from .logger import get_logger

LOGGER = get_logger(__name__)

Handler = Callable[[Dict[str, object]], None]

SESSION_STATE = "session_state"
STREAM_COMPLETE = "stream_complete"
THROUGHPUT = "throughput"


class EventBus:
    """Event dispatcher for plain Python listeners.

    Handlers run on the emitting thread. A handler that raises is logged and
    does not prevent the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, handler: Handler) -> Handler:
        """Attach a new listener to an event name and return it."""

        with self._lock:
            self._handlers[event].append(handler)
        return handler

    def emit(self, event: str, **payload: object) -> None:
        """Publish an event to every listener registered for it."""

        with self._lock:
            listeners = list(self._handlers.get(event, []))
        for handler in listeners:
            try:
                handler(dict(payload))
            except Exception:
                LOGGER.exception("Event handler failed", extra={"event": event})


__all__ = ["EventBus", "Handler", "SESSION_STATE", "STREAM_COMPLETE", "THROUGHPUT"]
