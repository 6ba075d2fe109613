"""Lifecycle notifications fired by a transaction."""

from __future__ import annotations

from enum import Enum
from typing import Callable

Listener = Callable[[], None]


class Event(str, Enum):
    STATE_CHANGED = "state-changed"
    LOAD_START = "load-start"
    ABORT = "abort"
    LOAD = "load"
    LOAD_END = "load-end"
    ERROR = "error"


class EventDispatcher:
    """One ordered listener list per event.

    ``set_handler`` occupies the first slot of the list and replaces whatever
    handler was assigned before; ``add_listener`` appends after it.
    """

    def __init__(self) -> None:
        self._handlers: dict[Event, Listener] = {}
        self._listeners: dict[Event, list[Listener]] = {event: [] for event in Event}

    def set_handler(self, event: Event | str, handler: Listener | None) -> None:
        key = Event(event)
        if handler is None:
            self._handlers.pop(key, None)
            return
        self._handlers[key] = handler

    def get_handler(self, event: Event | str) -> Listener | None:
        return self._handlers.get(Event(event))

    def add_listener(self, event: Event | str, listener: Listener) -> None:
        self._listeners[Event(event)].append(listener)

    def remove_listener(self, event: Event | str, listener: Listener) -> None:
        listeners = self._listeners[Event(event)]
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: Event | str) -> list[Listener]:
        key = Event(event)
        ordered = list(self._listeners[key])
        handler = self._handlers.get(key)
        if handler is not None:
            ordered.insert(0, handler)
        return ordered

    def dispatch(self, event: Event | str) -> None:
        for listener in self.listeners(event):
            listener()


__all__ = ["Event", "EventDispatcher", "Listener"]
