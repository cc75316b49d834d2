"""In-memory event bus for gameplay telemetry and presentation hooks."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable


logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Runtime event payload."""

    name: str
    payload: dict[str, Any]


Listener = Callable[[Event], None]


class EventBus:
    """Collects events and forwards them to fire-and-forget listeners.

    Audio and render collaborators subscribe here. A failing listener is
    logged and never interrupts the simulation.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, name: str, **payload: Any) -> None:
        event = Event(name=name, payload=payload)
        self._events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", name)

    @property
    def events(self) -> list[Event]:
        return self._events

    def names(self) -> list[str]:
        return [event.name for event in self._events]

    def drain(self) -> list[Event]:
        events = self._events[:]
        self._events.clear()
        return events
