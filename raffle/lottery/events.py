"""In-process publication of raffle notifications."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ENTERED = "Entered"
DRAW_REQUESTED = "DrawRequested"
WINNER_PICKED = "WinnerPicked"
DRAW_RESET = "DrawReset"

EVENT_NAMES = (ENTERED, DRAW_REQUESTED, WINNER_PICKED, DRAW_RESET)


@dataclass(frozen=True)
class Notification:
    """A committed raffle event as delivered to listeners."""

    name: str
    round_number: int
    payload: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[Notification], None]


class EventBus:
    """Registry of listeners keyed by event name.

    Listeners run synchronously after the emitting transaction committed, so
    they can read the raffle's state through its query methods.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``name`` and return an unsubscribe callable."""

        if name not in EVENT_NAMES:
            raise ValueError(f"Unknown raffle event {name!r}")
        with self._lock:
            self._listeners.setdefault(name, []).append(listener)
        return lambda: self.unsubscribe(name, listener)

    def once(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for the next ``name`` notification only."""

        def _wrapper(notification: Notification) -> None:
            self.unsubscribe(name, _wrapper)
            listener(notification)

        return self.subscribe(name, _wrapper)

    def unsubscribe(self, name: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(name, [])
            if listener in listeners:
                listeners.remove(listener)

    def publish(self, notifications: List[Notification]) -> None:
        for notification in notifications:
            with self._lock:
                listeners = list(self._listeners.get(notification.name, []))
            for listener in listeners:
                try:
                    listener(notification)
                except Exception:
                    # The emitting operation is already committed.
                    logger.exception(
                        f"Listener for {notification.name} raised; continuing"
                    )


__all__ = [
    "ENTERED",
    "DRAW_REQUESTED",
    "WINNER_PICKED",
    "DRAW_RESET",
    "EVENT_NAMES",
    "EventBus",
    "Listener",
    "Notification",
]
