"""Lightweight event model used by the gateway to decouple game logic from reporting.

The gateway emits strongly-typed events after each successful transition so
subscribers (the server log, tests, future metrics) can follow a game without
parsing free-text messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class Category(Enum):
    """High-level event categories."""

    LOBBY = auto()  # room lifecycle (created, joined, fleet ready)
    TURN = auto()  # per-turn lifecycle (start, shot, end)
    SYSTEM = auto()  # house-keeping (reaped sessions)


@dataclass(slots=True)
class Event:
    """Immutable event emitted by the gateway."""

    category: Category
    type: str  # finer-grained identifier, e.g. "created", "shot", "end"
    payload: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Event], None]


class EventBus:
    """Fan events out to subscribers; a failing subscriber never breaks the emitter."""

    def __init__(self) -> None:
        self._subs: List[Subscriber] = []

    def subscribe(self, cb: Subscriber) -> None:
        self._subs.append(cb)

    def unsubscribe(self, cb: Subscriber) -> None:
        if cb in self._subs:
            self._subs.remove(cb)

    def emit(self, ev: Event) -> None:
        for cb in tuple(self._subs):
            try:
                cb(ev)
            except Exception:  # noqa: BLE001
                logger.exception("Event subscriber %r failed for %s", cb, ev)
