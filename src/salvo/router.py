"""Translate gateway events into server log lines.

The logger lives *outside* the gateway so wording is declared in a single
place and can evolve without touching game logic. It is also straight-forward
to unit-test by feeding synthetic Event objects.
"""

from __future__ import annotations

import logging

from .events import Category, Event

logger = logging.getLogger(__name__)


class EventLogger:
    """Subscriber that renders every `Event` as one log record."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def __call__(self, ev: Event) -> None:
        self.dispatch(ev)

    def dispatch(self, ev: Event) -> None:
        cat = ev.category
        if cat is Category.LOBBY:
            self._handle_lobby(ev)
        elif cat is Category.TURN:
            self._handle_turn(ev)
        elif cat is Category.SYSTEM:
            self._handle_system(ev)
        else:  # pragma: no cover – unknown category
            self._log.debug("Ignoring event %s", ev)

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------
    def _handle_lobby(self, ev: Event) -> None:
        p = ev.payload
        if ev.type == "created":
            self._log.info("Game created: %s by %s", p["code"], p["name"])
        elif ev.type == "joined":
            self._log.info("%s joined game %s", p["name"], p["code"])
        elif ev.type == "ready":
            self._log.info("Player %d placed ships in game %s (both ready: %s)", p["player"], p["code"], p["bothReady"])
        else:
            self._log.debug("Unhandled LOBBY event: %s", ev)

    def _handle_turn(self, ev: Event) -> None:
        p = ev.payload
        if ev.type == "start":
            self._log.info("Game %s started – player %d to move", p["code"], p["turn"])
        elif ev.type == "shot":
            sunk = f" – sunk {p['sunk']}" if p.get("sunk") else ""
            self._log.info("Player %d attacked %s in game %s: %s%s", p["player"], p["coord"], p["code"], p["result"], sunk)
        elif ev.type == "end":
            self._log.info("Game %s over – player %d wins after %d turns", p["code"], p["winner"], p["turns"])
        else:
            self._log.debug("Unhandled TURN event: %s", ev)

    def _handle_system(self, ev: Event) -> None:
        if ev.type == "reaped":
            self._log.info("Reaped %d stale waiting session(s): %s", len(ev.payload["codes"]), ", ".join(ev.payload["codes"]))
        else:
            self._log.debug("Unhandled SYSTEM event: %s", ev)
