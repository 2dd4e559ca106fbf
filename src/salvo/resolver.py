"""Pure attack classification.

Nothing here touches a board or a session: callers pass the defender's ships
and the cells already attacked on that board and get a verdict back. The board
uses these functions to resolve shots; tests use them directly.

Targets are assumed to be novel. Filtering repeats is the caller's job, see
``Board.resolve_attack``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from .ships import Cell, PlacedShip


class AttackResult(str, enum.Enum):
    """Outcome categories of a single shot."""

    HIT = "hit"
    MISS = "miss"
    SUNK = "sunk"
    ALREADY_ATTACKED = "already_attacked"

    @property
    def resolved(self) -> bool:
        """True for every result that consumes a turn."""
        return self is not AttackResult.ALREADY_ATTACKED

    @property
    def struck(self) -> bool:
        return self in (AttackResult.HIT, AttackResult.SUNK)


@dataclass(frozen=True)
class AttackOutcome:
    result: AttackResult
    ship_id: Optional[str] = None  # ship struck, kept server-side
    sunk_ship_id: Optional[str] = None


MISS = AttackOutcome(AttackResult.MISS)
ALREADY_ATTACKED = AttackOutcome(AttackResult.ALREADY_ATTACKED)


def ship_at(target: Cell, ships: Iterable[PlacedShip]) -> Optional[PlacedShip]:
    for ship in ships:
        if ship.occupies(target):
            return ship
    return None


def hits_on(ship: PlacedShip, attacked: Iterable[Cell]) -> int:
    """Number of distinct attacked cells inside *ship*'s footprint."""
    return sum(1 for cell in set(attacked) if ship.occupies(cell))


def classify(target: Cell, ships: Iterable[PlacedShip], prior: Iterable[Cell]) -> AttackOutcome:
    """Classify a shot at *target* given the shots already taken at this board."""
    ship = ship_at(target, ships)
    if ship is None:
        return MISS
    if hits_on(ship, prior) + 1 >= ship.size:
        return AttackOutcome(AttackResult.SUNK, ship_id=ship.ship_id, sunk_ship_id=ship.ship_id)
    return AttackOutcome(AttackResult.HIT, ship_id=ship.ship_id)


def is_sunk(ship: PlacedShip, attacked: Iterable[Cell]) -> bool:
    return hits_on(ship, attacked) >= ship.size


def all_sunk(ships: Iterable[PlacedShip], attacked: Iterable[Cell]) -> bool:
    """True when every ship is fully covered by *attacked*.

    An empty fleet is never considered sunk so an unplaced board cannot end
    a game by accident.
    """
    attacked = set(attacked)
    ships = list(ships)
    return bool(ships) and all(is_sunk(ship, attacked) for ship in ships)


__all__ = [
    "AttackResult",
    "AttackOutcome",
    "classify",
    "ship_at",
    "hits_on",
    "is_sunk",
    "all_sunk",
]
