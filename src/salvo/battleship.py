"""
battleship.py

Contains the per-player board model:
 - Board class storing placed ships, the cells attacked so far, and an
   occupancy index mapping each covered cell to the ship covering it
 - ShipPlacement, the (ship, start cell, orientation) instruction clients submit
 - random_fleet() producing a uniformly random legal layout

"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from . import config as _cfg
from . import resolver
from .resolver import AttackOutcome
from .ships import CATALOG, Cell, Orientation, PlacedShip, ShipType, footprint


ShipRef = Union[ShipType, str]


@dataclass(frozen=True)
class ShipPlacement:
    """Instruction to put one catalog ship on a board."""

    ship_id: str
    row: int
    col: int
    orientation: Orientation

    def to_dict(self) -> dict:
        return {"shipId": self.ship_id, "row": self.row, "col": self.col, "orientation": self.orientation.value}


def _as_type(ship: ShipRef) -> ShipType:
    return ship if isinstance(ship, ShipType) else CATALOG[ship]


class Board:
    """
    Represents a single Battleship board.
    We store:
      - self.placed_ships: PlacedShip instances in placement order
      - self._occupancy: cell -> index into placed_ships; a cell absent from
        the map is open water
      - self.attacked: every cell already resolved against this board

    Each player owns one Board. The opponent's shots are resolved through
    resolve_attack(); a cell can only ever be resolved once.
    """

    def __init__(self, size: int = _cfg.BOARD_SIZE):
        """Initialise an empty *size*x*size* board with no ships placed."""
        self.size = size
        self.placed_ships: list[PlacedShip] = []
        self.attacked: set[Cell] = set()
        self._occupancy: dict[Cell, int] = {}

    # ... placement ...

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.size and 0 <= col < self.size

    def can_place(self, ship: ShipRef, row: int, col: int, orientation: Orientation) -> bool:
        """Return True if *ship* fits at (*row*, *col*) without leaving the board or overlapping."""
        kind = _as_type(ship)
        for r, c in footprint(kind.size, row, col, Orientation.parse(orientation)):
            if not self.in_bounds(r, c) or (r, c) in self._occupancy:
                return False
        return True

    def place(self, ship: ShipRef, row: int, col: int, orientation: Orientation) -> bool:
        """Place *ship* if legal. Nothing changes when it is not."""
        kind = _as_type(ship)
        orientation = Orientation.parse(orientation)
        if not self.can_place(kind, row, col, orientation):
            return False
        placed = PlacedShip(kind.id, footprint(kind.size, row, col, orientation), orientation)
        self._add(placed)
        return True

    def apply(self, placement: ShipPlacement) -> bool:
        return self.place(placement.ship_id, placement.row, placement.col, placement.orientation)

    def _add(self, placed: PlacedShip) -> None:
        index = len(self.placed_ships)
        self.placed_ships.append(placed)
        for cell in placed.cells:
            self._occupancy[cell] = index

    def place_ships_randomly(self, ships: Iterable[ShipRef] = tuple(CATALOG), rng: Optional[random.Random] = None) -> None:
        """Randomly position *ships* on the board without collisions."""
        rng = rng or random.Random()
        for ship in ships:
            kind = _as_type(ship)
            placed = False
            while not placed:
                orientation = rng.choice((Orientation.HORIZONTAL, Orientation.VERTICAL))
                row = rng.randrange(self.size)
                col = rng.randrange(self.size)
                placed = self.place(kind, row, col, orientation)

    # ... attacks ...

    def ship_at(self, row: int, col: int) -> Optional[PlacedShip]:
        index = self._occupancy.get((row, col))
        return None if index is None else self.placed_ships[index]

    def resolve_attack(self, row: int, col: int) -> AttackOutcome:
        """Process a shot at (*row*, *col*) and return its outcome.

        A repeat shot yields ``already_attacked`` and leaves the board untouched.
        """
        if not self.in_bounds(row, col):
            raise ValueError(f"({row}, {col}) is outside the {self.size}x{self.size} board")
        cell = (row, col)
        if cell in self.attacked:
            return resolver.ALREADY_ATTACKED
        ship = self.ship_at(row, col)
        outcome = resolver.classify(cell, [ship] if ship else [], self.attacked)
        self.attacked.add(cell)
        if ship is not None:
            ship.hit_count += 1
        return outcome

    def all_sunk(self) -> bool:
        """Return True if every ship on this board has been sunk."""
        return bool(self.placed_ships) and all(ship.sunk for ship in self.placed_ships)

    # ... rendering / persistence ...

    def grid_rows(self, *, reveal: bool = True) -> list[str]:
        """Board as text rows: ship letters (when *reveal*), 'X' hits, 'o' misses, '.' water."""
        rows: list[str] = []
        for r in range(self.size):
            cells = []
            for c in range(self.size):
                ship = self.ship_at(r, c)
                if (r, c) in self.attacked:
                    cells.append("X" if ship else "o")
                elif ship and reveal:
                    cells.append(ship.type.letter)
                else:
                    cells.append(".")
            rows.append(" ".join(cells))
        return rows

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "placedShips": [ship.to_dict() for ship in self.placed_ships],
            "attackedCells": [[r, c] for r, c in sorted(self.attacked)],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Board":
        board = cls(int(data.get("size", _cfg.BOARD_SIZE)))
        for raw in data.get("placedShips", []):
            board._add(PlacedShip.from_dict(raw))
        board.attacked = {(int(r), int(c)) for r, c in data.get("attackedCells", [])}
        return board


def random_fleet(rng: Optional[random.Random] = None, size: int = _cfg.BOARD_SIZE) -> list[ShipPlacement]:
    """Uniformly random legal placements for the whole catalog."""
    board = Board(size)
    board.place_ships_randomly(rng=rng)
    return [
        ShipPlacement(ship.ship_id, ship.cells[0][0], ship.cells[0][1], ship.orientation)
        for ship in board.placed_ships
    ]


__all__ = ["Board", "ShipPlacement", "random_fleet"]
