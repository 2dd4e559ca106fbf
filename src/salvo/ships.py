"""Ship catalog and per-game ship instances."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from . import config as _cfg

Cell = tuple[int, int]


class Orientation(str, enum.Enum):
    """Axis a ship extends along from its start cell."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def parse(cls, value: "str | Orientation") -> "Orientation":
        """Accept the enum, its value, or the one-letter H/V shorthand."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in {"h", "horizontal"}:
            return cls.HORIZONTAL
        if text in {"v", "vertical"}:
            return cls.VERTICAL
        raise ValueError(f"Orientation must be 'horizontal' or 'vertical', got {value!r}")


@dataclass(frozen=True)
class ShipType:
    """Immutable catalog entry."""

    id: str
    display_name: str
    size: int

    @property
    def letter(self) -> str:
        return _cfg.SHIP_LETTERS.get(self.id, "S")


CATALOG: dict[str, ShipType] = {sid: ShipType(sid, name, size) for sid, name, size in _cfg.SHIPS}
FLEET_IDS = frozenset(CATALOG)


def footprint(size: int, row: int, col: int, orientation: Orientation) -> list[Cell]:
    """Cells covered by a ship of *size* starting at (*row*, *col*)."""
    if orientation is Orientation.HORIZONTAL:
        return [(row, col + i) for i in range(size)]
    return [(row + i, col) for i in range(size)]


@dataclass
class PlacedShip:
    """A ship instance on one board.

    ``cells`` is ordered from the start cell outwards. ``hit_count`` only grows
    and the board guarantees every cell is counted at most once.
    """

    ship_id: str
    cells: list[Cell]
    orientation: Orientation
    hit_count: int = 0
    _cell_set: frozenset[Cell] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.cells = [(int(r), int(c)) for r, c in self.cells]
        self._cell_set = frozenset(self.cells)

    @property
    def type(self) -> ShipType:
        return CATALOG[self.ship_id]

    @property
    def size(self) -> int:
        return self.type.size

    @property
    def sunk(self) -> bool:
        return self.hit_count >= self.size

    def occupies(self, cell: Cell) -> bool:
        return cell in self._cell_set

    def to_dict(self) -> dict:
        return {
            "shipId": self.ship_id,
            "cells": [[r, c] for r, c in self.cells],
            "orientation": self.orientation.value,
            "hitCount": self.hit_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlacedShip":
        return cls(
            ship_id=data["shipId"],
            cells=[tuple(cell) for cell in data["cells"]],
            orientation=Orientation(data["orientation"]),
            hit_count=int(data.get("hitCount", 0)),
        )
