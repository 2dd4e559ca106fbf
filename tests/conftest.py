import logging
import random
from dataclasses import dataclass

import pytest

from salvo.battleship import ShipPlacement
from salvo.gateway import MatchGateway
from salvo.ships import Orientation
from salvo.store import InMemorySessionStore

# Suppress INFO & DEBUG logs from the game core during tests
logging.basicConfig(level=logging.WARNING)

H = Orientation.HORIZONTAL
V = Orientation.VERTICAL

# Player 1's fleet: one ship per even row, flush left; destroyer at (0,0)-(0,1).
FLEET_ROWS = [
    ShipPlacement("destroyer", 0, 0, H),
    ShipPlacement("carrier", 2, 0, H),
    ShipPlacement("battleship", 4, 0, H),
    ShipPlacement("cruiser", 6, 0, H),
    ShipPlacement("submarine", 8, 0, H),
]

# Player 2's fleet: vertical ships in the right-hand columns, (2,3) is water.
FLEET_COLUMNS = [
    ShipPlacement("carrier", 0, 9, V),
    ShipPlacement("battleship", 0, 8, V),
    ShipPlacement("cruiser", 0, 7, V),
    ShipPlacement("submarine", 0, 6, V),
    ShipPlacement("destroyer", 0, 5, V),
]


def payload(fleet):
    return [p.to_dict() for p in fleet]


def occupied(fleet):
    from salvo.battleship import Board

    board = Board()
    for p in fleet:
        assert board.apply(p)
    return board


def water_cells(fleet):
    board = occupied(fleet)
    return [(r, c) for r in range(10) for c in range(10) if board.ship_at(r, c) is None]


def ship_cells(fleet):
    board = occupied(fleet)
    return [cell for ship in board.placed_ships for cell in ship.cells]


class FakeClock:
    """Manually advanced clock for TTL / last-seen tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Seat:
    session_id: str
    player_id: str
    player_number: int


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def gateway(store, clock) -> MatchGateway:
    return MatchGateway(store, clock=clock, rng=random.Random(1234))


@pytest.fixture
def seated(gateway):
    """Factory: create a room, join it and optionally place both fleets."""

    def _factory(place: bool = True, fleet1=FLEET_ROWS, fleet2=FLEET_COLUMNS):
        created = gateway.create_game("Alice")
        joined = gateway.join_game(created["roomCode"], "Bob")
        p1 = Seat(created["sessionId"], created["playerId"], 1)
        p2 = Seat(joined["sessionId"], joined["playerId"], 2)
        if place:
            gateway.place_ships(p1.session_id, p1.player_id, payload(fleet1))
            gateway.place_ships(p2.session_id, p2.player_id, payload(fleet2))
        return p1, p2

    return _factory


@pytest.fixture
def app(gateway):
    from salvo.server import create_app

    flask_app = create_app(gateway)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def http(app):
    return app.test_client()
