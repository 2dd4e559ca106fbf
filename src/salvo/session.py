"""Two-player game session state machine.

A ``GameSession`` owns both player slots, one ``Board`` per player, the turn
pointer and the append-only move log. Sessions live in a store as plain JSON
documents; the gateway loads one, calls exactly one transition on it and saves
it back under the session's lock, so nothing here deals with concurrency.

Lifecycle
---------
waiting   one player has created the room
setup     the second player joined; fleets are being placed
playing   both fleets accepted; players alternate shots, player 1 first
finished  one fleet is fully sunk; terminal

Turn policy: every resolved shot passes the turn, hit or miss. A shot at a
cell the attacker already tried is answered with ``already_attacked`` and
consumes nothing.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from . import config as _cfg
from .battleship import Board, ShipPlacement
from .errors import (
    InvalidPlacement,
    InvalidState,
    NotYourTurn,
    OutOfBounds,
    PlayerNotFound,
    SessionFull,
)
from .resolver import AttackOutcome, AttackResult
from .ships import CATALOG, FLEET_IDS

logger = logging.getLogger(__name__)


class Status(str, enum.Enum):
    WAITING = "waiting"
    SETUP = "setup"
    PLAYING = "playing"
    FINISHED = "finished"


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def other(player_number: int) -> int:
    return 2 if player_number == 1 else 1


@dataclass
class PlayerSlot:
    player_id: str
    player_number: int
    name: str = ""
    ready: bool = False
    last_seen: float = 0.0

    def to_dict(self) -> dict:
        return {
            "playerId": self.player_id,
            "playerNumber": self.player_number,
            "playerName": self.name,
            "ready": self.ready,
            "lastSeen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerSlot":
        return cls(
            player_id=data["playerId"],
            player_number=int(data["playerNumber"]),
            name=data.get("playerName", ""),
            ready=bool(data.get("ready", False)),
            last_seen=float(data.get("lastSeen", 0.0)),
        )


@dataclass(frozen=True)
class MoveRecord:
    """One resolved shot. Never modified after it is appended."""

    turn_number: int
    attacker: int
    row: int
    col: int
    result: AttackResult
    sunk_ship_id: Optional[str] = None
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {
            "turnNumber": self.turn_number,
            "attackingPlayerNumber": self.attacker,
            "row": self.row,
            "col": self.col,
            "result": self.result.value,
            "sunkShipId": self.sunk_ship_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MoveRecord":
        return cls(
            turn_number=int(data["turnNumber"]),
            attacker=int(data["attackingPlayerNumber"]),
            row=int(data["row"]),
            col=int(data["col"]),
            result=AttackResult(data["result"]),
            sunk_ship_id=data.get("sunkShipId"),
            timestamp=float(data.get("timestamp", 0.0)),
        )

    def view(self) -> dict:
        return {
            "turnNumber": self.turn_number,
            "row": self.row,
            "col": self.col,
            "result": self.result.value,
            "sunkShipId": self.sunk_ship_id,
        }


@dataclass(frozen=True)
class PlacementReport:
    ready: bool
    both_ready: bool
    status: Status


@dataclass(frozen=True)
class AttackReport:
    outcome: AttackOutcome
    move: Optional[MoveRecord]
    game_over: bool
    winner: Optional[int]
    next_turn: int

    @property
    def result(self) -> AttackResult:
        return self.outcome.result

    def to_dict(self) -> dict:
        return {
            "result": self.result.value,
            "sunkShipId": self.outcome.sunk_ship_id,
            "gameOver": self.game_over,
            "winnerPlayerNumber": self.winner,
            "nextTurn": self.next_turn,
            "turnNumber": self.move.turn_number if self.move else None,
        }


@dataclass
class GameSession:
    session_id: str
    room_code: str
    status: Status = Status.WAITING
    players: list[PlayerSlot] = field(default_factory=list)
    boards: dict[int, Board] = field(default_factory=lambda: {1: Board(), 2: Board()})
    current_turn: int = 1
    turn_counter: int = 0
    moves: list[MoveRecord] = field(default_factory=list)
    winner: Optional[int] = None
    created_at: float = 0.0
    last_updated_at: float = 0.0
    version: int = 0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def create(cls, session_id: str, room_code: str, player_id: str, name: str, now: float) -> "GameSession":
        """New room in ``waiting`` with the creator in slot 1."""
        session = cls(session_id=session_id, room_code=room_code, created_at=now, last_updated_at=now)
        session.players.append(PlayerSlot(player_id, 1, name=name, last_seen=now))
        return session

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def slot(self, player_id: str) -> PlayerSlot:
        for slot in self.players:
            if slot.player_id == player_id:
                return slot
        raise PlayerNotFound()

    def slot_by_number(self, player_number: int) -> Optional[PlayerSlot]:
        for slot in self.players:
            if slot.player_number == player_number:
                return slot
        return None

    def opponent_of(self, slot: PlayerSlot) -> Optional[PlayerSlot]:
        return self.slot_by_number(other(slot.player_number))

    @property
    def is_full(self) -> bool:
        return len(self.players) >= 2

    def touch(self, player_id: str, now: float) -> PlayerSlot:
        slot = self.slot(player_id)
        slot.last_seen = now
        return slot

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def join(self, player_id: str, name: str, now: float) -> PlayerSlot:
        """Seat the second player and move to ``setup``."""
        if self.is_full:
            raise SessionFull()
        if self.status is not Status.WAITING:
            raise InvalidState(f"Cannot join game. Game status is '{self.status.value}'")
        slot = PlayerSlot(player_id, 2, name=name, last_seen=now)
        self.players.append(slot)
        self.status = Status.SETUP
        return slot

    def place_ships(self, player_id: str, placements: Iterable[ShipPlacement], now: float) -> PlacementReport:
        """Accept a complete fleet for *player_id* or reject it without side effects."""
        slot = self.touch(player_id, now)
        if self.status is not Status.SETUP:
            raise InvalidState(f"Cannot place ships. Game status is '{self.status.value}'")
        if slot.ready:
            raise InvalidState("Ships already placed")

        placements = list(placements)
        ids = [p.ship_id for p in placements]
        if len(ids) != len(FLEET_IDS) or set(ids) != FLEET_IDS:
            raise InvalidPlacement(
                "Must include exactly one of each ship type: " + ", ".join(CATALOG)
            )
        board = Board()
        for placement in placements:
            if not board.apply(placement):
                raise InvalidPlacement(
                    f"Cannot place {placement.ship_id} at ({placement.row}, {placement.col}) "
                    f"{placement.orientation.value}: out of bounds or overlapping"
                )

        self.boards[slot.player_number] = board
        slot.ready = True
        both_ready = self.is_full and all(p.ready for p in self.players)
        if both_ready:
            self.status = Status.PLAYING
            self.current_turn = 1
            self.turn_counter = 0
        return PlacementReport(ready=True, both_ready=both_ready, status=self.status)

    def attack(self, player_id: str, row: int, col: int, now: float) -> AttackReport:
        """Fire at the opponent's board on behalf of *player_id*."""
        slot = self.touch(player_id, now)
        if self.status is not Status.PLAYING:
            raise InvalidState(f"Cannot attack. Game status is '{self.status.value}'")
        if slot.player_number != self.current_turn:
            raise NotYourTurn()
        size = _cfg.BOARD_SIZE
        if not (0 <= row < size and 0 <= col < size):
            raise OutOfBounds(f"Target must be within {size}x{size} board (0-{size - 1})")

        defender = other(slot.player_number)
        board = self.boards[defender]
        outcome = board.resolve_attack(row, col)
        if not outcome.result.resolved:
            return AttackReport(outcome, None, game_over=False, winner=None, next_turn=self.current_turn)

        self.turn_counter += 1
        move = MoveRecord(
            turn_number=self.turn_counter,
            attacker=slot.player_number,
            row=row,
            col=col,
            result=outcome.result,
            sunk_ship_id=outcome.sunk_ship_id,
            timestamp=now,
        )
        self.moves.append(move)
        logger.debug("session %s: P%d fired at (%d, %d) -> %s", self.room_code, move.attacker, row, col, move.result.value)

        if outcome.result is AttackResult.SUNK and board.all_sunk():
            self.status = Status.FINISHED
            self.winner = slot.player_number
        else:
            self.current_turn = defender
        return AttackReport(
            outcome,
            move,
            game_over=self.status is Status.FINISHED,
            winner=self.winner,
            next_turn=self.current_turn,
        )

    # ------------------------------------------------------------------
    # Player-scoped projection
    # ------------------------------------------------------------------
    def project(self, player_id: str, now: float, connected_window: float = _cfg.CONNECTED_WINDOW) -> dict[str, Any]:
        """State as seen by *player_id*.

        The opponent's fleet is only ever exposed through ships that are
        completely sunk, whose every cell the viewer has already hit.
        """
        me = self.slot(player_id)
        opp = self.opponent_of(me)
        my_board = self.boards[me.player_number]
        opp_board = self.boards[other(me.player_number)]

        your_moves = [m for m in self.moves if m.attacker == me.player_number]
        opponent_moves = [m for m in self.moves if m.attacker != me.player_number]

        return {
            "sessionId": self.session_id,
            "gameCode": self.room_code,
            "status": self.status.value,
            "playerNumber": me.player_number,
            "playerName": me.name,
            "yourReady": me.ready,
            "opponentJoined": opp is not None,
            "opponentName": opp.name if opp else None,
            "opponentReady": bool(opp and opp.ready),
            "opponentConnected": bool(opp and now - opp.last_seen <= connected_window),
            "currentTurn": self.current_turn,
            "isYourTurn": self.status is Status.PLAYING and self.current_turn == me.player_number,
            "turnCounter": self.turn_counter,
            "ownShips": [
                {
                    "shipId": ship.ship_id,
                    "cells": [[r, c] for r, c in ship.cells],
                    "orientation": ship.orientation.value,
                    "hitCount": ship.hit_count,
                    "sunk": ship.sunk,
                }
                for ship in my_board.placed_ships
            ],
            "yourMoves": [m.view() for m in your_moves],
            "opponentMoves": [m.view() for m in opponent_moves],
            "opponentSunkShips": [
                {"shipId": ship.ship_id, "cells": [[r, c] for r, c in ship.cells]}
                for ship in opp_board.placed_ships
                if ship.sunk
            ],
            "statistics": {
                **_stats("your", your_moves),
                **_stats("opponent", opponent_moves),
            },
            "gameOver": self.status is Status.FINISHED,
            "winner": self.winner,
            "youWon": self.winner is not None and self.winner == me.player_number,
            "createdAt": _iso(self.created_at),
            "lastMoveAt": _iso(self.moves[-1].timestamp) if self.moves else None,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "roomCode": self.room_code,
            "status": self.status.value,
            "players": [slot.to_dict() for slot in self.players],
            "boards": {str(n): board.to_dict() for n, board in self.boards.items()},
            "currentTurn": self.current_turn,
            "turnCounter": self.turn_counter,
            "moves": [move.to_dict() for move in self.moves],
            "winner": self.winner,
            "createdAt": self.created_at,
            "lastUpdatedAt": self.last_updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameSession":
        boards = {int(n): Board.from_dict(raw) for n, raw in data.get("boards", {}).items()}
        for n in (1, 2):
            boards.setdefault(n, Board())
        return cls(
            session_id=data["sessionId"],
            room_code=data["roomCode"],
            status=Status(data["status"]),
            players=[PlayerSlot.from_dict(raw) for raw in data.get("players", [])],
            boards=boards,
            current_turn=int(data.get("currentTurn", 1)),
            turn_counter=int(data.get("turnCounter", 0)),
            moves=[MoveRecord.from_dict(raw) for raw in data.get("moves", [])],
            winner=data.get("winner"),
            created_at=float(data.get("createdAt", 0.0)),
            last_updated_at=float(data.get("lastUpdatedAt", 0.0)),
            version=int(data.get("version", 0)),
        )


def _stats(prefix: str, moves: list[MoveRecord]) -> dict[str, Any]:
    sunk: list[str] = []
    for m in moves:
        if m.sunk_ship_id and m.sunk_ship_id not in sunk:
            sunk.append(m.sunk_ship_id)
    return {
        f"{prefix}Hits": sum(1 for m in moves if m.result.struck),
        f"{prefix}Misses": sum(1 for m in moves if m.result is AttackResult.MISS),
        f"{prefix}SunkShips": sunk,
        f"{prefix}TotalShots": len(moves),
    }


__all__ = [
    "Status",
    "PlayerSlot",
    "MoveRecord",
    "PlacementReport",
    "AttackReport",
    "GameSession",
    "other",
]
