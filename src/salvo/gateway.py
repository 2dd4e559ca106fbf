"""Session store front-end: matchmaking, validation and transactions.

Every public method maps to one operation of the HTTP surface and returns the
JSON-ready response body. Each mutating call runs as a single
read-modify-write under the session's store lock, which is what keeps two
racing ``attack`` calls from both consuming the same turn.

Input is validated here before it reaches the session (types, the 0-9 range,
placement shape); the session enforces the game rules. Anything that is not
a ``GameError`` by the time it leaves this module is wrapped in
``StoreError``.
"""

from __future__ import annotations

import abc
import contextlib
import logging
import random
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from . import config as _cfg
from .battleship import ShipPlacement
from .coord_utils import format_coord, in_bounds
from .errors import (
    GameError,
    OutOfBounds,
    RoomCodeExhausted,
    SessionNotFound,
    StoreError,
    ValidationError,
)
from .events import Category, Event, EventBus, Subscriber
from .session import GameSession, Status
from .ships import CATALOG, Orientation
from .store import DuplicateRoomCode, SessionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

# uuid4().hex session ids and room codes; nothing else may reach the store
SESSION_ID_RE = re.compile(r"^[0-9a-f]{32}\Z")
ROOM_CODE_RE = re.compile(rf"^[{re.escape(_cfg.ROOM_CODE_ALPHABET)}]{{{_cfg.ROOM_CODE_LENGTH}}}\Z")


# ---------------------------------------------------------------------------
# Identity collaborator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlayerIdentity:
    player_id: str
    display_name: str


class IdentityProvider(abc.ABC):
    """Supplies the opaque player token and display name for a new seat."""

    @abc.abstractmethod
    def issue(self, player_name: Any) -> PlayerIdentity: ...


class TokenIdentityProvider(IdentityProvider):
    """Fresh random token per seat; tokens are never reused across sessions."""

    def issue(self, player_name: Any) -> PlayerIdentity:
        if not isinstance(player_name, str) or not player_name.strip():
            raise ValidationError("Player name is required")
        return PlayerIdentity(uuid.uuid4().hex, player_name.strip())


# ---------------------------------------------------------------------------
# Payload validation
# ---------------------------------------------------------------------------


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def _require_int(value: Any, what: str) -> int:
    # bool is an int subclass; JSON true/false is not a coordinate
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer")
    return value


def _require_cell(row: Any, col: Any) -> tuple[int, int]:
    row = _require_int(row, "row")
    col = _require_int(col, "col")
    if not in_bounds(row, col):
        size = _cfg.BOARD_SIZE
        raise OutOfBounds(f"Target must be within {size}x{size} board (0-{size - 1})")
    return row, col


def parse_placements(raw: Any) -> list[ShipPlacement]:
    """Turn the ``ships`` array of a request into placements."""
    if not isinstance(raw, list):
        raise ValidationError("Ships array is required")
    if len(raw) != len(CATALOG):
        raise ValidationError(f"Expected {len(CATALOG)} ships, received {len(raw)}")
    placements: list[ShipPlacement] = []
    for item in raw:
        if isinstance(item, ShipPlacement):
            placements.append(item)
            continue
        if not isinstance(item, dict):
            raise ValidationError("Each ship must have shipId, row, col and orientation")
        ship_id = item.get("shipId")
        if ship_id not in CATALOG:
            raise ValidationError(f"Invalid ship type: {ship_id}")
        try:
            orientation = Orientation.parse(item.get("orientation", ""))
        except ValueError:
            raise ValidationError('Orientation must be "horizontal" or "vertical"') from None
        row, col = _require_cell(item.get("row"), item.get("col"))
        placements.append(ShipPlacement(ship_id, row, col, orientation))
    return placements


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class MatchGateway:
    """Creates sessions, seats players and runs every transition atomically."""

    def __init__(
        self,
        store: SessionStore,
        *,
        identity: Optional[IdentityProvider] = None,
        clock: Clock = time.time,
        rng: Optional[random.Random] = None,
        code_attempts: int = _cfg.CODE_ATTEMPTS,
        waiting_ttl: float = _cfg.WAITING_TTL,
        connected_window: float = _cfg.CONNECTED_WINDOW,
    ) -> None:
        self.store = store
        self.identity = identity or TokenIdentityProvider()
        self.clock = clock
        self.rng = rng or random.SystemRandom()
        self.code_attempts = code_attempts
        self.waiting_ttl = waiting_ttl
        self.connected_window = connected_window
        self.events = EventBus()

    def subscribe(self, cb: Subscriber) -> None:
        self.events.subscribe(cb)

    # -------------------- helpers --------------------
    def generate_room_code(self) -> str:
        return "".join(self.rng.choice(_cfg.ROOM_CODE_ALPHABET) for _ in range(_cfg.ROOM_CODE_LENGTH))

    @contextlib.contextmanager
    def _store_errors(self) -> Iterator[None]:
        try:
            yield
        except GameError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Session store failure")
            raise StoreError(f"Session store failure: {exc}") from exc

    def _resolve_id(self, session_ref: Any) -> str:
        """Map an internal id or a room code to the internal id."""
        ref = _require_str(session_ref, "Game ID")
        if SESSION_ID_RE.match(ref) and self.store.find_session(ref) is not None:
            return ref
        code = ref.upper()
        session = self.store.find_by_code(code) if ROOM_CODE_RE.match(code) else None
        if session is None:
            raise SessionNotFound()
        return session.session_id

    @contextlib.contextmanager
    def _transaction(self, session_ref: Any) -> Iterator[GameSession]:
        """Load, yield and save one session under its lock.

        Nothing is written when the body raises, so a rejected transition
        leaves the stored document exactly as it was.
        """
        with self._store_errors():
            session_id = self._resolve_id(session_ref)
            with self.store.lock(session_id):
                session = self.store.find_session(session_id)
                if session is None:
                    raise SessionNotFound()
                yield session
                session.last_updated_at = self.clock()
                self.store.save(session)

    # -------------------- operations --------------------
    def create_game(self, player_name: Any) -> dict[str, Any]:
        """Open a room in ``waiting`` with the caller in slot 1."""
        ident = self.identity.issue(player_name)
        now = self.clock()
        with self._store_errors():
            for attempt in range(1, self.code_attempts + 1):
                code = self.generate_room_code()
                session = GameSession.create(uuid.uuid4().hex, code, ident.player_id, ident.display_name, now)
                try:
                    self.store.insert(session)
                except DuplicateRoomCode:
                    logger.debug("Room code %s taken (attempt %d/%d)", code, attempt, self.code_attempts)
                    continue
                break
            else:
                raise RoomCodeExhausted(
                    f"Failed to generate unique game code after {self.code_attempts} attempts. Please try again."
                )
        self.events.emit(Event(Category.LOBBY, "created", {"code": code, "name": ident.display_name}))
        return {
            "roomCode": code,
            "sessionId": session.session_id,
            "playerId": ident.player_id,
            "playerNumber": 1,
        }

    def join_game(self, room_code: Any, player_name: Any) -> dict[str, Any]:
        """Seat a second player in the room named by *room_code*."""
        code = _require_str(room_code, "Game code").upper()
        ident = self.identity.issue(player_name)
        with self._store_errors():
            found = self.store.find_by_code(code) if ROOM_CODE_RE.match(code) else None
        if found is None:
            raise SessionNotFound(f"Game with code {code} not found")
        with self._transaction(found.session_id) as session:
            slot = session.join(ident.player_id, ident.display_name, self.clock())
            opponent = session.opponent_of(slot)
        self.events.emit(Event(Category.LOBBY, "joined", {"code": code, "name": ident.display_name}))
        return {
            "sessionId": session.session_id,
            "roomCode": session.room_code,
            "playerId": ident.player_id,
            "playerNumber": slot.player_number,
            "opponentName": opponent.name if opponent else None,
        }

    def place_ships(self, session_ref: Any, player_id: Any, ships: Any) -> dict[str, Any]:
        """Submit the caller's whole fleet; accepted or rejected as one batch."""
        player_id = _require_str(player_id, "Player ID")
        placements = parse_placements(ships)
        with self._transaction(session_ref) as session:
            report = session.place_ships(player_id, placements, self.clock())
            player = session.slot(player_id).player_number
        self.events.emit(
            Event(Category.LOBBY, "ready", {"code": session.room_code, "player": player, "bothReady": report.both_ready})
        )
        if report.both_ready:
            self.events.emit(Event(Category.TURN, "start", {"code": session.room_code, "turn": session.current_turn}))
        return {"ready": report.ready, "bothReady": report.both_ready, "status": report.status.value}

    def attack(self, session_ref: Any, player_id: Any, row: Any, col: Any) -> dict[str, Any]:
        """Fire one shot at the opponent's board."""
        player_id = _require_str(player_id, "Player ID")
        row, col = _require_cell(row, col)
        with self._transaction(session_ref) as session:
            report = session.attack(player_id, row, col, self.clock())
        if report.move is not None:
            self.events.emit(
                Event(
                    Category.TURN,
                    "shot",
                    {
                        "code": session.room_code,
                        "player": report.move.attacker,
                        "coord": format_coord(row, col),
                        "result": report.result.value,
                        "sunk": report.outcome.sunk_ship_id,
                    },
                )
            )
        if report.game_over:
            self.events.emit(
                Event(Category.TURN, "end", {"code": session.room_code, "winner": report.winner, "turns": session.turn_counter})
            )
        return report.to_dict()

    def get_state(self, session_ref: Any, player_id: Any) -> dict[str, Any]:
        """Player-scoped projection; also records that the player is still around."""
        player_id = _require_str(player_id, "Player ID")
        with self._transaction(session_ref) as session:
            now = self.clock()
            session.touch(player_id, now)
        return session.project(player_id, now, self.connected_window)

    # -------------------- house-keeping --------------------
    def reap_stale(self, now: Optional[float] = None) -> list[str]:
        """Delete sessions that have sat in ``waiting`` longer than the TTL."""
        now = self.clock() if now is None else now
        reaped: list[str] = []
        with self._store_errors():
            for candidate in list(self.store.sessions()):
                if candidate.status is not Status.WAITING or now - candidate.created_at <= self.waiting_ttl:
                    continue
                with self.store.lock(candidate.session_id):
                    # re-check: somebody may have joined since the scan
                    current = self.store.find_session(candidate.session_id)
                    if current is None or current.status is not Status.WAITING:
                        continue
                    if self.store.delete(current.session_id):
                        reaped.append(current.room_code)
        if reaped:
            self.events.emit(Event(Category.SYSTEM, "reaped", {"codes": reaped}))
        return reaped


__all__ = [
    "MatchGateway",
    "IdentityProvider",
    "TokenIdentityProvider",
    "PlayerIdentity",
    "parse_placements",
]
