"""Polling client: HTTP API wrapper, local board mirror and CLI.

The server is the only source of truth. The client never decides hit, miss
or victory on its own; it polls the player-scoped state, replays moves it has
not seen yet onto its local boards and reacts to status changes.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests

from . import config as _cfg
from .battleship import Board, ShipPlacement, random_fleet
from .commands import (
    HELP_TEXT,
    BoardCommand,
    CommandParseError,
    FireCommand,
    HelpCommand,
    QuitCommand,
    StatusCommand,
    parse_command,
)
from .coord_utils import format_coord

logger = logging.getLogger(__name__)

State = dict[str, Any]


class ApiError(Exception):
    """Error answer (or transport failure) from the game server."""

    def __init__(self, kind: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message
        self.status = status


class SessionEnded(ApiError):
    """The session (or our seat in it) no longer exists on the server."""


# ---------------------------- transport -----------------------------


class GameAPI:
    """Blocking wrapper around the five game endpoints."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = _cfg.HTTP_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict[str, Any]:
        url = f"{self.base_url}/api/game{path}"
        try:
            resp = self.http.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ApiError("transport", str(exc)) from exc
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400 or not data.get("success", False):
            kind = data.get("kind", "internal")
            message = data.get("error", resp.reason or "request failed")
            if resp.status_code == 404:
                raise SessionEnded(kind, message, resp.status_code)
            raise ApiError(kind, message, resp.status_code)
        return data

    def create_game(self, player_name: str) -> dict[str, Any]:
        return self._request("POST", "/create", {"playerName": player_name})

    def join_game(self, room_code: str, player_name: str) -> dict[str, Any]:
        return self._request("POST", "/join", {"gameCode": room_code, "playerName": player_name})

    def place_ships(self, session_id: str, player_id: str, ships: list[dict]) -> dict[str, Any]:
        return self._request("POST", "/place-ships", {"gameId": session_id, "playerId": player_id, "ships": ships})

    def attack(self, session_id: str, player_id: str, row: int, col: int) -> dict[str, Any]:
        return self._request("POST", "/attack", {"gameId": session_id, "playerId": player_id, "row": row, "col": col})

    def get_state(self, session_id: str, player_id: str) -> State:
        return self._request("GET", f"/state/{session_id}/{player_id}")


@dataclass
class Seat:
    """What the client has to remember to act in one session."""

    session_id: str
    player_id: str
    player_number: int
    room_code: str = ""


# ---------------------------- board mirror -----------------------------


class BoardMirror:
    """Local copy of both boards, kept in step with the server's move lists.

    ``apply()`` replays only moves beyond the index already applied, so
    feeding it the same state twice is a no-op. If the server reports fewer
    moves than were mirrored the mirror is rebuilt from scratch.
    """

    def __init__(self, size: int = _cfg.BOARD_SIZE) -> None:
        self.size = size
        self.reset()

    def reset(self) -> None:
        self.own = [["." for _ in range(self.size)] for _ in range(self.size)]
        self.target = [["." for _ in range(self.size)] for _ in range(self.size)]
        self.applied_yours = 0
        self.applied_theirs = 0
        self._fleet_loaded = False

    def apply(self, state: State) -> list[dict]:
        """Replay new moves from *state*; return the moves applied this call."""
        yours = state.get("yourMoves", [])
        theirs = state.get("opponentMoves", [])
        if len(yours) < self.applied_yours or len(theirs) < self.applied_theirs:
            logger.debug("server reports fewer moves than mirrored – rebuilding")
            self.reset()

        if not self._fleet_loaded and state.get("ownShips"):
            for ship in state["ownShips"]:
                letter = _cfg.SHIP_LETTERS.get(ship["shipId"], "S")
                for r, c in ship["cells"]:
                    if self.own[r][c] == ".":
                        self.own[r][c] = letter
            self._fleet_loaded = True

        fresh: list[dict] = []
        for move in yours[self.applied_yours:]:
            self.target[move["row"]][move["col"]] = "o" if move["result"] == "miss" else "X"
            fresh.append({**move, "mine": True})
        for move in theirs[self.applied_theirs:]:
            self.own[move["row"]][move["col"]] = "o" if move["result"] == "miss" else "X"
            fresh.append({**move, "mine": False})
        self.applied_yours = len(yours)
        self.applied_theirs = len(theirs)

        for ship in state.get("opponentSunkShips", []):
            letter = _cfg.SHIP_LETTERS.get(ship["shipId"], "S").lower()
            for r, c in ship["cells"]:
                self.target[r][c] = letter
        return fresh

    def rows(self, which: str = "own") -> list[str]:
        grid = self.own if which == "own" else self.target
        return [" ".join(row) for row in grid]


# ---------------------------- poller -----------------------------


class StatePoller(threading.Thread):
    """Fetch the state view every *interval* seconds and feed the mirror.

    Stops by itself when the game is over or when the server no longer knows
    the session; transient errors are logged and polling carries on.
    """

    def __init__(
        self,
        api: GameAPI,
        seat: Seat,
        *,
        interval: float = _cfg.POLL_INTERVAL,
        mirror: Optional[BoardMirror] = None,
        on_state: Optional[Callable[[State, list[dict]], None]] = None,
        on_status: Optional[Callable[[Optional[str], str], None]] = None,
        on_ended: Optional[Callable[[SessionEnded], None]] = None,
    ) -> None:
        super().__init__(daemon=True, name="salvo-poller")
        self.api = api
        self.seat = seat
        self.interval = interval
        self.mirror = mirror or BoardMirror()
        self.on_state = on_state
        self.on_status = on_status
        self.on_ended = on_ended
        self.status: Optional[str] = None
        self.last_state: Optional[State] = None
        self.ended = False
        self._stop_evt = threading.Event()
        # the CLI thread also polls right after firing; one fetch-and-apply at a time
        self._poll_lock = threading.RLock()

    def poll_once(self) -> Optional[State]:
        """One fetch-and-reconcile step. Returns None when polling should stop."""
        with self._poll_lock:
            return self._poll()

    def _poll(self) -> Optional[State]:
        try:
            state = self.api.get_state(self.seat.session_id, self.seat.player_id)
        except SessionEnded as exc:
            logger.info("Session ended: %s", exc.message)
            self.ended = True
            self.stop()
            if self.on_ended:
                self.on_ended(exc)
            return None
        except ApiError as exc:
            logger.warning("Polling error: %s", exc)
            return self.last_state

        fresh = self.mirror.apply(state)
        self.last_state = state
        if self.on_state:
            self.on_state(state, fresh)
        status = state.get("status")
        if status != self.status:
            previous, self.status = self.status, status
            if self.on_status:
                self.on_status(previous, status)
        if state.get("gameOver"):
            self.stop()
        return state

    def run(self) -> None:
        logger.debug("Started polling game state every %.1fs", self.interval)
        while not self._stop_evt.is_set():
            self.poll_once()
            self._stop_evt.wait(self.interval)
        logger.debug("Stopped polling game state")

    def stop(self) -> None:
        self._stop_evt.set()

    @property
    def stopped(self) -> bool:
        return self._stop_evt.is_set()


# ---------------------------- CLI -----------------------------


def _print_two_grids(left_rows: list[str], right_rows: list[str], *, header_left: str, header_right: str) -> None:
    """Print two boards side-by-side with row letters and column numbers."""
    columns = len(left_rows[0].split())
    numeric_header = "   " + " ".join(f"{i:>2}" for i in range(1, columns + 1))
    width = len(numeric_header)
    print(f"{('[' + header_left + ']'):<{width}}    [{header_right}]")
    print(f"{numeric_header}    {numeric_header}")
    for idx, (left, right) in enumerate(zip(left_rows, right_rows)):
        label = chr(ord("A") + idx)
        lcells = " ".join(f"{c:>2}" for c in left.split())
        rcells = " ".join(f"{c:>2}" for c in right.split())
        print(f"{label:2} {lcells}    {label:2} {rcells}")


def fleet_preview(placements: list[ShipPlacement], size: int = _cfg.BOARD_SIZE) -> list[str]:
    """Rows showing where *placements* put the fleet, before any shot is fired."""
    board = Board(size)
    for placement in placements:
        if not board.apply(placement):
            raise ValueError(f"Illegal placement for {placement.ship_id}")
    return board.grid_rows(reveal=True)


def _render(mirror: BoardMirror) -> None:
    _print_two_grids(mirror.rows("own"), mirror.rows("target"), header_left="Your fleet", header_right="Enemy waters")


def _describe(move: dict) -> str:
    who = "You" if move["mine"] else "Opponent"
    text = f"{who} fired at {format_coord(move['row'], move['col'])}: {move['result'].upper()}"
    if move.get("sunkShipId"):
        text += f" – {move['sunkShipId']} sunk"
    return text


def _summary(state: Optional[State]) -> str:
    """One-line status report built from the last polled state."""
    if not state:
        return "No state received yet"
    stats = state.get("statistics", {})
    if state.get("gameOver"):
        turn = "game over"
    elif state.get("status") != "playing":
        turn = f"status {state.get('status')}"
    else:
        turn = "your turn" if state.get("isYourTurn") else "opponent's turn"
    return (
        f"[{state.get('gameCode')}] vs {state.get('opponentName') or '?'}: {turn}, "
        f"shots {stats.get('yourTotalShots', 0)}, hits {stats.get('yourHits', 0)}, "
        f"sunk {len(stats.get('yourSunkShips', []))}/5"
    )


def main(argv: Optional[list[str]] = None) -> int:  # pragma: no cover – interactive
    parser = argparse.ArgumentParser(description="Salvo command-line client")
    parser.add_argument("--server", default=f"http://{_cfg.DEFAULT_HOST}:{_cfg.DEFAULT_PORT}")
    parser.add_argument("--interval", type=float, default=_cfg.POLL_INTERVAL)
    parser.add_argument("--debug", action="store_true")
    sub = parser.add_subparsers(dest="action", required=True)
    p_create = sub.add_parser("create", help="Open a new room")
    p_create.add_argument("name")
    p_join = sub.add_parser("join", help="Join a room by code")
    p_join.add_argument("code")
    p_join.add_argument("name")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if (args.debug or _cfg.DEBUG) else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    api = GameAPI(args.server)
    try:
        if args.action == "create":
            resp = api.create_game(args.name)
            print(f"Room code: {resp['roomCode']} – share it with your opponent")
        else:
            resp = api.join_game(args.code, args.name)
            print(f"Joined {resp['roomCode']} against {resp.get('opponentName')}")
    except ApiError as exc:
        print(f"[!] {exc.message}")
        return 1
    seat = Seat(resp["sessionId"], resp["playerId"], resp["playerNumber"], resp.get("roomCode", ""))

    placed = threading.Event()
    done = threading.Event()

    def _on_status(previous: Optional[str], status: str) -> None:
        print(f"[status] {previous or '-'} -> {status}")
        if status == "setup" and not placed.is_set():
            placements = random_fleet()
            fleet = [p.to_dict() for p in placements]
            try:
                api.place_ships(seat.session_id, seat.player_id, fleet)
                placed.set()
                print("Fleet placed at random – waiting for opponent…")
                print("\n".join(fleet_preview(placements)))
            except ApiError as exc:
                print(f"[!] {exc.message}")

    def _on_state(state: State, fresh: list[dict]) -> None:
        for move in fresh:
            print(_describe(move))
        if fresh:
            _render(poller.mirror)
        if state.get("gameOver"):
            print("YOU WON" if state.get("youWon") else "YOU LOST")
            done.set()
        elif fresh and state.get("isYourTurn"):
            print(f"Your turn – {HELP_TEXT}")

    def _on_ended(exc: SessionEnded) -> None:
        print(f"Session ended: {exc.message}")
        done.set()

    poller = StatePoller(api, seat, interval=args.interval, on_state=_on_state, on_status=_on_status, on_ended=_on_ended)
    poller.start()

    for line in sys.stdin:
        if done.is_set():
            break
        try:
            cmd = parse_command(line)
        except CommandParseError as exc:
            print(f"[!] {exc}")
            continue
        if isinstance(cmd, QuitCommand):
            break
        if isinstance(cmd, BoardCommand):
            _render(poller.mirror)
            continue
        if isinstance(cmd, HelpCommand):
            print(HELP_TEXT)
            continue
        if isinstance(cmd, StatusCommand):
            print(_summary(poller.last_state))
            continue
        if isinstance(cmd, FireCommand):
            try:
                result = api.attack(seat.session_id, seat.player_id, cmd.row, cmd.col)
            except SessionEnded as exc:
                print(f"Session ended: {exc.message}")
                break
            except ApiError as exc:
                print(f"[!] {exc.message}")
                continue
            if result["result"] == "already_attacked":
                print("Already fired there – pick another cell")
            poller.poll_once()
    poller.stop()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
