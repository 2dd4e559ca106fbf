"""HTTP surface of the game server.

Routes are thin: they pull fields out of the JSON body, call the gateway and
wrap the result in ``{"success": true, ...}``. Domain errors are rendered by a
single error handler using the ``kind`` / ``http_status`` of the exception.
"""

from __future__ import annotations

import argparse
import logging
import os
import threading
from typing import Any, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from . import config as _cfg
from .errors import GameError, InternalError, ValidationError
from .gateway import MatchGateway
from .router import EventLogger
from .store import build_store

HOST = _cfg.DEFAULT_HOST
PORT = _cfg.DEFAULT_PORT

logger = logging.getLogger(__name__)

GATEWAY_KEY = "salvo.gateway"


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _ok(payload: dict[str, Any], status: int = 200):
    return jsonify({"success": True, **payload}), status


def create_app(gateway: Optional[MatchGateway] = None) -> Flask:
    """Build the Flask app around *gateway* (a fresh in-memory one by default)."""
    if gateway is None:
        gateway = MatchGateway(build_store(_cfg.STORE_BACKEND, _cfg.STORE_DIR))
    app = Flask(__name__)
    app.extensions[GATEWAY_KEY] = gateway

    @app.errorhandler(GameError)
    def _game_error(exc: GameError):
        if exc.http_status >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.path, exc.message)
        else:
            logger.debug("Request %s %s rejected (%s): %s", request.method, request.path, exc.kind, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        kind = "not_found" if exc.code == 404 else "validation"
        return jsonify({"success": False, "kind": kind, "error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        err = InternalError("Internal server error")
        return jsonify(err.to_dict()), err.http_status

    @app.get("/api/health")
    def health():
        return _ok({"status": "ok"})

    @app.post("/api/game/create")
    def create_game():
        body = _body()
        return _ok(gateway.create_game(body.get("playerName")), 201)

    @app.post("/api/game/join")
    def join_game():
        body = _body()
        return _ok(gateway.join_game(body.get("gameCode"), body.get("playerName")))

    @app.post("/api/game/place-ships")
    def place_ships():
        body = _body()
        return _ok(gateway.place_ships(body.get("gameId"), body.get("playerId"), body.get("ships")))

    @app.post("/api/game/attack")
    def attack():
        body = _body()
        return _ok(gateway.attack(body.get("gameId"), body.get("playerId"), body.get("row"), body.get("col")))

    @app.get("/api/game/state/<game_id>/<player_id>")
    def get_state(game_id: str, player_id: str):
        return _ok(gateway.get_state(game_id, player_id))

    return app


class Reaper(threading.Thread):
    """Daemon thread that periodically deletes stale ``waiting`` sessions."""

    def __init__(self, gateway: MatchGateway, interval: float = _cfg.REAP_INTERVAL) -> None:
        super().__init__(daemon=True, name="salvo-reaper")
        self.gateway = gateway
        self.interval = interval
        self._stop_evt = threading.Event()

    def run(self) -> None:
        while not self._stop_evt.wait(self.interval):
            try:
                self.gateway.reap_stale()
            except GameError:
                logger.exception("Reaper sweep failed")

    def stop(self) -> None:
        self._stop_evt.set()


def main() -> None:  # pragma: no cover – side-effect entrypoint
    """Run the game server until interrupted."""
    parser = argparse.ArgumentParser(description="Salvo game server")
    parser.add_argument("--host", default=HOST, help="Bind address.")
    parser.add_argument("--port", type=int, default=PORT, help="Bind port.")
    parser.add_argument(
        "--store",
        choices=("memory", "json"),
        default=_cfg.STORE_BACKEND,
        help="Session store backend.",
    )
    parser.add_argument("--store-dir", default=str(_cfg.STORE_DIR), help="Directory for the json store.")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity.",
    )
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output.",
    )
    args = parser.parse_args()

    if args.debug:
        os.environ["SALVO_DEBUG"] = "1"

    # Determine log level from CLI flags:
    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    gateway = MatchGateway(build_store(args.store, args.store_dir))
    gateway.subscribe(EventLogger())
    reaper = Reaper(gateway)
    reaper.start()

    app = create_app(gateway)
    logger.info("Salvo server listening on %s:%d (store=%s)", args.host, args.port, args.store)
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        reaper.stop()


if __name__ == "__main__":  # pragma: no cover
    main()
