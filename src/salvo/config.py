"""Central configuration for runtime-tunable parameters.

All constants can be overridden via environment variables so that the
production server runs with sensible defaults, while the automated test-suite
injects its own values through constructor arguments where it needs to.
"""

from __future__ import annotations

import os
import string
from pathlib import Path


# ===========================================================================
# Network Defaults
# ===========================================================================
# SALVO_HOST: Default host address for the HTTP server to bind to and for the
#   CLI client to talk to.
#   Defaults to "127.0.0.1".
#   Example: export SALVO_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("SALVO_HOST", "127.0.0.1")

# SALVO_PORT: Default port for the HTTP server.
#   Defaults to 8080.
#   Example: export SALVO_PORT=5001
DEFAULT_PORT: int = int(os.getenv("SALVO_PORT", "8080"))


# ===========================================================================
# Polling Client
# ===========================================================================
# SALVO_POLL_INTERVAL: Seconds between two state polls issued by a client.
#   Defaults to 2.0.
#   Example: export SALVO_POLL_INTERVAL=0.5
POLL_INTERVAL: float = float(os.getenv("SALVO_POLL_INTERVAL", "2.0"))

# SALVO_HTTP_TIMEOUT: Per-request timeout (seconds) used by the client.
#   Defaults to 5.
HTTP_TIMEOUT: float = float(os.getenv("SALVO_HTTP_TIMEOUT", "5"))


# ===========================================================================
# Session House-keeping
# ===========================================================================
# SALVO_WAITING_TTL: Seconds a session may sit in 'waiting' (nobody joined)
#   before the reaper deletes it.
#   Defaults to 3600 (one hour).
WAITING_TTL: float = float(os.getenv("SALVO_WAITING_TTL", "3600"))

# SALVO_REAP_INTERVAL: Seconds between two reaper sweeps on the server.
#   Defaults to 60.
REAP_INTERVAL: float = float(os.getenv("SALVO_REAP_INTERVAL", "60"))

# SALVO_CONNECTED_WINDOW: A player counts as connected when their last request
#   is at most this many seconds old.
#   Defaults to 10 (five missed polls at the default interval).
CONNECTED_WINDOW: float = float(os.getenv("SALVO_CONNECTED_WINDOW", "10"))


# ===========================================================================
# Room Codes
# ===========================================================================
# SALVO_CODE_ATTEMPTS: How many random room codes are tried before creation
#   fails with an internal error.
#   Defaults to 10.
CODE_ATTEMPTS: int = int(os.getenv("SALVO_CODE_ATTEMPTS", "10"))

# Room codes are fixed at six upper-case alphanumerics (36**6 codes).
ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


# ===========================================================================
# Persistence
# ===========================================================================
# SALVO_STORE: Session store backend, either "memory" or "json".
#   Defaults to "memory" (single-process deployments).
#   Example: export SALVO_STORE=json
STORE_BACKEND: str = os.getenv("SALVO_STORE", "memory").strip().lower()

# SALVO_STORE_DIR: Directory holding one JSON document per session when the
#   "json" backend is selected.
#   Defaults to ./games relative to the working directory.
STORE_DIR: Path = Path(os.getenv("SALVO_STORE_DIR", "games"))


# ===========================================================================
# Game Constants
# ===========================================================================
# The board is always 10x10; coordinates are zero-based (row, col).
BOARD_SIZE = 10

# Standard fleet: list of (ship id, display name, size) tuples.
SHIPS = [
    ("carrier", "Carrier", 5),
    ("battleship", "Battleship", 4),
    ("cruiser", "Cruiser", 3),
    ("submarine", "Submarine", 3),
    ("destroyer", "Destroyer", 2),
]

# Unique single-letter representations for each ship on a rendered board.
SHIP_LETTERS = {
    "carrier": "A",  # "A" for Aircraft carrier to avoid clash with Cruiser's "C"
    "battleship": "B",
    "cruiser": "C",
    "submarine": "S",
    "destroyer": "D",
}


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# SALVO_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
#   Example: export SALVO_DEBUG=1
DEBUG: bool = os.getenv("SALVO_DEBUG", "0") == "1"
