"""Error taxonomy shared by the game core, the gateway and the HTTP layer.

Every error carries a machine-readable ``kind`` and the HTTP status the server
answers with. Callers catch the five top-level classes; the narrower
subclasses exist so logs and tests can tell e.g. a full room from a bad code.
"""

from __future__ import annotations


class GameError(Exception):
    """Base for every error the core reports to a caller."""

    kind = "internal"
    http_status = 500

    def __init__(self, message: str = "") -> None:
        message = message or (type(self).__doc__ or self.kind).strip()
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "kind": self.kind, "error": self.message}


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class ValidationError(GameError):
    """Malformed or out-of-range input."""

    kind = "validation"
    http_status = 400


class NotFoundError(GameError):
    """Unknown room code, session id or player id."""

    kind = "not_found"
    http_status = 404


class StateConflictError(GameError):
    """Operation not allowed in the current session state."""

    kind = "state_conflict"
    http_status = 409


class CapacityError(GameError):
    """Session cannot take another player."""

    kind = "capacity"
    http_status = 409


class InternalError(GameError):
    """Server-side failure."""

    kind = "internal"
    http_status = 500


# ---------------------------------------------------------------------------
# Session-level refinements
# ---------------------------------------------------------------------------


class InvalidPlacement(ValidationError):
    """Fleet layout rejected."""


class OutOfBounds(ValidationError):
    """Coordinate outside the 10x10 board."""


class SessionNotFound(NotFoundError):
    """Game not found."""


class PlayerNotFound(NotFoundError):
    """Player not found in this game."""


class InvalidState(StateConflictError):
    """Operation not allowed in the current game status."""


class NotYourTurn(StateConflictError):
    """Not your turn."""


class SessionFull(CapacityError):
    """Game is already full."""


class RoomCodeExhausted(InternalError):
    """Failed to generate a unique game code."""


class StaleSessionError(InternalError):
    """Session was modified concurrently."""


class StoreError(InternalError):
    """Session store failure."""


__all__ = [
    "GameError",
    "ValidationError",
    "NotFoundError",
    "StateConflictError",
    "CapacityError",
    "InternalError",
    "InvalidPlacement",
    "OutOfBounds",
    "SessionNotFound",
    "PlayerNotFound",
    "InvalidState",
    "NotYourTurn",
    "SessionFull",
    "RoomCodeExhausted",
    "StaleSessionError",
    "StoreError",
]
