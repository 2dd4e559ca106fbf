"""Parse one line typed at the client prompt into a command object."""

from dataclasses import dataclass
from typing import Callable, Dict, Union

from .coord_utils import coord_to_rowcol


class CommandParseError(Exception):
    """Raised when a line cannot be parsed as a valid command."""


@dataclass(frozen=True)
class FireCommand:
    row: int
    col: int


@dataclass(frozen=True)
class BoardCommand:
    pass


@dataclass(frozen=True)
class StatusCommand:
    pass


@dataclass(frozen=True)
class HelpCommand:
    pass


@dataclass(frozen=True)
class QuitCommand:
    pass


Command = Union[FireCommand, BoardCommand, StatusCommand, HelpCommand, QuitCommand]

HELP_TEXT = "FIRE <coord> (e.g. FIRE B7 or FIRE 1,6) | BOARD | STATUS | HELP | QUIT"


def _fire(arg: str) -> Command:
    if not arg:
        raise CommandParseError("FIRE requires a coordinate")
    try:
        row, col = coord_to_rowcol(arg)
    except ValueError as exc:
        raise CommandParseError(str(exc)) from None
    return FireCommand(row=row, col=col)


def _bare(factory: Callable[[], Command]) -> Callable[[str], Command]:
    def build(arg: str) -> Command:
        if arg:
            raise CommandParseError(f"Unexpected argument: {arg}")
        return factory()

    return build


_VERBS: Dict[str, Callable[[str], Command]] = {
    "FIRE": _fire,
    "F": _fire,
    "BOARD": _bare(BoardCommand),
    "STATUS": _bare(StatusCommand),
    "HELP": _bare(HelpCommand),
    "?": _bare(HelpCommand),
    "QUIT": _bare(QuitCommand),
    "EXIT": _bare(QuitCommand),
}


def parse_command(line: str) -> Command:
    if line is None:
        raise CommandParseError("No command to parse")
    raw = line.strip()
    if not raw:
        raise CommandParseError("Empty command")
    verb, _, arg = raw.partition(" ")
    handler = _VERBS.get(verb.upper())
    if handler is None:
        raise CommandParseError(f"Unknown command: {raw}")
    return handler(arg.strip())
