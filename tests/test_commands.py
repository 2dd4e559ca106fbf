import pytest

from salvo.commands import (
    parse_command,
    HELP_TEXT,
    BoardCommand,
    HelpCommand,
    StatusCommand,
    FireCommand,
    QuitCommand,
    CommandParseError,
)
from salvo.coord_utils import coord_to_rowcol, format_coord


def test_fire_valid_A1():
    cmd = parse_command("FIRE A1")
    assert isinstance(cmd, FireCommand)
    assert (cmd.row, cmd.col) == (0, 0)


def test_fire_valid_J10():
    cmd = parse_command("fire j10")
    assert isinstance(cmd, FireCommand)
    assert (cmd.row, cmd.col) == (9, 9)


def test_fire_whitespace():
    cmd = parse_command("   FiRe    c7  ")
    assert (cmd.row, cmd.col) == (2, 6)


@pytest.mark.parametrize("line", ["FIRE", "FIRE   ", "FIRE K1", "FIRE A0", "FIRE A11", "FIRE 1A"])
def test_fire_invalid(line):
    with pytest.raises(CommandParseError):
        parse_command(line)


def test_board_and_quit():
    assert isinstance(parse_command("board"), BoardCommand)
    assert isinstance(parse_command(" QUIT "), QuitCommand)


@pytest.mark.parametrize("line", ["", "   ", "CHAT hi", "QUIT now", "BOARD 1"])
def test_unknown_or_empty(line):
    with pytest.raises(CommandParseError):
        parse_command(line)


def test_none_line():
    with pytest.raises(CommandParseError):
        parse_command(None)


def test_coordinate_helpers_agree():
    for row in range(10):
        for col in range(10):
            assert coord_to_rowcol(format_coord(row, col)) == (row, col)


def test_coordinate_helper_rejects_garbage():
    with pytest.raises(ValueError):
        coord_to_rowcol("Z9")


def test_numeric_pair_and_alias():
    assert parse_command("FIRE 2,6") == FireCommand(2, 6)
    assert parse_command("f 9 9") == FireCommand(9, 9)


@pytest.mark.parametrize("line", ["FIRE 10,0", "FIRE 0,10", "FIRE -1,2"])
def test_numeric_pair_off_board(line):
    with pytest.raises(CommandParseError):
        parse_command(line)


def test_status_and_help():
    assert isinstance(parse_command("status"), StatusCommand)
    assert isinstance(parse_command("?"), HelpCommand)
    assert "FIRE" in HELP_TEXT and "STATUS" in HELP_TEXT
