import logging

from salvo.events import Category, Event, EventBus
from salvo.router import EventLogger


def _messages(caplog):
    return [r.getMessage() for r in caplog.records if r.name == "salvo.router"]


def test_event_logger_renders_each_category(caplog):
    log = EventLogger()
    with caplog.at_level(logging.INFO, logger="salvo.router"):
        log(Event(Category.LOBBY, "created", {"code": "ABC123", "name": "Alice"}))
        log(Event(Category.LOBBY, "joined", {"code": "ABC123", "name": "Bob"}))
        log(Event(Category.TURN, "shot", {"code": "ABC123", "player": 1, "coord": "C4", "result": "sunk", "sunk": "destroyer"}))
        log(Event(Category.TURN, "end", {"code": "ABC123", "winner": 2, "turns": 40}))
        log(Event(Category.SYSTEM, "reaped", {"codes": ["AAAAAA", "BBBBBB"]}))

    msgs = _messages(caplog)
    assert msgs[0] == "Game created: ABC123 by Alice"
    assert msgs[1] == "Bob joined game ABC123"
    assert "attacked C4" in msgs[2] and "sunk destroyer" in msgs[2]
    assert "player 2 wins after 40 turns" in msgs[3]
    assert msgs[4] == "Reaped 2 stale waiting session(s): AAAAAA, BBBBBB"


def test_unknown_type_goes_to_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="salvo.router"):
        EventLogger()(Event(Category.TURN, "mystery"))
    assert [r.levelno for r in caplog.records if r.name == "salvo.router"] == [logging.DEBUG]


def test_custom_logger_is_used(caplog):
    target = logging.getLogger("salvo.test.events")
    with caplog.at_level(logging.INFO, logger="salvo.test.events"):
        EventLogger(target)(Event(Category.LOBBY, "created", {"code": "X", "name": "Y"}))
    assert [r.name for r in caplog.records] == ["salvo.test.events"]


def test_bus_survives_failing_subscriber(caplog):
    bus = EventBus()
    seen = []

    def boom(_ev):
        raise RuntimeError("nope")

    bus.subscribe(boom)
    bus.subscribe(seen.append)
    ev = Event(Category.SYSTEM, "reaped", {"codes": []})
    with caplog.at_level(logging.ERROR, logger="salvo.events"):
        bus.emit(ev)
    assert seen == [ev]
    assert any("failed" in r.getMessage() for r in caplog.records)


def test_unsubscribe():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    bus.unsubscribe(seen.append)
    bus.unsubscribe(seen.append)
    bus.emit(Event(Category.LOBBY, "created"))
    assert seen == []
