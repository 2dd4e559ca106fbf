"""Both store backends must behave identically."""

import json
import os
import threading
import time

import pytest

from salvo.errors import StaleSessionError
from salvo.session import GameSession, Status
from salvo.store import (
    DuplicateRoomCode,
    InMemorySessionStore,
    JsonFileSessionStore,
    build_store,
)


@pytest.fixture(params=["memory", "json"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemorySessionStore()
    return JsonFileSessionStore(tmp_path / "sessions")


def _session(sid="s1", code="ABC123"):
    return GameSession.create(sid, code, "p1", "Alice", 1000.0)


def test_insert_and_find(backend):
    backend.insert(_session())
    found = backend.find_session("s1")
    assert found.room_code == "ABC123"
    assert found.status is Status.WAITING
    assert backend.find_by_code("ABC123").session_id == "s1"
    assert backend.code_exists("ABC123")
    assert len(backend) == 1


def test_missing_lookups(backend):
    assert backend.find_session("nope") is None
    assert backend.find_by_code("NOPE00") is None
    assert not backend.code_exists("NOPE00")


def test_duplicate_room_code_rejected(backend):
    backend.insert(_session("s1", "ABC123"))
    with pytest.raises(DuplicateRoomCode):
        backend.insert(_session("s2", "ABC123"))
    assert backend.find_session("s2") is None
    assert len(backend) == 1


def test_loaded_copies_are_independent(backend):
    backend.insert(_session())
    copy = backend.find_session("s1")
    copy.join("p2", "Bob", 1001.0)
    assert backend.find_session("s1").status is Status.WAITING


def test_save_bumps_version(backend):
    backend.insert(_session())
    s = backend.find_session("s1")
    s.join("p2", "Bob", 1001.0)
    backend.save(s)
    stored = backend.find_session("s1")
    assert stored.version == 1
    assert stored.status is Status.SETUP


def test_stale_write_refused(backend):
    backend.insert(_session())
    first = backend.find_session("s1")
    second = backend.find_session("s1")
    first.join("p2", "Bob", 1001.0)
    backend.save(first)
    second.join("p3", "Carol", 1002.0)
    with pytest.raises(StaleSessionError):
        backend.save(second)
    assert backend.find_session("s1").players[1].name == "Bob"


def test_save_after_delete_refused(backend):
    backend.insert(_session())
    s = backend.find_session("s1")
    backend.delete("s1")
    with pytest.raises(StaleSessionError):
        backend.save(s)


def test_delete_releases_code(backend):
    backend.insert(_session("s1", "ABC123"))
    assert backend.delete("s1") is True
    assert backend.delete("s1") is False
    assert not backend.code_exists("ABC123")
    backend.insert(_session("s2", "ABC123"))
    assert backend.find_by_code("ABC123").session_id == "s2"


def test_sessions_iterates_everything(backend):
    for i in range(3):
        backend.insert(_session(f"s{i}", f"CODE0{i}"))
    assert sorted(s.session_id for s in backend.sessions()) == ["s0", "s1", "s2"]


def test_json_store_layout(tmp_path):
    store = JsonFileSessionStore(tmp_path)
    store.insert(_session())
    doc = json.loads((tmp_path / "s1.json").read_text())
    assert doc["roomCode"] == "ABC123"
    assert (tmp_path / "codes" / "ABC123").read_text() == "s1"
    assert not list(tmp_path.glob(".tmp-*"))


def test_json_store_survives_restart(tmp_path):
    JsonFileSessionStore(tmp_path).insert(_session())
    reopened = JsonFileSessionStore(tmp_path)
    assert reopened.find_by_code("ABC123").players[0].name == "Alice"
    with pytest.raises(DuplicateRoomCode):
        reopened.insert(_session("s2", "ABC123"))


def test_build_store(tmp_path):
    assert isinstance(build_store("memory"), InMemorySessionStore)
    assert isinstance(build_store("json", tmp_path), JsonFileSessionStore)
    with pytest.raises(ValueError):
        build_store("json")
    with pytest.raises(ValueError):
        build_store("redis")


def test_json_store_refuses_keys_outside_its_directory(tmp_path):
    outside = _session("outside", "ZZZZZZ")
    (tmp_path / "outside.json").write_text(json.dumps(outside.to_dict()))
    store = JsonFileSessionStore(tmp_path / "games")

    with pytest.raises(ValueError):
        store.find_session("../outside")
    with pytest.raises(ValueError):
        store.find_by_code("../../outside.json")
    with pytest.raises(ValueError):
        store.insert(_session("../outside", "ABC123"))
    assert json.loads((tmp_path / "outside.json").read_text())["version"] == 0


@pytest.mark.timeout(10)
def test_json_lock_is_shared_between_store_instances(tmp_path):
    first = JsonFileSessionStore(tmp_path)
    second = JsonFileSessionStore(tmp_path)
    entered = threading.Event()

    def contender():
        with second.lock("s1"):
            entered.set()

    with first.lock("s1"):
        worker = threading.Thread(target=contender)
        worker.start()
        assert not entered.wait(0.2)
    assert entered.wait(5)
    worker.join(timeout=5)
    assert not list((tmp_path / "locks").iterdir())


def test_json_lock_times_out(tmp_path):
    store = JsonFileSessionStore(tmp_path, lock_timeout=0.05)
    (tmp_path / "locks" / "s1.lock").write_text("12345")
    with pytest.raises(TimeoutError):
        with store.lock("s1"):
            pass


def test_json_lock_breaks_stale_lock_file(tmp_path):
    store = JsonFileSessionStore(tmp_path, lock_timeout=0.05, lock_stale=30.0)
    leftover = tmp_path / "locks" / "s1.lock"
    leftover.write_text("12345")
    old = time.time() - 60
    os.utime(leftover, (old, old))
    with store.lock("s1"):
        assert leftover.exists()
    assert not leftover.exists()
