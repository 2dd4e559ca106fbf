"""HTTP surface, driven through Flask's test client."""

import pytest

from conftest import FLEET_COLUMNS, FLEET_ROWS, payload, ship_cells, water_cells


def _create(http, name="Alice"):
    resp = http.post("/api/game/create", json={"playerName": name})
    assert resp.status_code == 201
    return resp.get_json()


def _join(http, code, name="Bob"):
    resp = http.post("/api/game/join", json={"gameCode": code, "playerName": name})
    assert resp.status_code == 200
    return resp.get_json()


def _attack(http, seat, row, col):
    return http.post(
        "/api/game/attack",
        json={"gameId": seat["sessionId"], "playerId": seat["playerId"], "row": row, "col": col},
    )


def _state(http, seat):
    return http.get(f"/api/game/state/{seat['sessionId']}/{seat['playerId']}")


@pytest.fixture
def ready_pair(http):
    p1 = _create(http)
    p2 = _join(http, p1["roomCode"])
    for seat, fleet in ((p1, FLEET_ROWS), (p2, FLEET_COLUMNS)):
        resp = http.post(
            "/api/game/place-ships",
            json={"gameId": seat["sessionId"], "playerId": seat["playerId"], "ships": payload(fleet)},
        )
        assert resp.status_code == 200
    return p1, p2


def test_health(http):
    resp = http.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "status": "ok"}


def test_create_and_join_shapes(http):
    p1 = _create(http)
    assert p1["success"] is True
    assert set(p1) == {"success", "roomCode", "sessionId", "playerId", "playerNumber"}
    p2 = _join(http, p1["roomCode"].lower())
    assert p2["playerNumber"] == 2
    assert p2["opponentName"] == "Alice"

    state = _state(http, p1).get_json()
    assert state["status"] == "setup"
    assert state["opponentName"] == "Bob"
    assert state["gameCode"] == p1["roomCode"]


def test_full_game_over_http(http, ready_pair):
    p1, p2 = ready_pair
    assert _state(http, p1).get_json()["isYourTurn"] is True

    miss = _attack(http, p1, 2, 3).get_json()
    assert miss["result"] == "miss" and miss["nextTurn"] == 2

    targets = ship_cells(FLEET_COLUMNS)
    decoys = [c for c in water_cells(FLEET_ROWS)]
    final = None
    for i, cell in enumerate(targets):
        _attack(http, p2, *decoys[i])
        final = _attack(http, p1, *cell).get_json()
    assert final["result"] == "sunk"
    assert final["gameOver"] is True
    assert final["winnerPlayerNumber"] == 1

    loser = _state(http, p2).get_json()
    assert loser["status"] == "finished"
    assert loser["youWon"] is False
    assert loser["winner"] == 1
    assert len(loser["opponentSunkShips"]) == 0
    winner = _state(http, p1).get_json()
    assert winner["youWon"] is True
    assert len(winner["opponentSunkShips"]) == 5
    assert winner["statistics"]["yourHits"] == len(targets)


def test_state_never_leaks_opponent_fleet(http, ready_pair):
    p1, _ = ready_pair
    state = _state(http, p1).get_json()
    own = {tuple(cell) for ship in state["ownShips"] for cell in ship["cells"]}
    assert own == set(ship_cells(FLEET_ROWS))
    assert "opponentShips" not in state
    assert state["opponentSunkShips"] == []


@pytest.mark.parametrize(
    "path, body",
    [
        ("/api/game/create", {}),
        ("/api/game/create", {"playerName": "   "}),
        ("/api/game/join", {"playerName": "Bob"}),
    ],
)
def test_validation_errors(http, path, body):
    resp = http.post(path, json=body)
    assert resp.status_code == 400
    data = resp.get_json()
    assert data["success"] is False
    assert data["kind"] == "validation"
    assert data["error"]


def test_non_json_body(http):
    resp = http.post("/api/game/create", data="playerName=Alice", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["kind"] == "validation"


def test_unknown_room_is_404(http):
    resp = http.post("/api/game/join", json={"gameCode": "QQQQQQ", "playerName": "Bob"})
    assert resp.status_code == 404
    assert resp.get_json()["kind"] == "not_found"


def test_unknown_player_is_404(http, ready_pair):
    p1, _ = ready_pair
    resp = http.get(f"/api/game/state/{p1['sessionId']}/intruder")
    assert resp.status_code == 404


def test_full_room_is_409(http):
    p1 = _create(http)
    _join(http, p1["roomCode"])
    resp = http.post("/api/game/join", json={"gameCode": p1["roomCode"], "playerName": "Carol"})
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "capacity"


def test_out_of_turn_is_409(http, ready_pair):
    _, p2 = ready_pair
    resp = _attack(http, p2, 0, 0)
    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "state_conflict"


def test_out_of_bounds_is_400(http, ready_pair):
    p1, _ = ready_pair
    resp = _attack(http, p1, 10, 0)
    assert resp.status_code == 400
    resp = _attack(http, p1, "1", 0)
    assert resp.status_code == 400


def test_overlapping_fleet_is_400(http):
    p1 = _create(http)
    _join(http, p1["roomCode"])
    ships = payload(FLEET_ROWS)
    ships[1] = {**ships[1], "row": 0, "col": 1}
    resp = http.post(
        "/api/game/place-ships",
        json={"gameId": p1["sessionId"], "playerId": p1["playerId"], "ships": ships},
    )
    assert resp.status_code == 400
    assert _state(http, p1).get_json()["yourReady"] is False


def test_unknown_route_is_json_404(http):
    resp = http.get("/api/game/nowhere")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "kind": "not_found", "error": resp.get_json()["error"]}


def test_unexpected_errors_become_500(app, http, monkeypatch):
    gateway = app.extensions["salvo.gateway"]

    def explode(*_a, **_kw):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(gateway, "get_state", explode)
    app.config.update(PROPAGATE_EXCEPTIONS=False)
    resp = http.get("/api/game/state/x/y")
    assert resp.status_code == 500
    assert resp.get_json()["kind"] == "internal"
    assert "kaboom" not in resp.get_json()["error"]
