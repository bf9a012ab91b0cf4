from datetime import date, timedelta


def new_game(**overrides):
    body = {
        "homeTeam": "Bar",
        "awayTeam": "Foo",
        "gameDate": "2025-10-05",
        "gameTime": "18:30",
        "division": "Gold",
        "season": "Fall",
        "year": 2025,
    }
    body.update(overrides)
    return body


def test_create_game(client):
    resp = client.post("/api/games", json=new_game())
    assert resp.status_code == 201

    payload = resp.json()
    assert payload["success"] is True
    game = payload["data"]
    assert game["id"].startswith("Fall_2025_Bar_vs_Foo_")
    assert game["status"] == "scheduled"
    assert payload["meta"]["requestId"]


def test_create_game_validation_error(client):
    resp = client.post("/api/games", json=new_game(division="Diamond", gameTime="7pm"))
    assert resp.status_code == 400

    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "gameTime has invalid format" in error["details"]["errors"]


def test_create_game_same_teams_rejected(client):
    resp = client.post("/api/games", json=new_game(awayTeam="bar"))
    assert resp.status_code == 400


def test_duplicate_game_conflicts(client):
    first = client.post("/api/games", json=new_game())
    assert first.status_code == 201

    resp = client.post("/api/games", json=new_game())
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "CONFLICT"
    assert error["details"]["existingGameId"] == first.json()["data"]["id"]


def test_list_games_by_division(client, make_game):
    make_game(id="g1", division="Gold")
    make_game(id="g2", division="Silver", gameTime="20:00")

    resp = client.get("/api/games", params={"division": "gold"})
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"].startswith("no-store")

    payload = resp.json()
    assert [g["id"] for g in payload["data"]] == ["g1"]
    assert payload["meta"]["count"] == 1
    assert payload["meta"]["division"] == "gold"

    everything = client.get("/api/games").json()
    assert {g["id"] for g in everything["data"]} == {"g1", "g2"}


def test_list_games_backfills_unknown_division(client, make_game, make_roster):
    make_game(division="Unknown")
    make_roster("Bar", division="Bronze")

    games = client.get("/api/games").json()["data"]
    assert games[0]["division"] == "Bronze"


def test_list_upcoming_games(client, make_game):
    today = date.today()
    make_game(id="past", gameDate=(today - timedelta(days=3)).isoformat())
    make_game(id="soon", gameDate=(today + timedelta(days=2)).isoformat())
    make_game(id="later", gameDate=(today + timedelta(days=10)).isoformat())

    payload = client.get("/api/games", params={"includeUpcoming": "true"}).json()
    assert [g["id"] for g in payload["data"]] == ["soon"]
    assert payload["meta"]["dateFrom"] == today.isoformat()


def test_get_update_delete_game(client, make_game):
    make_game()

    assert client.get("/api/games/g1").json()["data"]["homeTeam"] == "Bar"

    resp = client.put("/api/games/g1", json={"rink": "North"})
    assert resp.status_code == 200
    assert resp.json()["data"]["rink"] == "North"

    bad = client.put("/api/games/g1", json={"season": "Monsoon"})
    assert bad.status_code == 400

    assert client.delete("/api/games/g1").status_code == 200
    assert client.get("/api/games/g1").status_code == 404


def test_missing_game_routes_404(client):
    assert client.get("/api/games/nope").json()["error"]["code"] == "NOT_FOUND"
    assert client.put("/api/games/nope", json={"rink": "North"}).status_code == 404
    assert client.delete("/api/games/nope").status_code == 404


def record_goal(client, team, player="Alex Stone", **extra):
    body = {"gameId": "g1", "team": team, "player": player, "period": 1, "time": "12:30"}
    body.update(extra)
    resp = client.post("/api/goals", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_submit_game(client, make_game):
    make_game()
    record_goal(client, "Foo")
    record_goal(client, "Bar")
    record_goal(client, "Foo")
    client.post(
        "/api/penalties",
        json={
            "gameId": "g1",
            "team": "Bar",
            "player": "Sam Reed",
            "period": 2,
            "time": "05:00",
            "penaltyType": "Tripping",
            "penaltyLength": 2,
        },
    )

    resp = client.post("/api/games/submit", json={"gameId": "g1", "submittedBy": "Coach"})
    assert resp.status_code == 201
    record = resp.json()["data"]["submissionRecord"]
    assert record["eventType"] == "game-submission"
    assert record["finalScore"] == {"Bar": 1, "Foo": 2}
    assert record["totalGoals"] == 3
    assert record["gameSummary"] == {
        "goalsByTeam": {"Foo": 2, "Bar": 1},
        "penaltiesByTeam": {"Bar": 1},
        "totalPIM": 2,
    }

    game = client.get("/api/games/g1").json()["data"]
    assert game["status"] == "submitted"
    assert game["awayTeamGoals"] == 2

    goals = client.get("/api/goals", params={"gameId": "g1"}).json()["data"]
    assert {g["gameStatus"] for g in goals} == {"submitted"}

    submitted = client.get("/api/games/submitted").json()["data"]
    assert [g["id"] for g in submitted] == ["g1"]

    again = client.post("/api/games/submit", json={"gameId": "g1"})
    assert again.status_code == 409


def test_submit_unknown_game(client):
    resp = client.post("/api/games/submit", json={"gameId": "nope"})
    assert resp.status_code == 404


def test_submit_requires_game_id(client):
    resp = client.post("/api/games/submit", json={})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_reset_game(client, make_game):
    make_game()
    record_goal(client, "Foo")
    client.post("/api/shots-on-goal", json={"gameId": "g1", "team": "Foo"})
    client.post("/api/games/submit", json={"gameId": "g1"})

    resp = client.delete("/api/games/g1/reset")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["removed"]["goals"] == 1
    assert data["removed"]["records"] == 1
    assert data["removed"]["shots"] == 1
    assert data["game"]["status"] == "scheduled"
    assert data["game"]["awayTeamGoals"] == 0

    assert client.get("/api/goals", params={"gameId": "g1"}).json()["data"] == []
    assert client.get("/api/games/submitted").json()["data"] == []


def test_ot_shootout_completes_game(client, make_game):
    make_game()
    record_goal(client, "Foo")
    record_goal(client, "Bar")

    resp = client.post(
        "/api/otshootout",
        json={"gameId": "g1", "winner": "Foo", "gameType": "Shootout"},
    )
    assert resp.status_code == 201
    record = resp.json()["data"]["otShootoutRecord"]
    assert record["gameType"] == "shootout"
    assert record["gameStatus"] == "completed"
    assert record["gameSummary"]["totalGoals"] == 2

    assert client.get("/api/games/g1").json()["data"]["status"] == "completed"
    goals = client.get("/api/goals", params={"gameId": "g1"}).json()["data"]
    assert {g["gameStatus"] for g in goals} == {"completed"}

    listed = client.get("/api/otshootout", params={"gameId": "g1"}).json()["data"]
    assert [r["winner"] for r in listed] == ["Foo"]


def test_ot_shootout_rejects_unknown_winner_and_type(client, make_game):
    make_game()
    assert client.post(
        "/api/otshootout", json={"gameId": "g1", "winner": "Baz", "gameType": "overtime"}
    ).status_code == 400
    assert client.post(
        "/api/otshootout", json={"gameId": "g1", "winner": "Foo", "gameType": "coin toss"}
    ).status_code == 400
