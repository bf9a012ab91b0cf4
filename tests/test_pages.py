def test_game_selection_page_groups_by_division(client, make_game):
    make_game(id="g1", division="Gold")
    make_game(id="g2", division="Silver", homeTeam="Baz", awayTeam="Qux")

    resp = client.get("/")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert 'data-division="Gold"' in resp.text
    assert 'data-division="Silver"' in resp.text
    assert "2 games" in resp.text


def test_game_selection_page_filters(client, make_game):
    make_game(id="g1", division="Gold")
    make_game(id="g2", division="Silver", homeTeam="Baz", awayTeam="Qux")

    resp = client.get("/", params={"division": "Silver"})
    assert 'data-game-id="g2"' in resp.text
    assert 'data-game-id="g1"' not in resp.text


def test_empty_game_selection_page(client):
    assert "No games scheduled." in client.get("/").text


def test_scoring_page(client, make_game, make_roster):
    make_game()
    make_roster("Bar")
    make_roster("Foo")

    resp = client.get("/games/g1/score")
    assert resp.status_code == 200
    assert "Foo at Bar" in resp.text
    assert 'id="roster-notice"' not in resp.text


def test_scoring_page_without_rosters_shows_notice(client, make_game):
    make_game()
    resp = client.get("/games/g1/score")
    assert resp.status_code == 200
    assert 'id="roster-notice"' in resp.text


def test_scoring_page_unknown_game(client):
    resp = client.get("/games/nope/score")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
