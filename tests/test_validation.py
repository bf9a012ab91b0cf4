import pytest

from scorekeeper.validation import (
    FieldSpec,
    sanitize_input,
    schema_name_for,
    validate,
    validate_field,
)


def valid_game(**overrides):
    game = {
        "homeTeam": "Noah's Arknemesis",
        "awayTeam": "Net, Sticks & Chill",
        "gameDate": "2025-10-05",
        "gameTime": "18:30",
        "division": "Gold",
        "season": "Fall",
        "year": 2025,
    }
    game.update(overrides)
    return game


def test_valid_game_has_no_errors():
    result = validate(valid_game(), "game")
    assert result.is_valid
    assert result.errors == []


def test_missing_required_fields_are_errors():
    game = valid_game()
    del game["homeTeam"]
    game["gameDate"] = ""

    result = validate(game, "game")

    assert not result.is_valid
    assert "homeTeam is required" in result.errors
    assert "gameDate is required" in result.errors


def test_unknown_fields_only_warn():
    result = validate(valid_game(referee="Pat", _rid="x", id="g1", createdAt="2025-01-01"), "game")
    assert result.is_valid
    assert result.warnings == ["Unexpected field: referee"]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"division": "Diamond"}, "division must be one of: Bronze, Silver, Gold, Platinum, Unknown"),
        ({"gameDate": "10/05/2025"}, "gameDate has invalid format"),
        ({"year": 2019}, "year must be at least 2020"),
        ({"year": "2025"}, "year must be a number"),
        ({"homeTeam": "X"}, "homeTeam must be at least 2 characters long"),
        ({"awayTeam": "<script>"}, "awayTeam has invalid format"),
    ],
)
def test_field_violations(overrides, message):
    result = validate(valid_game(**overrides), "game")
    assert message in result.errors


def test_booleans_are_not_numbers():
    assert validate_field("year", True, FieldSpec("number")) == ["year must be a number"]


def test_array_items_are_validated_with_paths():
    roster = {
        "teamName": "Bar",
        "division": "Gold",
        "season": "Fall",
        "year": 2025,
        "players": [
            {"name": "Alex Stone", "position": "Forward"},
            {"name": "A", "position": "Forward"},
            {"name": "Sam Reed", "position": "Winger"},
        ],
    }
    result = validate(roster, "roster")

    assert "players[1].name must be at least 2 characters long" in result.errors
    assert "players[2].position must be one of: Forward, Defense, Goalie, Player" in result.errors


def test_array_item_counts():
    roster = {"teamName": "Bar", "division": "Gold", "season": "Fall", "year": 2025, "players": []}
    result = validate(roster, "roster")
    assert "players must have at least 1 items" in result.errors


def test_unknown_schema_raises():
    with pytest.raises(KeyError):
        validate({}, "scoreboard")


def test_to_dict_shape():
    result = validate({}, "shots")
    payload = result.to_dict()
    assert payload["isValid"] is False
    assert "gameId is required" in payload["errors"]
    assert payload["warnings"] == []


def test_games_container_schema_follows_event_type():
    assert schema_name_for("games", {"homeTeam": "Bar"}) == "game"
    assert schema_name_for("games", {"eventType": "game-submission"}) == "game-submission"
    assert schema_name_for("games", {"eventType": "game-completion"}) == "game-completion"
    assert schema_name_for("goals") == "goal"
    assert schema_name_for("player-stats") is None


def test_sanitize_strips_markup_and_script_vectors():
    dirty = {
        "name": "  <b>Alex</b>  ",
        "link": "JavaScript:alert(1)",
        "bio": 'nice onClick=steal() player',
        "nested": [{"note": "<i>x</i>"}, 7, None, True],
        "count": 3,
    }
    clean = sanitize_input(dirty)

    assert clean["name"] == "bAlex/b"
    assert clean["link"] == "alert(1)"
    assert clean["bio"] == "nice steal() player"
    assert clean["nested"] == [{"note": "ix/i"}, 7, None, True]
    assert clean["count"] == 3
