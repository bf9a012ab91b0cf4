import pytest

from scorekeeper.errors import AppError, NotFoundError, ValidationError
from scorekeeper.store import QuerySpec


def test_create_validates_and_stamps_timestamps(db):
    game = db.create(
        "games",
        {
            "id": "g1",
            "homeTeam": "Bar",
            "awayTeam": "Foo",
            "gameDate": "2025-10-05",
            "gameTime": "18:30",
            "division": "Gold",
            "season": "Fall",
            "year": 2025,
        },
    )
    assert game["createdAt"] == game["updatedAt"]
    assert db.get_by_id("games", "g1")["homeTeam"] == "Bar"


def test_create_rejects_invalid_documents_without_writing(db):
    with pytest.raises(ValidationError) as exc:
        db.create("games", {"id": "bad", "homeTeam": "Bar"})

    assert "awayTeam is required" in exc.value.details["errors"]
    assert db.get_by_id("games", "bad") is None


def test_get_by_id_missing_returns_none(db):
    assert db.get_by_id("games", "missing") is None


def test_update_missing_raises_and_writes_nothing(db):
    with pytest.raises(NotFoundError):
        db.update("games", "missing", {"status": "completed"})
    assert db.query("games") == []


def test_update_merges_and_revalidates(db, make_game):
    make_game()
    updated = db.update("games", "g1", {"venue": "Rink 2"})
    assert updated["venue"] == "Rink 2"
    assert updated["homeTeam"] == "Bar"
    assert "updatedAt" in updated

    with pytest.raises(ValidationError):
        db.update("games", "g1", {"division": "Diamond"})
    assert db.get_by_id("games", "g1")["division"] == "Gold"


def test_division_filter_is_case_insensitive(db, make_game):
    make_game(id="g1", division="Gold")
    make_game(id="g2", division="Silver", gameTime="19:30")
    make_game(id="g3", division="gold", gameTime="20:30")

    gold = db.get_games({"division": "GOLD"})
    assert {g["id"] for g in gold} == {"g1", "g3"}

    everything = db.get_games({"division": "all"})
    assert {g["id"] for g in everything} == {"g1", "g2", "g3"}


def test_games_exclude_event_records_and_sort_by_date(db, make_game, store):
    make_game(id="late", gameDate="2025-10-09")
    make_game(id="early", gameDate="2025-10-01")
    store.create("games", {"id": "early-submission-1", "gameId": "early", "eventType": "game-submission"})

    games = db.get_games()
    assert [g["id"] for g in games] == ["early", "late"]

    by_id = db.get_games({"gameId": "early"})
    assert [g["id"] for g in by_id] == ["early"]


def test_date_range_is_inclusive(db, make_game):
    for day in ("01", "02", "03", "04"):
        make_game(id=f"g{day}", gameDate=f"2025-10-{day}")
    games = db.get_games({"dateFrom": "2025-10-02", "dateTo": "2025-10-03"})
    assert [g["id"] for g in games] == ["g02", "g03"]


def test_writes_invalidate_cached_reads(db, make_game):
    make_game(id="g1")
    assert len(db.get_games()) == 1

    db.create(
        "games",
        {
            "id": "g2",
            "homeTeam": "Baz",
            "awayTeam": "Qux",
            "gameDate": "2025-10-06",
            "gameTime": "18:30",
            "division": "Gold",
            "season": "Fall",
            "year": 2025,
        },
    )
    assert len(db.get_games()) == 2

    db.delete("games", "g2")
    assert len(db.get_games()) == 1


def test_non_empty_results_are_served_from_cache(db, make_game, store):
    make_game(id="g1")
    assert len(db.get_games()) == 1

    # bypasses the facade, so the cached result stays in place
    store.create("games", {"id": "g2", "gameDate": "2025-10-06"})
    assert len(db.get_games()) == 1
    assert len(db.get_games({"gameId": "g2"})) == 1


def test_rosters_for_game_returns_both_teams(db, make_game, make_roster):
    make_game()
    make_roster("Bar")
    make_roster("Foo")
    make_roster("Baz")

    rosters = db.get_rosters({"gameId": "g1"})
    assert sorted(r["teamName"] for r in rosters) == ["Bar", "Foo"]


def test_rosters_for_game_fail_when_a_team_is_missing(db, make_game, make_roster):
    make_game()
    make_roster("Bar")

    with pytest.raises(NotFoundError) as exc:
        db.get_rosters({"gameId": "g1"})
    assert exc.value.details["missingTeams"] == ["Foo"]


def test_rosters_for_unknown_game(db):
    with pytest.raises(NotFoundError):
        db.get_rosters({"gameId": "nope"})


def test_rosters_for_game_without_teams(db, store):
    store.create("games", {"id": "g1", "homeTeam": "Bar"})
    with pytest.raises(AppError) as exc:
        db.get_rosters({"gameId": "g1"})
    assert exc.value.status_code == 422
    assert exc.value.code == "GAME_DATA_INCOMPLETE"


def test_roster_filters(db, make_roster):
    make_roster("Bar", division="Gold")
    make_roster("Foo", id="foo_Fall_2025", division="Silver")
    assert [r["teamName"] for r in db.get_rosters({"division": "silver"})] == ["Foo"]
    assert [r["teamName"] for r in db.get_rosters({"teamName": "Bar", "year": "2025"})] == ["Bar"]
    assert len(db.get_rosters()) == 2


def test_team_division_lookup(db, make_roster):
    make_roster("Bar", division="Platinum")
    assert db.get_team_division("bar") == "Platinum"
    assert db.get_team_division("Bar", season="Spring") == "Unknown"
    assert db.get_team_division("Nobody") == "Unknown"


def test_team_division_swallows_store_errors(db, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(db.store, "query", boom)
    assert db.get_team_division("Bar") == "Unknown"


def test_backfill_divisions_uses_home_then_away(db, make_roster):
    make_roster("Foo", division="Silver")
    games = [{"id": "g1", "homeTeam": "Bar", "awayTeam": "Foo", "division": "Unknown"}]

    enriched = db.backfill_divisions(games)
    assert enriched[0]["division"] == "Silver"
    assert games[0]["division"] == "Unknown"


def test_game_events_merge_and_sort(db, store):
    store.create("goals", {"id": "goal-1", "gameId": "g1", "recordedAt": "2025-10-05T18:40:00+00:00"})
    store.create("penalties", {"id": "pen-1", "gameId": "g1", "recordedAt": "2025-10-05T18:45:00+00:00"})
    store.create("goals", {"id": "goal-2", "gameId": "g1"})
    store.create("goals", {"id": "other", "gameId": "g2", "recordedAt": "2025-10-05T19:00:00+00:00"})

    events = db.get_game_events({"gameId": "g1"})
    assert [e["id"] for e in events][:2] == ["goal-2", "pen-1"]
    assert [e["eventType"] for e in events] == ["goal", "penalty", "goal"]
    assert "T" in events[0]["recordedAt"]

    goals_only = db.get_game_events({"gameId": "g1", "eventType": "goal"})
    assert {e["id"] for e in goals_only} == {"goal-1", "goal-2"}


def test_submitted_games_join_their_game(db, make_game, store):
    make_game()
    store.create(
        "games",
        {"id": "g1-submission-1", "gameId": "g1", "eventType": "game-submission", "totalGoals": 3},
    )
    store.create("games", {"id": "ghost-submission", "gameId": "ghost", "eventType": "game-submission"})

    submitted = db.get_submitted_games()
    assert len(submitted) == 1
    assert submitted[0]["id"] == "g1"
    assert submitted[0]["gameStatus"] == "submitted"
    assert submitted[0]["totalGoals"] == 3


def test_find_duplicate_game(db, make_game):
    make_game()
    assert db.find_duplicate_game("Bar", "Foo", "2025-10-05", "18:30")["id"] == "g1"
    assert db.find_duplicate_game("Bar", "Foo", "2025-10-05", "20:00") is None


def test_upsert_and_query_passthrough(db):
    db.upsert("attendance", {"id": "g1-attendance", "gameId": "g1"})
    assert len(db.query("attendance", QuerySpec(filter={"gameId": "g1"}))) == 1


def test_update_invalidates_cached_reads(db, make_game):
    make_game(division="Gold")
    assert [g["id"] for g in db.get_games({"division": "gold"})] == ["g1"]

    db.update("games", "g1", {"division": "Silver"})
    assert db.get_games({"division": "gold"}) == []
    assert db.get_games({"division": "all"})[0]["division"] == "Silver"


def test_write_during_read_does_not_cache_the_old_result(db, store, make_game, monkeypatch):
    make_game(division="Gold")
    read_from_store = store.query
    writes = []

    def read_then_concurrent_write(container, spec=None):
        results = read_from_store(container, spec)
        if container == "games" and not writes:
            writes.append(db.update("games", "g1", {"division": "Silver"}))
        return results

    monkeypatch.setattr(store, "query", read_then_concurrent_write)

    assert db.get_games({"division": "all"})[0]["division"] == "Gold"
    assert db.get_games({"division": "all"})[0]["division"] == "Silver"


def test_unfiltered_game_lists_are_cached_for_five_minutes(db, store, make_game, clock):
    make_game(id="g1")
    assert len(db.get_games()) == 1
    store.create("games", {"id": "g2", "gameDate": "2025-10-06"})

    clock.advance(299)
    assert len(db.get_games()) == 1
    clock.advance(1)
    assert len(db.get_games()) == 2


def test_date_filtered_game_lists_are_cached_for_two_minutes(db, store, make_game, clock):
    make_game(id="g1", gameDate="2025-10-05")
    window = {"dateFrom": "2025-10-01", "dateTo": "2025-10-31"}
    assert len(db.get_games(window)) == 1
    store.create("games", {"id": "g2", "gameDate": "2025-10-06"})

    clock.advance(119)
    assert len(db.get_games(window)) == 1
    clock.advance(1)
    assert len(db.get_games(window)) == 2


def attendance_sheet(game_id, present):
    return {
        "id": f"{game_id}-attendance",
        "gameId": game_id,
        "attendance": [
            {"teamName": team, "playersPresent": players, "presentCount": len(players)}
            for team, players in present.items()
        ],
    }


def test_player_stats_from_attendance(db, store, make_game, make_roster):
    make_game(id="g1")
    make_game(id="g2", gameDate="2025-10-12")
    make_roster("Bar")
    make_roster("Foo")
    store.create("attendance", attendance_sheet("g1", {"Bar": ["Alex Stone", "Sam Reed"], "Foo": ["Alex Stone"]}))
    store.create("attendance", attendance_sheet("g2", {"Bar": ["Sam Reed"]}))

    stats = db.get_player_stats({"teamName": "Bar"})
    by_player = {s["playerName"]: s for s in stats}
    assert by_player["Sam Reed"]["attendance"] == {
        "gamesAttended": 2,
        "totalTeamGames": 2,
        "attendancePercentage": 100,
        "scheduledGames": 2,
    }
    assert by_player["Alex Stone"]["attendance"]["attendancePercentage"] == 50
    assert [s["playerName"] for s in stats] == ["Sam Reed", "Alex Stone"]

    foo = db.get_player_stats({"playerId": "foo-alex-stone"})
    assert len(foo) == 1
    assert foo[0]["attendance"]["totalTeamGames"] == 1


def test_player_stats_follow_attendance_writes(db, make_game, make_roster):
    make_game()
    make_roster("Bar")
    assert db.get_player_stats({"playerName": "Alex Stone"})[0]["attendance"]["gamesAttended"] == 0

    db.upsert("attendance", attendance_sheet("g1", {"Bar": ["Alex Stone"]}))
    assert db.get_player_stats({"playerName": "Alex Stone"})[0]["attendance"]["gamesAttended"] == 1


def test_player_stats_refresh_bypasses_cache(db, store, make_game, make_roster):
    make_game()
    make_roster("Bar")
    assert db.get_player_stats({"playerName": "Alex Stone"})[0]["attendance"]["totalTeamGames"] == 0

    store.create("attendance", attendance_sheet("g1", {"Bar": ["Alex Stone"]}))
    assert db.get_player_stats({"playerName": "Alex Stone"})[0]["attendance"]["totalTeamGames"] == 0
    refreshed = db.get_player_stats({"playerName": "Alex Stone"}, refresh=True)
    assert refreshed[0]["attendance"]["totalTeamGames"] == 1
