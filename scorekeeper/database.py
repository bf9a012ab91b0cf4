"""
Database Service: the single gateway between controllers and the document store.

Adds schema validation, timestamps, a TTL query cache and the domain queries
(games, rosters, game events, team divisions) on top of `DocumentStore`.
"""
from __future__ import annotations

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from .analytics import player_attendance_stats
from .cache import QueryCache
from .errors import AppError, NotFoundError, ValidationError
from .models import (
    DEFAULT_SEASON,
    DEFAULT_YEAR,
    EVENT_GOAL,
    EVENT_PENALTY,
    EVENT_SUBMISSION,
    STATUS_SUBMITTED,
    UNKNOWN_DIVISION,
)
from .store import DocumentStore, ItemNotFound, QuerySpec
from .timeutils import EPOCH_ISO, from_epoch_seconds, parse_timestamp, utc_now_iso
from .validation import schema_for, validate_schema

logger = logging.getLogger(__name__)

GAMES_TTL = 300
DATED_GAMES_TTL = 120
PLAYER_STATS_TTL = 300

# cached player stats are derived from these containers
PLAYER_STATS = "player-stats"
STATS_SOURCES = ("games", "rosters", "attendance")

LABELS = {
    "games": "Game",
    "rosters": "Roster",
    "goals": "Goal",
    "penalties": "Penalty",
    "attendance": "Attendance",
    "ot-shootout": "OT/Shootout result",
    "shots-on-goal": "Shot tally",
}

# submission/completion records share the games container with the games themselves
NOT_AN_EVENT = {"eventType": {"$exists": False}}


def _iexact(value: str) -> Dict[str, str]:
    return {"$regex": f"^{re.escape(value)}$", "$options": "i"}


def _cache_key(container: str, filters: Dict[str, Any]) -> str:
    clean = {k: v for k, v in filters.items() if v is not None}
    return f"{container}:{json.dumps(clean, sort_keys=True, default=str)}"


class DatabaseService:
    def __init__(self, store: DocumentStore, cache: Optional[QueryCache] = None):
        self.store = store
        self.cache = cache if cache is not None else QueryCache()

    def _invalidate(self, container: str) -> None:
        self.cache.invalidate_prefix(container)
        if container in STATS_SOURCES:
            self.cache.invalidate_prefix(PLAYER_STATS)

    # ---- generic operations ------------------------------------------------

    def _validate(self, container: str, item: Dict[str, Any], action: str):
        schema = schema_for(container, item)
        if schema is None:
            return None
        result = validate_schema(item, schema)
        if not result.is_valid:
            logger.warning(f"Schema validation failed for {container} {action}: {result.errors}")
            raise ValidationError(
                f"Schema validation failed for {container}: {', '.join(result.errors)}",
                details=result.to_dict(),
            )
        if result.warnings:
            logger.warning(f"Schema warnings for {container}: {result.warnings}")
        return schema

    def create(self, container: str, item: Dict[str, Any]) -> Dict[str, Any]:
        item = dict(item)
        schema = self._validate(container, item, "create")

        now = utc_now_iso()
        if schema is not None and "createdAt" in schema:
            item["createdAt"] = now
        if schema is not None and "updatedAt" in schema:
            item["updatedAt"] = now

        try:
            created = self.store.create(container, item)
        except Exception as e:
            logger.error(f"Database create error on {container} (id={item.get('id')}): {e}")
            raise
        self._invalidate(container)
        logger.info(f"Item created in {container}: {created['id']}")
        return created

    def update(
        self,
        container: str,
        id: str,
        updates: Dict[str, Any],
        partition_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        existing = self.get_by_id(container, id, partition_key)
        if existing is None:
            raise NotFoundError(LABELS.get(container, container), id)

        merged = {**existing, **updates, "id": id, "updatedAt": utc_now_iso()}
        self._validate(container, merged, "update")

        try:
            updated = self.store.replace(container, id, merged, partition_key)
        except Exception as e:
            logger.error(f"Database update error on {container} (id={id}): {e}")
            raise
        self._invalidate(container)
        logger.info(f"Item updated in {container}: {id}")
        return updated

    def upsert(self, container: str, item: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.store.upsert(container, item)
        except Exception as e:
            logger.error(f"Database upsert error on {container} (id={item.get('id')}): {e}")
            raise
        self._invalidate(container)
        logger.info(f"Item upserted in {container}: {result['id']}")
        return result

    def delete(self, container: str, id: str, partition_key: Optional[str] = None) -> None:
        try:
            self.store.delete(container, id, partition_key)
        except ItemNotFound:
            raise NotFoundError(LABELS.get(container, container), id)
        except Exception as e:
            logger.error(f"Database delete error on {container} (id={id}): {e}")
            raise
        self._invalidate(container)
        logger.info(f"Item deleted from {container}: {id}")

    def query(self, container: str, spec: Optional[QuerySpec] = None) -> List[Dict[str, Any]]:
        try:
            return self.store.query(container, spec)
        except Exception as e:
            logger.error(f"Database query error on {container}: {e}")
            raise

    def get_by_id(
        self, container: str, id: str, partition_key: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return self.store.read(container, id, partition_key)
        except ItemNotFound:
            return None
        except Exception as e:
            logger.error(f"Database get_by_id error on {container} (id={id}): {e}")
            raise

    # ---- games -------------------------------------------------------------

    def get_games(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Games matching `filters` (gameId, division, dateFrom, dateTo), ordered by
        gameDate. Lookups by id bypass the cache; other non-empty results are
        cached, for a shorter time when a date range is involved.
        """
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        game_id = filters.get("gameId")
        key = _cache_key("games", filters)

        if not game_id:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for games query {key}")
                return cached

        if game_id:
            flt: Dict[str, Any] = {"$or": [{"id": game_id}, {"gameId": game_id}], **NOT_AN_EVENT}
        else:
            flt = dict(NOT_AN_EVENT)
            division = filters.get("division")
            if division and division.lower() != "all":
                flt["division"] = _iexact(division)
            date_range = {}
            if filters.get("dateFrom"):
                date_range["$gte"] = filters["dateFrom"]
            if filters.get("dateTo"):
                date_range["$lte"] = filters["dateTo"]
            if date_range:
                flt["gameDate"] = date_range

        generation = self.cache.generation("games")
        results = self.query("games", QuerySpec(filter=flt, sort=[("gameDate", 1)]))

        if not game_id and results:
            dated = bool(filters.get("dateFrom") or filters.get("dateTo"))
            ttl = DATED_GAMES_TTL if dated else GAMES_TTL
            if self.cache.set(key, results, ttl, if_generation=generation):
                logger.debug(f"Cached {len(results)} games for {key}")

        return results

    def get_game(self, game_id: str) -> Optional[Dict[str, Any]]:
        games = self.get_games({"gameId": game_id})
        return games[0] if games else None

    def require_game(self, game_id: str) -> Dict[str, Any]:
        game = self.get_game(game_id)
        if game is None:
            raise NotFoundError("Game", game_id)
        return game

    def find_duplicate_game(
        self, home_team: str, away_team: str, game_date: str, game_time: str
    ) -> Optional[Dict[str, Any]]:
        matches = self.query(
            "games",
            QuerySpec(
                filter={
                    "homeTeam": home_team,
                    "awayTeam": away_team,
                    "gameDate": game_date,
                    "gameTime": game_time,
                    **NOT_AN_EVENT,
                },
                limit=1,
            ),
        )
        return matches[0] if matches else None

    def backfill_divisions(self, games: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Fill in `Unknown` divisions from the home roster, then the away roster."""
        enriched = []
        for game in games:
            division = game.get("division") or UNKNOWN_DIVISION
            if division == UNKNOWN_DIVISION:
                season = game.get("season") or DEFAULT_SEASON
                year = game.get("year") or DEFAULT_YEAR
                for team in (game.get("homeTeam"), game.get("awayTeam")):
                    if not team:
                        continue
                    division = self.get_team_division(team, season, year)
                    if division != UNKNOWN_DIVISION:
                        break
            enriched.append({**game, "division": division})
        return enriched

    def get_submitted_games(self) -> List[Dict[str, Any]]:
        submissions = self.query("games", QuerySpec(filter={"eventType": EVENT_SUBMISSION}))

        submitted = []
        for submission in submissions:
            try:
                game = self.get_by_id("games", submission["gameId"])
            except Exception as e:
                logger.warning(f"Error fetching game {submission.get('gameId')}: {e}")
                continue
            if game is None:
                continue
            submitted.append(
                {
                    **game,
                    "gameStatus": STATUS_SUBMITTED,
                    "submittedAt": submission.get("submittedAt"),
                    "finalScore": submission.get("finalScore"),
                    "totalGoals": submission.get("totalGoals"),
                    "totalPenalties": submission.get("totalPenalties"),
                    "gameSummary": submission.get("gameSummary"),
                    "submissionId": submission["id"],
                }
            )
        return submitted

    # ---- rosters -----------------------------------------------------------

    def get_rosters(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}

        if filters.get("gameId"):
            return self._rosters_for_game(filters["gameId"])

        flt: Dict[str, Any] = {}
        if filters.get("teamName"):
            flt["teamName"] = filters["teamName"]
        if filters.get("season"):
            flt["season"] = filters["season"]
        if filters.get("year"):
            flt["year"] = int(filters["year"])
        if filters.get("division"):
            flt["division"] = _iexact(filters["division"])
        return self.query("rosters", QuerySpec(filter=flt, sort=[("teamName", 1)]))

    def _rosters_for_game(self, game_id: str) -> List[Dict[str, Any]]:
        game = self.get_game(game_id)
        if game is None:
            raise NotFoundError("Game", game_id)

        home, away = game.get("homeTeam"), game.get("awayTeam")
        if not home or not away:
            raise AppError(
                f"Game missing team data: homeTeam={home}, awayTeam={away}",
                code="GAME_DATA_INCOMPLETE",
                status_code=422,
            )

        def team_rosters(team: str) -> List[Dict[str, Any]]:
            flt: Dict[str, Any] = {"teamName": team}
            if game.get("season"):
                flt["season"] = game["season"]
            if game.get("year"):
                flt["year"] = game["year"]
            return self.query("rosters", QuerySpec(filter=flt))

        home_rosters = team_rosters(home)
        away_rosters = team_rosters(away)
        missing = [team for team, found in ((home, home_rosters), (away, away_rosters)) if not found]
        if missing:
            raise NotFoundError(
                "Roster",
                details={"gameId": game_id, "missingTeams": missing},
            )
        return home_rosters + away_rosters

    def get_team_division(
        self, team_name: str, season: str = DEFAULT_SEASON, year: int = DEFAULT_YEAR
    ) -> str:
        try:
            results = self.query(
                "rosters",
                QuerySpec(
                    filter={"teamName": _iexact(team_name), "season": season, "year": year},
                    projection={"division": 1},
                    limit=1,
                ),
            )
            if results and results[0].get("division"):
                return results[0]["division"]
        except Exception as e:
            logger.error(f"Error getting team division for {team_name} ({season} {year}): {e}")
        return UNKNOWN_DIVISION

    # ---- game events -------------------------------------------------------

    def _events(
        self,
        container: str,
        game_id: Optional[str] = None,
        team: Optional[str] = None,
        player: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        flt: Dict[str, Any] = {}
        if game_id:
            flt["gameId"] = game_id
        if team:
            flt["teamName"] = team
        if player:
            flt["playerName"] = player
        return self.query(container, QuerySpec(filter=flt, sort=[("recordedAt", -1)]))

    def get_goals(self, game_id=None, team=None, player=None) -> List[Dict[str, Any]]:
        return self._events("goals", game_id, team, player)

    def get_penalties(self, game_id=None, team=None, player=None) -> List[Dict[str, Any]]:
        return self._events("penalties", game_id, team, player)

    def get_game_events(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Goals and penalties for a game merged into one feed, newest first."""
        filters = filters or {}
        game_id = filters.get("gameId")
        event_type = filters.get("eventType")

        with ThreadPoolExecutor(max_workers=2) as pool:
            goals_future = None if event_type == EVENT_PENALTY else pool.submit(self.get_goals, game_id)
            penalties_future = None if event_type == EVENT_GOAL else pool.submit(self.get_penalties, game_id)
            goals = goals_future.result() if goals_future else []
            penalties = penalties_future.result() if penalties_future else []

        def normalize(event: Dict[str, Any], kind: str) -> Dict[str, Any]:
            recorded = event.get("recordedAt")
            if not recorded:
                recorded = from_epoch_seconds(event["_ts"]) if event.get("_ts") else EPOCH_ISO
            return {"eventType": kind, **event, "recordedAt": recorded}

        events = [normalize(g, EVENT_GOAL) for g in goals]
        events += [normalize(p, EVENT_PENALTY) for p in penalties]
        events.sort(key=lambda e: parse_timestamp(e["recordedAt"]), reverse=True)
        return events

    # ---- player stats ------------------------------------------------------

    def get_player_stats(
        self, filters: Optional[Dict[str, Any]] = None, refresh: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Attendance stats per rostered player, narrowed by playerId, or by
        playerName and/or teamName. The league-wide table is cached until a
        game, roster or attendance write; `refresh` recomputes it.
        """
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        key = f"{PLAYER_STATS}:all"

        stats = None if refresh else self.cache.get(key)
        if stats is None:
            generation = self.cache.generation(PLAYER_STATS)
            stats = player_attendance_stats(
                self.query("rosters"),
                self.query("games", QuerySpec(filter=dict(NOT_AN_EVENT))),
                self.query("attendance"),
            )
            self.cache.set(key, stats, PLAYER_STATS_TTL, if_generation=generation)
            logger.info(f"Player stats calculated for {len(stats)} players")

        if filters.get("playerId"):
            return [s for s in stats if s["playerId"] == filters["playerId"]]
        if filters.get("playerName"):
            stats = [s for s in stats if s["playerName"] == filters["playerName"]]
        if filters.get("teamName"):
            stats = [s for s in stats if s["teamName"] == filters["teamName"]]
        return stats
