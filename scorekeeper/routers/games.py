from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from ..analytics import final_score, game_summary
from ..database import DatabaseService
from ..deps import get_db, no_store
from ..errors import ConflictError, ValidationError
from ..models import (
    EVENT_COMPLETION,
    EVENT_OT_SHOOTOUT,
    EVENT_SUBMISSION,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_SCHEDULED,
    STATUS_SUBMITTED,
    OTShootoutInput,
    SubmissionInput,
)
from ..responses import success
from ..store import QuerySpec
from ..timeutils import epoch_ms, upcoming_window, utc_now_iso
from ..validation import sanitize_input, slug, validate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["games"])


def mark_events(db: DatabaseService, game_id: str, updates: Dict[str, Any]) -> int:
    """Apply `updates` to every goal and penalty of a game; returns how many were touched."""
    touched = 0
    for container, events in (("goals", db.get_goals(game_id)), ("penalties", db.get_penalties(game_id))):
        for event in events:
            db.update(container, event["id"], updates, partition_key=game_id)
            touched += 1
    return touched


@router.get("/games", dependencies=[Depends(no_store)])
def list_games(
    request: Request,
    division: str = Query("all"),
    gameId: Optional[str] = Query(None),
    dateFrom: Optional[str] = Query(None),
    dateTo: Optional[str] = Query(None),
    includeUpcoming: bool = Query(False, description="Today through the next six days"),
    rid: Optional[str] = Query(None, description="Client request id, used for cache busting"),
    db: DatabaseService = Depends(get_db),
):
    if includeUpcoming and not (dateFrom or dateTo):
        dateFrom, dateTo = upcoming_window()

    games = db.get_games(
        {"division": division, "gameId": gameId, "dateFrom": dateFrom, "dateTo": dateTo}
    )

    try:
        games = db.backfill_divisions(games)
    except Exception as e:
        logger.warning(f"Division backfill failed, returning games as stored: {e}")

    logger.info(f"Returning {len(games)} games (division={division}, rid={rid})")
    return success(
        request,
        games,
        count=len(games),
        division=division,
        dateFrom=dateFrom,
        dateTo=dateTo,
        rid=rid,
    )


@router.get("/games/submitted", dependencies=[Depends(no_store)])
def list_submitted_games(request: Request, db: DatabaseService = Depends(get_db)):
    games = db.get_submitted_games()
    return success(request, games, count=len(games))


@router.post("/games", status_code=201)
def create_game(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: DatabaseService = Depends(get_db),
):
    data = sanitize_input(body)
    data.pop("id", None)
    data.setdefault("status", STATUS_SCHEDULED)
    data.setdefault("homeTeamGoals", 0)
    data.setdefault("awayTeamGoals", 0)

    result = validate(data, "game")
    if not result.is_valid:
        raise ValidationError("Invalid game data", details=result.to_dict())

    if data["homeTeam"].lower() == data["awayTeam"].lower():
        raise ValidationError("homeTeam and awayTeam must be different teams")

    existing = db.find_duplicate_game(
        data["homeTeam"], data["awayTeam"], data["gameDate"], data["gameTime"]
    )
    if existing:
        raise ConflictError(
            "A game between these teams at this date and time already exists",
            details={"existingGameId": existing["id"]},
        )

    data["id"] = (
        f"{data['season']}_{data['year']}_{slug(data['homeTeam'])}_vs_{slug(data['awayTeam'])}_{epoch_ms()}"
    )
    game = db.create("games", data)
    logger.info(f"Game created: {game['id']}")
    return success(request, game)


@router.post("/games/submit", status_code=201)
def submit_game(request: Request, body: SubmissionInput, db: DatabaseService = Depends(get_db)):
    payload = sanitize_input(body.model_dump())
    game_id = payload["gameId"]
    submitted_by = payload.get("submittedBy") or "Unknown"

    game = db.require_game(game_id)
    already = db.query("games", QuerySpec(filter={"gameId": game_id, "eventType": EVENT_SUBMISSION}, limit=1))
    if already or game.get("status") in (STATUS_SUBMITTED, STATUS_COMPLETED):
        raise ConflictError(f"Game '{game_id}' has already been submitted")

    goals = db.get_goals(game_id)
    penalties = db.get_penalties(game_id)
    now = utc_now_iso()
    mark_events(db, game_id, {"gameStatus": STATUS_SUBMITTED, "submittedAt": now, "submittedBy": submitted_by})

    score = payload.get("finalScore") or final_score(game, goals)
    record = db.create(
        "games",
        {
            "id": f"{game_id}-submission-{epoch_ms()}",
            "gameId": game_id,
            "eventType": EVENT_SUBMISSION,
            "submittedAt": now,
            "submittedBy": submitted_by,
            "finalScore": score,
            "totalGoals": len(goals),
            "totalPenalties": len(penalties),
            "gameSummary": game_summary(goals, penalties),
        },
    )

    counted = final_score(game, goals)
    db.update(
        "games",
        game["id"],
        {
            "status": STATUS_SUBMITTED,
            "submittedAt": now,
            "homeTeamGoals": counted[game["homeTeam"]],
            "awayTeamGoals": counted[game["awayTeam"]],
        },
    )
    logger.info(f"Game submitted: {game_id} ({len(goals)} goals, {len(penalties)} penalties)")
    return success(
        request,
        {"submissionRecord": record, "message": "Game data has been finalized and submitted"},
    )


@router.get("/games/{game_id}")
def get_game(request: Request, game_id: str, db: DatabaseService = Depends(get_db)):
    return success(request, db.require_game(game_id))


@router.put("/games/{game_id}")
def update_game(
    request: Request,
    game_id: str,
    body: Dict[str, Any] = Body(...),
    db: DatabaseService = Depends(get_db),
):
    updates = sanitize_input(body)
    updates.pop("id", None)
    game = db.update("games", game_id, updates)
    return success(request, game)


@router.delete("/games/{game_id}")
def delete_game(request: Request, game_id: str, db: DatabaseService = Depends(get_db)):
    db.delete("games", game_id)
    return success(request, {"id": game_id, "deleted": True})


@router.delete("/games/{game_id}/reset")
def reset_game(request: Request, game_id: str, db: DatabaseService = Depends(get_db)):
    """Wipe everything recorded for a game and put it back on the schedule."""
    game = db.require_game(game_id)

    removed = {"goals": 0, "penalties": 0, "otShootout": 0, "records": 0, "shots": 0}
    for goal in db.get_goals(game_id):
        db.delete("goals", goal["id"], game_id)
        removed["goals"] += 1
    for penalty in db.get_penalties(game_id):
        db.delete("penalties", penalty["id"], game_id)
        removed["penalties"] += 1
    for result in db.query("ot-shootout", QuerySpec(filter={"gameId": game_id})):
        db.delete("ot-shootout", result["id"], game_id)
        removed["otShootout"] += 1
    records = db.query(
        "games",
        QuerySpec(filter={"gameId": game_id, "eventType": {"$in": [EVENT_SUBMISSION, EVENT_COMPLETION]}}),
    )
    for record in records:
        db.delete("games", record["id"])
        removed["records"] += 1
    for tally in db.query("shots-on-goal", QuerySpec(filter={"gameId": game_id})):
        db.delete("shots-on-goal", tally["id"], game_id)
        removed["shots"] += 1

    reset = db.update(
        "games",
        game["id"],
        {
            "status": STATUS_SCHEDULED,
            "homeTeamGoals": 0,
            "awayTeamGoals": 0,
            "homeTeamShots": 0,
            "awayTeamShots": 0,
            "submittedAt": None,
            "completedAt": None,
        },
    )
    logger.warning(f"Game {game_id} reset: {removed}")
    return success(request, {"game": reset, "removed": removed})


@router.post("/otshootout", status_code=201)
def record_ot_shootout(request: Request, body: OTShootoutInput, db: DatabaseService = Depends(get_db)):
    payload = sanitize_input(body.model_dump())
    game_id = payload["gameId"]
    winner = payload["winner"]
    game_type = payload["gameType"]
    completed_by = payload.get("submittedBy") or "Scorekeeper"

    game = db.require_game(game_id)
    if winner not in (game["homeTeam"], game["awayTeam"]):
        raise ValidationError(
            f"winner must be one of: {game['homeTeam']}, {game['awayTeam']}",
            details={"winner": winner},
        )
    if game.get("status") == STATUS_COMPLETED:
        raise ConflictError(f"Game '{game_id}' is already completed")

    goals = db.get_goals(game_id)
    penalties = db.get_penalties(game_id)
    score = payload.get("finalScore") or final_score(game, goals)
    now = utc_now_iso()

    result = db.create(
        "ot-shootout",
        {
            "id": f"{game_id}-otshootout-{epoch_ms()}",
            "eventType": EVENT_OT_SHOOTOUT,
            "gameId": game_id,
            "winner": winner,
            "gameType": game_type,
            "finalScore": score,
            "recordedAt": now,
            "gameStatus": STATUS_COMPLETED,
            "submittedBy": completed_by,
            "gameSummary": {
                "totalGoals": len(goals),
                "totalPenalties": len(penalties),
                **game_summary(goals, penalties),
            },
        },
    )

    mark_events(db, game_id, {"gameStatus": STATUS_COMPLETED, "completedAt": now, "completedBy": completed_by})

    db.create(
        "games",
        {
            "id": f"{game_id}-completion-{epoch_ms()}",
            "gameId": game_id,
            "eventType": EVENT_COMPLETION,
            "completionType": EVENT_OT_SHOOTOUT,
            "completedAt": now,
            "completedBy": completed_by,
            "winner": winner,
            "gameType": game_type,
            "finalScore": score,
            "totalGoals": len(goals),
            "totalPenalties": len(penalties),
        },
    )
    db.update("games", game["id"], {"status": STATUS_COMPLETED, "completedAt": now})

    logger.info(f"{game_type} winner recorded for {game_id}: {winner}")
    return success(
        request,
        {
            "otShootoutRecord": result,
            "message": f"{game_type} winner recorded. Game completed automatically.",
        },
    )


@router.get("/otshootout", dependencies=[Depends(no_store)])
def list_ot_shootout(
    request: Request,
    gameId: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    flt = {"gameId": gameId} if gameId else {}
    results = db.query("ot-shootout", QuerySpec(filter=flt, sort=[("recordedAt", -1)]))
    return success(request, results, count=len(results))


def set_in_progress(db: DatabaseService, game: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Persist game aggregate updates, moving a scheduled game to in-progress."""
    if game.get("status", STATUS_SCHEDULED) == STATUS_SCHEDULED:
        updates = {**updates, "status": STATUS_IN_PROGRESS}
    if not updates:
        return game
    try:
        return db.update("games", game["id"], updates)
    except ValidationError as e:
        logger.warning(f"Could not refresh aggregates for game {game['id']}: {e.message}")
        return game


def refresh_goal_totals(db: DatabaseService, game: Dict[str, Any]) -> Dict[str, Any]:
    score = final_score(game, db.get_goals(game["id"]))
    return set_in_progress(
        db,
        game,
        {"homeTeamGoals": score[game["homeTeam"]], "awayTeamGoals": score[game["awayTeam"]]},
    )


def require_team(game: Dict[str, Any], team: str, field: str = "team") -> str:
    if team == game["homeTeam"]:
        return "home"
    if team == game["awayTeam"]:
        return "away"
    raise ValidationError(
        f"{field} must be one of: {game['homeTeam']}, {game['awayTeam']}",
        details={field: team},
    )
