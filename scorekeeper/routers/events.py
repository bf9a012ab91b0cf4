from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, JSONResponse

from ..analytics import final_score, goal_analytics, penalty_analytics
from ..announcer import Announcer
from ..database import DatabaseService
from ..deps import get_announcer, get_db, get_tts, no_store
from ..errors import AppError, NotFoundError, ValidationError
from ..models import (
    EVENT_GOAL,
    EVENT_PENALTY,
    STATUS_IN_PROGRESS,
    UNKNOWN_DIVISION,
    AnnounceInput,
    GoalInput,
    PenaltyInput,
    ShotInput,
)
from ..responses import failure, success
from ..timeutils import unique_timestamp, utc_now_iso
from ..tts import TTSService
from ..validation import sanitize_input, validate
from .games import refresh_goal_totals, require_team, set_in_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])


def audio_url(filename: Optional[str]) -> Optional[str]:
    return f"/api/tts/audio/{filename}" if filename else None


@router.get("/game-events", dependencies=[Depends(no_store)])
def list_game_events(
    request: Request,
    gameId: Optional[str] = Query(None),
    eventType: Optional[str] = Query(None, pattern="^(goal|penalty)$"),
    db: DatabaseService = Depends(get_db),
):
    events = db.get_game_events({"gameId": gameId, "eventType": eventType})
    return success(request, events, count=len(events))


@router.post("/game-events")
def create_game_event(request: Request):
    return JSONResponse(
        status_code=501,
        content=failure(
            request,
            "NOT_IMPLEMENTED",
            "Use dedicated endpoints to create events",
            details={"supported": ["/api/goals", "/api/penalties"]},
        ),
    )


# ---- goals -----------------------------------------------------------------


@router.post("/goals", status_code=201)
def create_goal(request: Request, body: GoalInput, db: DatabaseService = Depends(get_db)):
    data = sanitize_input(body.model_dump())
    game_id = data["gameId"]

    game = db.require_game(game_id)
    require_team(game, data["team"])

    prior = db.get_goals(game_id)
    analytics = goal_analytics(game, prior, data["team"], data["period"], data.get("gameContext"))
    now = utc_now_iso()

    goal = db.create(
        "goals",
        {
            "id": f"{game_id}-goal-{unique_timestamp()}",
            "eventType": EVENT_GOAL,
            "gameId": game_id,
            "division": game.get("division") or UNKNOWN_DIVISION,
            "period": data["period"],
            "teamName": data["team"],
            "playerName": data["player"],
            "assistedBy": [data["assist"]] if data.get("assist") else [],
            "timeRemaining": data["time"],
            "shotType": data.get("shotType") or "Wrist Shot",
            "goalType": data.get("goalType") or "even strength",
            "breakaway": data["breakaway"],
            "recordedAt": now,
            "gameStatus": STATUS_IN_PROGRESS,
            "analytics": analytics,
        },
    )
    refresh_goal_totals(db, game)

    logger.info(f"Goal recorded: {goal['id']} ({data['player']}, {data['team']})")
    return success(request, goal)


@router.get("/goals", dependencies=[Depends(no_store)])
def list_goals(
    request: Request,
    gameId: Optional[str] = Query(None),
    team: Optional[str] = Query(None),
    player: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    goals = db.get_goals(gameId, team, player)
    return success(request, goals, count=len(goals))


@router.delete("/goals/{goal_id}")
def delete_goal(
    request: Request,
    goal_id: str,
    gameId: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    goal = db.get_by_id("goals", goal_id, gameId)
    if goal is None:
        raise NotFoundError("Goal", goal_id)

    db.delete("goals", goal_id, goal["gameId"])
    game = db.get_game(goal["gameId"])
    if game is not None:
        refresh_goal_totals(db, game)

    logger.info(f"Goal removed: {goal_id}")
    return success(request, {"id": goal_id, "gameId": goal["gameId"], "deleted": True})


# ---- penalties -------------------------------------------------------------


@router.post("/penalties", status_code=201)
def create_penalty(request: Request, body: PenaltyInput, db: DatabaseService = Depends(get_db)):
    data = sanitize_input(body.model_dump())
    game_id = data["gameId"]

    game = db.require_game(game_id)
    require_team(game, data["team"])

    prior = db.get_penalties(game_id)
    analytics = penalty_analytics(
        game,
        prior,
        db.get_goals(game_id),
        data["team"],
        data["player"],
        data["penaltyType"],
        data["penaltyLength"],
        data["period"],
    )

    penalty = db.create(
        "penalties",
        {
            "id": f"{game_id}-penalty-{unique_timestamp()}",
            "eventType": EVENT_PENALTY,
            "gameId": game_id,
            "division": game.get("division") or UNKNOWN_DIVISION,
            "period": data["period"],
            "teamName": data["team"],
            "playerName": data["player"],
            "penaltyType": data["penaltyType"],
            "length": data["penaltyLength"],
            "timeRemaining": data["time"],
            "details": data.get("details") or {},
            "recordedAt": utc_now_iso(),
            "gameStatus": STATUS_IN_PROGRESS,
            "analytics": analytics,
        },
    )
    set_in_progress(db, game, {})

    logger.info(f"Penalty recorded: {penalty['id']} ({data['player']}, {data['penaltyType']})")
    return success(request, penalty)


@router.get("/penalties", dependencies=[Depends(no_store)])
def list_penalties(
    request: Request,
    gameId: Optional[str] = Query(None),
    team: Optional[str] = Query(None),
    player: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    penalties = db.get_penalties(gameId, team, player)
    return success(request, penalties, count=len(penalties))


@router.delete("/penalties/{penalty_id}")
def delete_penalty(
    request: Request,
    penalty_id: str,
    gameId: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    penalty = db.get_by_id("penalties", penalty_id, gameId)
    if penalty is None:
        raise NotFoundError("Penalty", penalty_id)

    db.delete("penalties", penalty_id, penalty["gameId"])
    logger.info(f"Penalty removed: {penalty_id}")
    return success(request, {"id": penalty_id, "gameId": penalty["gameId"], "deleted": True})


# ---- shots -----------------------------------------------------------------


@router.post("/shots-on-goal")
def record_shot(request: Request, body: ShotInput, db: DatabaseService = Depends(get_db)):
    data = sanitize_input(body.model_dump())
    game_id = data["gameId"]

    game = db.require_game(game_id)
    side = require_team(game, data["team"])

    tally_id = f"{game_id}-shots"
    tally = db.get_by_id("shots-on-goal", tally_id, game_id) or {
        "id": tally_id,
        "gameId": game_id,
        "home": 0,
        "away": 0,
    }
    tally = {**tally, side: max(0, tally.get(side, 0) + data["count"]), "updatedAt": utc_now_iso()}

    result = validate(tally, "shots")
    if not result.is_valid:
        raise ValidationError("Invalid shot tally", details=result.to_dict())
    tally = db.upsert("shots-on-goal", tally)

    set_in_progress(db, game, {"homeTeamShots": tally["home"], "awayTeamShots": tally["away"]})
    return success(
        request,
        {
            "gameId": game_id,
            "homeTeam": game["homeTeam"],
            "awayTeam": game["awayTeam"],
            "homeTeamShots": tally["home"],
            "awayTeamShots": tally["away"],
        },
    )


# ---- announcer -------------------------------------------------------------


@router.post("/goals/announce-last")
def announce_last_goal(
    request: Request,
    body: AnnounceInput,
    db: DatabaseService = Depends(get_db),
    announcer: Announcer = Depends(get_announcer),
    tts: TTSService = Depends(get_tts),
):
    game_id = sanitize_input(body.gameId)
    game = db.require_game(game_id)
    goals = db.get_goals(game_id)
    home, away = game["homeTeam"], game["awayTeam"]

    if not goals:
        penalties = db.get_penalties(game_id)
        period = int(penalties[0].get("period") or 1) if penalties else 1
        text = announcer.scoreless(game, period)
        filename = tts.synthesize(text, game_id, "scoreless")
        return success(
            request,
            {
                "scoreless": True,
                "announcementText": text,
                "audioFilename": filename,
                "audioUrl": audio_url(filename),
                "ttsAvailable": tts.available,
                "gameContext": {"homeTeam": home, "awayTeam": away, "homeScore": 0, "awayScore": 0, "period": period},
            },
        )

    latest = goals[0]
    score = final_score(game, goals)
    player_goals = sum(
        1 for g in goals if g.get("playerName") == latest.get("playerName") and g.get("teamName") == latest.get("teamName")
    )

    text = announcer.goal(latest, game, score, player_goals)
    filename = tts.synthesize(text, game_id, "goal")
    return success(
        request,
        {
            "scoreless": False,
            "goal": latest,
            "announcementText": text,
            "audioFilename": filename,
            "audioUrl": audio_url(filename),
            "ttsAvailable": tts.available,
            "playerStats": {"goalsThisGame": player_goals},
            "gameContext": {
                "homeTeam": home,
                "awayTeam": away,
                "homeScore": score[home],
                "awayScore": score[away],
            },
        },
    )


@router.post("/penalties/announce-last")
def announce_last_penalty(
    request: Request,
    body: AnnounceInput,
    db: DatabaseService = Depends(get_db),
    announcer: Announcer = Depends(get_announcer),
    tts: TTSService = Depends(get_tts),
):
    game_id = sanitize_input(body.gameId)
    game = db.require_game(game_id)
    penalties = db.get_penalties(game_id)
    if not penalties:
        raise AppError(
            "No penalties found for this game",
            details={"gameId": game_id},
            code="NOT_FOUND",
            status_code=404,
        )

    latest = penalties[0]
    text = announcer.penalty(latest, game)
    filename = tts.synthesize(text, game_id, "penalty")
    return success(
        request,
        {
            "penalty": latest,
            "announcementText": text,
            "audioFilename": filename,
            "audioUrl": audio_url(filename),
            "ttsAvailable": tts.available,
        },
    )


@router.get("/tts/audio/{filename}")
def get_audio(filename: str, tts: TTSService = Depends(get_tts)):
    path = tts.audio_path(filename)
    if path is None:
        raise NotFoundError("Audio file", filename)
    return FileResponse(path, media_type="audio/mpeg")
