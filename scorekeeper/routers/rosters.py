from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from ..database import DatabaseService
from ..deps import get_db, no_store
from ..errors import NotFoundError, ValidationError
from ..responses import success
from ..validation import sanitize_input, validate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rosters"])

SUB_PLAYER = {
    "name": "Sub",
    "firstName": "Sub",
    "lastName": "",
    "jerseyNumber": None,
    "position": "Player",
}


def team_slug(team_name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", team_name.lower()).strip("-")


def normalize_player(player: Any) -> Dict[str, Any]:
    """Accept a bare name or a player object; derive first/last names and a default position."""
    if isinstance(player, str):
        player = {"name": player}
    player = dict(player)

    name = (player.get("name") or "").strip()
    if not name:
        name = f"{player.get('firstName', '')} {player.get('lastName', '')}".strip()
    parts = name.split()

    normalized = {
        **player,
        "name": name,
        "firstName": player.get("firstName") or (parts[0] if parts else ""),
        "lastName": player.get("lastName") or " ".join(parts[1:]),
        "position": player.get("position") or "Player",
    }
    jersey = player.get("jerseyNumber")
    normalized["jerseyNumber"] = str(jersey) if jersey not in (None, "") else None
    return normalized


def normalize_players(players: List[Any]) -> List[Dict[str, Any]]:
    return [normalize_player(p) for p in players]


def require_roster(db: DatabaseService, roster_id: str) -> Dict[str, Any]:
    roster = db.get_by_id("rosters", roster_id)
    if roster is None:
        raise NotFoundError("Roster", roster_id)
    return roster


@router.get("/rosters", dependencies=[Depends(no_store)])
def list_rosters(
    request: Request,
    gameId: Optional[str] = Query(None),
    teamName: Optional[str] = Query(None),
    season: Optional[str] = Query(None),
    division: Optional[str] = Query(None),
    year: Optional[int] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    rosters = db.get_rosters(
        {"gameId": gameId, "teamName": teamName, "season": season, "division": division, "year": year}
    )
    return success(request, rosters, count=len(rosters), gameId=gameId)


@router.post("/rosters", status_code=201)
def create_roster(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: DatabaseService = Depends(get_db),
):
    data = sanitize_input(body)
    data.pop("id", None)

    players = data.get("players")
    if not isinstance(players, list) or not players:
        raise ValidationError("At least one player is required", details={"field": "players"})
    data["players"] = normalize_players(players)

    result = validate(data, "roster")
    if not result.is_valid:
        raise ValidationError("Invalid roster data", details=result.to_dict())

    data["id"] = f"{team_slug(data['teamName'])}_{data['season']}_{data['year']}"
    roster = db.create("rosters", data)
    logger.info(f"Roster created: {roster['id']} ({len(roster['players'])} players)")
    return success(request, roster)


@router.get("/rosters/{roster_id}")
def get_roster(request: Request, roster_id: str, db: DatabaseService = Depends(get_db)):
    return success(request, require_roster(db, roster_id))


@router.put("/rosters/{roster_id}")
def update_roster(
    request: Request,
    roster_id: str,
    body: Dict[str, Any] = Body(...),
    db: DatabaseService = Depends(get_db),
):
    updates = sanitize_input(body)
    updates.pop("id", None)
    if "players" in updates and isinstance(updates["players"], list):
        updates["players"] = normalize_players(updates["players"])
    roster = db.update("rosters", roster_id, updates)
    return success(request, roster)


@router.delete("/rosters/{roster_id}")
def delete_roster(request: Request, roster_id: str, db: DatabaseService = Depends(get_db)):
    db.delete("rosters", roster_id)
    return success(request, {"id": roster_id, "deleted": True})


@router.post("/rosters/{roster_id}/sub-player")
def add_sub_player(request: Request, roster_id: str, db: DatabaseService = Depends(get_db)):
    """Give a roster the generic `Sub` entry used for unrostered skaters."""
    roster = require_roster(db, roster_id)
    players = roster.get("players") or []
    if any(p.get("name") == SUB_PLAYER["name"] for p in players):
        return success(request, {"roster": roster, "added": False})

    roster = db.update("rosters", roster_id, {"players": players + [dict(SUB_PLAYER)]})
    logger.info(f"Sub player added to roster {roster_id}")
    return success(request, {"roster": roster, "added": True})
