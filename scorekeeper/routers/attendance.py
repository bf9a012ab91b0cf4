from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..database import DatabaseService
from ..deps import get_db, no_store
from ..errors import NotFoundError, ValidationError
from ..models import EVENT_ATTENDANCE, AttendanceInput
from ..responses import success
from ..store import QuerySpec
from ..timeutils import utc_now_iso
from ..validation import sanitize_input, validate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["attendance"])


def attendance_id(game_id: str) -> str:
    return f"{game_id}-attendance"


@router.post("/attendance", status_code=201)
def record_attendance(request: Request, body: AttendanceInput, db: DatabaseService = Depends(get_db)):
    data = sanitize_input(body.model_dump())
    game_id = data["gameId"]
    rosters = data["totalRoster"]
    present = data["attendance"]

    record = {
        "id": attendance_id(game_id),
        "eventType": EVENT_ATTENDANCE,
        "gameId": game_id,
        "recordedAt": utc_now_iso(),
        "roster": [
            {
                "teamName": team["teamName"],
                "teamId": team.get("teamId"),
                "totalPlayers": team["totalPlayers"],
                "playerCount": len(team["totalPlayers"]),
            }
            for team in rosters
        ],
        "attendance": [
            {"teamName": team_name, "playersPresent": players, "presentCount": len(players)}
            for team_name, players in present.items()
        ],
        "summary": {
            "totalTeams": len(rosters),
            "totalRosterSize": sum(len(team["totalPlayers"]) for team in rosters),
            "totalPresent": sum(len(players) for players in present.values()),
        },
    }

    result = validate(record, "attendance")
    if not result.is_valid:
        raise ValidationError("Invalid attendance data", details=result.to_dict())

    saved = db.upsert("attendance", record)
    logger.info(
        f"Attendance recorded for {game_id}: {record['summary']['totalPresent']} of "
        f"{record['summary']['totalRosterSize']} present"
    )
    return success(request, saved)


@router.get("/attendance", dependencies=[Depends(no_store)])
def list_attendance(
    request: Request,
    gameId: Optional[str] = Query(None),
    db: DatabaseService = Depends(get_db),
):
    flt = {"gameId": gameId} if gameId else {}
    records = db.query("attendance", QuerySpec(filter=flt, sort=[("recordedAt", -1)]))
    return success(request, records, count=len(records))


@router.get("/attendance/{game_id}")
def get_attendance(request: Request, game_id: str, db: DatabaseService = Depends(get_db)):
    record = db.get_by_id("attendance", attendance_id(game_id))
    if record is None:
        raise NotFoundError("Attendance", attendance_id(game_id))
    return success(request, record)
