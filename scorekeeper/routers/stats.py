from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..database import DatabaseService
from ..deps import get_db, no_store
from ..responses import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/player-stats", dependencies=[Depends(no_store)])
def player_stats(
    request: Request,
    playerName: Optional[str] = Query(None),
    teamName: Optional[str] = Query(None),
    playerId: Optional[str] = Query(None),
    refresh: bool = Query(False, description="Recalculate instead of using cached stats"),
    db: DatabaseService = Depends(get_db),
):
    stats = db.get_player_stats(
        {"playerName": playerName, "teamName": teamName, "playerId": playerId},
        refresh=refresh,
    )
    if refresh:
        logger.info(f"Player stats refreshed ({len(stats)} matching players)")
    return success(request, stats, count=len(stats), teamName=teamName, playerId=playerId)
