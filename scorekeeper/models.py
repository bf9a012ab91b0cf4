from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

DIVISIONS = ("Bronze", "Silver", "Gold", "Platinum")
UNKNOWN_DIVISION = "Unknown"
SEASONS = ("Fall", "Winter", "Spring", "Summer")

STATUS_SCHEDULED = "scheduled"
STATUS_IN_PROGRESS = "in-progress"
STATUS_SUBMITTED = "submitted"
STATUS_COMPLETED = "completed"
GAME_STATUSES = (STATUS_SCHEDULED, STATUS_IN_PROGRESS, STATUS_SUBMITTED, STATUS_COMPLETED)

GOAL_TYPES = ("even strength", "power play", "short handed", "penalty shot", "empty net")
PLAYER_POSITIONS = ("Forward", "Defense", "Goalie", "Player")
OT_GAME_TYPES = ("overtime", "shootout")

EVENT_GOAL = "goal"
EVENT_PENALTY = "penalty"
EVENT_ATTENDANCE = "attendance"
EVENT_OT_SHOOTOUT = "ot-shootout"
EVENT_SUBMISSION = "game-submission"
EVENT_COMPLETION = "game-completion"

DEFAULT_SEASON = "Fall"
DEFAULT_YEAR = 2025

TIME_PATTERN = r"^\d{1,2}:[0-5]\d$"


class GoalInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    team: str = Field(..., min_length=1, max_length=50, description="Scoring team name")
    player: str = Field(..., min_length=1, max_length=50, description="Goal scorer")
    period: int = Field(..., ge=1, le=10)
    time: str = Field(..., pattern=TIME_PATTERN, description="Time remaining in the period (MM:SS)")
    assist: Optional[str] = Field(default=None, max_length=50)
    shotType: Optional[str] = Field(default=None, max_length=30)
    goalType: Optional[str] = None
    breakaway: bool = False
    gameContext: Optional[Dict[str, Any]] = None

    @field_validator("goalType")
    @classmethod
    def goal_type_known(cls, v):
        if v is None:
            return v
        if v.lower() not in GOAL_TYPES:
            raise ValueError(f"goalType must be one of: {', '.join(GOAL_TYPES)}")
        return v.lower()


class PenaltyInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    team: str = Field(..., min_length=1, max_length=50, description="Penalized team name")
    player: str = Field(..., min_length=1, max_length=50)
    period: int = Field(..., ge=1, le=10)
    time: str = Field(..., pattern=TIME_PATTERN)
    penaltyType: str = Field(..., min_length=2, max_length=50, description="Infraction, e.g. Tripping")
    penaltyLength: int = Field(..., ge=1, le=20, description="Minutes")
    details: Optional[Dict[str, Any]] = None


class ShotInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    team: str = Field(..., min_length=1, max_length=50)
    count: int = Field(default=1, ge=-1, le=10, description="Use -1 to take back a shot")


class RosterSnapshot(BaseModel):
    teamName: str = Field(..., min_length=1, max_length=50)
    teamId: Optional[str] = None
    totalPlayers: List[Any] = Field(default_factory=list)


class AttendanceInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    attendance: Dict[str, List[Any]] = Field(..., description="teamName -> players present")
    totalRoster: List[RosterSnapshot] = Field(..., min_length=1)


class SubmissionInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    finalScore: Optional[Dict[str, int]] = None
    submittedBy: Optional[str] = Field(default=None, max_length=100)


class OTShootoutInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)
    winner: str = Field(..., min_length=1, max_length=50)
    gameType: str
    finalScore: Optional[Dict[str, int]] = None
    submittedBy: Optional[str] = Field(default=None, max_length=100)

    @field_validator("gameType")
    @classmethod
    def game_type_known(cls, v):
        if v.lower() not in OT_GAME_TYPES:
            raise ValueError(f"gameType must be one of: {', '.join(OT_GAME_TYPES)}")
        return v.lower()


class AnnounceInput(BaseModel):
    gameId: str = Field(..., min_length=1, max_length=200)


class DeploymentTimeInput(BaseModel):
    deploymentTimestamp: str = Field(..., min_length=1)
