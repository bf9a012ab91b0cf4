"""
Declarative document schemas, validation and input sanitization.

Validation never raises for bad data; it returns a ValidationResult. Missing
required fields and type/format/range violations are errors. Fields the
schema does not know about are only reported as warnings.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import (
    DIVISIONS,
    EVENT_COMPLETION,
    EVENT_SUBMISSION,
    GAME_STATUSES,
    GOAL_TYPES,
    OT_GAME_TYPES,
    PLAYER_POSITIONS,
    SEASONS,
    TIME_PATTERN,
    UNKNOWN_DIVISION,
)


@dataclass(frozen=True)
class FieldSpec:
    type: str  # "string" | "number" | "boolean" | "array" | "object"
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    pattern: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    items: Optional[Mapping[str, "FieldSpec"]] = None


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


Schema = Mapping[str, FieldSpec]

TEAM_NAME_PATTERN = r"^[A-Za-z0-9\s\-\.',&!]+$"
PERSON_NAME_PATTERN = r"^[A-Za-z\s\-\.']+$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
CLOCK_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

_TIMESTAMPS = {
    "createdAt": FieldSpec("string"),
    "updatedAt": FieldSpec("string"),
}

_EVENT_STATUS = {
    "gameStatus": FieldSpec("string", enum=GAME_STATUSES),
    "submittedAt": FieldSpec("string"),
    "submittedBy": FieldSpec("string", max_length=100),
    "completedAt": FieldSpec("string"),
    "completedBy": FieldSpec("string", max_length=100),
}

GAME_SCHEMA: Schema = {
    "gameId": FieldSpec("string", max_length=200),
    "homeTeam": FieldSpec("string", required=True, min_length=2, max_length=50, pattern=TEAM_NAME_PATTERN),
    "awayTeam": FieldSpec("string", required=True, min_length=2, max_length=50, pattern=TEAM_NAME_PATTERN),
    "gameDate": FieldSpec("string", required=True, pattern=DATE_PATTERN),
    "gameTime": FieldSpec("string", required=True, pattern=CLOCK_PATTERN),
    "division": FieldSpec("string", required=True, enum=DIVISIONS + (UNKNOWN_DIVISION,)),
    "season": FieldSpec("string", required=True, enum=SEASONS),
    "year": FieldSpec("number", required=True, minimum=2020, maximum=2035),
    "week": FieldSpec("number", minimum=1, maximum=52),
    "status": FieldSpec("string", enum=GAME_STATUSES),
    "venue": FieldSpec("string", max_length=100),
    "rink": FieldSpec("string", max_length=50),
    "homeTeamGoals": FieldSpec("number", minimum=0),
    "awayTeamGoals": FieldSpec("number", minimum=0),
    "homeTeamShots": FieldSpec("number", minimum=0),
    "awayTeamShots": FieldSpec("number", minimum=0),
    "submittedAt": FieldSpec("string"),
    "completedAt": FieldSpec("string"),
    **_TIMESTAMPS,
}

PLAYER_SCHEMA: Schema = {
    "playerId": FieldSpec("string", min_length=1, max_length=20),
    "name": FieldSpec("string", required=True, min_length=2, max_length=50, pattern=PERSON_NAME_PATTERN),
    "firstName": FieldSpec("string", max_length=50),
    "lastName": FieldSpec("string", max_length=50),
    "jerseyNumber": FieldSpec("string", max_length=3),
    "position": FieldSpec("string", enum=PLAYER_POSITIONS),
}

ROSTER_SCHEMA: Schema = {
    "teamName": FieldSpec("string", required=True, min_length=2, max_length=50, pattern=TEAM_NAME_PATTERN),
    "division": FieldSpec("string", required=True, enum=DIVISIONS),
    "season": FieldSpec("string", required=True, enum=SEASONS),
    "year": FieldSpec("number", required=True, minimum=2020, maximum=2035),
    "players": FieldSpec("array", required=True, min_items=1, max_items=50, items=PLAYER_SCHEMA),
    **_TIMESTAMPS,
}

GOAL_SCHEMA: Schema = {
    "eventType": FieldSpec("string", enum=("goal",)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "division": FieldSpec("string", max_length=20),
    "teamName": FieldSpec("string", required=True, min_length=1, max_length=50),
    "playerName": FieldSpec("string", required=True, min_length=1, max_length=50),
    "assistedBy": FieldSpec("array", max_items=2),
    "period": FieldSpec("number", required=True, minimum=1, maximum=10),
    "timeRemaining": FieldSpec("string", required=True, pattern=TIME_PATTERN),
    "shotType": FieldSpec("string", max_length=30),
    "goalType": FieldSpec("string", enum=GOAL_TYPES),
    "breakaway": FieldSpec("boolean"),
    "recordedAt": FieldSpec("string", required=True),
    "analytics": FieldSpec("object"),
    **_EVENT_STATUS,
}

PENALTY_SCHEMA: Schema = {
    "eventType": FieldSpec("string", enum=("penalty",)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "division": FieldSpec("string", max_length=20),
    "teamName": FieldSpec("string", required=True, min_length=1, max_length=50),
    "playerName": FieldSpec("string", required=True, min_length=1, max_length=50),
    "penaltyType": FieldSpec("string", required=True, min_length=2, max_length=50),
    "length": FieldSpec("number", required=True, minimum=1, maximum=20),
    "period": FieldSpec("number", required=True, minimum=1, maximum=10),
    "timeRemaining": FieldSpec("string", required=True, pattern=TIME_PATTERN),
    "details": FieldSpec("object"),
    "recordedAt": FieldSpec("string", required=True),
    "analytics": FieldSpec("object"),
    **_EVENT_STATUS,
}

ATTENDANCE_SCHEMA: Schema = {
    "eventType": FieldSpec("string", enum=("attendance",)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "recordedAt": FieldSpec("string", required=True),
    "roster": FieldSpec("array", required=True, min_items=1, items={
        "teamName": FieldSpec("string", required=True),
        "teamId": FieldSpec("string"),
        "totalPlayers": FieldSpec("array", required=True),
        "playerCount": FieldSpec("number", required=True, minimum=0),
    }),
    "attendance": FieldSpec("array", required=True, items={
        "teamName": FieldSpec("string", required=True),
        "playersPresent": FieldSpec("array", required=True),
        "presentCount": FieldSpec("number", required=True, minimum=0),
    }),
    "summary": FieldSpec("object", required=True),
}

OT_SHOOTOUT_SCHEMA: Schema = {
    "eventType": FieldSpec("string", enum=("ot-shootout",)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "winner": FieldSpec("string", required=True, min_length=1, max_length=50),
    "gameType": FieldSpec("string", required=True, enum=OT_GAME_TYPES),
    "finalScore": FieldSpec("object"),
    "recordedAt": FieldSpec("string", required=True),
    "gameStatus": FieldSpec("string", enum=GAME_STATUSES),
    "submittedBy": FieldSpec("string", max_length=100),
    "gameSummary": FieldSpec("object"),
}

SUBMISSION_SCHEMA: Schema = {
    "eventType": FieldSpec("string", required=True, enum=(EVENT_SUBMISSION,)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "submittedAt": FieldSpec("string", required=True),
    "submittedBy": FieldSpec("string", max_length=100),
    "finalScore": FieldSpec("object"),
    "totalGoals": FieldSpec("number", required=True, minimum=0),
    "totalPenalties": FieldSpec("number", required=True, minimum=0),
    "gameSummary": FieldSpec("object"),
}

COMPLETION_SCHEMA: Schema = {
    "eventType": FieldSpec("string", required=True, enum=(EVENT_COMPLETION,)),
    "gameId": FieldSpec("string", required=True, min_length=1),
    "completionType": FieldSpec("string", required=True),
    "completedAt": FieldSpec("string", required=True),
    "completedBy": FieldSpec("string", max_length=100),
    "winner": FieldSpec("string", max_length=50),
    "gameType": FieldSpec("string", enum=OT_GAME_TYPES),
    "finalScore": FieldSpec("object"),
    "totalGoals": FieldSpec("number", minimum=0),
    "totalPenalties": FieldSpec("number", minimum=0),
}

SHOTS_SCHEMA: Schema = {
    "gameId": FieldSpec("string", required=True, min_length=1),
    "home": FieldSpec("number", required=True, minimum=0),
    "away": FieldSpec("number", required=True, minimum=0),
    "updatedAt": FieldSpec("string"),
}

SCHEMAS: Dict[str, Schema] = {
    "game": GAME_SCHEMA,
    "roster": ROSTER_SCHEMA,
    "goal": GOAL_SCHEMA,
    "penalty": PENALTY_SCHEMA,
    "attendance": ATTENDANCE_SCHEMA,
    "ot-shootout": OT_SHOOTOUT_SCHEMA,
    EVENT_SUBMISSION: SUBMISSION_SCHEMA,
    EVENT_COMPLETION: COMPLETION_SCHEMA,
    "shots": SHOTS_SCHEMA,
}

CONTAINER_SCHEMAS: Dict[str, str] = {
    "games": "game",
    "rosters": "roster",
    "goals": "goal",
    "penalties": "penalty",
    "attendance": "attendance",
    "ot-shootout": "ot-shootout",
    "shots-on-goal": "shots",
}

_ALWAYS_ALLOWED = {"id", "createdAt", "updatedAt"}


def schema_name_for(container: str, item: Optional[Mapping[str, Any]] = None) -> Optional[str]:
    """Schema that guards writes to `container`; the games container also holds submission/completion records."""
    if container == "games" and item is not None:
        event_type = item.get("eventType")
        if event_type in (EVENT_SUBMISSION, EVENT_COMPLETION):
            return event_type
    return CONTAINER_SCHEMAS.get(container)


def schema_for(container: str, item: Optional[Mapping[str, Any]] = None) -> Optional[Schema]:
    name = schema_name_for(container, item)
    return SCHEMAS[name] if name else None


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _type_ok(spec_type: str, value: Any) -> bool:
    if spec_type == "string":
        return isinstance(value, str)
    if spec_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if spec_type == "boolean":
        return isinstance(value, bool)
    if spec_type == "array":
        return isinstance(value, list)
    if spec_type == "object":
        return isinstance(value, dict)
    return True


def validate_field(name: str, value: Any, spec: FieldSpec) -> List[str]:
    errors: List[str] = []

    if _is_empty(value):
        if spec.required:
            errors.append(f"{name} is required")
        return errors

    if not _type_ok(spec.type, value):
        errors.append(f"{name} must be a {spec.type}")
        return errors

    if spec.type == "string":
        if spec.min_length is not None and len(value) < spec.min_length:
            errors.append(f"{name} must be at least {spec.min_length} characters long")
        if spec.max_length is not None and len(value) > spec.max_length:
            errors.append(f"{name} must be no more than {spec.max_length} characters long")
        if spec.pattern and not re.match(spec.pattern, value):
            errors.append(f"{name} has invalid format")
        if spec.enum and value not in spec.enum:
            errors.append(f"{name} must be one of: {', '.join(map(str, spec.enum))}")

    elif spec.type == "number":
        if spec.minimum is not None and value < spec.minimum:
            errors.append(f"{name} must be at least {spec.minimum:g}")
        if spec.maximum is not None and value > spec.maximum:
            errors.append(f"{name} must be no more than {spec.maximum:g}")

    elif spec.type == "array":
        if spec.min_items is not None and len(value) < spec.min_items:
            errors.append(f"{name} must have at least {spec.min_items} items")
        if spec.max_items is not None and len(value) > spec.max_items:
            errors.append(f"{name} must have no more than {spec.max_items} items")
        if spec.items:
            for index, item in enumerate(value):
                path = f"{name}[{index}]"
                if not isinstance(item, dict):
                    errors.append(f"{path} must be a object")
                    continue
                for prop, prop_spec in spec.items.items():
                    errors.extend(validate_field(f"{path}.{prop}", item.get(prop), prop_spec))

    return errors


def validate_schema(data: Mapping[str, Any], schema: Schema) -> ValidationResult:
    result = ValidationResult()
    if not isinstance(data, Mapping):
        result.errors.append("payload must be an object")
        return result

    for name, spec in schema.items():
        result.errors.extend(validate_field(name, data.get(name), spec))

    for name in data:
        if name in schema or name in _ALWAYS_ALLOWED or name.startswith("_"):
            continue
        result.warnings.append(f"Unexpected field: {name}")

    return result


def validate(data: Mapping[str, Any], schema_name: str) -> ValidationResult:
    """Validate `data` against a named schema. Raises KeyError for an unknown schema name."""
    if schema_name not in SCHEMAS:
        raise KeyError(f"Unknown validation schema: {schema_name}")
    return validate_schema(data, SCHEMAS[schema_name])


_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def slug(name: str) -> str:
    """Collapse anything outside A-Z, a-z, 0-9 into single hyphens; safe in ids and file names."""
    return re.sub(r"[^A-Za-z0-9]+", "-", name).strip("-")


def sanitize_input(value: Any) -> Any:
    """Strip markup and script vectors from every string leaf of a nested structure."""
    if isinstance(value, str):
        cleaned = value.strip()
        cleaned = _ANGLE_BRACKETS.sub("", cleaned)
        cleaned = _JS_PROTOCOL.sub("", cleaned)
        return _EVENT_HANDLER.sub("", cleaned)
    if isinstance(value, dict):
        return {key: sanitize_input(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize_input(item) for item in value]
    return value
