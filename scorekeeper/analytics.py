"""
Denormalized analytics snapshots computed at write time.

Every goal/penalty carries the state of the game at the moment it was
recorded, derived from the events already stored for that game. Player
attendance stats are derived on read from rosters, games and attendance sheets.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .timeutils import utc_now_iso

REGULATION_PERIODS = 3


def _team(event: Mapping[str, Any]) -> Optional[str]:
    return event.get("teamName")


def game_situation(period: int) -> str:
    return "Overtime" if period > REGULATION_PERIODS else "Regular"


def score_by_team(goals: Iterable[Mapping[str, Any]], teams: Iterable[str]) -> Dict[str, int]:
    score = {team: 0 for team in teams}
    for goal in goals:
        team = _team(goal)
        if team in score:
            score[team] += 1
    return score


def _goal_context(sequence: int, team_before: int, opponent_before: int) -> str:
    if sequence == 1:
        return "First goal of game"
    if team_before + 1 == opponent_before:
        return "Tying goal"
    if team_before == opponent_before:
        return "Go-ahead goal"
    if team_before > opponent_before:
        return "Insurance goal"
    return "Regular goal"


def goal_analytics(
    game: Mapping[str, Any],
    prior_goals: List[Mapping[str, Any]],
    team: str,
    period: int,
    context: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    home, away = game["homeTeam"], game["awayTeam"]
    opponent = away if team == home else home
    sequence = len(prior_goals) + 1

    before = score_by_team(prior_goals, (home, away))
    after = dict(before)
    after[team] += 1

    computed = {
        "goalSequenceNumber": sequence,
        "totalGoalsInGame": sequence,
        "goalContext": _goal_context(sequence, before[team], before[opponent]),
        "scoreBeforeGoal": before,
        "scoreAfterGoal": after,
        "leadDeficitBefore": before[team] - before[opponent],
        "leadDeficitAfter": after[team] - after[opponent],
        "gameSituation": game_situation(period),
        "isOvertime": period > REGULATION_PERIODS,
        "absoluteTimestamp": utc_now_iso(),
    }
    # caller-supplied context can add keys but never replace computed ones
    return {**(context or {}), **computed}


def _penalty_context(sequence: int, penalty_type: str, length: int) -> str:
    if sequence == 1:
        return "First penalty of game"
    if "Major" in penalty_type or "Fighting" in penalty_type:
        return "Major penalty"
    if "Misconduct" in penalty_type:
        return "Misconduct penalty"
    if length > 2:
        return "Double minor penalty"
    return "Regular penalty"


def _minutes(penalty: Mapping[str, Any]) -> int:
    try:
        return int(penalty.get("length") or 0)
    except (TypeError, ValueError):
        return 0


def penalty_analytics(
    game: Mapping[str, Any],
    prior_penalties: List[Mapping[str, Any]],
    goals: List[Mapping[str, Any]],
    team: str,
    player: str,
    penalty_type: str,
    length: int,
    period: int,
) -> Dict[str, Any]:
    sequence = len(prior_penalties) + 1
    team_penalties = [p for p in prior_penalties if _team(p) == team]
    player_penalties = [p for p in prior_penalties if p.get("playerName") == player]

    return {
        "penaltySequenceNumber": sequence,
        "totalPenaltiesInGame": sequence,
        "penaltyContext": _penalty_context(sequence, penalty_type, length),
        "currentScore": score_by_team(goals, (game["homeTeam"], game["awayTeam"])),
        "teamPenaltyCount": len(team_penalties) + 1,
        "playerPenaltyCount": len(player_penalties) + 1,
        "teamTotalPIM": sum(_minutes(p) for p in team_penalties) + length,
        "playerTotalPIM": sum(_minutes(p) for p in player_penalties) + length,
        "gameSituation": game_situation(period),
        "isOvertime": period > REGULATION_PERIODS,
        "absoluteTimestamp": utc_now_iso(),
    }


def game_summary(goals: List[Mapping[str, Any]], penalties: List[Mapping[str, Any]]) -> Dict[str, Any]:
    goals_by_team: Dict[str, int] = {}
    for goal in goals:
        goals_by_team[_team(goal)] = goals_by_team.get(_team(goal), 0) + 1

    penalties_by_team: Dict[str, int] = {}
    for penalty in penalties:
        penalties_by_team[_team(penalty)] = penalties_by_team.get(_team(penalty), 0) + 1

    return {
        "goalsByTeam": goals_by_team,
        "penaltiesByTeam": penalties_by_team,
        "totalPIM": sum(_minutes(p) for p in penalties),
    }


def final_score(game: Mapping[str, Any], goals: List[Mapping[str, Any]]) -> Dict[str, int]:
    return score_by_team(goals, (game["homeTeam"], game["awayTeam"]))


def player_id(team_name: str, player_name: str) -> str:
    return re.sub(r"\s+", "-", f"{team_name}-{player_name}").lower()


def reliability(attendance_percentage: int) -> str:
    if attendance_percentage >= 80:
        return "High"
    if attendance_percentage >= 60:
        return "Good"
    if attendance_percentage >= 40:
        return "Moderate"
    return "Low"


def _player_name(player: Mapping[str, Any]) -> str:
    name = (player.get("name") or "").strip()
    return name or f"{player.get('firstName', '')} {player.get('lastName', '')}".strip()


def player_attendance_stats(
    rosters: Iterable[Mapping[str, Any]],
    games: Iterable[Mapping[str, Any]],
    attendance_records: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """
    Attendance stats for every rostered player, best attendance first.

    A team's game counts toward a player's total only when attendance was
    taken for that team; `scheduledGames` counts every game the team is in.
    """
    games = list(games)
    attendance_records = list(attendance_records)
    now = utc_now_iso()

    stats = []
    for roster in rosters:
        team = roster.get("teamName", "")
        scheduled = sum(1 for g in games if team in (g.get("homeTeam"), g.get("awayTeam")))
        team_sheets = [
            sheet
            for record in attendance_records
            for sheet in record.get("attendance") or []
            if sheet.get("teamName") == team
        ]

        for player in roster.get("players") or []:
            name = _player_name(player)
            attended = sum(1 for sheet in team_sheets if name in (sheet.get("playersPresent") or []))
            taken = len(team_sheets)
            percentage = int(attended * 100 / taken + 0.5) if taken else 0

            stats.append(
                {
                    "id": f"{player_id(team, name)}-stats",
                    "playerId": player_id(team, name),
                    "playerName": name,
                    "teamName": team,
                    "season": roster.get("season"),
                    "year": roster.get("year"),
                    "division": roster.get("division"),
                    "attendance": {
                        "gamesAttended": attended,
                        "totalTeamGames": taken,
                        "attendancePercentage": percentage,
                        "scheduledGames": scheduled,
                    },
                    "playerInfo": {
                        "position": player.get("position") or "Player",
                        "jerseyNumber": player.get("jerseyNumber") or "N/A",
                    },
                    "insights": {"reliability": reliability(percentage)},
                    "announcer": {
                        "quickFacts": [
                            f"{name} has {percentage}% attendance this season",
                            f"Attended {attended} of {taken} games",
                            f"Reliability: {reliability(percentage)}",
                        ],
                        "metrics": {
                            "attendance": percentage,
                            "gamesPlayed": attended,
                            "reliability": reliability(percentage),
                        },
                    },
                    "lastUpdated": now,
                }
            )

    stats.sort(key=lambda s: s["attendance"]["attendancePercentage"], reverse=True)
    return stats
