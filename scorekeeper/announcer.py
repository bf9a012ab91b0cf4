"""
Arena announcer text for goals, penalties and scoreless stretches.

With an Anthropic API key the lines are written by Claude in a play-by-play
voice; without one, or when the API call fails, deterministic templates are
used so the announce buttons always have something to say.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import anthropic

from .config import Settings

logger = logging.getLogger(__name__)

ANNOUNCER_PERSONA = (
    "You are a professional roller hockey arena announcer calling a youth league game. "
    "Your delivery is vivid but minimal, warm, and builds excitement naturally. "
    "Use roller hockey terms only, never ice references. "
    "Return only the words to be spoken: no stage directions, quotes or formatting."
)


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def period_label(period: int) -> str:
    if period > 3:
        return "overtime"
    return f"{ordinal(period)} period"


def score_line(scoring_team: str, home_team: str, away_team: str, score: Dict[str, int]) -> str:
    """Score read with the scoring team first."""
    other = away_team if scoring_team == home_team else home_team
    return f"{scoring_team} {score.get(scoring_team, 0)}, {other} {score.get(other, 0)}"


class Announcer:
    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.model = settings.announcer_model
        self.client = client
        if self.client is None and settings.anthropic_api_key:
            self.client = anthropic.Anthropic(api_key=settings.anthropic_api_key)

    @property
    def ai_enabled(self) -> bool:
        return self.client is not None

    def _complete(self, prompt: str, max_tokens: int) -> Optional[str]:
        if self.client is None:
            return None
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=ANNOUNCER_PERSONA,
                messages=[{"role": "user", "content": prompt}],
            )
            text = message.content[0].text.strip()
            return text or None
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
        except Exception as e:
            logger.error(f"Announcer generation error: {e}")
        return None

    def goal(
        self,
        goal: Dict[str, Any],
        game: Dict[str, Any],
        score: Dict[str, int],
        goals_this_game: int,
    ) -> str:
        player = goal.get("playerName", "Unknown player")
        team = goal.get("teamName", "")
        assists: List[str] = [a for a in goal.get("assistedBy") or [] if a]
        goal_type = goal.get("goalType") or "even strength"
        period = int(goal.get("period") or 1)
        time_left = goal.get("timeRemaining", "")
        score_text = score_line(team, game["homeTeam"], game["awayTeam"], score)

        prompt = (
            "Call this goal in one or two short sentences.\n\n"
            f"Player: {player}\n"
            f"Team: {team}\n"
            f"Period: {period_label(period)}\n"
            f"Time remaining: {time_left}\n"
            f"Goal type: {goal_type}\n"
            f"{'Assisted by ' + ' and '.join(assists) if assists else 'Unassisted'}\n"
            f"Score now: {score_text}\n"
            f"This is {player}'s {ordinal(goals_this_game)} goal of the game."
        )
        text = self._complete(prompt, max_tokens=200)
        if text:
            return text

        assist_text = f" Assisted by {' and '.join(assists)}." if assists else " Unassisted."
        type_text = "" if goal_type == "even strength" else f" A {goal_type} goal."
        count_text = (
            f" That's {ordinal(goals_this_game)} of the game for {player}."
            if goals_this_game > 1
            else ""
        )
        return (
            f"GOAL! {player} scores for {team} with {time_left} left in the {period_label(period)}!"
            f"{assist_text}{type_text}{count_text} The score: {score_text}."
        )

    def penalty(self, penalty: Dict[str, Any], game: Optional[Dict[str, Any]] = None) -> str:
        player = penalty.get("playerName", "Unknown player")
        team = penalty.get("teamName", "")
        length = penalty.get("length") or 2
        infraction = penalty.get("penaltyType", "a penalty")
        period = int(penalty.get("period") or 1)

        prompt = (
            "Announce this penalty clearly and with authority in one sentence.\n\n"
            f"Player: {player}\n"
            f"Team: {team}\n"
            f"Penalty: {infraction}, {length} minutes\n"
            f"Period: {period_label(period)}\n"
            f"Time remaining: {penalty.get('timeRemaining', '')}"
        )
        if game:
            prompt += f"\nGame: {game.get('awayTeam')} at {game.get('homeTeam')}"
        text = self._complete(prompt, max_tokens=60)
        if text:
            return text

        prefix = f"{team} penalty. " if team else ""
        return f"{prefix}{player}, {length} minutes for {infraction}."

    def scoreless(self, game: Dict[str, Any], period: int = 1) -> str:
        home, away = game.get("homeTeam", "the home team"), game.get("awayTeam", "the visitors")
        prompt = (
            f"We're in the {period_label(period)} of a scoreless game between {home} and {away}. "
            "Give two sentences of commentary on the defensive battle and the goaltending, "
            "building anticipation for the first goal."
        )
        text = self._complete(prompt, max_tokens=150)
        if text:
            return text
        return (
            f"Still no score here in the {period_label(period)} between {home} and {away}. "
            "Both goaltenders are standing tall, and the first goal is going to be huge."
        )
