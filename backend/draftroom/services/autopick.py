"""Autopick policy for computer-controlled teams and "pick for me" requests."""

from __future__ import annotations

import json
import logging
import os
import random
import re
from typing import Callable, Optional, Protocol

import anthropic

from ..config import AutopickConfig, draft_config
from ..errors import ExternalServiceError, PlayerUnavailableError
from ..models.draft import TeamDraftRecord
from ..models.player import Player, id_sort_key

logger = logging.getLogger(__name__)

Scorer = Callable[[Player, dict, float], float]


def roster_needs(position_counts: dict[str, int], targets: dict[str, int]) -> dict[str, int]:
    """Open slots per position: target minus what the roster already has."""
    return {
        pos: max(target - position_counts.get(pos, 0), 0)
        for pos, target in targets.items()
    }


def need_adjusted_score(player: Player, needs: dict[str, int], weight: float) -> float:
    return player.overall_rating + weight * needs.get(player.position, 0)


def best_available(candidates: list[Player]) -> Player:
    """Highest overall rating; ties go to the lowest player id."""
    if not candidates:
        raise PlayerUnavailableError("No players left to pick from")
    return min(candidates, key=lambda p: (-p.overall_rating, id_sort_key(p.id)))


class Ranker(Protocol):
    def rank_for_need(
        self,
        team: TeamDraftRecord,
        candidates: list[Player],
        needs: dict[str, int],
        pick_number: int,
        round: int,
    ) -> str:
        ...


class AutopickPolicy:
    """Choose a player for the team on the clock.

    With a ranker configured, its answer is used when it names one of the
    candidates; any failure falls back to ``best_available``. Without one,
    candidates are ordered by ``scorer`` (rating plus positional need).
    """

    def __init__(
        self,
        ranker: Optional[Ranker] = None,
        scorer: Scorer = need_adjusted_score,
        config: Optional[AutopickConfig] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.ranker = ranker
        self.scorer = scorer
        self.config = config or draft_config.autopick
        self.rng = rng

    def select_pick(
        self,
        team: TeamDraftRecord,
        candidates: list[Player],
        needs: dict[str, int],
        pick_number: int,
        round: int,
    ) -> str:
        if not candidates:
            raise PlayerUnavailableError(f"No players left for team '{team.team_id}'")
        candidate_ids = {p.id for p in candidates}

        if self.ranker is not None:
            try:
                choice = self.ranker.rank_for_need(team, candidates, needs, pick_number, round)
            except Exception as e:
                logger.warning(f"Ranking service failed for {team.team_id}, using best available: {e}")
            else:
                if choice in candidate_ids:
                    return choice
                logger.warning(
                    f"Ranking service chose '{choice}' outside the candidates for {team.team_id}, "
                    "using best available"
                )
            return best_available(candidates).id

        try:
            scored = [(self.scorer(p, needs, self.config.need_weight), p) for p in candidates]
        except Exception as e:
            logger.warning(f"Autopick scorer failed for {team.team_id}, using best available: {e}")
            return best_available(candidates).id

        top_score = max(score for score, _ in scored)
        tied = sorted(
            (p for score, p in scored if score == top_score), key=lambda p: id_sort_key(p.id)
        )
        if self.rng is not None and len(tied) > 1:
            return self.rng.choice(tied).id
        return tied[0].id


# ---------------------------------------------------------------------------
# Generative ranking service
# ---------------------------------------------------------------------------

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


def parse_ranker_response(text: str) -> dict:
    """Pull the JSON decision out of a model reply, fenced or not."""
    match = _FENCED_JSON.search(text)
    body = match.group(1) if match else text
    try:
        decision = json.loads(body.strip())
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Unparseable ranking response: {e}") from e
    if not isinstance(decision, dict) or "playerId" not in decision:
        raise ExternalServiceError("Ranking response is missing playerId")
    return decision


class AnthropicRanker:
    """Asks a Claude model to act as the GM on the clock."""

    def __init__(self, client=None, api_key: Optional[str] = None, config: Optional[AutopickConfig] = None):
        self.config = config or draft_config.autopick
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def build_prompt(
        self,
        team: TeamDraftRecord,
        candidates: list[Player],
        needs: dict[str, int],
        pick_number: int,
        round: int,
    ) -> str:
        board = "\n".join(
            f"{i + 1}. [{p.id}] {p.name} - {p.position}, Overall: {p.overall_rating}, Potential: {p.potential}"
            for i, p in enumerate(candidates)
        )
        return f"""You are a GM making a draft pick. Analyze the available players and team needs.

Team: {team.name or team.team_id}
Current Pick: Round {round}, Pick {pick_number}
Open roster spots by position: {json.dumps(needs)}

Available Players (top {len(candidates)} by rating):
{board}

Choose the best player considering:
1. Best Player Available - overall talent level
2. Team Needs - fill position gaps
3. Potential - especially important in later rounds

Return ONLY a JSON object with this exact format:
{{
  "playerId": "<the id in brackets of the selected player>",
  "reason": "brief 1-2 sentence explanation"
}}"""

    def rank_for_need(
        self,
        team: TeamDraftRecord,
        candidates: list[Player],
        needs: dict[str, int],
        pick_number: int,
        round: int,
    ) -> str:
        prompt = self.build_prompt(team, candidates, needs, pick_number, round)
        try:
            message = self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            response_text = message.content[0].text
        except (anthropic.APIError, IndexError, AttributeError) as e:
            raise ExternalServiceError(f"Ranking service call failed: {e}") from e

        decision = parse_ranker_response(response_text)
        player_id = str(decision["playerId"])
        logger.info(f"AI pick for {team.name or team.team_id}: {player_id} - {decision.get('reason', '')}")
        return player_id


def build_default_ranker() -> Optional[AnthropicRanker]:
    """Ranker from ``ANTHROPIC_API_KEY``; None when the key is not set."""
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        logger.warning("ANTHROPIC_API_KEY not set - autopick uses rating and roster needs only")
        return None
    logger.info("Autopick ranking service enabled")
    return AnthropicRanker(api_key=api_key)
