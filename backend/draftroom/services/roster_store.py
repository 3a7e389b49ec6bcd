"""Team rosters and entry-level contracts for drafted players."""

from __future__ import annotations

import logging
import threading
from collections import Counter

from ..config import RookieScale, draft_config
from ..errors import PlayerUnavailableError
from ..models.league import RosterEntry
from .player_catalog import get_player

logger = logging.getLogger(__name__)

# (league_id, player_id) -> RosterEntry
_rosters: dict[tuple[str, str], RosterEntry] = {}
_lock = threading.Lock()


def calculate_rookie_contract(
    pick_number: int,
    overall_rating: int,
    scale: RookieScale | None = None,
) -> int:
    """Salary from the rookie scale tier, scaled by rating over the baseline."""
    scale = scale or draft_config.rookie_scale
    salary = scale.minimum_salary
    for last_pick in sorted(scale.tiers):
        if pick_number <= last_pick:
            salary = scale.tiers[last_pick]
            break
    return int(salary * (overall_rating / scale.rating_baseline))


def assign_player_to_team(
    team_id: str,
    player_id: str,
    league_id: str,
    pick_number: int,
    overall_rating: int,
) -> RosterEntry:
    """Put a drafted player on a roster under a rookie contract."""
    entry = RosterEntry(
        team_id=team_id,
        player_id=player_id,
        league_id=league_id,
        contract_years=draft_config.rookie_scale.contract_years,
        contract_salary=calculate_rookie_contract(pick_number, overall_rating),
    )
    with _lock:
        existing = _rosters.get((league_id, player_id))
        if existing is not None:
            raise PlayerUnavailableError(
                f"Player '{player_id}' is already on team '{existing.team_id}'"
            )
        _rosters[(league_id, player_id)] = entry
    logger.debug(f"Rostered {player_id} on {team_id} at ${entry.contract_salary:,}")
    return entry


def release_player(league_id: str, player_id: str) -> bool:
    with _lock:
        return _rosters.pop((league_id, player_id), None) is not None


def team_roster(league_id: str, team_id: str) -> list[RosterEntry]:
    with _lock:
        return [
            e for (lid, _pid), e in _rosters.items()
            if lid == league_id and e.team_id == team_id
        ]


def rostered_player_ids(league_id: str) -> set[str]:
    with _lock:
        return {pid for (lid, pid) in _rosters if lid == league_id}


def team_salary(league_id: str, team_id: str) -> int:
    return sum(
        e.contract_salary for e in team_roster(league_id, team_id) if not e.is_free_agent
    )


def position_counts(league_id: str, team_id: str) -> dict[str, int]:
    """Number of rostered players per position."""
    counts: Counter = Counter()
    for entry in team_roster(league_id, team_id):
        player = get_player(entry.player_id)
        if player is not None and player.position:
            counts[player.position] += 1
    return dict(counts)


def clear_league(league_id: str) -> int:
    """Drop every roster entry for a league. Returns how many were removed."""
    with _lock:
        keys = [k for k in _rosters if k[0] == league_id]
        for k in keys:
            del _rosters[k]
    return len(keys)


def reset_rosters() -> None:
    with _lock:
        _rosters.clear()
