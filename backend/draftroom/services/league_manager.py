"""League and team registry."""

from __future__ import annotations

import uuid
from typing import Optional

from ..errors import NotFoundError
from ..models.league import League, Team

# ---------------------------------------------------------------------------
# Leagues keyed by id
# ---------------------------------------------------------------------------
_leagues: dict[str, League] = {}


def get_league(league_id: str) -> Optional[League]:
    return _leagues.get(league_id)


def require_league(league_id: str) -> League:
    league = get_league(league_id)
    if league is None:
        raise NotFoundError(f"League '{league_id}' not found")
    return league


def list_leagues() -> list[League]:
    return list(_leagues.values())


def create_league(
    name: str,
    teams: Optional[list[dict]] = None,
    league_id: Optional[str] = None,
) -> League:
    """Create a league, optionally with teams.

    Each team entry: ``{"name": str, "id": str | None, "owner_id": str | None}``.
    Teams without an ``owner_id`` are computer-controlled.
    """
    league_id = league_id or str(uuid.uuid4())[:8]
    if league_id in _leagues:
        raise ValueError(f"League '{league_id}' already exists")
    league = League(id=league_id, name=name)
    _leagues[league_id] = league
    for td in teams or []:
        add_team(league_id, td["name"], owner_id=td.get("owner_id"), team_id=td.get("id"))
    return league


def add_team(
    league_id: str,
    name: str,
    owner_id: Optional[str] = None,
    team_id: Optional[str] = None,
) -> Team:
    league = require_league(league_id)
    team_id = team_id or f"team_{len(league.teams) + 1}"
    if league.get_team(team_id) is not None:
        raise ValueError(f"Team '{team_id}' already exists in league '{league_id}'")
    team = Team(id=team_id, name=name, owner_id=owner_id)
    league.teams.append(team)
    return team


def set_team_owner(league_id: str, team_id: str, owner_id: Optional[str]) -> Team:
    """Hand a team to a user (or back to the computer with ``None``)."""
    league = require_league(league_id)
    team = league.get_team(team_id)
    if team is None:
        raise NotFoundError(f"Team '{team_id}' not found in league '{league_id}'")
    team.owner_id = owner_id
    return team


def reset_leagues() -> None:
    """Tear down the registry (useful in tests)."""
    _leagues.clear()
