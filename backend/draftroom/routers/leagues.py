"""League and team management endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..errors import NotFoundError
from ..services.league_manager import (
    add_team,
    create_league,
    get_league,
    list_leagues,
    set_team_owner,
)
from ..services.roster_store import team_roster, team_salary

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class TeamIn(BaseModel):
    name: str
    id: Optional[str] = None
    owner_id: Optional[str] = None


class LeagueIn(BaseModel):
    name: str
    id: Optional[str] = None
    teams: List[TeamIn] = []


class OwnerUpdate(BaseModel):
    owner_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
async def get_leagues():
    leagues = list_leagues()
    return {"leagues": [lg.model_dump() for lg in leagues], "count": len(leagues)}


@router.post("", status_code=201)
async def create_league_endpoint(body: LeagueIn):
    """Create a league. Teams without an owner are computer-controlled."""
    try:
        league = create_league(
            body.name,
            teams=[t.model_dump() for t in body.teams],
            league_id=body.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return league.model_dump()


@router.get("/{league_id}")
async def get_league_endpoint(league_id: str):
    league = get_league(league_id)
    if league is None:
        raise HTTPException(status_code=404, detail=f"League '{league_id}' not found")
    return league.model_dump()


@router.post("/{league_id}/teams", status_code=201)
async def add_team_endpoint(league_id: str, body: TeamIn):
    try:
        team = add_team(league_id, body.name, owner_id=body.owner_id, team_id=body.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return team.model_dump()


@router.put("/{league_id}/teams/{team_id}/owner")
async def update_team_owner(league_id: str, team_id: str, body: OwnerUpdate):
    """Hand a team to a user, or back to the computer with a null owner."""
    try:
        team = set_team_owner(league_id, team_id, body.owner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return team.model_dump()


@router.get("/{league_id}/teams/{team_id}/roster")
async def get_team_roster(league_id: str, team_id: str):
    """Players a team has drafted, with their rookie contracts."""
    league = get_league(league_id)
    if league is None or league.get_team(team_id) is None:
        raise HTTPException(status_code=404, detail=f"Team '{team_id}' not found")
    roster = team_roster(league_id, team_id)
    return {
        "team_id": team_id,
        "roster": [e.model_dump() for e in roster],
        "total_salary": team_salary(league_id, team_id),
    }
