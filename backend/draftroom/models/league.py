"""League, Team, and roster models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Team(BaseModel):
    id: str
    name: str
    owner_id: Optional[str] = None  # None = computer-controlled

    @property
    def is_computer_controlled(self) -> bool:
        return self.owner_id is None


class League(BaseModel):
    id: str
    name: str = ""
    teams: list[Team] = []

    def get_team(self, team_id: str) -> Optional[Team]:
        return next((t for t in self.teams if t.id == team_id), None)


class RosterEntry(BaseModel):
    team_id: str
    player_id: str
    league_id: str
    contract_years: int
    contract_salary: int
    is_free_agent: bool = False
