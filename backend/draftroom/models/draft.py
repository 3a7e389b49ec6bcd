"""Draft state models."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import InvalidStateError


class DraftStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class DraftMode(str, Enum):
    SNAKE = "snake"
    LINEAR = "linear"


# (from, to) pairs the state machine accepts; completed is terminal
ALLOWED_TRANSITIONS: set[tuple[DraftStatus, DraftStatus]] = {
    (DraftStatus.NOT_STARTED, DraftStatus.IN_PROGRESS),
    (DraftStatus.IN_PROGRESS, DraftStatus.PAUSED),
    (DraftStatus.PAUSED, DraftStatus.IN_PROGRESS),
    (DraftStatus.IN_PROGRESS, DraftStatus.COMPLETED),
}


class DraftSlot(BaseModel):
    pick: int
    round: int
    team_id: str
    team_name: str = ""

    model_config = {"frozen": True}


class PickRecord(BaseModel):
    pick_number: int
    round: int
    player_id: str
    # Snapshot of the player at pick time
    player_name: str
    position: str = ""
    overall_rating: int = 0
    picked_at: datetime = Field(default_factory=datetime.now)


class TeamDraftRecord(BaseModel):
    team_id: str
    name: str = ""
    owner_id: Optional[str] = None
    is_computer_controlled: bool = False
    picks: list[PickRecord] = []


class DraftSettings(BaseModel):
    rounds: int = Field(10, ge=1)
    mode: DraftMode = DraftMode.SNAKE
    pool_size: int = Field(500, ge=1)
    time_per_pick: int = Field(90, ge=0)


def round_for_pick(pick: int, team_count: int, total_rounds: int) -> int:
    """1-based round of a pick number, clamped to the last round."""
    return min(max(1, math.ceil(pick / team_count)), total_rounds)


class Draft(BaseModel):
    league_id: str
    status: DraftStatus = DraftStatus.NOT_STARTED
    current_pick: int = 1
    current_round: int = 1
    total_rounds: int = 10
    mode: DraftMode = DraftMode.SNAKE
    settings: DraftSettings = DraftSettings()

    order: list[DraftSlot] = []
    teams: dict[str, TeamDraftRecord] = {}
    available_players: list[str] = []  # pool order, best first

    version: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("available_players")
    @classmethod
    def _unique_pool(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("available_players contains duplicates")
        return v

    @property
    def team_count(self) -> int:
        return len(self.teams)

    @property
    def total_picks(self) -> int:
        return len(self.order)

    @property
    def picks_made(self) -> int:
        return sum(len(t.picks) for t in self.teams.values())

    @property
    def is_complete(self) -> bool:
        return self.status == DraftStatus.COMPLETED

    @property
    def current_slot(self) -> Optional[DraftSlot]:
        if 1 <= self.current_pick <= len(self.order):
            return self.order[self.current_pick - 1]
        return None

    @property
    def on_the_clock(self) -> Optional[TeamDraftRecord]:
        slot = self.current_slot
        if slot is None:
            return None
        return self.teams.get(slot.team_id)

    def get_team(self, team_id: str) -> Optional[TeamDraftRecord]:
        return self.teams.get(team_id)

    def is_available(self, player_id: str) -> bool:
        return player_id in self.available_players

    def transition(self, target: DraftStatus) -> None:
        """Move to *target* or raise InvalidStateError."""
        if (self.status, target) not in ALLOWED_TRANSITIONS:
            raise InvalidStateError(
                f"Draft for league '{self.league_id}' cannot go from "
                f"{self.status.value} to {target.value}"
            )
        self.status = target
        if target == DraftStatus.IN_PROGRESS and self.started_at is None:
            self.started_at = datetime.now()
        elif target == DraftStatus.COMPLETED:
            self.completed_at = datetime.now()


class PickResult(BaseModel):
    league_id: str
    team_id: str
    pick: PickRecord
    current_pick: int
    current_round: int
    status: DraftStatus
    autopicked: bool = False
