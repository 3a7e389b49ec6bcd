"""Player catalog models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class Player(BaseModel):
    id: str
    name: str
    position: str = ""
    overall_rating: int = 0
    potential: int = 0
    team: str = ""
    age: Optional[int] = None


def id_sort_key(player_id: str) -> tuple:
    """Numeric ids order by value ("9" before "10"), ahead of any non-numeric id."""
    return (0, int(player_id), "") if player_id.isdecimal() else (1, 0, player_id)
