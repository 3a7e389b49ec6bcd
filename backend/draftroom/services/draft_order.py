"""Draft order generation (snake and linear)."""

from __future__ import annotations

from typing import Optional, Sequence

from ..models.draft import DraftMode, DraftSlot


def generate_order(
    team_ids: Sequence[str],
    rounds: int,
    mode: DraftMode | str = DraftMode.SNAKE,
    team_names: Optional[dict[str, str]] = None,
) -> list[DraftSlot]:
    """Build the full pick order.

    Linear: every round walks ``team_ids`` in the given order.
    Snake: odd rounds walk it forward, even rounds walk it reversed.

    Pick numbers are dense from 1, so the result has exactly
    ``rounds * len(team_ids)`` slots.
    """
    mode = DraftMode(mode)
    names = team_names or {}
    forward = list(team_ids)
    backward = list(reversed(forward))

    order: list[DraftSlot] = []
    for rnd in range(1, rounds + 1):
        sequence = backward if mode == DraftMode.SNAKE and rnd % 2 == 0 else forward
        for team_id in sequence:
            order.append(DraftSlot(
                pick=len(order) + 1,
                round=rnd,
                team_id=team_id,
                team_name=names.get(team_id, ""),
            ))
    return order


def upcoming_picks(
    order: Sequence[DraftSlot],
    team_id: str,
    current_pick: int,
    limit: int = 5,
) -> list[DraftSlot]:
    """Next *limit* slots owned by *team_id*, starting at ``current_pick``."""
    upcoming = [s for s in order if s.team_id == team_id and s.pick >= current_pick]
    return upcoming[:limit]
