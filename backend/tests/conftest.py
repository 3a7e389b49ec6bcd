"""Shared fixtures: clean singletons, a small player catalog, league builders."""
from __future__ import annotations

import pytest

from draftroom.config import draft_config
from draftroom.models.player import Player
from draftroom.services.draft_service import DraftService, set_draft_service
from draftroom.services.league_manager import create_league, reset_leagues
from draftroom.services.player_catalog import add_players, clear_players
from draftroom.services.roster_store import reset_rosters

POSITIONS = ["PG", "SG", "SF", "PF", "C"]


def make_players(n: int) -> list[Player]:
    """Players p001..pNNN with strictly decreasing overall ratings."""
    return [
        Player(
            id=f"p{i:03d}",
            name=f"Prospect {i}",
            position=POSITIONS[(i - 1) % len(POSITIONS)],
            overall_rating=99 - i,
            potential=90,
        )
        for i in range(1, n + 1)
    ]


@pytest.fixture(autouse=True)
def clean_state(tmp_path, monkeypatch):
    """Reset all state between tests and keep disk writes in tmp_path."""
    monkeypatch.setattr(draft_config, "data_dir", tmp_path)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    clear_players()
    reset_leagues()
    reset_rosters()
    set_draft_service(DraftService())
    yield
    clear_players()
    reset_leagues()
    reset_rosters()
    set_draft_service(None)


@pytest.fixture
def catalog():
    players = make_players(60)
    add_players(players)
    return players


@pytest.fixture
def service():
    return DraftService()


def make_league(team_ids: list[str], computer: set[str] = frozenset(), league_id: str = "lg1"):
    """League whose teams are human-owned unless listed in *computer*."""
    return create_league(
        "Test League",
        teams=[
            {"id": tid, "name": f"Team {tid}", "owner_id": None if tid in computer else f"user_{tid}"}
            for tid in team_ids
        ],
        league_id=league_id,
    )
