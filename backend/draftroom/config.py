"""Draft room configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class DraftDefaults(BaseModel):
    rounds: int = 10
    mode: str = "snake"
    pool_size: int = 500
    time_per_pick: int = 90  # seconds; stored on the draft, not enforced


class AutopickConfig(BaseModel):
    candidate_limit: int = 20  # top-N available players shown to the policy
    need_weight: float = 4.0  # rating points per unfilled position slot
    roster_targets: dict[str, int] = {"PG": 2, "SG": 2, "SF": 2, "PF": 2, "C": 2}
    delay_seconds: float = 0.0  # pause between chained computer picks
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 300


class RookieScale(BaseModel):
    """Entry-level contract scale keyed by the last pick number of each tier."""
    tiers: dict[int, int] = {
        1: 10_000_000,
        2: 9_000_000,
        3: 8_000_000,
        4: 7_000_000,
        5: 6_500_000,
        10: 5_000_000,
        15: 3_500_000,
        20: 2_500_000,
        30: 2_000_000,
        40: 1_500_000,
        50: 1_200_000,
        60: 1_000_000,
    }
    minimum_salary: int = 1_000_000
    rating_baseline: float = 80.0
    contract_years: int = 4


class DraftConfig(BaseModel):
    defaults: DraftDefaults = DraftDefaults()
    autopick: AutopickConfig = AutopickConfig()
    rookie_scale: RookieScale = RookieScale()

    draft_store: str = "memory"  # "memory" or "file"
    recent_event_limit: int = 50
    data_dir: Path = Path(__file__).resolve().parent.parent / "data"

    @property
    def draft_state_dir(self) -> Path:
        return self.data_dir / "draft_state"

    @property
    def snapshot_dir(self) -> Path:
        return self.data_dir / "snapshots"

    @property
    def players_file(self) -> Path:
        return self.data_dir / "players" / "players.csv"


# Default draft config singleton
draft_config = DraftConfig()
