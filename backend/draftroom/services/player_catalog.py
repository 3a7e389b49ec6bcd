"""Player catalog: CSV import, persistence, lookup and name search."""

from __future__ import annotations

import io
import logging
import uuid
from typing import Iterable, Optional

import pandas as pd
from thefuzz import fuzz, process

from ..config import draft_config
from ..models.player import Player, id_sort_key

logger = logging.getLogger(__name__)

# Column name mappings for common roster export formats
PLAYER_COLUMN_MAP = {
    "id": "id",
    "ID": "id",
    "player_id": "id",
    "playerid": "id",
    "PlayerId": "id",
    "name": "name",
    "Name": "name",
    "\ufeffName": "name",  # BOM-prefixed
    "Player": "name",
    "position": "position",
    "Position": "position",
    "Pos": "position",
    "POS": "position",
    "overall": "overall_rating",
    "Overall": "overall_rating",
    "overall_rating": "overall_rating",
    "OVR": "overall_rating",
    "potential": "potential",
    "Potential": "potential",
    "POT": "potential",
    "team": "team",
    "Team": "team",
    "Tm": "team",
    "age": "age",
    "Age": "age",
}

# In-memory player store
_players: dict[str, Player] = {}


def get_players() -> dict[str, Player]:
    return _players


def get_player(player_id: str) -> Optional[Player]:
    return _players.get(str(player_id))


def resolve_player(player_id: str) -> Optional[Player]:
    """Catalog lookup used by the draft; None when the id is unknown."""
    return get_player(player_id)


def add_players(players: Iterable[Player]) -> int:
    count = 0
    for player in players:
        _players[player.id] = player
        count += 1
    return count


def clear_players(delete_file: bool = False) -> None:
    _players.clear()
    if delete_file and draft_config.players_file.exists():
        draft_config.players_file.unlink()


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    rename = {c: PLAYER_COLUMN_MAP[c] for c in df.columns if c in PLAYER_COLUMN_MAP}
    df = df.rename(columns=rename)
    # Keep the first of any columns that collapsed onto the same name
    return df.loc[:, ~df.columns.duplicated()]


def _int_or(value, default: Optional[int]) -> Optional[int]:
    if value is None or pd.isna(value):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def load_players_csv(csv_content: bytes, persist: bool = True) -> list[Player]:
    """Parse a player CSV into the catalog.

    Requires a name column; ids are generated when the file has none.
    """
    df = pd.read_csv(io.BytesIO(csv_content))
    df = _normalize_columns(df)
    if "name" not in df.columns:
        raise ValueError("Player CSV needs a name column")

    loaded: list[Player] = []
    for _, row in df.iterrows():
        name = row.get("name")
        if name is None or pd.isna(name) or not str(name).strip():
            continue
        raw_id = row.get("id")
        player_id = (
            str(raw_id).strip()
            if raw_id is not None and not pd.isna(raw_id)
            else str(uuid.uuid4())[:8]
        )
        # pandas reads integer id columns as numbers
        if player_id.endswith(".0"):
            player_id = player_id[:-2]
        position = row.get("position")
        team = row.get("team")
        loaded.append(Player(
            id=player_id,
            name=str(name).strip(),
            position="" if position is None or pd.isna(position) else str(position).strip().upper(),
            overall_rating=_int_or(row.get("overall_rating"), 0),
            potential=_int_or(row.get("potential"), 0),
            team="" if team is None or pd.isna(team) else str(team).strip(),
            age=_int_or(row.get("age"), None),
        ))

    add_players(loaded)
    logger.info(f"Loaded {len(loaded)} players ({len(_players)} in catalog)")
    if persist:
        save_players()
    return loaded


def save_players() -> str:
    """Write the catalog to ``data/players/players.csv``."""
    filepath = draft_config.players_file
    filepath.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame([p.model_dump() for p in _players.values()])
    df.to_csv(filepath, index=False)
    return str(filepath)


def load_persisted_players() -> int:
    """Reload the saved catalog on startup. Returns the number of players."""
    filepath = draft_config.players_file
    if not filepath.exists():
        return 0
    try:
        loaded = load_players_csv(filepath.read_bytes(), persist=False)
    except (ValueError, pd.errors.ParserError) as e:
        logger.warning(f"Could not reload players from {filepath}: {e}")
        return 0
    return len(loaded)


def rank_players(players: Iterable[Player]) -> list[Player]:
    """Best first: overall rating, then potential, then lowest id."""
    return sorted(players, key=lambda p: (-p.overall_rating, -p.potential, id_sort_key(p.id)))


def top_players(limit: int, exclude: Optional[set[str]] = None) -> list[Player]:
    exclude = exclude or set()
    pool = (p for pid, p in _players.items() if pid not in exclude)
    return rank_players(pool)[:limit]


def search_players(query: str, candidates: Iterable[Player], threshold: int = 80) -> list[Player]:
    """Fuzzy name search over *candidates*, keeping their order."""
    candidates = list(candidates)
    choices = {p.id: p.name for p in candidates}
    if not query or not choices:
        return candidates
    matches = process.extractBests(
        query,
        choices,
        scorer=fuzz.partial_ratio,
        score_cutoff=threshold,
        limit=len(choices),
    )
    matched_ids = {player_id for _name, _score, player_id in matches}
    return [p for p in candidates if p.id in matched_ids]
