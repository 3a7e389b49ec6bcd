"""Player catalog upload and lookup endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from ..services.player_catalog import (
    clear_players,
    get_player,
    get_players,
    load_players_csv,
    rank_players,
    search_players,
)

router = APIRouter()


@router.post("/upload")
async def upload_players(file: UploadFile = File(...)):
    """Upload a player CSV (name, position, overall, potential, ...). Saved to disk."""
    content = await file.read()
    try:
        players = load_players_csv(content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "message": f"Loaded {len(players)} players from {file.filename}",
        "player_count": len(players),
        "total_in_catalog": len(get_players()),
    }


@router.delete("/clear")
async def clear_all_players(delete_file: bool = Query(True)):
    """Clear the catalog and optionally delete the saved file."""
    clear_players(delete_file=delete_file)
    return {"message": "All players cleared", "file_deleted": delete_file}


@router.get("")
async def list_players(
    position: Optional[str] = None,
    team: Optional[str] = None,
    search: Optional[str] = None,
):
    """Get all players, best first, with optional filters."""
    players = rank_players(get_players().values())

    if position:
        players = [p for p in players if p.position == position.upper()]
    if team:
        players = [p for p in players if p.team.lower() == team.lower()]
    if search:
        players = search_players(search, players)

    return {
        "players": [p.model_dump() for p in players],
        "count": len(players),
    }


@router.get("/{player_id}")
async def get_player_endpoint(player_id: str):
    player = get_player(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Player '{player_id}' not found")
    return player.model_dump()
