"""Draft endpoints with WebSocket support."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..errors import DraftError
from ..models.draft import DraftSettings
from ..services.draft_service import get_draft_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# WebSocket hub
# ---------------------------------------------------------------------------

class DraftHub:
    """Per-league WebSocket channels fed by draft events.

    ``on_event`` is a notifier listener and may be called from worker threads,
    so sends are scheduled onto the app's event loop.
    """

    def __init__(self) -> None:
        self.channels: dict[str, set[WebSocket]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def connect(self, websocket: WebSocket, league_id: str) -> None:
        await websocket.accept()
        self.channels.setdefault(league_id, set()).add(websocket)
        logger.info(f"WebSocket joined league_{league_id} ({len(self.channels[league_id])} connected)")

    def disconnect(self, websocket: WebSocket, league_id: str) -> None:
        conns = self.channels.get(league_id)
        if conns is None:
            return
        conns.discard(websocket)
        if not conns:
            del self.channels[league_id]

    async def broadcast(self, league_id: str, message: dict) -> None:
        for ws in list(self.channels.get(league_id, ())):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping WebSocket on league_{league_id}: {e}")
                self.disconnect(ws, league_id)

    def on_event(self, league_id: str, event: str, payload: dict) -> None:
        if self._loop is None or not self.channels.get(league_id):
            return
        asyncio.run_coroutine_threadsafe(
            self.broadcast(league_id, {"type": event, "data": payload}), self._loop
        )


hub = DraftHub()


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InitializeRequest(BaseModel):
    league_id: str
    settings: Optional[DraftSettings] = None
    reset: bool = False


class PickRequest(BaseModel):
    team_id: str
    player_id: str
    expected_pick: Optional[int] = None


class AutoPickRequest(BaseModel):
    team_id: str


def _http_error(exc: DraftError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _advance_computer_turns(league_id: str) -> None:
    """Background follow-up after any pick or (re)start."""
    try:
        picks = get_draft_service().advance_computer_turns(league_id)
    except DraftError:
        logger.exception(f"Computer turn chain for league {league_id} failed")
        return
    if picks:
        logger.info(f"League {league_id}: {len(picks)} computer picks made")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
# Handlers that take the league lock or reach the ranking service are plain
# ``def`` so they run in the threadpool, off the event loop.

@router.post("/initialize", status_code=201)
def initialize_draft(req: InitializeRequest):
    """Initialize a draft for a league."""
    try:
        draft = get_draft_service().initialize_draft(req.league_id, req.settings, reset=req.reset)
    except DraftError as e:
        raise _http_error(e)
    return draft.model_dump(mode="json")


@router.post("/{league_id}/start")
def start_draft(league_id: str, background_tasks: BackgroundTasks):
    """Start the draft and let computer teams pick until a human is up."""
    try:
        draft = get_draft_service().start_draft(league_id)
    except DraftError as e:
        raise _http_error(e)
    background_tasks.add_task(_advance_computer_turns, league_id)
    return {"status": draft.status.value, "current_pick": draft.current_pick}


@router.post("/{league_id}/pause")
def pause_draft(league_id: str):
    try:
        draft = get_draft_service().pause_draft(league_id)
    except DraftError as e:
        raise _http_error(e)
    return {"status": draft.status.value, "current_pick": draft.current_pick}


@router.post("/{league_id}/resume")
def resume_draft(league_id: str, background_tasks: BackgroundTasks):
    try:
        draft = get_draft_service().resume_draft(league_id)
    except DraftError as e:
        raise _http_error(e)
    background_tasks.add_task(_advance_computer_turns, league_id)
    return {"status": draft.status.value, "current_pick": draft.current_pick}


@router.delete("/{league_id}")
def delete_draft(league_id: str):
    """Discard a league's draft and the roster assignments it made."""
    if not get_draft_service().delete_draft(league_id):
        raise HTTPException(status_code=404, detail=f"No draft for league '{league_id}'")
    return {"status": "deleted", "league_id": league_id}


# ---------------------------------------------------------------------------
# Picks
# ---------------------------------------------------------------------------

@router.post("/{league_id}/pick")
def make_pick(league_id: str, req: PickRequest, background_tasks: BackgroundTasks):
    """Make a pick for the team on the clock."""
    try:
        result = get_draft_service().submit_pick(
            league_id, req.team_id, req.player_id, expected_pick=req.expected_pick
        )
    except DraftError as e:
        raise _http_error(e)
    background_tasks.add_task(_advance_computer_turns, league_id)
    return result.model_dump(mode="json")


@router.post("/{league_id}/auto-pick")
def auto_pick(league_id: str, req: AutoPickRequest, background_tasks: BackgroundTasks):
    """Let the autopick policy pick for a human team."""
    try:
        result = get_draft_service().autopick(league_id, req.team_id)
    except DraftError as e:
        raise _http_error(e)
    background_tasks.add_task(_advance_computer_turns, league_id)
    return result.model_dump(mode="json")


@router.post("/{league_id}/advance")
def advance_computer_turns(league_id: str):
    """Run computer picks now and report them."""
    try:
        picks = get_draft_service().advance_computer_turns(league_id, delay_seconds=0)
    except DraftError as e:
        raise _http_error(e)
    return {"picks": [p.model_dump(mode="json") for p in picks], "count": len(picks)}


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

@router.get("/{league_id}")
async def get_draft_state(league_id: str):
    """Get full draft state."""
    try:
        draft = get_draft_service().get_draft_state(league_id)
    except DraftError as e:
        raise _http_error(e)
    return draft.model_dump(mode="json")


@router.get("/{league_id}/available-players")
async def get_available_players(
    league_id: str,
    position: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    try:
        result = get_draft_service().available_players(league_id, position, search, limit, offset)
    except DraftError as e:
        raise _http_error(e)
    result["players"] = [p.model_dump() for p in result["players"]]
    return result


@router.get("/{league_id}/team/{team_id}/picks")
async def get_team_picks(league_id: str, team_id: str):
    try:
        team = get_draft_service().team_picks(league_id, team_id)
    except DraftError as e:
        raise _http_error(e)
    return {
        "team_id": team.team_id,
        "team_name": team.name,
        "picks": [p.model_dump(mode="json") for p in team.picks],
    }


@router.get("/{league_id}/upcoming-picks/{team_id}")
async def get_upcoming_picks(league_id: str, team_id: str, limit: int = Query(5, ge=1)):
    try:
        slots = get_draft_service().upcoming_picks(league_id, team_id, limit)
    except DraftError as e:
        raise _http_error(e)
    return [s.model_dump() for s in slots]


@router.get("/{league_id}/draft-board")
async def get_draft_board(league_id: str, limit: int = Query(100, ge=1)):
    """Best available players, overall and by position."""
    try:
        board = get_draft_service().draft_board(league_id, limit)
    except DraftError as e:
        raise _http_error(e)
    return {
        "overall": [p.model_dump() for p in board["overall"]],
        "by_position": {
            pos: [p.model_dump() for p in players]
            for pos, players in board["by_position"].items()
        },
        "total_available": board["total_available"],
    }


@router.get("/{league_id}/events")
async def get_recent_events(league_id: str, n: int = Query(10, ge=1)):
    """Most recent draft events, newest first."""
    events = get_draft_service().notifier.recent_events(league_id, n)
    return {"league_id": league_id, "events": events, "count": len(events)}


# ---------------------------------------------------------------------------
# Save / load
# ---------------------------------------------------------------------------

@router.post("/{league_id}/save")
def save_state(league_id: str):
    """Save draft state to a JSON file."""
    try:
        filepath = get_draft_service().save_snapshot(league_id)
    except DraftError as e:
        raise _http_error(e)
    return {"status": "saved", "filepath": filepath}


@router.post("/{league_id}/load")
def load_state(league_id: str):
    """Load draft state from a JSON file."""
    try:
        draft = get_draft_service().load_snapshot(league_id)
    except DraftError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return draft.model_dump(mode="json")


async def websocket_endpoint(websocket: WebSocket, league_id: str) -> None:
    """WebSocket endpoint for live draft events of one league."""
    await hub.connect(websocket, league_id)
    try:
        while True:
            await websocket.receive_text()  # Keep alive
    except WebSocketDisconnect:
        hub.disconnect(websocket, league_id)
