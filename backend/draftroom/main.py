"""FastAPI entry point for the league draft room."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import draft, export, leagues, players


@asynccontextmanager
async def lifespan(app: FastAPI):
    import logging
    logger = logging.getLogger(__name__)
    from .services.draft_service import get_draft_service
    from .services.player_catalog import load_persisted_players
    loaded = load_persisted_players()
    if loaded:
        logger.info(f"Auto-loaded {loaded} players from saved catalog")
    draft.hub.attach_loop(asyncio.get_running_loop())
    service = get_draft_service()
    service.notifier.subscribe(draft.hub.on_event)
    yield
    service.notifier.unsubscribe(draft.hub.on_event)


app = FastAPI(
    title="League Draft Room",
    description="Snake and linear drafts with computer-controlled teams",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(leagues.router, prefix="/api/leagues", tags=["leagues"])
app.include_router(players.router, prefix="/api/players", tags=["players"])
app.include_router(draft.router, prefix="/api/draft", tags=["draft"])
app.include_router(export.router, prefix="/api/export", tags=["export"])

# WebSocket route for live draft events
from .routers.draft import websocket_endpoint
app.add_api_websocket_route("/ws/draft/{league_id}", websocket_endpoint)


@app.get("/api/health")
def health():
    return {"status": "ok"}
