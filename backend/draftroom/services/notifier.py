"""Draft event fan-out to UI listeners."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime
from typing import Callable

from ..config import draft_config

logger = logging.getLogger(__name__)

Listener = Callable[[str, str, dict], None]

DRAFT_INITIALIZED = "draft_initialized"
DRAFT_STARTED = "draft_started"
DRAFT_PICK_MADE = "draft_pick_made"
DRAFT_PAUSED = "draft_paused"
DRAFT_RESUMED = "draft_resumed"
DRAFT_COMPLETED = "draft_completed"


class DraftNotifier:
    """Fire-and-forget event emitter.

    Listeners are called synchronously with ``(league_id, event, payload)``.
    A failing listener is logged and skipped; it never affects the caller.
    """

    def __init__(self, recent_limit: int | None = None) -> None:
        self._listeners: list[Listener] = []
        self._recent_limit = recent_limit or draft_config.recent_event_limit
        self._recent: dict[str, deque] = defaultdict(lambda: deque(maxlen=self._recent_limit))
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, league_id: str, event: str, payload: dict) -> None:
        with self._lock:
            self._recent[league_id].append({
                "event": event,
                "payload": payload,
                "emitted_at": datetime.now().isoformat(),
            })
        for listener in list(self._listeners):
            try:
                listener(league_id, event, payload)
            except Exception as e:
                logger.warning(f"Draft listener failed on {event} for league {league_id}: {e}")

    def recent_events(self, league_id: str, n: int = 10) -> list[dict]:
        """Most recent events for a league, newest first."""
        with self._lock:
            events = list(self._recent.get(league_id, ()))
        return list(reversed(events))[:n]

    def clear(self, league_id: str | None = None) -> None:
        with self._lock:
            if league_id is None:
                self._recent.clear()
            else:
                self._recent.pop(league_id, None)
