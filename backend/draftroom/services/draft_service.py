"""Draft orchestration: lifecycle, pick validation and application, autopick chaining."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Optional

from ..config import DraftConfig, draft_config
from ..errors import (
    ConflictError,
    DraftError,
    InvalidStateError,
    NotFoundError,
    OutOfTurnError,
    PlayerUnavailableError,
)
from ..models.draft import (
    Draft,
    DraftSettings,
    DraftStatus,
    PickRecord,
    PickResult,
    TeamDraftRecord,
    round_for_pick,
)
from ..models.player import Player
from . import notifier as events
from .autopick import AutopickPolicy, build_default_ranker, roster_needs
from .draft_order import generate_order, upcoming_picks
from .draft_store import DraftStore, FileDraftStore, InMemoryDraftStore
from .league_manager import require_league
from .notifier import DraftNotifier
from .player_catalog import rank_players, resolve_player, search_players, top_players
from .roster_store import (
    assign_player_to_team,
    clear_league,
    position_counts,
    release_player,
    rostered_player_ids,
)

logger = logging.getLogger(__name__)


class DraftService:
    """One draft per league.

    Every read-validate-write against a league's draft runs under that
    league's lock and commits through ``DraftStore.compare_and_swap``. Slow
    work (ranking service calls, chain delays) happens outside the lock, and
    the commit rejects anything validated against a stale pick.
    """

    def __init__(
        self,
        store: Optional[DraftStore] = None,
        notifier: Optional[DraftNotifier] = None,
        policy: Optional[AutopickPolicy] = None,
        config: Optional[DraftConfig] = None,
    ) -> None:
        self.config = config or draft_config
        self.store = store or InMemoryDraftStore()
        self.notifier = notifier or DraftNotifier()
        self.policy = policy or AutopickPolicy(config=self.config.autopick)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _league_lock(self, league_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(league_id)
            if lock is None:
                lock = self._locks[league_id] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_draft_state(self, league_id: str) -> Draft:
        draft = self.store.load(league_id)
        if draft is None:
            raise NotFoundError(f"No draft for league '{league_id}'")
        return draft

    def initialize_draft(
        self,
        league_id: str,
        settings: Optional[DraftSettings] = None,
        reset: bool = False,
    ) -> Draft:
        """Build the order and player pool for a league's draft.

        Fails if the league already has a draft, unless ``reset`` is set, in
        which case the old draft and its roster assignments are discarded.
        """
        league = require_league(league_id)
        if len(league.teams) < 2:
            raise InvalidStateError(f"League '{league_id}' needs at least two teams to draft")
        if settings is None:
            settings = DraftSettings(**self.config.defaults.model_dump())

        with self._league_lock(league_id):
            existing = self.store.load(league_id)
            if existing is not None and not reset:
                raise InvalidStateError(f"League '{league_id}' already has a draft")
            if existing is not None:
                for team in existing.teams.values():
                    for pick in team.picks:
                        release_player(league_id, pick.player_id)

            pool = top_players(settings.pool_size, exclude=rostered_player_ids(league_id))
            order = generate_order(
                [t.id for t in league.teams],
                settings.rounds,
                settings.mode,
                team_names={t.id: t.name for t in league.teams},
            )
            if len(pool) < len(order):
                logger.warning(
                    f"League {league_id}: pool of {len(pool)} players is smaller than "
                    f"{len(order)} picks"
                )

            draft = Draft(
                league_id=league_id,
                total_rounds=settings.rounds,
                mode=settings.mode,
                settings=settings,
                order=order,
                teams={
                    t.id: TeamDraftRecord(
                        team_id=t.id,
                        name=t.name,
                        owner_id=t.owner_id,
                        is_computer_controlled=t.is_computer_controlled,
                    )
                    for t in league.teams
                },
                available_players=[p.id for p in pool],
            )
            committed = self.store.compare_and_swap(
                draft, None if existing is None else existing.version
            )

        logger.info(
            f"Initialized {settings.mode.value} draft for league {league_id}: "
            f"{len(order)} picks, {len(pool)} players in pool"
        )
        self.notifier.emit(league_id, events.DRAFT_INITIALIZED, {
            "league_id": league_id,
            "total_picks": committed.total_picks,
            "total_rounds": committed.total_rounds,
            "mode": committed.mode.value,
        })
        return committed

    def _transition(
        self,
        league_id: str,
        source: DraftStatus,
        target: DraftStatus,
        event: str,
    ) -> Draft:
        with self._league_lock(league_id):
            draft = self.get_draft_state(league_id)
            if draft.status != source:
                raise InvalidStateError(
                    f"Draft for league '{league_id}' is {draft.status.value}, "
                    f"expected {source.value}"
                )
            draft.transition(target)
            committed = self.store.compare_and_swap(draft, draft.version)
        logger.info(f"Draft for league {league_id} is now {target.value}")
        self.notifier.emit(league_id, event, {
            "league_id": league_id,
            "current_pick": committed.current_pick,
            "status": committed.status.value,
        })
        return committed

    def start_draft(self, league_id: str) -> Draft:
        return self._transition(
            league_id, DraftStatus.NOT_STARTED, DraftStatus.IN_PROGRESS, events.DRAFT_STARTED
        )

    def pause_draft(self, league_id: str) -> Draft:
        """Stop accepting picks. A pick already being applied still lands."""
        return self._transition(
            league_id, DraftStatus.IN_PROGRESS, DraftStatus.PAUSED, events.DRAFT_PAUSED
        )

    def resume_draft(self, league_id: str) -> Draft:
        return self._transition(
            league_id, DraftStatus.PAUSED, DraftStatus.IN_PROGRESS, events.DRAFT_RESUMED
        )

    # ------------------------------------------------------------------
    # Picks
    # ------------------------------------------------------------------

    def _validate_pick(
        self,
        draft: Draft,
        team_id: str,
        player_id: str,
        expected_pick: Optional[int],
    ) -> Player:
        if draft.status != DraftStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Draft for league '{draft.league_id}' is {draft.status.value}, not in progress"
            )
        if draft.get_team(team_id) is None:
            raise NotFoundError(f"Team '{team_id}' is not in this draft")
        slot = draft.current_slot
        if slot is None:
            raise InvalidStateError(f"Draft for league '{draft.league_id}' has no pick on the clock")
        if slot.team_id != team_id:
            raise OutOfTurnError(
                f"Pick {draft.current_pick} belongs to team '{slot.team_id}', not '{team_id}'"
            )
        if expected_pick is not None and expected_pick != draft.current_pick:
            claimed = (
                draft.order[expected_pick - 1]
                if 1 <= expected_pick <= draft.total_picks
                else None
            )
            if claimed is None or claimed.team_id != team_id:
                raise OutOfTurnError(f"Pick {expected_pick} does not belong to team '{team_id}'")
            raise ConflictError(
                f"Pick {expected_pick} was already made; draft is on pick {draft.current_pick}"
            )
        if not draft.is_available(player_id):
            raise PlayerUnavailableError(f"Player '{player_id}' is not available")
        player = resolve_player(player_id)
        if player is None:
            raise NotFoundError(f"Player '{player_id}' not found")
        return player

    def submit_pick(
        self,
        league_id: str,
        team_id: str,
        player_id: str,
        expected_pick: Optional[int] = None,
    ) -> PickResult:
        """Validate and apply one pick.

        ``expected_pick`` is the pick number the caller saw; if the draft has
        moved on since, the pick is rejected with ConflictError.
        """
        return self._submit(league_id, team_id, player_id, expected_pick, autopicked=False)

    def _submit(
        self,
        league_id: str,
        team_id: str,
        player_id: str,
        expected_pick: Optional[int],
        autopicked: bool,
    ) -> PickResult:
        with self._league_lock(league_id):
            draft = self.get_draft_state(league_id)
            observed_version = draft.version
            player = self._validate_pick(draft, team_id, player_id, expected_pick)

            slot = draft.current_slot
            record = PickRecord(
                pick_number=draft.current_pick,
                round=slot.round,
                player_id=player.id,
                player_name=player.name,
                position=player.position,
                overall_rating=player.overall_rating,
            )

            assign_player_to_team(
                team_id, player.id, league_id, record.pick_number, player.overall_rating
            )
            try:
                draft.available_players.remove(player.id)
                draft.teams[team_id].picks.append(record)
                draft.current_pick += 1
                draft.current_round = round_for_pick(
                    draft.current_pick, draft.team_count, draft.total_rounds
                )
                if draft.current_pick > draft.total_picks:
                    draft.transition(DraftStatus.COMPLETED)
                committed = self.store.compare_and_swap(draft, observed_version)
            except Exception:
                release_player(league_id, player.id)
                raise

        logger.info(
            f"League {league_id} pick {record.pick_number} (round {record.round}): "
            f"{slot.team_name or team_id} took {player.name}"
            + (" [auto]" if autopicked else "")
        )
        self.notifier.emit(league_id, events.DRAFT_PICK_MADE, {
            "league_id": league_id,
            "pick_number": record.pick_number,
            "round": record.round,
            "team_id": team_id,
            "team_name": slot.team_name,
            "player_id": player.id,
            "player_name": player.name,
            "position": player.position,
            "overall_rating": player.overall_rating,
            "current_pick": committed.current_pick,
            "status": committed.status.value,
            "autopicked": autopicked,
        })
        if committed.is_complete:
            logger.info(f"Draft for league {league_id} completed")
            self.notifier.emit(league_id, events.DRAFT_COMPLETED, {
                "league_id": league_id,
                "total_picks": committed.total_picks,
                "status": committed.status.value,
            })

        return PickResult(
            league_id=league_id,
            team_id=team_id,
            pick=record,
            current_pick=committed.current_pick,
            current_round=committed.current_round,
            status=committed.status,
            autopicked=autopicked,
        )

    def _candidates(self, draft: Draft) -> list[Player]:
        """Resolvable available players, best first, capped for the policy."""
        resolved = (resolve_player(pid) for pid in draft.available_players)
        ranked = rank_players(p for p in resolved if p is not None)
        return ranked[: self.config.autopick.candidate_limit]

    def autopick(self, league_id: str, team_id: str) -> PickResult:
        """Let the autopick policy choose for the team on the clock."""
        draft = self.get_draft_state(league_id)
        if draft.status != DraftStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Draft for league '{league_id}' is {draft.status.value}, not in progress"
            )
        team = draft.get_team(team_id)
        if team is None:
            raise NotFoundError(f"Team '{team_id}' is not in this draft")
        slot = draft.current_slot
        if slot is None or slot.team_id != team_id:
            raise OutOfTurnError(f"Team '{team_id}' is not on the clock")

        needs = roster_needs(
            position_counts(league_id, team_id), self.config.autopick.roster_targets
        )
        player_id = self.policy.select_pick(
            team, self._candidates(draft), needs, draft.current_pick, draft.current_round
        )
        return self._submit(
            league_id, team_id, player_id, expected_pick=draft.current_pick, autopicked=True
        )

    def advance_computer_turns(
        self,
        league_id: str,
        delay_seconds: Optional[float] = None,
    ) -> list[PickResult]:
        """Autopick for computer teams until a human is on the clock or the draft ends.

        Runs at most as many iterations as picks remain. A rejected pick ends
        the chain quietly when another caller changed the draft in the
        meantime (a human pick, a pause, a second chain); a rejection against
        unchanged state is raised.
        """
        delay = self.config.autopick.delay_seconds if delay_seconds is None else delay_seconds
        draft = self.get_draft_state(league_id)
        max_iterations = max(draft.total_picks - draft.current_pick + 1, 0)

        results: list[PickResult] = []
        for i in range(max_iterations):
            if i and delay > 0:
                time.sleep(delay)
            draft = self.get_draft_state(league_id)
            if draft.status != DraftStatus.IN_PROGRESS:
                break
            team = draft.on_the_clock
            if team is None or not team.is_computer_controlled:
                break
            try:
                results.append(self.autopick(league_id, team.team_id))
            except DraftError as e:
                if self.get_draft_state(league_id).version == draft.version:
                    raise
                logger.info(f"Computer turn chain for league {league_id} stopped: {e}")
                break
        return results

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def available_players(
        self,
        league_id: str,
        position: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        draft = self.get_draft_state(league_id)
        players = rank_players(
            p for p in (resolve_player(pid) for pid in draft.available_players) if p is not None
        )
        if position:
            players = [p for p in players if p.position == position.upper()]
        if search:
            players = search_players(search, players)
        return {
            "players": players[offset: offset + limit],
            "total": len(draft.available_players),
            "matched": len(players),
            "limit": limit,
            "offset": offset,
        }

    def team_picks(self, league_id: str, team_id: str) -> TeamDraftRecord:
        draft = self.get_draft_state(league_id)
        team = draft.get_team(team_id)
        if team is None:
            raise NotFoundError(f"Team '{team_id}' not found in draft")
        return team

    def upcoming_picks(self, league_id: str, team_id: str, limit: int = 5) -> list:
        draft = self.get_draft_state(league_id)
        if draft.get_team(team_id) is None:
            raise NotFoundError(f"Team '{team_id}' not found in draft")
        return upcoming_picks(draft.order, team_id, draft.current_pick, limit)

    def draft_board(self, league_id: str, limit: int = 100) -> dict:
        """Best available overall plus the same list grouped by position."""
        draft = self.get_draft_state(league_id)
        best = rank_players(
            p for p in (resolve_player(pid) for pid in draft.available_players) if p is not None
        )[:limit]
        by_position: dict[str, list[Player]] = {
            pos: [] for pos in self.config.autopick.roster_targets
        }
        for player in best:
            if player.position in by_position:
                by_position[player.position].append(player)
        return {
            "overall": best,
            "by_position": by_position,
            "total_available": len(draft.available_players),
        }

    def draft_results(self, league_id: str) -> list[tuple[TeamDraftRecord, PickRecord]]:
        """Every pick made so far, in pick order."""
        draft = self.get_draft_state(league_id)
        made = [(team, pick) for team in draft.teams.values() for pick in team.picks]
        return sorted(made, key=lambda tp: tp[1].pick_number)

    # ------------------------------------------------------------------
    # Snapshot save / load
    # ------------------------------------------------------------------

    def save_snapshot(self, league_id: str) -> str:
        """Write the draft to ``data/snapshots/<league_id>.json``."""
        draft = self.get_draft_state(league_id)
        save_dir = self.config.snapshot_dir
        save_dir.mkdir(parents=True, exist_ok=True)
        filepath = save_dir / f"{league_id}.json"
        with open(filepath, "w") as f:
            json.dump(draft.model_dump(mode="json"), f, indent=2, default=str)
        return str(filepath)

    def load_snapshot(self, league_id: str) -> Draft:
        """Replace the league's draft with the saved snapshot and re-roster its picks."""
        filepath = self.config.snapshot_dir / f"{league_id}.json"
        if not filepath.exists():
            raise NotFoundError(f"No saved draft state found at {filepath}")
        with open(filepath, "r") as f:
            restored = Draft.model_validate(json.load(f))
        if restored.league_id != league_id:
            raise ValueError(f"Snapshot at {filepath} belongs to league '{restored.league_id}'")
        return self.restore(restored)

    def restore(self, draft: Draft) -> Draft:
        league_id = draft.league_id
        with self._league_lock(league_id):
            existing = self.store.load(league_id)
            committed = self.store.compare_and_swap(
                draft, None if existing is None else existing.version
            )
            clear_league(league_id)
            for team in committed.teams.values():
                for pick in team.picks:
                    assign_player_to_team(
                        team.team_id, pick.player_id, league_id,
                        pick.pick_number, pick.overall_rating,
                    )
        logger.info(f"Restored draft for league {league_id} at pick {committed.current_pick}")
        return committed

    def delete_draft(self, league_id: str) -> bool:
        """Drop the draft and the roster assignments it made."""
        with self._league_lock(league_id):
            draft = self.store.load(league_id)
            if draft is None:
                return False
            for team in draft.teams.values():
                for pick in team.picks:
                    release_player(league_id, pick.player_id)
            self.store.delete(league_id)
        self.notifier.clear(league_id)
        return True


# ---------------------------------------------------------------------------
# Singleton service
# ---------------------------------------------------------------------------
_service: Optional[DraftService] = None


def build_store(config: DraftConfig = draft_config) -> DraftStore:
    if config.draft_store == "file":
        return FileDraftStore(config.draft_state_dir)
    return InMemoryDraftStore()


def get_draft_service() -> DraftService:
    """Return the shared service, building it on first use."""
    global _service
    if _service is None:
        _service = DraftService(
            store=build_store(),
            policy=AutopickPolicy(ranker=build_default_ranker()),
        )
    return _service


def set_draft_service(service: Optional[DraftService]) -> None:
    """Swap the shared service (``None`` rebuilds it lazily; useful in tests)."""
    global _service
    _service = service
