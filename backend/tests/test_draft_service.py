"""Draft lifecycle, pick validation, and computer-turn chaining."""
from __future__ import annotations

import threading

import pytest

from conftest import make_league
from draftroom.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    OutOfTurnError,
    PlayerUnavailableError,
)
from draftroom.models.draft import DraftMode, DraftSettings, DraftStatus
from draftroom.models.player import Player
from draftroom.services.autopick import AutopickPolicy
from draftroom.services.draft_service import DraftService
from draftroom.services.draft_store import InMemoryDraftStore
from draftroom.services.notifier import DRAFT_COMPLETED, DRAFT_PICK_MADE, DraftNotifier
from draftroom.services.player_catalog import add_players, get_players
from draftroom.services.roster_store import (
    assign_player_to_team,
    rostered_player_ids,
    team_roster,
)


def settings(rounds=2, mode=DraftMode.SNAKE, pool_size=30):
    return DraftSettings(rounds=rounds, mode=mode, pool_size=pool_size)


def started(service, team_ids, computer=frozenset(), **kw):
    make_league(team_ids, computer=computer)
    service.initialize_draft("lg1", settings(**kw))
    return service.start_draft("lg1")


def assert_accounting(draft, pool_size):
    picked = [p.player_id for t in draft.teams.values() for p in t.picks]
    assert len(draft.available_players) + len(picked) == pool_size
    assert not set(draft.available_players) & set(picked)
    assert draft.current_pick - 1 == len(picked)


class TimingOutRanker:
    def __init__(self):
        self.calls = 0

    def rank_for_need(self, team, candidates, needs, pick_number, round):
        self.calls += 1
        raise TimeoutError("ranking service timed out")


class TestInitialize:
    def test_builds_order_and_pool(self, service, catalog):
        make_league(["A", "B", "C"])
        draft = service.initialize_draft("lg1", settings(rounds=3, pool_size=20))
        assert draft.status == DraftStatus.NOT_STARTED
        assert draft.current_pick == 1
        assert draft.current_round == 1
        assert [s.team_id for s in draft.order] == ["A", "B", "C", "C", "B", "A", "A", "B", "C"]
        assert draft.available_players[:3] == ["p001", "p002", "p003"]
        assert len(draft.available_players) == 20
        assert draft.version == 1

    def test_computer_control_follows_owner(self, service, catalog):
        make_league(["A", "B"], computer={"B"})
        draft = service.initialize_draft("lg1", settings())
        assert draft.teams["A"].is_computer_controlled is False
        assert draft.teams["B"].is_computer_controlled is True

    def test_existing_draft_requires_reset(self, service, catalog):
        make_league(["A", "B"])
        service.initialize_draft("lg1", settings())
        with pytest.raises(InvalidStateError):
            service.initialize_draft("lg1", settings())

    def test_reset_discards_picks_and_rosters(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        draft = service.initialize_draft("lg1", settings(), reset=True)
        assert draft.status == DraftStatus.NOT_STARTED
        assert draft.picks_made == 0
        assert "p001" in draft.available_players
        assert rostered_player_ids("lg1") == set()

    def test_pool_skips_rostered_players(self, service, catalog):
        make_league(["A", "B"])
        assign_player_to_team("A", "p001", "lg1", pick_number=1, overall_rating=98)
        draft = service.initialize_draft("lg1", settings())
        assert "p001" not in draft.available_players

    def test_needs_two_teams(self, service, catalog):
        make_league(["A"])
        with pytest.raises(InvalidStateError):
            service.initialize_draft("lg1", settings())

    def test_unknown_league(self, service):
        with pytest.raises(NotFoundError):
            service.initialize_draft("missing", settings())

    def test_defaults_from_config(self, service, catalog):
        make_league(["A", "B"])
        draft = service.initialize_draft("lg1")
        assert draft.total_rounds == 10
        assert draft.mode == DraftMode.SNAKE
        assert draft.total_picks == 20


class TestStateMachine:
    def test_start(self, service, catalog):
        draft = started(service, ["A", "B"])
        assert draft.status == DraftStatus.IN_PROGRESS
        assert draft.started_at is not None

    def test_start_twice_fails(self, service, catalog):
        started(service, ["A", "B"])
        with pytest.raises(InvalidStateError):
            service.start_draft("lg1")

    def test_pick_before_start_fails(self, service, catalog):
        make_league(["A", "B"])
        service.initialize_draft("lg1", settings())
        with pytest.raises(InvalidStateError):
            service.submit_pick("lg1", "A", "p001")

    def test_pause_blocks_picks_until_resume(self, service, catalog):
        started(service, ["A", "B"])
        service.pause_draft("lg1")
        with pytest.raises(InvalidStateError):
            service.submit_pick("lg1", "A", "p001")
        with pytest.raises(InvalidStateError):
            service.start_draft("lg1")
        service.resume_draft("lg1")
        result = service.submit_pick("lg1", "A", "p001")
        assert result.pick.pick_number == 1

    def test_resume_requires_paused(self, service, catalog):
        started(service, ["A", "B"])
        with pytest.raises(InvalidStateError):
            service.resume_draft("lg1")

    def test_completed_is_terminal(self, service, catalog):
        started(service, ["A", "B"], rounds=1)
        service.submit_pick("lg1", "A", "p001")
        result = service.submit_pick("lg1", "B", "p002")
        assert result.status == DraftStatus.COMPLETED

        draft = service.get_draft_state("lg1")
        assert draft.status == DraftStatus.COMPLETED
        assert draft.current_pick > draft.total_picks
        assert draft.completed_at is not None
        for op in (service.start_draft, service.pause_draft, service.resume_draft):
            with pytest.raises(InvalidStateError):
                op("lg1")
        with pytest.raises(InvalidStateError):
            service.submit_pick("lg1", "A", "p003")

    def test_missing_draft(self, service):
        with pytest.raises(NotFoundError):
            service.get_draft_state("nope")


class TestSubmitPick:
    def test_applies_pick(self, service, catalog):
        started(service, ["A", "B", "C"])
        result = service.submit_pick("lg1", "A", "p005")
        assert result.pick.pick_number == 1
        assert result.pick.round == 1
        assert result.pick.player_name == "Prospect 5"
        assert result.pick.overall_rating == 94
        assert result.current_pick == 2

        draft = service.get_draft_state("lg1")
        assert "p005" not in draft.available_players
        assert draft.teams["A"].picks[0].player_id == "p005"
        assert [e.player_id for e in team_roster("lg1", "A")] == ["p005"]

    def test_round_advances(self, service, catalog):
        started(service, ["A", "B"], rounds=2)
        service.submit_pick("lg1", "A", "p001")
        result = service.submit_pick("lg1", "B", "p002")
        assert result.current_round == 2
        result = service.submit_pick("lg1", "B", "p003")
        assert result.pick.round == 2

    def test_out_of_turn(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        # B claiming pick 1 again
        with pytest.raises(OutOfTurnError):
            service.submit_pick("lg1", "B", "p002", expected_pick=1)
        # A picking again at pick 2
        with pytest.raises(OutOfTurnError):
            service.submit_pick("lg1", "A", "p002")

    def test_double_pick_rejected(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        with pytest.raises(PlayerUnavailableError):
            service.submit_pick("lg1", "B", "p001")

    def test_player_outside_pool(self, service, catalog):
        started(service, ["A", "B"], pool_size=10)
        with pytest.raises(PlayerUnavailableError):
            service.submit_pick("lg1", "A", "p050")

    def test_pool_player_missing_from_catalog(self, service, catalog):
        started(service, ["A", "B"])
        del get_players()["p001"]
        with pytest.raises(NotFoundError):
            service.submit_pick("lg1", "A", "p001")

    def test_unknown_team(self, service, catalog):
        started(service, ["A", "B"])
        with pytest.raises(NotFoundError):
            service.submit_pick("lg1", "Z", "p001")

    def test_rejection_has_no_side_effects(self, service, catalog):
        started(service, ["A", "B"])
        before = service.get_draft_state("lg1")
        with pytest.raises(OutOfTurnError):
            service.submit_pick("lg1", "B", "p001")
        assert service.get_draft_state("lg1") == before
        assert rostered_player_ids("lg1") == set()

    def test_stale_retry_by_same_team_conflicts(self, service, catalog):
        # Snake with two teams: A, B, B, A
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        service.submit_pick("lg1", "B", "p002", expected_pick=2)
        with pytest.raises(ConflictError):
            service.submit_pick("lg1", "B", "p003", expected_pick=2)

    def test_commit_conflict_rolls_back(self, catalog):
        class InterleavingStore(InMemoryDraftStore):
            interleave = False

            def compare_and_swap(self, draft, expected_version):
                if self.interleave:
                    self.interleave = False
                    current = self.load(draft.league_id)
                    super().compare_and_swap(current, current.version)
                return super().compare_and_swap(draft, expected_version)

        store = InterleavingStore()
        service = DraftService(store=store)
        started(service, ["A", "B"])
        store.interleave = True
        with pytest.raises(ConflictError):
            service.submit_pick("lg1", "A", "p001")

        draft = service.get_draft_state("lg1")
        assert draft.current_pick == 1
        assert "p001" in draft.available_players
        assert rostered_player_ids("lg1") == set()

    def test_pool_accounting_holds(self, service, catalog):
        started(service, ["A", "B", "C"], rounds=3, mode=DraftMode.LINEAR, pool_size=25)
        for i, slot in enumerate(service.get_draft_state("lg1").order):
            service.submit_pick("lg1", slot.team_id, f"p{i * 2 + 1:03d}")
            assert_accounting(service.get_draft_state("lg1"), 25)

    def test_notifications(self, catalog):
        notifier = DraftNotifier()
        seen = []
        notifier.subscribe(lambda league_id, event, payload: seen.append((event, payload)))
        service = DraftService(notifier=notifier)
        started(service, ["A", "B"], rounds=1)
        service.submit_pick("lg1", "A", "p001")
        service.submit_pick("lg1", "B", "p002")

        picks = [p for e, p in seen if e == DRAFT_PICK_MADE]
        assert [p["pick_number"] for p in picks] == [1, 2]
        assert picks[0]["team_id"] == "A"
        assert picks[0]["player_id"] == "p001"
        assert picks[-1]["status"] == "completed"
        assert [e for e, _ in seen][-1] == DRAFT_COMPLETED

    def test_listener_failure_does_not_undo_pick(self, catalog):
        notifier = DraftNotifier()

        def broken(league_id, event, payload):
            raise RuntimeError("socket closed")

        notifier.subscribe(broken)
        service = DraftService(notifier=notifier)
        started(service, ["A", "B"])
        result = service.submit_pick("lg1", "A", "p001")
        assert result.current_pick == 2
        assert service.get_draft_state("lg1").current_pick == 2
        assert notifier.recent_events("lg1", 1)[0]["event"] == DRAFT_PICK_MADE


class TestConcurrentPicks:
    def _race(self, service, calls):
        barrier = threading.Barrier(len(calls))
        outcomes = []

        def run(team_id, player_id, expected):
            barrier.wait()
            try:
                outcomes.append(service.submit_pick("lg1", team_id, player_id, expected_pick=expected))
            except (ConflictError, OutOfTurnError) as e:
                outcomes.append(e)

        threads = [threading.Thread(target=run, args=c) for c in calls]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return outcomes

    def test_same_slot_one_success_one_conflict(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        # B holds picks 2 and 3, so the loser is still on the clock
        outcomes = self._race(service, [("B", "p002", 2), ("B", "p003", 2)])
        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ConflictError)
        draft = service.get_draft_state("lg1")
        assert draft.current_pick == 3
        assert len(draft.teams["B"].picks) == 1

    def test_stale_team_gets_out_of_turn(self, service, catalog):
        started(service, ["A", "B"], mode=DraftMode.LINEAR)
        outcomes = self._race(service, [("A", "p001", 1), ("A", "p002", 1)])
        errors = [o for o in outcomes if isinstance(o, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], OutOfTurnError)
        assert service.get_draft_state("lg1").current_pick == 2

    def test_no_player_assigned_twice(self, service, catalog):
        started(service, ["A", "B"])
        outcomes = self._race(service, [("A", "p001", None), ("A", "p001", None)])
        successes = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(successes) == 1
        assert [e.player_id for e in team_roster("lg1", "A")] == ["p001"]


class TestComputerTurns:
    def test_chain_stops_at_human(self, service, catalog):
        started(service, ["A", "B", "C"], computer={"B", "C"})
        assert service.advance_computer_turns("lg1") == []

        service.submit_pick("lg1", "A", "p001")
        results = service.advance_computer_turns("lg1")
        # A, B, C, C, B, A
        assert [r.team_id for r in results] == ["B", "C", "C", "B"]
        assert all(r.autopicked for r in results)
        draft = service.get_draft_state("lg1")
        assert draft.current_pick == 6
        assert draft.on_the_clock.team_id == "A"

    def test_all_computer_draft_completes(self, service, catalog):
        started(service, ["A", "B", "C", "D"], computer={"A", "B", "C", "D"}, rounds=5)
        results = service.advance_computer_turns("lg1")
        assert len(results) == 20
        draft = service.get_draft_state("lg1")
        assert draft.status == DraftStatus.COMPLETED
        assert_accounting(draft, 30)

    def test_chain_does_nothing_when_paused(self, service, catalog):
        started(service, ["A", "B"], computer={"A", "B"})
        service.pause_draft("lg1")
        assert service.advance_computer_turns("lg1") == []

    def test_chain_surfaces_exhausted_pool(self, service, catalog):
        started(service, ["A", "B", "C"], computer={"A", "B", "C"}, rounds=1, pool_size=2)
        with pytest.raises(PlayerUnavailableError):
            service.advance_computer_turns("lg1")
        draft = service.get_draft_state("lg1")
        assert draft.current_pick == 3
        assert draft.status == DraftStatus.IN_PROGRESS

    def test_autopick_for_human(self, service, catalog):
        started(service, ["A", "B"])
        result = service.autopick("lg1", "A")
        assert result.autopicked
        assert result.pick.player_id == "p001"

    def test_failing_ranker_still_picks(self, catalog):
        service = DraftService(policy=AutopickPolicy(ranker=TimingOutRanker()))
        started(service, ["A", "B"])
        pool = set(service.get_draft_state("lg1").available_players)
        result = service.autopick("lg1", "A")
        assert result.autopicked
        assert result.pick.player_id in pool
        assert result.pick.player_id == "p001"
        assert service.get_draft_state("lg1").current_pick == 2

    def test_failing_ranker_chain_completes(self, catalog):
        ranker = TimingOutRanker()
        service = DraftService(policy=AutopickPolicy(ranker=ranker))
        started(service, ["A", "B"], computer={"A", "B"}, rounds=3)
        pool = set(service.get_draft_state("lg1").available_players)

        results = service.advance_computer_turns("lg1")
        assert len(results) == 6
        assert ranker.calls == 6
        assert {r.pick.player_id for r in results} <= pool
        draft = service.get_draft_state("lg1")
        assert draft.status == DraftStatus.COMPLETED
        assert_accounting(draft, 30)

    def test_autopick_out_of_turn(self, service, catalog):
        started(service, ["A", "B"])
        with pytest.raises(OutOfTurnError):
            service.autopick("lg1", "B")

    def test_autopick_fills_needs(self, service):
        add_players([
            Player(id="c1", name="Center One", position="C", overall_rating=80),
            Player(id="c2", name="Center Two", position="C", overall_rating=79),
            Player(id="c3", name="Center Three", position="C", overall_rating=78),
            Player(id="g1", name="Guard One", position="PG", overall_rating=77),
        ])
        started(service, ["A", "B"], rounds=2, pool_size=4)
        service.submit_pick("lg1", "A", "c1")
        service.submit_pick("lg1", "B", "c2")
        # B already has a center; a PG fills an empty slot
        result = service.autopick("lg1", "B")
        assert result.pick.player_id == "g1"


class TestViews:
    def test_available_players_filters(self, service, catalog):
        started(service, ["A", "B"], pool_size=30)
        service.submit_pick("lg1", "A", "p001")
        view = service.available_players("lg1", position="pg", limit=3)
        assert view["total"] == 29
        assert [p.position for p in view["players"]] == ["PG", "PG", "PG"]
        assert view["players"][0].id == "p006"

    def test_available_players_search(self, service, catalog):
        add_players([Player(id="w1", name="Victor Wembanyama", position="C", overall_rating=99)])
        started(service, ["A", "B"], pool_size=30)
        view = service.available_players("lg1", search="wembanyama")
        assert [p.id for p in view["players"]] == ["w1"]
        assert view["matched"] == 1

    def test_team_picks_and_upcoming(self, service, catalog):
        started(service, ["A", "B", "C"], rounds=3)
        service.submit_pick("lg1", "A", "p001")
        assert [p.player_id for p in service.team_picks("lg1", "A").picks] == ["p001"]
        assert [s.pick for s in service.upcoming_picks("lg1", "A")] == [6, 7]
        with pytest.raises(NotFoundError):
            service.team_picks("lg1", "Z")

    def test_draft_board_groups_positions(self, service, catalog):
        started(service, ["A", "B"], pool_size=30)
        board = service.draft_board("lg1", limit=10)
        assert len(board["overall"]) == 10
        assert [p.id for p in board["by_position"]["PG"]] == ["p001", "p006"]
        assert board["total_available"] == 30

    def test_results_in_pick_order(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p003")
        service.submit_pick("lg1", "B", "p001")
        service.submit_pick("lg1", "B", "p002")
        results = service.draft_results("lg1")
        assert [(t.team_id, p.pick_number) for t, p in results] == [("A", 1), ("B", 2), ("B", 3)]


class TestSnapshots:
    def test_save_and_load(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        service.save_snapshot("lg1")
        service.submit_pick("lg1", "B", "p002")

        restored = service.load_snapshot("lg1")
        assert restored.current_pick == 2
        assert "p002" in restored.available_players
        assert rostered_player_ids("lg1") == {"p001"}

    def test_load_without_save(self, service, catalog):
        started(service, ["A", "B"])
        with pytest.raises(NotFoundError):
            service.load_snapshot("lg1")

    def test_delete(self, service, catalog):
        started(service, ["A", "B"])
        service.submit_pick("lg1", "A", "p001")
        assert service.delete_draft("lg1") is True
        assert rostered_player_ids("lg1") == set()
        assert service.delete_draft("lg1") is False
