"""Integration tests for the draft coordinator.

Test Strategy:
1. Lifecycle: create, reorder, start
2. submit_pick happy path mirrors the pick onto the team
3. Each rejection raises its own error and writes nothing
4. A unique-key collision at commit surfaces as PersistenceConflict
5. Picking or skipping to the end completes the draft and advances the league
6. Presence set add/remove
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import make_league

from app.core.exceptions import (
    DraftNotFound,
    DraftStateError,
    GameAlreadyDrafted,
    GameUnavailable,
    InvalidDraftOrder,
    InvalidPickType,
    LeagueInProgress,
    NotYourTurn,
    PersistenceConflict,
)
from app.models import DraftPick, DraftStatus
from app.repositories import TeamRepository
from app.repositories.base import new_id
from app.services.draft.draft_service import DraftService
from app.services.league_service import LeagueService

WINTER = "winter-2026"


@pytest.fixture
def service(db_session: Session) -> DraftService:
    return DraftService(db_session)


@pytest.fixture
def active_draft(db_session, league, catalog, service):
    """Winter draft for alice, bob, carol, started."""
    draft = service.create_draft(league.id, "winter")
    service.start_draft(league.id, draft.id)
    return draft


def team(db_session, league, user_id):
    return TeamRepository(db_session).find_one(league.id, user_id)


class TestDraftLifecycle:
    """Create, reorder and start."""

    def test_create_defaults_to_member_order(self, league, service):
        draft = service.create_draft(league.id, "winter")

        assert draft.draft_key == WINTER
        assert draft.status == DraftStatus.PENDING.value
        assert draft.pick_order == ["alice", "bob", "carol"]
        assert draft.current_user_id is None

    def test_create_twice_rejected(self, league, service):
        service.create_draft(league.id, "winter")
        with pytest.raises(DraftStateError):
            service.create_draft(league.id, "winter")

    def test_order_must_be_member_permutation(self, league, service):
        with pytest.raises(InvalidDraftOrder):
            service.create_draft(league.id, "winter", order=["alice", "bob"])
        with pytest.raises(InvalidDraftOrder):
            service.create_draft(league.id, "winter", order=["alice", "bob", "bob"])

    def test_set_order_before_start(self, league, service):
        draft = service.create_draft(league.id, "winter")
        service.set_draft_order(league.id, WINTER, ["carol", "alice", "bob"])
        service.start_draft(league.id, draft.id)

        assert service.get_draft(league.id, WINTER).current_user_id == "carol"

    def test_set_order_after_start_rejected(self, league, active_draft, service):
        with pytest.raises(DraftStateError):
            service.set_draft_order(league.id, active_draft.id, ["carol", "alice", "bob"])

    def test_start_puts_first_slot_on_clock(self, league, active_draft, service):
        state = service.get_draft_state(league.id, WINTER)

        assert state["status"] == "active"
        assert state["current_pick"] == {"round": 1, "position": 0, "user_id": "alice"}
        assert state["eligible_pick_types"] == ["hitPick", "bombPick"]
        assert state["seasonal_picks"] == 6
        assert state["total_rounds"] == 9

    def test_start_twice_rejected(self, league, active_draft, service):
        with pytest.raises(DraftStateError):
            service.start_draft(league.id, active_draft.id)

    def test_unknown_draft(self, league, service):
        with pytest.raises(DraftNotFound):
            service.get_draft(league.id, "summer-2026")


class TestSubmitPick:
    """Pick submission and its preconditions."""

    def test_pick_records_and_advances(self, db_session, league, active_draft, service):
        draft = service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")

        assert draft.next_slot == 1
        assert draft.current_user_id == "bob"
        assert [(pick.user_id, pick.game_id, pick.pick_type) for pick in draft.picks] == [
            ("alice", "g1", "hitPick")
        ]
        assert team(db_session, league, "alice").hit_pick == "g1"

    def test_snake_turn_order_through_round_two(self, league, active_draft, service):
        service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")
        service.submit_pick(league.id, WINTER, "bob", "g2", "bombPick")
        service.submit_pick(league.id, WINTER, "carol", "g3", "hitPick")
        draft = service.submit_pick(league.id, WINTER, "carol", "g4", "bombPick")

        assert draft.current_round == 2
        assert draft.current_user_id == "bob"

    def test_seasonal_pick_lands_in_phase_list(self, db_session, league, active_draft, service):
        service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")
        service.submit_pick(league.id, WINTER, "bob", "g2", "hitPick")
        service.submit_pick(league.id, WINTER, "carol", "g3", "hitPick")
        service.submit_pick(league.id, WINTER, "carol", "g4", "bombPick")
        service.submit_pick(league.id, WINTER, "bob", "g5", "bombPick")
        service.submit_pick(league.id, WINTER, "alice", "g6", "bombPick")
        service.submit_pick(league.id, WINTER, "alice", "g7", "seasonalPick")

        alice = team(db_session, league, "alice")
        assert alice.bomb_pick == "g6"
        assert alice.winter_picks == ["g7"]

    def test_not_your_turn(self, league, active_draft, service):
        with pytest.raises(NotYourTurn):
            service.submit_pick(league.id, WINTER, "bob", "g1", "hitPick")

    def test_hidden_game_unavailable(self, league, active_draft, service):
        with pytest.raises(GameUnavailable):
            service.submit_pick(league.id, WINTER, "alice", "hidden1", "hitPick")

    def test_unknown_game_unavailable(self, league, active_draft, service):
        with pytest.raises(GameUnavailable):
            service.submit_pick(league.id, WINTER, "alice", "no-such-game", "hitPick")

    def test_game_already_drafted(self, league, active_draft, service):
        service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")
        with pytest.raises(GameAlreadyDrafted):
            service.submit_pick(league.id, WINTER, "bob", "g1", "hitPick")

    def test_ineligible_pick_type(self, league, active_draft, service):
        with pytest.raises(InvalidPickType):
            service.submit_pick(league.id, WINTER, "alice", "g1", "seasonalPick")

    def test_unknown_pick_type(self, league, active_draft, service):
        with pytest.raises(InvalidPickType):
            service.submit_pick(league.id, WINTER, "alice", "g1", "superPick")

    def test_pending_draft_rejects_picks(self, league, catalog, service):
        service.create_draft(league.id, "winter")
        with pytest.raises(DraftStateError):
            service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")

    def test_rejected_pick_writes_nothing(self, db_session, league, active_draft, service):
        with pytest.raises(InvalidPickType):
            service.submit_pick(league.id, WINTER, "alice", "g1", "altPick")

        draft = service.get_draft(league.id, WINTER)
        assert draft.next_slot == 0
        assert draft.picks == []
        assert team(db_session, league, "alice").hit_pick is None

    def test_conflict_at_commit_is_persistence_conflict(self, db_session, league, active_draft, service):
        """Another writer already took slot 0: nothing from this pick persists."""
        db_session.add(DraftPick(
            id=new_id(),
            draft_id=active_draft.id,
            pick_index=0,
            user_id="ghost",
            game_id="g9",
            pick_type="hitPick",
            created_at=active_draft.created_at,
        ))
        db_session.commit()

        with pytest.raises(PersistenceConflict):
            service.submit_pick(league.id, WINTER, "alice", "g1", "hitPick")

        draft = service.get_draft(league.id, WINTER)
        assert draft.next_slot == 0
        assert draft.current_user_id == "alice"
        assert team(db_session, league, "alice").hit_pick is None


class TestSkipAndCompletion:
    """Administrative skips and draft completion."""

    def test_skip_advances_without_pick(self, league, active_draft, service):
        draft = service.skip_current_pick(league.id, WINTER)

        assert draft.next_slot == 1
        assert draft.current_user_id == "bob"
        assert draft.picks == []

    def test_pick_index_counts_skipped_slots(self, league, active_draft, service):
        service.skip_current_pick(league.id, WINTER)
        draft = service.submit_pick(league.id, WINTER, "bob", "g1", "hitPick")

        assert draft.picks[0].pick_index == 1

    def test_skipping_every_slot_completes_draft_and_league_phase(self, db_session, league, active_draft, service):
        for _ in range(27):
            draft = service.skip_current_pick(league.id, WINTER)

        assert draft.status == DraftStatus.COMPLETED.value
        assert draft.current_user_id is None
        assert draft.current_round is None

        db_session.refresh(league)
        assert league.current_phase == "summer"
        assert league.status == "active"

        with pytest.raises(DraftStateError):
            service.skip_current_pick(league.id, WINTER)
        with pytest.raises(LeagueInProgress):
            LeagueService(db_session).join_league(league.id, "dave")

    def test_full_two_player_draft_by_picks_completes_and_advances(self, db_session, catalog, service):
        duo = make_league(db_session, members=["alice", "bob"], code="DUO")
        draft = service.create_draft(duo.id, "winter")
        draft = service.start_draft(duo.id, draft.id)

        # hit, bomb, eight seasonal picks, then one alt per player
        plan = ["hitPick", "bombPick"] + ["seasonalPick"] * 8 + ["altPick"]
        made = {"alice": 0, "bob": 0}
        games = iter(catalog)
        while draft.status == DraftStatus.ACTIVE.value:
            user_id = draft.current_user_id
            draft = service.submit_pick(duo.id, WINTER, user_id, next(games), plan[made[user_id]])
            made[user_id] += 1

        assert made == {"alice": 11, "bob": 11}
        assert len(draft.picks) == 22
        assert [pick.pick_index for pick in draft.picks] == list(range(22))
        assert draft.current_user_id is None

        alice = team(db_session, duo, "alice")
        assert alice.hit_pick == "g1"
        assert alice.bomb_pick == "g4"
        assert len(alice.winter_picks) == 8
        assert len(alice.alt_picks) == 1

        db_session.refresh(duo)
        assert (duo.current_phase, duo.status) == ("summer", "active")
        with pytest.raises(DraftStateError):
            service.submit_pick(duo.id, WINTER, "alice", next(games), "altPick")


class TestPresence:
    """Draft room presence set."""

    def test_add_and_remove(self, league, active_draft, service):
        service.add_presence(league.id, WINTER, "bob")
        assert service.add_presence(league.id, WINTER, "alice") == ["alice", "bob"]

        assert service.remove_presence(league.id, WINTER, "alice") == ["bob"]

    def test_add_is_idempotent(self, league, active_draft, service):
        service.add_presence(league.id, WINTER, "bob")
        assert service.add_presence(league.id, WINTER, "bob") == ["bob"]
        assert service.list_presence(league.id, WINTER) == ["bob"]
