"""Tests for league phase transitions and the phase scheduler."""
import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import make_league

from app.services.league_service import default_season

from app.core.exceptions import LeagueNotFound
from app.models import Draft, DraftPhase, DraftStatus, LeagueStatus
from app.repositories.base import new_id
from app.services.draft.phase_scheduler import PhaseScheduler
from app.services.draft.phases import (
    PhaseState,
    calendar_phase,
    draft_key,
    next_phase,
    release_window,
    season_calendar_phase,
    season_end_date,
)


class TestNextPhase:
    """Pure transition function."""

    def test_no_completed_draft_keeps_state(self):
        state = PhaseState(DraftPhase.WINTER, LeagueStatus.DRAFT)
        assert next_phase(state, []) == state

    def test_winter_complete_moves_to_summer_active(self):
        state = PhaseState(DraftPhase.WINTER, LeagueStatus.DRAFT)
        assert next_phase(state, ["winter"]) == PhaseState(DraftPhase.SUMMER, LeagueStatus.ACTIVE)

    def test_skips_every_completed_phase(self):
        state = PhaseState(DraftPhase.WINTER, LeagueStatus.ACTIVE)
        assert next_phase(state, ["winter", "summer"]) == PhaseState(DraftPhase.FALL, LeagueStatus.ACTIVE)

    def test_all_phases_complete_completes_league(self):
        state = PhaseState(DraftPhase.FALL, LeagueStatus.ACTIVE)
        result = next_phase(state, ["winter", "summer", "fall"])
        assert result == PhaseState(DraftPhase.FALL, LeagueStatus.COMPLETED)

    def test_completed_league_never_changes(self):
        state = PhaseState(DraftPhase.FALL, LeagueStatus.COMPLETED)
        assert next_phase(state, [], calendar=DraftPhase.WINTER) == state

    def test_calendar_moves_forward(self):
        state = PhaseState(DraftPhase.WINTER, LeagueStatus.DRAFT)
        result = next_phase(state, [], calendar=DraftPhase.SUMMER)
        assert result == PhaseState(DraftPhase.SUMMER, LeagueStatus.ACTIVE)

    def test_calendar_never_moves_backwards(self):
        state = PhaseState(DraftPhase.FALL, LeagueStatus.ACTIVE)
        result = next_phase(state, ["winter", "summer"], calendar=DraftPhase.WINTER)
        assert result.phase == DraftPhase.FALL


class TestCalendar:
    """Date helpers."""

    @pytest.mark.parametrize("day,expected", [
        (date(2026, 1, 1), DraftPhase.WINTER),
        (date(2026, 4, 30), DraftPhase.WINTER),
        (date(2026, 5, 1), DraftPhase.SUMMER),
        (date(2026, 8, 31), DraftPhase.SUMMER),
        (date(2026, 9, 1), DraftPhase.FALL),
        (date(2026, 12, 31), DraftPhase.FALL),
    ])
    def test_calendar_phase(self, day, expected):
        assert calendar_phase(day) == expected

    def test_release_window(self):
        assert release_window("summer", "2026") == (date(2026, 5, 1), date(2026, 8, 31))

    def test_season_end_and_draft_key(self):
        assert season_end_date("2026") == date(2026, 12, 31)
        assert draft_key("fall", "2026") == "fall-2026"

    @pytest.mark.parametrize("day,expected", [
        (date(2026, 12, 15), None),
        (date(2027, 3, 1), DraftPhase.WINTER),
        (date(2027, 6, 1), DraftPhase.SUMMER),
        (date(2028, 2, 1), DraftPhase.FALL),
    ])
    def test_season_calendar_phase(self, day, expected):
        assert season_calendar_phase(day, "2027") == expected


class TestPhaseScheduler:
    """Persisted transitions."""

    def _complete(self, db_session, league, phase):
        db_session.add(Draft(
            id=new_id(),
            league_id=league.id,
            draft_key=draft_key(phase, league.season),
            phase=phase,
            season=league.season,
            status=DraftStatus.COMPLETED.value,
            pick_order=list(league.members),
            next_slot=0,
            created_at=league.created_at,
            updated_at=league.created_at,
        ))
        db_session.commit()

    def test_advance_after_winter(self, db_session):
        league = make_league(db_session, members=["alice", "bob"])
        self._complete(db_session, league, "winter")

        state = PhaseScheduler(db_session).advance_phase(league.id)

        db_session.refresh(league)
        assert state == PhaseState(DraftPhase.SUMMER, LeagueStatus.ACTIVE)
        assert league.current_phase == "summer"
        assert league.status == "active"

    def test_advance_without_completed_draft_is_noop(self, db_session):
        league = make_league(db_session, members=["alice", "bob"])
        state = PhaseScheduler(db_session).advance_phase(league.id)
        assert state == PhaseState(DraftPhase.WINTER, LeagueStatus.DRAFT)

    def test_sync_catches_up_from_calendar(self, db_session):
        league = make_league(db_session, members=["alice", "bob"])
        self._complete(db_session, league, "winter")

        state = PhaseScheduler(db_session).sync_league_current_phase(league.id, today=date(2026, 9, 15))

        assert state == PhaseState(DraftPhase.FALL, LeagueStatus.ACTIVE)

    def test_sync_completes_league_after_fall(self, db_session):
        league = make_league(db_session, members=["alice", "bob"])
        for phase in ("winter", "summer", "fall"):
            self._complete(db_session, league, phase)

        state = PhaseScheduler(db_session).sync_league_current_phase(league.id, today=date(2026, 12, 1))

        assert state == PhaseState(DraftPhase.FALL, LeagueStatus.COMPLETED)

    def test_unknown_league(self, db_session):
        with pytest.raises(LeagueNotFound):
            PhaseScheduler(db_session).advance_phase("missing")

    def test_sync_before_season_year_keeps_december_league_in_winter(self, db_session):
        december = date(2026, 12, 15)
        league = make_league(db_session, members=["alice", "bob"], season=default_season(december))
        assert league.season == "2027"

        state = PhaseScheduler(db_session).sync_league_current_phase(league.id, today=december)

        db_session.refresh(league)
        assert state == PhaseState(DraftPhase.WINTER, LeagueStatus.DRAFT)
        assert league.current_phase == "winter"

    def test_december_league_advances_through_its_own_season(self, db_session):
        league = make_league(db_session, members=["alice", "bob"], season=default_season(date(2026, 12, 15)))
        scheduler = PhaseScheduler(db_session)
        scheduler.sync_league_current_phase(league.id, today=date(2026, 12, 16))

        self._complete(db_session, league, "winter")
        assert scheduler.advance_phase(league.id) == PhaseState(DraftPhase.SUMMER, LeagueStatus.ACTIVE)

        state = scheduler.sync_league_current_phase(league.id, today=date(2027, 2, 1))
        assert state == PhaseState(DraftPhase.SUMMER, LeagueStatus.ACTIVE)

    def test_sync_after_season_year_moves_to_final_phase(self, db_session):
        league = make_league(db_session, members=["alice", "bob"])

        state = PhaseScheduler(db_session).sync_league_current_phase(league.id, today=date(2027, 1, 10))

        assert state == PhaseState(DraftPhase.FALL, LeagueStatus.ACTIVE)
