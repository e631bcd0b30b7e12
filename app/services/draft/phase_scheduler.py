"""
Phase scheduler.

Writes a league's current phase and status. Two callers:
- advance_phase: right after a draft completes (outside the pick transaction)
- sync_league_current_phase: read-repair from the calendar when a
  scheduled advance was missed

Both delegate the decision to ``phases.next_phase``.
"""
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import LeagueNotFound
from app.core.logging import get_logger
from app.models import DraftStatus, League, LeagueStatus, DraftPhase
from app.repositories import DraftRepository, LeagueRepository
from app.services.draft.phases import PhaseState, next_phase, season_calendar_phase
from app.utils.timezone import utc_today

logger = get_logger(__name__)


class PhaseScheduler:
    """Advances leagues winter -> summer -> fall -> completed."""

    def __init__(self, db: Session):
        self.db = db
        self.leagues = LeagueRepository(db)
        self.drafts = DraftRepository(db)

    def advance_phase(self, league_id: str) -> PhaseState:
        """
        Move a league past any phase whose draft has completed.

        Raises:
            LeagueNotFound: League does not exist
        """
        league = self._load(league_id)
        return self._apply(league, calendar=None)

    def sync_league_current_phase(self, league_id: str, today: Optional[date] = None) -> PhaseState:
        """
        Recompute the effective phase from the calendar and draft completion.

        The calendar only counts within the league's own season year, so a
        league created in December for next season stays in winter.
        """
        league = self._load(league_id)
        calendar = season_calendar_phase(today or utc_today(), league.season)
        return self._apply(league, calendar=calendar)

    def _load(self, league_id: str) -> League:
        league = self.leagues.find_by_id(league_id)
        if league is None:
            raise LeagueNotFound(f"League {league_id} not found")
        return league

    def _apply(self, league: League, calendar: Optional[DraftPhase]) -> PhaseState:
        current = PhaseState(DraftPhase(league.current_phase), LeagueStatus(league.status))
        statuses = self.drafts.phase_statuses(league.id, league.season)
        completed = [phase for phase, status in statuses.items() if status == DraftStatus.COMPLETED.value]

        target = next_phase(current, completed, calendar)
        if target == current:
            return current

        league.current_phase = target.phase.value
        league.status = target.status.value
        self.leagues.touch(league)
        self.leagues.save()
        logger.info(
            f"League {league.id} phase {current.phase.value}/{current.status.value} "
            f"-> {target.phase.value}/{target.status.value}"
        )
        return target
