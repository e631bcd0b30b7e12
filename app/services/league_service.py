"""
League management: creation, membership, teams and the delisted-game set.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    LeagueCodeInUse,
    LeagueInProgress,
    LeagueNotFound,
    PersistenceConflict,
    TeamNotFound,
)
from app.core.logging import get_logger
from app.models import DraftPhase, DraftStatus, League, LeagueStatus, Team
from app.repositories import DraftRepository, LeagueRepository, TeamRepository
from app.utils.timezone import utc_today

logger = get_logger(__name__)

DEFAULT_TEAM_NAME = "My Studio"


def default_season(today: Optional[date] = None) -> str:
    """Season a new league plays: next year when created in December."""
    today = today or utc_today()
    return str(today.year + 1 if today.month == 12 else today.year)


class LeagueService:
    """League and team operations."""

    def __init__(self, db: Session):
        self.db = db
        self.leagues = LeagueRepository(db)
        self.teams = TeamRepository(db)
        self.drafts = DraftRepository(db)

    def create_league(
        self,
        commissioner_id: str,
        name: str,
        code: str,
        team_name: str = DEFAULT_TEAM_NAME,
        season: Optional[str] = None,
        today: Optional[date] = None,
    ) -> League:
        """
        Create a league and the commissioner's team.

        Args:
            commissioner_id: Creating user
            name: League display name
            code: Join code, stored upper-cased; must be unique
            team_name: Commissioner's team name
            season: Explicit season year; defaults from ``today``

        Raises:
            LeagueCodeInUse: Another league already uses the code
        """
        normalized = code.strip().upper()
        if self.leagues.find_by_code(normalized):
            raise LeagueCodeInUse(f"League code {normalized} is already in use")

        league = self.leagues.create(
            name=name.strip(),
            code=normalized,
            commissioner_id=commissioner_id,
            season=season or default_season(today),
            status=LeagueStatus.DRAFT.value,
            current_phase=DraftPhase.WINTER.value,
            members=[commissioner_id],
        )
        self.leagues.flush()
        self._new_team(league.id, commissioner_id, team_name)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise LeagueCodeInUse(f"League code {normalized} is already in use") from exc

        logger.info(f"Created league {league.id} ({normalized}) for season {league.season}")
        return league

    def join_league(self, league_id: str, user_id: str, team_name: str = DEFAULT_TEAM_NAME) -> League:
        """
        Add a member and their team. Joining twice is a no-op.

        Raises:
            LeagueNotFound, LeagueInProgress (a draft this season completed)
        """
        league = self.get_league(league_id)
        if user_id in (league.members or []):
            return league

        if self.has_completed_draft(league_id, league.season):
            raise LeagueInProgress("Cannot join a league that is already in progress.")

        league.members = list(league.members or []) + [user_id]
        self.leagues.touch(league)
        self._new_team(league_id, user_id, team_name)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise PersistenceConflict(f"Concurrent join for {user_id}") from exc

        logger.info(f"User {user_id} joined league {league_id}")
        return league

    def has_completed_draft(self, league_id: str, season: str) -> bool:
        statuses = self.drafts.phase_statuses(league_id, season)
        return any(status == DraftStatus.COMPLETED.value for status in statuses.values())

    def get_league(self, league_id: str) -> League:
        league = self.leagues.find_by_id(league_id)
        if league is None:
            raise LeagueNotFound(f"League {league_id} not found")
        return league

    def get_league_by_code(self, code: str) -> League:
        league = self.leagues.find_by_code(code)
        if league is None:
            raise LeagueNotFound(f"No league with code {code.strip().upper()}")
        return league

    def list_leagues_for_user(self, user_id: str) -> List[League]:
        return self.leagues.find_for_member(user_id)

    def list_teams(self, league_id: str) -> List[Team]:
        self.get_league(league_id)
        return self.teams.find_by_league(league_id)

    def get_team(self, league_id: str, user_id: str) -> Team:
        team = self.teams.find_one(league_id, user_id)
        if team is None:
            raise TeamNotFound(f"No team for {user_id} in league {league_id}")
        return team

    def rename_team(self, league_id: str, user_id: str, name: str) -> Team:
        team = self.get_team(league_id, user_id)
        team.name = name.strip() or DEFAULT_TEAM_NAME
        self.teams.touch(team)
        self.db.commit()
        return team

    def mark_game_delisted(self, league_id: str, game_id: str) -> List[str]:
        """
        Add a game to the league's delisted set (append-only, idempotent).

        Returns:
            The league's delisted game ids
        """
        self.get_league(league_id)
        if self.leagues.add_delisted_game(league_id, game_id):
            try:
                self.db.commit()
            except IntegrityError:
                # Already added by a concurrent writer
                self.db.rollback()
            else:
                logger.info(f"Game {game_id} marked delisted in league {league_id}")
        return self.leagues.delisted_game_ids(league_id)

    def _new_team(self, league_id: str, user_id: str, team_name: str) -> Team:
        return self.teams.create(
            league_id=league_id,
            user_id=user_id,
            name=(team_name or "").strip() or DEFAULT_TEAM_NAME,
            hit_pick=None,
            bomb_pick=None,
            winter_picks=[],
            summer_picks=[],
            fall_picks=[],
            alt_picks=[],
            score=0.0,
            bomb_adjustment=0.0,
        )
