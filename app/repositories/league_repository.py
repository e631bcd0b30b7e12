"""
League and Team repositories.

Usage:
    leagues = LeagueRepository(db)
    league = leagues.find_by_code("ABCD")
    teams = TeamRepository(db).find_by_league(league.id)
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models import League, LeagueDelistedGame, LeagueStatus, Team
from app.repositories.base import BaseRepository


class LeagueRepository(BaseRepository[League]):
    """Repository for league documents and their delisted-game sets."""

    def __init__(self, db: Session):
        super().__init__(League, db)

    def find_by_code(self, code: str) -> Optional[League]:
        return self.where_first(League.code == code.strip().upper())

    def find_for_member(self, user_id: str) -> List[League]:
        """Leagues whose member list contains ``user_id``."""
        # JSON containment is dialect specific; league counts are small
        return [league for league in self.query().all() if user_id in (league.members or [])]

    def find_in_play(self) -> List[League]:
        """Leagues that still score (not completed)."""
        return self.where(League.status != LeagueStatus.COMPLETED.value)

    def delisted_game_ids(self, league_id: str) -> List[str]:
        rows = (
            self.db.query(LeagueDelistedGame.game_id)
            .filter(LeagueDelistedGame.league_id == league_id)
            .order_by(LeagueDelistedGame.created_at, LeagueDelistedGame.game_id)
            .all()
        )
        return [row.game_id for row in rows]

    def add_delisted_game(self, league_id: str, game_id: str) -> bool:
        """
        Append a game to the league's delisted set.

        Returns:
            True if the game was newly added, False if already present
        """
        if self.db.query(LeagueDelistedGame).filter(
            LeagueDelistedGame.league_id == league_id,
            LeagueDelistedGame.game_id == game_id,
        ).first():
            return False
        BaseRepository(LeagueDelistedGame, self.db).create(league_id=league_id, game_id=game_id)
        return True


class TeamRepository(BaseRepository[Team]):
    """Repository for teams (one per league member)."""

    def __init__(self, db: Session):
        super().__init__(Team, db)

    def find_by_league(self, league_id: str) -> List[Team]:
        return (
            self.query()
            .filter(Team.league_id == league_id)
            .order_by(Team.user_id)
            .all()
        )

    def find_one(self, league_id: str, user_id: str, for_update: bool = False) -> Optional[Team]:
        query = self.query().filter(Team.league_id == league_id, Team.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()
