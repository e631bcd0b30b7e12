"""
Per-league derived records: daily bomb adjustments and season snapshots.
"""
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.models import LeagueScoringDay, SeasonSnapshot
from app.repositories.base import BaseRepository


class LeagueScoringDayRepository(BaseRepository[LeagueScoringDay]):
    """One bomb-adjustment record per (league, date)."""

    def __init__(self, db: Session):
        super().__init__(LeagueScoringDay, db)

    def find_on(self, league_id: str, day: date) -> Optional[LeagueScoringDay]:
        return self.where_first(LeagueScoringDay.league_id == league_id, LeagueScoringDay.date == day)

    def find_by_league(self, league_id: str, until: Optional[date] = None) -> List[LeagueScoringDay]:
        query = self.query().filter(LeagueScoringDay.league_id == league_id)
        if until is not None:
            query = query.filter(LeagueScoringDay.date <= until)
        return query.order_by(LeagueScoringDay.date).all()

    def adjustments_by_date(self, league_id: str, until: Optional[date] = None) -> Dict[date, Dict[str, float]]:
        """date -> {user_id: signed delta}"""
        return {
            day.date: dict(day.bomb_adjustments or {})
            for day in self.find_by_league(league_id, until)
        }


class SeasonSnapshotRepository(BaseRepository[SeasonSnapshot]):
    """Frozen end-of-season standings."""

    def __init__(self, db: Session):
        super().__init__(SeasonSnapshot, db)

    def find(self, league_id: str, season: str) -> Optional[SeasonSnapshot]:
        return self.where_first(SeasonSnapshot.league_id == league_id, SeasonSnapshot.season == season)
