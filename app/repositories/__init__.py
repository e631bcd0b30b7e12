"""
Repository layer for data access.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Consistent interface for data operations

Usage:
    from app.repositories import LeagueRepository, DraftRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    league = LeagueRepository(db).find_by_code("ABCD")
    db.close()
"""

from app.repositories.base import BaseRepository, new_id
from app.repositories.draft_repository import DraftRepository
from app.repositories.game_repository import (
    GameHistoryRepository,
    GameMetricsRepository,
    GameRepository,
)
from app.repositories.league_repository import LeagueRepository, TeamRepository
from app.repositories.scoring_repository import (
    LeagueScoringDayRepository,
    SeasonSnapshotRepository,
)

__all__ = [
    "BaseRepository",
    "new_id",
    "DraftRepository",
    "GameHistoryRepository",
    "GameMetricsRepository",
    "GameRepository",
    "LeagueRepository",
    "TeamRepository",
    "LeagueScoringDayRepository",
    "SeasonSnapshotRepository",
]
