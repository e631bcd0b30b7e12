"""
Game repositories: the read-only catalog, per-game metrics and the
append-only daily score history.

Usage:
    catalog = GameRepository(db)
    games = catalog.find_scoreable(date.today())

    history = GameHistoryRepository(db)
    entries = history.history_by_game(["1942"], before=date.today())
"""
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import nullsfirst, update
from sqlalchemy.orm import Session

from app.models import Game, GameMetrics, GameScoreHistory
from app.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Catalog lookups. The catalog is never written from here."""

    def __init__(self, db: Session):
        super().__init__(Game, db)

    def find_draftable(
        self,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        release_from: Optional[date] = None,
        release_to: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[Game]:
        """
        Visible games a player can draft, ordered by release date.

        Args:
            search: Case-insensitive substring of the game name
            genre: Exact genre the game must list
            release_from: Earliest release date (inclusive)
            release_to: Latest release date (inclusive)
            limit: Maximum number of games

        Games without a release date sort first and are dropped as soon
        as either release bound is given.
        """
        query = self.query().filter(Game.is_hidden.is_(False))
        if release_from is not None:
            query = query.filter(Game.release_date >= release_from)
        if release_to is not None:
            query = query.filter(Game.release_date <= release_to)
        if search and search.strip():
            query = query.filter(Game.name.ilike(f"%{search.strip()}%"))
        query = query.order_by(nullsfirst(Game.release_date.asc()), Game.id)

        # Genres are a JSON list; filter them here so the query stays portable
        if genre:
            games = [game for game in query.all() if genre in (game.genres or [])]
            return games[:limit] if limit else games
        if limit:
            query = query.limit(limit)
        return query.all()

    def find_scoreable(self, today: date) -> List[Game]:
        """
        Games eligible for scoring on ``today``.

        A game needs a storefront app id and a release date on or before
        today; future-dated games are skipped.
        """
        return (
            self.query()
            .filter(
                Game.steam_app_id.isnot(None),
                Game.steam_app_id != "",
                Game.release_date.isnot(None),
                Game.release_date <= today,
            )
            .order_by(Game.id)
            .all()
        )


class GameMetricsRepository(BaseRepository[GameMetrics]):
    """Latest metrics and running score per game."""

    def __init__(self, db: Session):
        super().__init__(GameMetrics, db)

    def find_many(self, game_ids: Iterable[str]) -> Dict[str, GameMetrics]:
        ids = list(set(game_ids))
        if not ids:
            return {}
        rows = self.query().filter(GameMetrics.game_id.in_(ids)).all()
        return {row.game_id: row for row in rows}

    def increment_score(self, game_id: str, points: float) -> None:
        """Atomic ``score = score + points`` issued as a single UPDATE."""
        self.db.execute(
            update(GameMetrics)
            .where(GameMetrics.game_id == game_id)
            .values(score=GameMetrics.score + points)
        )


class GameHistoryRepository(BaseRepository[GameScoreHistory]):
    """Append-only daily history keyed by (game_id, date)."""

    def __init__(self, db: Session):
        super().__init__(GameScoreHistory, db)

    def entry_on(self, game_id: str, day: date) -> Optional[GameScoreHistory]:
        return self.where_first(GameScoreHistory.game_id == game_id, GameScoreHistory.date == day)

    def history_for_game(self, game_id: str, limit: Optional[int] = None) -> List[GameScoreHistory]:
        query = (
            self.query()
            .filter(GameScoreHistory.game_id == game_id)
            .order_by(GameScoreHistory.date)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def history_by_game(
        self,
        game_ids: Iterable[str],
        before: Optional[date] = None,
        until: Optional[date] = None,
    ) -> Dict[str, List[GameScoreHistory]]:
        """
        Load the history of many games in one query.

        Args:
            game_ids: Games to load
            before: Only entries dated strictly before this day
            until: Only entries dated on or before this day

        Returns:
            game_id -> entries in ascending date order (games without
            history are absent)
        """
        ids = list(set(game_ids))
        result: Dict[str, List[GameScoreHistory]] = defaultdict(list)
        if not ids:
            return result
        query = self.query().filter(GameScoreHistory.game_id.in_(ids))
        if before is not None:
            query = query.filter(GameScoreHistory.date < before)
        if until is not None:
            query = query.filter(GameScoreHistory.date <= until)
        for row in query.order_by(GameScoreHistory.game_id, GameScoreHistory.date).all():
            result[row.game_id].append(row)
        return result
