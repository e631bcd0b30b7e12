"""
Game catalog lookups.

The catalog is populated by an external ingestion job and is read-only
here: the draft checks availability before a pick and lists the pool a
player chooses from, and the scoring run selects the games it scores.
"""
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models import Game
from app.repositories import GameRepository


class CatalogService:
    """Read-only view of the game catalog."""

    def __init__(self, db: Session):
        self.games = GameRepository(db)

    def get_game(self, game_id: str) -> Optional[Game]:
        return self.games.find_by_id(game_id)

    def is_game_hidden(self, game_id: str) -> bool:
        """The catalog's hidden flag; False for ids the catalog does not know."""
        game = self.get_game(game_id)
        return game is not None and bool(game.is_hidden)

    def is_game_draftable(self, game_id: str) -> bool:
        """Known to the catalog and not hidden."""
        game = self.get_game(game_id)
        return game is not None and not game.is_hidden

    def draftable_games(
        self,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        release_from: Optional[date] = None,
        release_to: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[Game]:
        """Visible games filtered by name, genre and release window, earliest release first."""
        return self.games.find_draftable(
            search=search,
            genre=genre,
            release_from=release_from,
            release_to=release_to,
            limit=limit,
        )

    def scoreable_games(self, today: date) -> List[Game]:
        """Games with a storefront id released on or before ``today``."""
        return self.games.find_scoreable(today)
