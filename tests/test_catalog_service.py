"""Tests for catalog lookups and the draftable game pool."""
from datetime import date

import pytest

from app.models import Game
from app.services.catalog_service import CatalogService
from app.services.draft.phases import release_window


@pytest.fixture
def pool(db_session):
    """Six games across the 2026 phases, one hidden, one undated."""
    rows = [
        ("late", "Late Harvest", ["RPG"], date(2026, 10, 2), False),
        ("spring", "Spring Racer", ["Racing"], date(2026, 3, 20), False),
        ("frost", "Frostbite", ["Action", "RPG"], date(2026, 1, 15), False),
        ("heat", "Heatwave Tactics", ["Strategy"], date(2026, 7, 4), False),
        ("secret", "Secret Frost", ["Action"], date(2026, 2, 1), True),
        ("tba", "Untitled Frost Project", ["Action"], None, False),
    ]
    for game_id, name, genres, released, hidden in rows:
        db_session.add(Game(id=game_id, name=name, genres=genres, release_date=released,
                            steam_app_id=None, is_hidden=hidden))
    db_session.commit()
    return CatalogService(db_session)


class TestDraftableGames:
    """Filters, ordering and limit."""

    def ids(self, games):
        return [game.id for game in games]

    def test_visible_games_by_release_date(self, pool):
        assert self.ids(pool.draftable_games()) == ["tba", "frost", "spring", "heat", "late"]

    def test_search_is_case_insensitive_substring(self, pool):
        assert self.ids(pool.draftable_games(search="  FROST ")) == ["tba", "frost"]

    def test_genre_filter(self, pool):
        assert self.ids(pool.draftable_games(genre="RPG")) == ["frost", "late"]

    def test_phase_release_window(self, pool):
        start, end = release_window("winter", "2026")
        assert self.ids(pool.draftable_games(release_from=start, release_to=end)) == ["frost", "spring"]

    def test_limit_applies_after_genre(self, pool):
        assert self.ids(pool.draftable_games(genre="Action", limit=1)) == ["tba"]
        assert self.ids(pool.draftable_games(limit=2)) == ["tba", "frost"]


class TestHiddenFlag:

    def test_hidden_flag_matches_catalog(self, pool):
        assert pool.is_game_hidden("secret") is True
        assert pool.is_game_hidden("frost") is False

    def test_unknown_game_is_not_hidden_but_not_draftable(self, pool):
        assert pool.is_game_hidden("missing") is False
        assert pool.is_game_draftable("missing") is False
        assert pool.is_game_draftable("secret") is False
        assert pool.is_game_draftable("frost") is True
