"""
HTTP endpoint integration tests for game-fantasy-league-api.

These tests verify that FastAPI endpoints:
- Return correct HTTP status codes
- Map domain errors to {"error": code, "detail": message}
- Drive a draft end to end through the API

Uses FastAPI TestClient for in-memory HTTP testing.
"""
import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "tests"))
from conftest import add_games

API = "/api/v1"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def api_league(test_client, db_session):
    """League created over HTTP with alice (commissioner) and bob."""
    add_games(db_session, 10)
    response = test_client.post(f"{API}/leagues", json={
        "commissioner_id": "alice",
        "name": "API League",
        "code": "apitest",
        "season": "2026",
    })
    assert response.status_code == 201
    league = response.json()
    response = test_client.post(f"{API}/leagues/{league['id']}/join", json={"user_id": "bob", "team_name": "Bobsoft"})
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def started_draft(test_client, api_league):
    league_id = api_league["id"]
    response = test_client.post(f"{API}/leagues/{league_id}/drafts", json={"phase": "winter"})
    assert response.status_code == 201
    response = test_client.post(f"{API}/leagues/{league_id}/drafts/winter-2026/start")
    assert response.status_code == 200
    return response.json()


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:

    def test_root(self, test_client):
        response = test_client.get("/")
        assert response.status_code == 200
        assert response.json()["endpoints"]["api_version"] == "v1"

    def test_health(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# =============================================================================
# LEAGUES
# =============================================================================

class TestLeagueEndpoints:

    def test_create_and_fetch(self, test_client, api_league):
        assert api_league["code"] == "APITEST"
        assert api_league["members"] == ["alice", "bob"]

        response = test_client.get(f"{API}/leagues/{api_league['id']}")
        assert response.json()["current_phase"] == "winter"

    def test_lookup_by_code_and_member(self, test_client, api_league):
        assert test_client.get(f"{API}/leagues", params={"code": "ApiTest"}).json()["count"] == 1
        assert test_client.get(f"{API}/leagues", params={"user_id": "bob"}).json()["count"] == 1

    def test_duplicate_code_conflict(self, test_client, api_league):
        response = test_client.post(f"{API}/leagues", json={
            "commissioner_id": "carol", "name": "Other", "code": "APITEST",
        })
        assert response.status_code == 409
        assert response.json()["error"] == "league_code_in_use"

    def test_unknown_league_404(self, test_client):
        response = test_client.get(f"{API}/leagues/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "league_not_found"

    def test_teams_and_rename(self, test_client, api_league):
        league_id = api_league["id"]
        response = test_client.patch(f"{API}/leagues/{league_id}/teams/bob", json={"name": "Bob Interactive"})
        assert response.status_code == 200

        teams = test_client.get(f"{API}/leagues/{league_id}/teams").json()
        assert [(team["user_id"], team["name"]) for team in teams] == [
            ("alice", "My Studio"), ("bob", "Bob Interactive"),
        ]

    def test_mark_delisted(self, test_client, api_league):
        response = test_client.post(f"{API}/leagues/{api_league['id']}/delisted", json={"game_id": "g3"})
        assert response.json()["delisted_games"] == ["g3"]

    def test_phase_sync(self, test_client, api_league):
        response = test_client.post(f"{API}/leagues/{api_league['id']}/phase/sync", params={"today": "2026-02-01"})
        assert response.json() == {"league_id": api_league["id"], "current_phase": "winter", "status": "draft"}


# =============================================================================
# DRAFTS
# =============================================================================

class TestDraftEndpoints:

    def test_start_state(self, started_draft):
        assert started_draft["status"] == "active"
        assert started_draft["current_pick"]["user_id"] == "alice"
        assert started_draft["order"] == ["alice", "bob"]
        assert started_draft["seasonal_picks"] == 8

    def test_submit_pick(self, test_client, api_league, started_draft):
        response = test_client.post(
            f"{API}/leagues/{api_league['id']}/drafts/winter-2026/picks",
            json={"user_id": "alice", "game_id": "g1", "pick_type": "hitPick"},
        )
        assert response.status_code == 200
        state = response.json()
        assert state["current_pick"]["user_id"] == "bob"
        assert state["picks"][0]["game_id"] == "g1"

    def test_not_your_turn(self, test_client, api_league, started_draft):
        response = test_client.post(
            f"{API}/leagues/{api_league['id']}/drafts/winter-2026/picks",
            json={"user_id": "bob", "game_id": "g1", "pick_type": "hitPick"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "not_your_turn"

    def test_invalid_pick_type_value_is_validation_error(self, test_client, api_league, started_draft):
        response = test_client.post(
            f"{API}/leagues/{api_league['id']}/drafts/winter-2026/picks",
            json={"user_id": "alice", "game_id": "g1", "pick_type": "megaPick"},
        )
        assert response.status_code == 422

    def test_skip_and_presence(self, test_client, api_league, started_draft):
        base = f"{API}/leagues/{api_league['id']}/drafts/winter-2026"

        assert test_client.post(f"{base}/skip").json()["current_pick"]["user_id"] == "bob"
        assert test_client.put(f"{base}/presence/bob").json() == {"presence": ["bob"]}
        assert test_client.delete(f"{base}/presence/bob").json() == {"presence": []}

    def test_list_drafts(self, test_client, api_league, started_draft):
        drafts = test_client.get(f"{API}/leagues/{api_league['id']}/drafts").json()
        assert [draft["draft_key"] for draft in drafts] == ["winter-2026"]

    def test_unknown_draft_404(self, test_client, api_league):
        response = test_client.get(f"{API}/leagues/{api_league['id']}/drafts/fall-2026")
        assert response.status_code == 404
        assert response.json()["error"] == "draft_not_found"


# =============================================================================
# SCORES
# =============================================================================

class TestScoreEndpoints:

    def test_leaderboard_empty_league(self, test_client, api_league):
        response = test_client.get(f"{API}/leagues/{api_league['id']}/scores/leaderboard")
        standings = response.json()["standings"]
        assert [(row["user_id"], row["rank"], row["score"]) for row in standings] == [
            ("alice", 1, 0.0), ("bob", 2, 0.0),
        ]

    def test_score_history_empty(self, test_client, api_league):
        response = test_client.get(f"{API}/leagues/{api_league['id']}/scores/history")
        assert response.json()["teams"] == {"alice": {}, "bob": {}}

    def test_snapshot_unavailable_during_season(self, test_client, api_league):
        response = test_client.get(f"{API}/leagues/{api_league['id']}/seasons/2999/snapshot")
        assert response.status_code == 404

    def test_game_history_unknown_game(self, test_client):
        response = test_client.get(f"{API}/games/nothing/history")
        assert response.status_code == 404


# =============================================================================
# GAMES
# =============================================================================

class TestGameEndpoints:

    def test_draftable_by_phase_window(self, test_client, db_session):
        add_games(db_session, 3)
        add_games(db_session, 2, prefix="s", release_date=date(2026, 6, 1))

        winter = test_client.get(f"{API}/games/draftable", params={"phase": "winter", "season": "2026"}).json()
        summer = test_client.get(f"{API}/games/draftable", params={"phase": "summer", "season": "2026"}).json()

        assert [game["id"] for game in winter["games"]] == ["g1", "g2", "g3"]
        assert summer["count"] == 2
        assert summer["games"][0]["release_date"] == "2026-06-01"

    def test_draftable_search_and_limit(self, test_client, db_session):
        add_games(db_session, 3)
        response = test_client.get(f"{API}/games/draftable", params={"search": "game", "limit": 2})
        assert response.json()["count"] == 2

    def test_phase_requires_season(self, test_client):
        response = test_client.get(f"{API}/games/draftable", params={"phase": "fall"})
        assert response.status_code == 422
