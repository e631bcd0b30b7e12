"""Integration tests for the daily scoring run.

The storefront is replaced with an httpx.MockTransport so the real
SteamClient code paths (status mapping, Retry-After, JSON parsing) run.

Catalog used by every test (release 2026-02-08, scored on 2026-03-10):
- s1 (app 101): healthy
- s2 (app 102): 404 -> delisted
- s3 (app 103): 500 on every attempt -> failed
- s4 (app 104): 429 once, then healthy
- s5 (app 105): released in the future -> not scoreable
"""
import asyncio
import math
import sys
from datetime import date
from pathlib import Path

import httpx
import pytest
from sqlalchemy.exc import OperationalError
from tenacity import wait_none

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import make_league

from app.core.exceptions import PersistenceConflict
from app.models import Game, GameMetrics, GameScoreHistory, LeagueScoringDay
from app.repositories import GameHistoryRepository, LeagueRepository, TeamRepository
from app.services.scoring.scoring_engine import ScoringEngine
from app.services.scoring.steam_client import SteamClient

TODAY = date(2026, 3, 10)
RELEASE = date(2026, 2, 8)  # 30 days before TODAY: multiplier 1.0


class FakeSteam:
    """Routes store/API requests by app id and counts calls."""

    def __init__(self):
        self.reviews = {"101": (100, 90), "104": (50, 50)}
        self.players = {"101": 50, "104": 10}
        self.rate_limit_once = {"104"}
        self.calls = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/appreviews/"):
            app_id = request.url.path.rsplit("/", 1)[-1]
            self.calls[app_id] = self.calls.get(app_id, 0) + 1
            if app_id == "102":
                return httpx.Response(404)
            if app_id == "103":
                return httpx.Response(500)
            if app_id in self.rate_limit_once:
                self.rate_limit_once.discard(app_id)
                return httpx.Response(429, headers={"Retry-After": "0"})
            total, positive = self.reviews[app_id]
            return httpx.Response(200, json={"query_summary": {"total_reviews": total, "total_positive": positive}})

        app_id = request.url.params.get("appid")
        return httpx.Response(200, json={"response": {"player_count": self.players.get(app_id, 0)}})


@pytest.fixture
def steam():
    return FakeSteam()


@pytest.fixture
def scoring_catalog(db_session):
    for n in range(1, 6):
        db_session.add(Game(
            id=f"s{n}",
            name=f"Scored {n}",
            genres=[],
            release_date=RELEASE if n < 5 else date(2026, 6, 1),
            steam_app_id=str(100 + n),
            is_hidden=False,
        ))
    db_session.commit()


@pytest.fixture
def holding_league(db_session, scoring_catalog):
    """Two-team league where bob holds the soon-to-be-delisted s2."""
    league = make_league(db_session, members=["alice", "bob"], code="SCORE")
    teams = TeamRepository(db_session)
    alice = teams.find_one(league.id, "alice")
    alice.hit_pick = "s1"
    bob = teams.find_one(league.id, "bob")
    bob.winter_picks = ["s2"]
    bob.alt_picks = ["s4"]
    db_session.commit()
    return league


def make_engine(db_session, steam, **overrides):
    client = SteamClient(
        store_base_url="https://store.test",
        api_base_url="https://api.test",
        transport=httpx.MockTransport(steam),
    )
    options = dict(
        concurrency=2,
        request_delay=0,
        max_attempts=3,
        retry_wait=wait_none(),
        batch_wait=wait_none(),
    )
    options.update(overrides)
    return ScoringEngine(db_session, client=client, **options)


def expected_first_day_points(reviews, positive, ccu):
    owners = reviews * 40
    return 4 * math.log10(owners) + 3 * math.log10(ccu) + 5 * math.log10(reviews) * (positive / reviews)


class TestFullRun:
    """Full scoring mode."""

    async def test_summary_counts(self, db_session, steam, holding_league):
        summary = await make_engine(db_session, steam).run(today=TODAY)

        assert summary.processed == 2
        assert summary.delisted == 1
        assert summary.failed == 1
        assert summary.skipped == 0
        assert summary.leagues_processed == 1
        assert summary.to_dict()["mode"] == "full"

    async def test_history_and_score_written(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)

        entry = GameHistoryRepository(db_session).entry_on("s1", TODAY)
        expected = expected_first_day_points(100, 90, 50)
        assert entry.points == pytest.approx(expected)
        assert entry.estimated_owners == 4000
        assert entry.days_since_release == 30

        metrics = db_session.get(GameMetrics, "s1")
        assert metrics.score == pytest.approx(expected)
        assert metrics.status == "Active"

    async def test_transient_errors_retry_then_fail(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)

        assert steam.calls["103"] == 3
        assert steam.calls["104"] == 2
        assert GameHistoryRepository(db_session).entry_on("s3", TODAY) is None
        assert GameHistoryRepository(db_session).entry_on("s4", TODAY) is not None

    async def test_future_release_not_fetched(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)
        assert "105" not in steam.calls

    async def test_delisted_game_flagged_for_holding_league(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)

        metrics = db_session.get(GameMetrics, "s2")
        assert metrics.delisted is True
        assert metrics.status == "Delisted"
        assert LeagueRepository(db_session).delisted_game_ids(holding_league.id) == ["s2"]

    async def test_rerun_same_day_does_not_double_count(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)
        first = db_session.get(GameMetrics, "s1").score

        summary = await make_engine(db_session, steam).run(today=TODAY)

        db_session.expire_all()
        assert summary.skipped == 2
        assert summary.processed == 0
        assert db_session.get(GameMetrics, "s1").score == pytest.approx(first)
        assert db_session.query(GameScoreHistory).filter(GameScoreHistory.game_id == "s1").count() == 1

    async def test_second_day_scores_delta(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)
        steam.reviews["101"] = (100, 90)  # no new reviews

        await make_engine(db_session, steam).run(today=date(2026, 3, 11))

        entry = GameHistoryRepository(db_session).entry_on("s1", date(2026, 3, 11))
        assert entry.sales_delta == 0
        assert entry.reviews_delta == 0
        assert entry.points == pytest.approx(3 * math.log10(50))

    async def test_bomb_record_written_per_league(self, db_session, steam, holding_league):
        await make_engine(db_session, steam).run(today=TODAY)

        records = db_session.query(LeagueScoringDay).filter(LeagueScoringDay.league_id == holding_league.id).all()
        assert len(records) == 1
        assert records[0].date == TODAY

    async def test_dry_run_writes_nothing(self, db_session, steam, holding_league):
        summary = await make_engine(db_session, steam).run(today=TODAY, dry_run=True)

        assert summary.processed == 2
        assert summary.dry_run is True
        assert db_session.query(GameScoreHistory).count() == 0
        assert db_session.query(LeagueScoringDay).count() == 0
        assert db_session.get(GameMetrics, "s1") is None

    async def test_delisted_bomb_or_unused_alt_not_flagged(self, db_session, steam, scoring_catalog):
        league = make_league(db_session, members=["alice", "bob"], code="BOMBS")
        teams = TeamRepository(db_session)
        teams.find_one(league.id, "alice").bomb_pick = "s2"
        bob = teams.find_one(league.id, "bob")
        bob.winter_picks = ["s1"]
        bob.alt_picks = ["s2"]
        db_session.commit()

        summary = await make_engine(db_session, steam).run(today=TODAY)

        assert summary.delisted == 1
        assert db_session.get(GameMetrics, "s2").delisted is True
        assert LeagueRepository(db_session).delisted_game_ids(league.id) == []


class TestCcuRun:
    """Off-peak concurrent-player samples."""

    async def test_sample_feeds_full_run_peak(self, db_session, steam, holding_league):
        steam.players["101"] = 500
        summary = await make_engine(db_session, steam).run(mode="ccu", today=TODAY)

        assert summary.processed == 4
        assert db_session.get(GameMetrics, "s1").off_peak_ccu == 500

        steam.players["101"] = 50
        await make_engine(db_session, steam).run(today=TODAY)

        assert GameHistoryRepository(db_session).entry_on("s1", TODAY).ccu == 500

    async def test_stale_sample_ignored(self, db_session, steam, holding_league):
        steam.players["101"] = 500
        await make_engine(db_session, steam).run(mode="ccu", today=date(2026, 3, 9))

        steam.players["101"] = 50
        await make_engine(db_session, steam).run(today=TODAY)

        assert GameHistoryRepository(db_session).entry_on("s1", TODAY).ccu == 50


class TestBatchWrites:
    """Retry then abort when a write batch keeps failing."""

    async def test_exhausted_batch_raises_and_keeps_earlier_batches(self, db_session, steam, holding_league,
                                                                     monkeypatch):
        real_commit = db_session.commit
        commits = []

        def flaky_commit():
            commits.append(1)
            if len(commits) == 1:
                return real_commit()
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "commit", flaky_commit)
        engine = make_engine(db_session, steam, batch_size=1, batch_max_attempts=3)

        with pytest.raises(PersistenceConflict):
            await engine.run(today=TODAY)

        assert len(commits) == 1 + 3
        history = GameHistoryRepository(db_session)
        assert history.entry_on("s1", TODAY) is not None
        assert history.entry_on("s4", TODAY) is None
        assert db_session.get(GameMetrics, "s1").score > 0


class TimedSteam:
    """Healthy storefront that records request starts and overlap."""

    def __init__(self, latency: float):
        self.latency = latency
        self.review_starts = []
        self.in_flight = 0
        self.peak = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if request.url.path.startswith("/appreviews/"):
                self.review_starts.append(asyncio.get_running_loop().time())
                await asyncio.sleep(self.latency)
                return httpx.Response(200, json={"query_summary": {"total_reviews": 10, "total_positive": 9}})
            return httpx.Response(200, json={"response": {"player_count": 5}})
        finally:
            self.in_flight -= 1


class TestWorkerPool:
    """Concurrency bound and request stagger."""

    async def test_pool_bounds_in_flight_and_staggers_starts(self, db_session, scoring_catalog):
        steam = TimedSteam(latency=0.1)
        delay = 0.05

        summary = await make_engine(db_session, steam, concurrency=2, request_delay=delay).run(today=TODAY)

        assert summary.processed == 4
        assert steam.peak == 2
        gaps = [later - earlier for earlier, later in zip(steam.review_starts, steam.review_starts[1:])]
        assert len(gaps) == 3
        assert min(gaps) >= delay - 0.01
