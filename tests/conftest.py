"""Shared pytest fixtures for game-fantasy-league-api tests."""
import os
import sys
from datetime import date
from pathlib import Path
from typing import Generator, List, Sequence

# Configure before any app module reads settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

SEASON = "2026"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from app.models import Base

    # StaticPool keeps one connection so TestClient's worker thread sees the same data
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


def make_league(
    db: Session,
    members: Sequence[str] = ("alice", "bob", "carol"),
    code: str = "GAMERS",
    season: str = SEASON,
):
    """Helper: create a league whose first member is the commissioner."""
    from app.services.league_service import LeagueService

    service = LeagueService(db)
    league = service.create_league(members[0], "Test League", code, team_name=f"{members[0]} studio", season=season)
    for user_id in members[1:]:
        service.join_league(league.id, user_id, team_name=f"{user_id} studio")
    return league


def add_games(
    db: Session,
    count: int,
    prefix: str = "g",
    release_date: date = date(2026, 2, 1),
    hidden: Sequence[str] = (),
) -> List[str]:
    """Helper: add catalog games g1..gN with storefront ids 1001..."""
    from app.models import Game

    ids = []
    for n in range(1, count + 1):
        game_id = f"{prefix}{n}"
        db.add(Game(
            id=game_id,
            name=f"Game {n}",
            genres=["Action"],
            release_date=release_date,
            steam_app_id=str(1000 + n),
            is_hidden=game_id in hidden,
        ))
        ids.append(game_id)
    db.commit()
    return ids


@pytest.fixture
def league(db_session: Session):
    """Three-member league (alice, bob, carol) for the 2026 season."""
    return make_league(db_session)


@pytest.fixture
def catalog(db_session: Session) -> List[str]:
    """Forty visible games plus one hidden game ('hidden1')."""
    ids = add_games(db_session, 40)
    add_games(db_session, 1, prefix="hidden", hidden=("hidden1",))
    return ids


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session):
    """
    Create FastAPI TestClient bound to the test database session.

    Note: We don't use context manager (with TestClient) so the lifespan
    (table creation on the configured DATABASE_URL, scheduler) never runs.
    """
    from fastapi.testclient import TestClient
    from app.main import app
    from app.core.database import get_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
