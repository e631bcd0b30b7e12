"""
Database configuration and session management.
"""
import os
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings

# Engine is created lazily so importing the app never opens a connection
_engine = None
_SessionLocal = None


def _build_engine(url: str) -> Engine:
    echo = os.getenv("SQL_ECHO", "false").lower() == "true"
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine, _SessionLocal

    if _engine is None:
        _engine = _build_engine(settings.DATABASE_URL)
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def SessionLocal() -> Session:
    """Open a new session bound to the application engine."""
    get_engine()
    return _SessionLocal()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
    ```python
    @router.get("/endpoint")
    def endpoint(db: Session = Depends(get_db)):
        ...
    ```
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables."""
    from app.models import Base
    # checkfirst=True will only create tables that don't exist
    Base.metadata.create_all(bind=get_engine(), checkfirst=True)
