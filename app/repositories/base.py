"""
Shared data access helpers for the league, draft, catalog and scoring tables.

Repositories never commit on their own; the calling service owns the
transaction boundary. ``save`` exists for the few single-statement
read-repair paths that write outside a larger unit of work.

Example:
    class TeamRepository(BaseRepository[Team]):
        def find_by_league(self, league_id: str) -> List[Team]:
            return self.where(Team.league_id == league_id)
"""
import uuid
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any
from sqlalchemy.orm import Query, Session

from app.utils.timezone import utcnow

T = TypeVar("T")


def new_id() -> str:
    """Primary key for a new row."""
    return str(uuid.uuid4())


class BaseRepository(Generic[T], ABC):
    """Lookups and inserts for one model class, bound to a session."""

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    def find_by_id(self, id: Any) -> Optional[T]:
        return self.db.get(self.model_type, id)

    def create(self, **kwargs) -> T:
        """
        Add a new row to the session (not committed).

        Fills in a uuid ``id`` and the created/updated timestamps when the
        model has those columns and the caller did not supply them.
        """
        columns = self.model_type.__table__.columns
        now = utcnow()
        if "id" in columns and "id" not in kwargs and columns["id"].type.python_type is str:
            kwargs["id"] = new_id()
        for stamp in ("created_at", "updated_at"):
            if stamp in columns and stamp not in kwargs:
                kwargs[stamp] = now
        row = self.model_type(**kwargs)
        self.db.add(row)
        return row

    def touch(self, instance: T) -> T:
        """Bump ``updated_at`` on a row about to be written."""
        if hasattr(instance, "updated_at"):
            instance.updated_at = utcnow()
        return instance

    def query(self) -> Query:
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        return self.query().filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        return self.query().filter(*criterion).first()

    def save(self) -> None:
        self.db.commit()

    def flush(self) -> None:
        self.db.flush()
