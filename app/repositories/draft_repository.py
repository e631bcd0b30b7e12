"""
Draft repository.

Drafts are addressed by (league_id, draft_key) where draft_key is
"{phase}-{season}", e.g. "winter-2026".
"""
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models import Draft, DraftPick, DraftPresence
from app.repositories.base import BaseRepository
from app.utils.timezone import utcnow


class DraftRepository(BaseRepository[Draft]):
    """Repository for drafts, their pick log and presence set."""

    def __init__(self, db: Session):
        super().__init__(Draft, db)

    def find_by_key(self, league_id: str, draft_key: str, for_update: bool = False) -> Optional[Draft]:
        """
        Find a league's draft by key.

        Args:
            league_id: League ID
            draft_key: "{phase}-{season}"
            for_update: Lock the row (SELECT ... FOR UPDATE) for a pick transaction
        """
        query = self.query().filter(Draft.league_id == league_id, Draft.draft_key == draft_key)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_for_league(self, league_id: str, draft_id: str, for_update: bool = False) -> Optional[Draft]:
        """Find a league's draft by row id or by draft key."""
        query = self.query().filter(
            Draft.league_id == league_id,
            or_(Draft.id == draft_id, Draft.draft_key == draft_id),
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_by_league(self, league_id: str, season: Optional[str] = None) -> List[Draft]:
        query = self.query().filter(Draft.league_id == league_id)
        if season:
            query = query.filter(Draft.season == season)
        return query.order_by(Draft.created_at).all()

    def phase_statuses(self, league_id: str, season: str) -> Dict[str, str]:
        """Map of phase -> draft status for a league season (missing phases omitted)."""
        return {draft.phase: draft.status for draft in self.find_by_league(league_id, season)}

    # ========================================================================
    # Pick log
    # ========================================================================

    def is_game_drafted(self, draft_id: str, game_id: str) -> bool:
        return self.db.query(
            self.db.query(DraftPick)
            .filter(DraftPick.draft_id == draft_id, DraftPick.game_id == game_id)
            .exists()
        ).scalar()

    def add_pick(self, draft: Draft, pick_index: int, user_id: str, game_id: str, pick_type: str) -> DraftPick:
        pick = BaseRepository(DraftPick, self.db).create(
            draft_id=draft.id,
            pick_index=pick_index,
            user_id=user_id,
            game_id=game_id,
            pick_type=pick_type,
        )
        draft.picks.append(pick)
        return pick

    # ========================================================================
    # Presence
    # ========================================================================

    def presence_user_ids(self, draft_id: str) -> List[str]:
        rows = (
            self.db.query(DraftPresence.user_id)
            .filter(DraftPresence.draft_id == draft_id)
            .order_by(DraftPresence.user_id)
            .all()
        )
        return [row.user_id for row in rows]

    def upsert_presence(self, draft_id: str, user_id: str) -> None:
        existing = self.db.query(DraftPresence).filter(
            DraftPresence.draft_id == draft_id, DraftPresence.user_id == user_id
        ).first()
        if existing:
            existing.last_seen = utcnow()
            return
        BaseRepository(DraftPresence, self.db).create(draft_id=draft_id, user_id=user_id, last_seen=utcnow())

    def delete_presence(self, draft_id: str, user_id: str) -> None:
        self.db.query(DraftPresence).filter(
            DraftPresence.draft_id == draft_id, DraftPresence.user_id == user_id
        ).delete(synchronize_session=False)
