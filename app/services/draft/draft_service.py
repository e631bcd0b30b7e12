"""
Draft coordinator.

Serializes pick submission per draft. Every mutating operation runs as a
single database transaction over the draft row (locked with
SELECT ... FOR UPDATE and guarded by the optimistic ``version`` column)
and, for picks, the submitting user's team row. A failed precondition
rolls back with no writes; a lost race surfaces as PersistenceConflict.

Usage:
    service = DraftService(db)
    draft = service.submit_pick(league_id, "winter-2026", user_id, game_id, "hitPick")
"""
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    DraftNotFound,
    DraftStateError,
    FantasyLeagueError,
    GameAlreadyDrafted,
    GameUnavailable,
    InvalidDraftOrder,
    InvalidPickType,
    LeagueNotFound,
    NotYourTurn,
    PersistenceConflict,
    TeamNotFound,
)
from app.core.logging import get_logger
from app.core.metrics import draft_skips_total, record_draft_error, record_pick
from app.models import Draft, DraftPhase, DraftStatus, League, PickType, Team
from app.repositories import DraftRepository, LeagueRepository, TeamRepository
from app.services.catalog_service import CatalogService
from app.services.draft.phase_scheduler import PhaseScheduler
from app.services.draft.phases import draft_key
from app.services.draft.snake import (
    PICK_SLOTS,
    calculate_next_pick,
    eligible_pick_types,
    seasonal_picks_for_player_count,
    total_rounds,
)
from app.utils.timezone import utcnow

logger = get_logger(__name__)


class DraftService:
    """Per-league, per-phase draft state machine."""

    def __init__(self, db: Session, phase_scheduler: Optional[PhaseScheduler] = None):
        self.db = db
        self.drafts = DraftRepository(db)
        self.leagues = LeagueRepository(db)
        self.teams = TeamRepository(db)
        self.catalog = CatalogService(db)
        self.phase_scheduler = phase_scheduler or PhaseScheduler(db)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def create_draft(self, league_id: str, phase: str, order: Optional[Sequence[str]] = None) -> Draft:
        """
        Create a pending draft for the league's current season.

        Args:
            league_id: League ID
            phase: winter, summer or fall
            order: Pick order; defaults to the league's member order

        Raises:
            LeagueNotFound, DraftStateError (already exists), InvalidDraftOrder
        """
        league = self._league(league_id)
        phase = DraftPhase(phase).value
        key = draft_key(phase, league.season)
        if self.drafts.find_by_key(league_id, key):
            raise DraftStateError(f"Draft {key} already exists")

        pick_order = list(order) if order else list(league.members or [])
        self._validate_order(league, pick_order)

        draft = self.drafts.create(
            league_id=league_id,
            draft_key=key,
            phase=phase,
            season=league.season,
            status=DraftStatus.PENDING.value,
            pick_order=pick_order,
            next_slot=0,
        )
        self._commit()
        logger.info(f"Created draft {key} for league {league_id} with {len(pick_order)} players")
        return draft

    def set_draft_order(self, league_id: str, draft_id: str, order: Sequence[str]) -> Draft:
        """Replace the pick order of a draft that has not started."""
        league = self._league(league_id)
        draft = self._draft(league_id, draft_id, for_update=True)
        try:
            if draft.status != DraftStatus.PENDING.value:
                raise DraftStateError("Draft order can only change before the draft starts")
            self._validate_order(league, list(order))
        except FantasyLeagueError:
            self.db.rollback()
            raise
        draft.pick_order = list(order)
        self.drafts.touch(draft)
        self._commit()
        return draft

    def start_draft(self, league_id: str, draft_id: str) -> Draft:
        """pending -> active; puts slot 0 on the clock."""
        league = self._league(league_id)
        draft = self._draft(league_id, draft_id, for_update=True)
        try:
            if draft.status != DraftStatus.PENDING.value:
                raise DraftStateError(f"Draft is {draft.status}, not pending")
            self._validate_order(league, list(draft.pick_order or []))
        except FantasyLeagueError:
            self.db.rollback()
            raise

        now = utcnow()
        draft.status = DraftStatus.ACTIVE.value
        draft.started_at = now
        draft.next_slot = 0
        self._set_current_pick(draft)
        self.drafts.touch(draft)
        self._commit()
        logger.info(f"Started draft {draft.draft_key} for league {league_id}, {draft.current_user_id} on the clock")
        return draft

    # ========================================================================
    # Picks
    # ========================================================================

    def submit_pick(
        self,
        league_id: str,
        draft_id: str,
        user_id: str,
        game_id: str,
        pick_type: str,
    ) -> Draft:
        """
        Record a pick and advance the turn in one transaction.

        Checks run in order: draft exists, draft active, caller on the
        clock, game available, game not yet drafted, pick type eligible.

        Raises:
            DraftNotFound, DraftStateError, NotYourTurn, GameUnavailable,
            GameAlreadyDrafted, InvalidPickType, TeamNotFound,
            PersistenceConflict
        """
        try:
            draft = self._draft(league_id, draft_id, for_update=True)
            if draft.status != DraftStatus.ACTIVE.value:
                raise DraftStateError(f"Draft is {draft.status}")
            if draft.current_user_id != user_id:
                raise NotYourTurn(f"It is {draft.current_user_id}'s turn")
            if not self.catalog.is_game_draftable(game_id):
                raise GameUnavailable(f"Game {game_id} is not in the catalog or is hidden")
            if self.drafts.is_game_drafted(draft.id, game_id):
                raise GameAlreadyDrafted(f"Game {game_id} has already been drafted")

            seasonal = seasonal_picks_for_player_count(len(draft.pick_order))
            prior = [pick.pick_type for pick in draft.picks if pick.user_id == user_id]
            eligible = eligible_pick_types(draft.phase, prior, seasonal)
            pick = self._pick_type(pick_type)
            if pick not in eligible:
                allowed = ", ".join(p.value for p in eligible) or "none"
                raise InvalidPickType(f"{pick.value} not allowed; eligible: {allowed}")

            team = self.teams.find_one(league_id, user_id, for_update=True)
            if team is None:
                raise TeamNotFound(f"No team for {user_id} in league {league_id}")

            self.drafts.add_pick(draft, draft.next_slot, user_id, game_id, pick.value)
            self._mirror_pick(team, draft.phase, pick, game_id)
            completed = self._advance(draft)
            self.db.commit()
        except FantasyLeagueError as exc:
            self.db.rollback()
            record_draft_error(exc.code)
            raise
        except (IntegrityError, StaleDataError) as exc:
            self.db.rollback()
            record_draft_error(PersistenceConflict.code)
            raise PersistenceConflict("Draft changed concurrently; re-read and retry") from exc

        record_pick(draft.phase, pick.value)
        logger.info(
            f"Pick {draft.next_slot - 1} in {draft.draft_key}: {user_id} took {game_id} as {pick.value}"
        )
        if completed:
            self._on_completed(draft)
        return draft

    def skip_current_pick(self, league_id: str, draft_id: str) -> Draft:
        """Consume the slot on the clock without recording a pick."""
        try:
            draft = self._draft(league_id, draft_id, for_update=True)
            if draft.status != DraftStatus.ACTIVE.value:
                raise DraftStateError(f"Draft is {draft.status}")
            skipped_user = draft.current_user_id
            completed = self._advance(draft)
            self.db.commit()
        except FantasyLeagueError as exc:
            self.db.rollback()
            record_draft_error(exc.code)
            raise
        except (IntegrityError, StaleDataError) as exc:
            self.db.rollback()
            record_draft_error(PersistenceConflict.code)
            raise PersistenceConflict("Draft changed concurrently; re-read and retry") from exc

        draft_skips_total.inc()
        logger.info(f"Skipped slot {draft.next_slot - 1} ({skipped_user}) in {draft.draft_key}")
        if completed:
            self._on_completed(draft)
        return draft

    # ========================================================================
    # Presence
    # ========================================================================

    def add_presence(self, league_id: str, draft_id: str, user_id: str) -> List[str]:
        draft = self._draft(league_id, draft_id)
        self.drafts.upsert_presence(draft.id, user_id)
        self._commit()
        return self.drafts.presence_user_ids(draft.id)

    def remove_presence(self, league_id: str, draft_id: str, user_id: str) -> List[str]:
        draft = self._draft(league_id, draft_id)
        self.drafts.delete_presence(draft.id, user_id)
        self._commit()
        return self.drafts.presence_user_ids(draft.id)

    def list_presence(self, league_id: str, draft_id: str) -> List[str]:
        return self.drafts.presence_user_ids(self._draft(league_id, draft_id).id)

    # ========================================================================
    # Reads
    # ========================================================================

    def get_draft(self, league_id: str, draft_id: str) -> Draft:
        return self._draft(league_id, draft_id)

    def list_drafts(self, league_id: str) -> List[Draft]:
        self._league(league_id)
        return self.drafts.find_by_league(league_id)

    def get_draft_state(self, league_id: str, draft_id: str) -> Dict[str, Any]:
        """Draft with its pick log, presence and the current user's eligible pick types."""
        draft = self._draft(league_id, draft_id)
        seasonal = seasonal_picks_for_player_count(len(draft.pick_order or []))
        current_pick = None
        eligible: List[str] = []
        if draft.current_user_id is not None:
            current_pick = {
                "round": draft.current_round,
                "position": draft.current_position,
                "user_id": draft.current_user_id,
            }
            prior = [pick.pick_type for pick in draft.picks if pick.user_id == draft.current_user_id]
            eligible = [pick.value for pick in eligible_pick_types(draft.phase, prior, seasonal)]

        return {
            "id": draft.id,
            "league_id": draft.league_id,
            "draft_key": draft.draft_key,
            "phase": draft.phase,
            "season": draft.season,
            "status": draft.status,
            "order": list(draft.pick_order or []),
            "seasonal_picks": seasonal,
            "total_rounds": total_rounds(draft.phase, seasonal),
            "next_slot": draft.next_slot,
            "current_pick": current_pick,
            "eligible_pick_types": eligible,
            "picks": [
                {
                    "pick_index": pick.pick_index,
                    "user_id": pick.user_id,
                    "game_id": pick.game_id,
                    "pick_type": pick.pick_type,
                    "timestamp": pick.created_at,
                }
                for pick in draft.picks
            ],
            "presence": self.drafts.presence_user_ids(draft.id),
            "version": draft.version,
        }

    # ========================================================================
    # Helpers
    # ========================================================================

    def _league(self, league_id: str) -> League:
        league = self.leagues.find_by_id(league_id)
        if league is None:
            raise LeagueNotFound(f"League {league_id} not found")
        return league

    def _draft(self, league_id: str, draft_id: str, for_update: bool = False) -> Draft:
        draft = self.drafts.find_for_league(league_id, draft_id, for_update=for_update)
        if draft is None:
            raise DraftNotFound(f"Draft {draft_id} not found in league {league_id}")
        return draft

    @staticmethod
    def _validate_order(league: League, order: List[str]) -> None:
        members = list(league.members or [])
        if not order or len(set(order)) != len(order) or sorted(order) != sorted(members):
            raise InvalidDraftOrder(f"Order {order} is not a permutation of members {members}")

    @staticmethod
    def _pick_type(value: str) -> PickType:
        try:
            return PickType(value)
        except ValueError:
            raise InvalidPickType(f"Unknown pick type {value!r}")

    @staticmethod
    def _mirror_pick(team: Team, phase: str, pick: PickType, game_id: str) -> None:
        slot = PICK_SLOTS[pick]
        column = slot.column(phase)
        if slot.singleton:
            setattr(team, column, game_id)
        else:
            # Reassign so the JSON column is flagged dirty
            setattr(team, column, list(getattr(team, column) or []) + [game_id])
        team.updated_at = utcnow()

    def _set_current_pick(self, draft: Draft) -> None:
        seasonal = seasonal_picks_for_player_count(len(draft.pick_order))
        current = calculate_next_pick(draft.pick_order, draft.next_slot, draft.phase, seasonal)
        if current is None:
            draft.current_round = None
            draft.current_position = None
            draft.current_user_id = None
        else:
            draft.current_round = current.round
            draft.current_position = current.position
            draft.current_user_id = current.user_id

    def _advance(self, draft: Draft) -> bool:
        """Move past the slot on the clock. Returns True when the draft completed."""
        draft.next_slot += 1
        self._set_current_pick(draft)
        self.drafts.touch(draft)
        if draft.current_user_id is None:
            draft.status = DraftStatus.COMPLETED.value
            draft.completed_at = utcnow()
            return True
        return False

    def _on_completed(self, draft: Draft) -> None:
        logger.info(f"Draft {draft.draft_key} for league {draft.league_id} completed")
        try:
            self.phase_scheduler.advance_phase(draft.league_id)
        except (FantasyLeagueError, SQLAlchemyError) as exc:
            self.db.rollback()
            logger.error(
                f"Phase advance after {draft.draft_key} failed for league {draft.league_id}: {exc}",
                exc_info=True,
            )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except (IntegrityError, StaleDataError) as exc:
            self.db.rollback()
            raise PersistenceConflict("Draft changed concurrently; re-read and retry") from exc
