"""
Database models for the Game Fantasy League API.

Tables mirror the conceptual document layout:
- leagues, teams, drafts (+ draft_picks, draft_presence) per league
- games: read-only catalog populated by the ingestion job
- game_metrics / game_score_history: per-game running totals and daily log
- league_scoring_days / season_snapshots: per-league derived records
"""
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from app.models.enums import DraftStatus, GameActivity, LeagueStatus, DraftPhase

Base = declarative_base()


# =============================================================================
# LEAGUES & TEAMS
# =============================================================================

class League(Base):
    """A fantasy league for one season."""
    __tablename__ = "leagues"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)  # Upper-cased join code
    commissioner_id = Column(String(128), nullable=False)
    season = Column(String(4), nullable=False)  # "2026"
    status = Column(String(20), nullable=False, default=LeagueStatus.DRAFT.value)
    current_phase = Column(String(10), nullable=False, default=DraftPhase.WINTER.value)
    members = Column(JSON, nullable=False, default=list)  # Ordered user ids
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    teams = relationship("Team", back_populates="league", cascade="all, delete-orphan")
    drafts = relationship("Draft", back_populates="league", cascade="all, delete-orphan")
    delisted = relationship(
        "LeagueDelistedGame",
        cascade="all, delete-orphan",
        order_by="(LeagueDelistedGame.created_at, LeagueDelistedGame.game_id)",
    )

    @property
    def delisted_game_ids(self) -> list:
        return [row.game_id for row in self.delisted]


class LeagueDelistedGame(Base):
    """Append-only set of games a league treats as delisted (alt picks replace them)."""
    __tablename__ = "league_delisted_games"

    id = Column(String(36), primary_key=True)
    league_id = Column(String(36), ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("league_id", "game_id", name="uq_league_delisted_game"),
    )


class Team(Base):
    """
    A member's team within a league.

    score and bomb_adjustment are cached values; per-game history and the
    league scoring days are the source of truth.
    """
    __tablename__ = "teams"

    id = Column(String(36), primary_key=True)
    league_id = Column(String(36), ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    hit_pick = Column(String(64), nullable=True)
    bomb_pick = Column(String(64), nullable=True)
    winter_picks = Column(JSON, nullable=False, default=list)
    summer_picks = Column(JSON, nullable=False, default=list)
    fall_picks = Column(JSON, nullable=False, default=list)
    alt_picks = Column(JSON, nullable=False, default=list)

    score = Column(Float, nullable=False, default=0.0)
    bomb_adjustment = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    league = relationship("League", back_populates="teams")

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_team_league_user"),
    )


# =============================================================================
# DRAFTS
# =============================================================================

class Draft(Base):
    """
    One phase's draft for a league season.

    next_slot is the flat index of the next pick slot (recorded picks plus
    skipped slots). current_round/current_position/current_user_id are null
    exactly when there is no pick on the clock.
    """
    __tablename__ = "drafts"

    id = Column(String(36), primary_key=True)
    league_id = Column(String(36), ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    draft_key = Column(String(20), nullable=False)  # "winter-2026"
    phase = Column(String(10), nullable=False)
    season = Column(String(4), nullable=False)
    status = Column(String(20), nullable=False, default=DraftStatus.PENDING.value)
    pick_order = Column(JSON, nullable=False, default=list)

    next_slot = Column(Integer, nullable=False, default=0)
    current_round = Column(Integer, nullable=True)
    current_position = Column(Integer, nullable=True)
    current_user_id = Column(String(128), nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    league = relationship("League", back_populates="drafts")
    picks = relationship(
        "DraftPick",
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="DraftPick.pick_index",
    )
    presence = relationship("DraftPresence", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("league_id", "draft_key", name="uq_draft_league_key"),
    )


class DraftPick(Base):
    """Append-only pick log keyed by flat slot index."""
    __tablename__ = "draft_picks"

    id = Column(String(36), primary_key=True)
    draft_id = Column(String(36), ForeignKey("drafts.id", ondelete="CASCADE"), nullable=False, index=True)
    pick_index = Column(Integer, nullable=False)
    user_id = Column(String(128), nullable=False)
    game_id = Column(String(64), nullable=False)
    pick_type = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False)

    draft = relationship("Draft", back_populates="picks")

    __table_args__ = (
        UniqueConstraint("draft_id", "pick_index", name="uq_draft_pick_index"),
        UniqueConstraint("draft_id", "game_id", name="uq_draft_pick_game"),
    )


class DraftPresence(Base):
    """Users currently connected to a draft room."""
    __tablename__ = "draft_presence"

    id = Column(String(36), primary_key=True)
    draft_id = Column(String(36), ForeignKey("drafts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False)
    last_seen = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("draft_id", "user_id", name="uq_draft_presence_user"),
    )


# =============================================================================
# GAME CATALOG & SCORING
# =============================================================================

class Game(Base):
    """Catalog entry. Written only by the ingestion job; read-only here."""
    __tablename__ = "games"

    id = Column(String(64), primary_key=True)  # Catalog (IGDB) id
    name = Column(String(255), nullable=False, index=True)
    cover_url = Column(String(500), nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    release_date = Column(Date, nullable=True, index=True)
    steam_app_id = Column(String(32), nullable=True, index=True)
    is_hidden = Column(Boolean, nullable=False, default=False)


class GameMetrics(Base):
    """Latest telemetry and running score for one game."""
    __tablename__ = "game_metrics"

    game_id = Column(String(64), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True)
    estimated_owners = Column(Integer, nullable=False, default=0)
    ccu = Column(Integer, nullable=False, default=0)
    reviews_total = Column(Integer, nullable=False, default=0)
    reviews_positive = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=GameActivity.INACTIVE.value)
    score = Column(Float, nullable=False, default=0.0)  # Increment-only
    milestones = Column(JSON, nullable=False, default=list)
    breakout_awarded = Column(Boolean, nullable=False, default=False)
    off_peak_ccu = Column(Integer, nullable=True)
    off_peak_date = Column(Date, nullable=True)
    delisted = Column(Boolean, nullable=False, default=False)
    last_updated = Column(DateTime, nullable=False)


class GameScoreHistory(Base):
    """Immutable daily scoring record for a game."""
    __tablename__ = "game_score_history"

    id = Column(String(36), primary_key=True)
    game_id = Column(String(64), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    estimated_owners = Column(Integer, nullable=False, default=0)
    sales_delta = Column(Integer, nullable=False, default=0)
    ccu = Column(Integer, nullable=False, default=0)  # Peak for the day
    reviews_total = Column(Integer, nullable=False, default=0)
    reviews_delta = Column(Integer, nullable=False, default=0)
    positive_ratio = Column(Float, nullable=False, default=0.0)
    points = Column(Float, nullable=False, default=0.0)
    base_points = Column(Float, nullable=False, default=0.0)
    milestone_bonus = Column(Float, nullable=False, default=0.0)
    breakout_bonus = Column(Float, nullable=False, default=0.0)
    days_since_release = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("game_id", "date", name="uq_game_history_day"),
        Index("ix_game_history_game_date", "game_id", "date"),
    )


class LeagueScoringDay(Base):
    """Bomb adjustments applied to a league on one scoring day."""
    __tablename__ = "league_scoring_days"

    id = Column(String(36), primary_key=True)
    league_id = Column(String(36), ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    bomb_adjustments = Column(JSON, nullable=False, default=dict)  # user_id -> signed delta
    bomb_threshold = Column(Float, nullable=False, default=0.0)
    total_damage = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("league_id", "date", name="uq_league_scoring_day"),
    )


class SeasonSnapshot(Base):
    """Frozen end-of-season standings. Written once, never recomputed."""
    __tablename__ = "season_snapshots"

    id = Column(String(36), primary_key=True)
    league_id = Column(String(36), ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    season = Column(String(4), nullable=False)
    final_scores = Column(JSON, nullable=False)
    final_ranks = Column(JSON, nullable=False)
    graph_data = Column(JSON, nullable=False)
    computed_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("league_id", "season", name="uq_season_snapshot"),
    )
