"""
Models module.

Usage:
    from app.models import League, Team, Draft, GameScoreHistory
"""
from app.models.models import (
    Base,
    League,
    LeagueDelistedGame,
    Team,
    Draft,
    DraftPick,
    DraftPresence,
    Game,
    GameMetrics,
    GameScoreHistory,
    LeagueScoringDay,
    SeasonSnapshot,
)
from app.models.enums import (
    DRAFT_PHASES,
    DraftPhase,
    DraftStatus,
    GameActivity,
    LeagueStatus,
    PickType,
    ScoringMode,
)

__all__ = [
    "Base",
    "League",
    "LeagueDelistedGame",
    "Team",
    "Draft",
    "DraftPick",
    "DraftPresence",
    "Game",
    "GameMetrics",
    "GameScoreHistory",
    "LeagueScoringDay",
    "SeasonSnapshot",
    "DRAFT_PHASES",
    "DraftPhase",
    "DraftStatus",
    "GameActivity",
    "LeagueStatus",
    "PickType",
    "ScoringMode",
]
