"""
Scoring services: point formulas, milestones, breakouts, the Steam
telemetry client, the daily scoring run, bomb damage and team scores.
"""
from app.services.scoring.bomb_allocator import (
    BombDamageAllocator,
    compute_bomb_adjustments,
    compute_bomb_threshold,
)
from app.services.scoring.scoring_engine import ScoringEngine, ScoringRunSummary
from app.services.scoring.steam_client import SteamClient, SteamTelemetry
from app.services.scoring.team_scores import (
    TeamScoreAggregator,
    get_all_picked_game_ids,
    get_scoring_game_ids,
)

__all__ = [
    "BombDamageAllocator",
    "compute_bomb_adjustments",
    "compute_bomb_threshold",
    "ScoringEngine",
    "ScoringRunSummary",
    "SteamClient",
    "SteamTelemetry",
    "TeamScoreAggregator",
    "get_all_picked_game_ids",
    "get_scoring_game_ids",
]
