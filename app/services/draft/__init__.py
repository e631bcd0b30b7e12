"""
Draft services: snake-order arithmetic, the draft coordinator and league
phase transitions.
"""
from app.services.draft.draft_service import DraftService
from app.services.draft.phase_scheduler import PhaseScheduler
from app.services.draft.phases import PhaseState, next_phase
from app.services.draft.snake import (
    CurrentPick,
    calculate_next_pick,
    eligible_pick_types,
    seasonal_picks_for_player_count,
    snake_order,
)

__all__ = [
    "DraftService",
    "PhaseScheduler",
    "PhaseState",
    "next_phase",
    "CurrentPick",
    "calculate_next_pick",
    "eligible_pick_types",
    "seasonal_picks_for_player_count",
    "snake_order",
]
