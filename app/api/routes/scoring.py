"""Scoring routes: manual run trigger and per-game history."""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models import ScoringMode
from app.repositories import GameHistoryRepository, GameMetricsRepository
from app.services.scoring.scoring_engine import ScoringEngine

router = APIRouter(tags=["scoring"])


class ScoringRunRequest(BaseModel):
    """Parameters for a manual scoring run."""
    mode: ScoringMode = ScoringMode.FULL
    dry_run: bool = False
    concurrency: Optional[int] = Field(None, ge=1, le=20)
    request_delay: Optional[float] = Field(None, ge=0, le=60)
    run_date: Optional[date] = Field(None, description="Scoring date (defaults to today, UTC)")


@router.post("/scoring/run")
async def run_scoring(body: ScoringRunRequest, db: Session = Depends(get_db)) -> Dict:
    """
    Run scoring now and return the run summary.

    Safe to repeat on the same day: games already scored today are skipped.
    """
    engine = ScoringEngine(db, concurrency=body.concurrency, request_delay=body.request_delay)
    summary = await engine.run(mode=body.mode.value, dry_run=body.dry_run, today=body.run_date)
    return summary.to_dict()


@router.get("/games/{game_id}/history")
async def get_game_history(game_id: str, db: Session = Depends(get_db)) -> Dict:
    """A game's running metrics and its daily scoring history."""
    metrics = GameMetricsRepository(db).find_by_id(game_id)
    entries = GameHistoryRepository(db).history_for_game(game_id)
    if metrics is None and not entries:
        raise HTTPException(status_code=404, detail=f"No scoring data for game {game_id}")

    return {
        "game_id": game_id,
        "metrics": None if metrics is None else {
            "estimated_owners": metrics.estimated_owners,
            "ccu": metrics.ccu,
            "reviews_total": metrics.reviews_total,
            "reviews_positive": metrics.reviews_positive,
            "status": metrics.status,
            "score": metrics.score,
            "milestones": list(metrics.milestones or []),
            "breakout_awarded": metrics.breakout_awarded,
            "delisted": metrics.delisted,
            "last_updated": metrics.last_updated,
        },
        "history": [
            {
                "date": entry.date.isoformat(),
                "estimated_owners": entry.estimated_owners,
                "sales_delta": entry.sales_delta,
                "ccu": entry.ccu,
                "reviews_total": entry.reviews_total,
                "reviews_delta": entry.reviews_delta,
                "positive_ratio": entry.positive_ratio,
                "points": entry.points,
                "base_points": entry.base_points,
                "milestone_bonus": entry.milestone_bonus,
                "breakout_bonus": entry.breakout_bonus,
                "days_since_release": entry.days_since_release,
            }
            for entry in entries
        ],
    }
