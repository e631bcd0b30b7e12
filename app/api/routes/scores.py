"""Team score routes: cumulative history, leaderboard and season snapshots."""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.routes.leagues import team_to_dict
from app.core.database import get_db
from app.services.scoring.team_scores import TeamScoreAggregator

router = APIRouter(prefix="/leagues/{league_id}", tags=["scores"])


def get_aggregator(db: Session = Depends(get_db)) -> TeamScoreAggregator:
    """Dependency to get team score aggregator instance."""
    return TeamScoreAggregator(db)


@router.get("/scores/history")
async def get_score_history(
    league_id: str,
    season_end: Optional[date] = Query(None, description="Ignore points after this date"),
    aggregator: TeamScoreAggregator = Depends(get_aggregator),
) -> Dict:
    """Cumulative score per team per date."""
    history = aggregator.get_team_scores_history(league_id, season_end)
    return {
        "league_id": league_id,
        "teams": {
            user_id: {day.isoformat(): score for day, score in series.items()}
            for user_id, series in history.items()
        },
    }


@router.get("/scores/leaderboard")
async def get_leaderboard(league_id: str, aggregator: TeamScoreAggregator = Depends(get_aggregator)) -> Dict:
    """Recompute cached team scores, then rank them."""
    aggregator.recompute_team_scores(league_id)
    teams = aggregator.get_leaderboard(league_id)
    return {
        "league_id": league_id,
        "standings": [
            dict(team_to_dict(team), rank=rank)
            for rank, team in enumerate(teams, start=1)
        ],
    }


@router.get("/seasons/{season}/snapshot")
async def get_season_snapshot(
    league_id: str,
    season: str,
    aggregator: TeamScoreAggregator = Depends(get_aggregator),
) -> Dict:
    """Frozen end-of-season standings; 404 until the season has ended."""
    snapshot = aggregator.get_season_snapshot_or_compute(league_id, season)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Season {season} has not ended")
    return {
        "league_id": league_id,
        "season": snapshot.season,
        "final_scores": snapshot.final_scores,
        "final_ranks": snapshot.final_ranks,
        "graph_data": snapshot.graph_data,
        "computed_at": snapshot.computed_at,
    }
