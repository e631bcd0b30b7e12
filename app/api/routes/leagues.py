"""League API routes.

Provides endpoints for:
- Creating, reading and joining leagues
- Listing and renaming teams
- Marking games delisted for a league
- Read-repair of the league's current phase
"""
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models import League, Team
from app.services.draft.phase_scheduler import PhaseScheduler
from app.services.league_service import DEFAULT_TEAM_NAME, LeagueService

router = APIRouter(prefix="/leagues", tags=["leagues"])


class CreateLeagueRequest(BaseModel):
    """Request to create a league."""
    commissioner_id: str = Field(..., min_length=1, description="Creating user's id")
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=3, max_length=20, description="Join code (case-insensitive)")
    team_name: str = Field(DEFAULT_TEAM_NAME, max_length=100)
    season: Optional[str] = Field(None, pattern=r"^\d{4}$", description="Season year; defaults from today")


class JoinLeagueRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    team_name: str = Field(DEFAULT_TEAM_NAME, max_length=100)


class RenameTeamRequest(BaseModel):
    name: str = Field(..., max_length=100)


class DelistGameRequest(BaseModel):
    game_id: str = Field(..., min_length=1)


def league_to_dict(league: League) -> Dict:
    return {
        "id": league.id,
        "name": league.name,
        "code": league.code,
        "commissioner_id": league.commissioner_id,
        "season": league.season,
        "status": league.status,
        "current_phase": league.current_phase,
        "members": list(league.members or []),
        "delisted_games": league.delisted_game_ids,
        "created_at": league.created_at,
    }


def team_to_dict(team: Team) -> Dict:
    return {
        "league_id": team.league_id,
        "user_id": team.user_id,
        "name": team.name,
        "picks": {
            "hit_pick": team.hit_pick,
            "bomb_pick": team.bomb_pick,
            "winter_picks": list(team.winter_picks or []),
            "summer_picks": list(team.summer_picks or []),
            "fall_picks": list(team.fall_picks or []),
            "alt_picks": list(team.alt_picks or []),
        },
        "score": team.score,
        "bomb_adjustment": team.bomb_adjustment,
    }


def get_league_service(db: Session = Depends(get_db)) -> LeagueService:
    """Dependency to get league service instance."""
    return LeagueService(db)


@router.post("", status_code=201)
async def create_league(
    body: CreateLeagueRequest,
    service: LeagueService = Depends(get_league_service),
) -> Dict:
    """Create a league; the commissioner becomes its first member."""
    league = service.create_league(
        commissioner_id=body.commissioner_id,
        name=body.name,
        code=body.code,
        team_name=body.team_name,
        season=body.season,
    )
    return league_to_dict(league)


@router.get("")
async def list_leagues(
    user_id: Optional[str] = Query(None, description="Leagues this user belongs to"),
    code: Optional[str] = Query(None, description="Look a league up by join code"),
    service: LeagueService = Depends(get_league_service),
) -> Dict:
    if code:
        leagues = [service.get_league_by_code(code)]
    elif user_id:
        leagues = service.list_leagues_for_user(user_id)
    else:
        leagues = []
    return {"count": len(leagues), "leagues": [league_to_dict(league) for league in leagues]}


@router.get("/{league_id}")
async def get_league(league_id: str, service: LeagueService = Depends(get_league_service)) -> Dict:
    return league_to_dict(service.get_league(league_id))


@router.post("/{league_id}/join")
async def join_league(
    league_id: str,
    body: JoinLeagueRequest,
    service: LeagueService = Depends(get_league_service),
) -> Dict:
    """
    Join a league.

    Joining is refused once any draft of the season has completed.
    """
    return league_to_dict(service.join_league(league_id, body.user_id, body.team_name))


@router.get("/{league_id}/teams")
async def list_teams(league_id: str, service: LeagueService = Depends(get_league_service)) -> List[Dict]:
    return [team_to_dict(team) for team in service.list_teams(league_id)]


@router.patch("/{league_id}/teams/{user_id}")
async def rename_team(
    league_id: str,
    user_id: str,
    body: RenameTeamRequest,
    service: LeagueService = Depends(get_league_service),
) -> Dict:
    return team_to_dict(service.rename_team(league_id, user_id, body.name))


@router.post("/{league_id}/delisted")
async def mark_game_delisted(
    league_id: str,
    body: DelistGameRequest,
    service: LeagueService = Depends(get_league_service),
) -> Dict:
    """Flag a game as delisted for this league (its holders fall back to alt picks)."""
    delisted = service.mark_game_delisted(league_id, body.game_id)
    return {"league_id": league_id, "delisted_games": delisted}


@router.post("/{league_id}/phase/sync")
async def sync_league_phase(
    league_id: str,
    today: Optional[date] = Query(None, description="Override today's date"),
    db: Session = Depends(get_db),
) -> Dict:
    """Recompute the league's phase from the calendar and completed drafts."""
    state = PhaseScheduler(db).sync_league_current_phase(league_id, today)
    return {"league_id": league_id, "current_phase": state.phase.value, "status": state.status.value}
