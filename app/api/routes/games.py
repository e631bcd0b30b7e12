"""Catalog routes: the pool of games a player can draft."""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models import DraftPhase, Game
from app.services.catalog_service import CatalogService
from app.services.draft.phases import release_window

router = APIRouter(prefix="/games", tags=["games"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency to get catalog service instance."""
    return CatalogService(db)


def game_to_dict(game: Game) -> Dict:
    return {
        "id": game.id,
        "name": game.name,
        "cover_url": game.cover_url,
        "genres": list(game.genres or []),
        "release_date": game.release_date.isoformat() if game.release_date else None,
        "steam_app_id": game.steam_app_id,
    }


@router.get("/draftable")
async def list_draftable_games(
    search: Optional[str] = Query(None, description="Name contains (case-insensitive)"),
    genre: Optional[str] = Query(None),
    release_from: Optional[date] = Query(None),
    release_to: Optional[date] = Query(None),
    phase: Optional[DraftPhase] = Query(None, description="Use this phase's release window"),
    season: Optional[str] = Query(None, pattern=r"^\d{4}$", description="Season year for phase"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Dict:
    """
    Visible games ordered by release date.

    ``phase`` and ``season`` together select that phase's release window;
    an explicit ``release_from`` / ``release_to`` takes precedence over
    the matching bound.
    """
    if phase is not None:
        if season is None:
            raise HTTPException(status_code=422, detail="season is required with phase")
        window_start, window_end = release_window(phase.value, season)
        release_from = release_from or window_start
        release_to = release_to or window_end

    games = catalog.draftable_games(
        search=search,
        genre=genre,
        release_from=release_from,
        release_to=release_to,
        limit=limit,
    )
    return {"count": len(games), "games": [game_to_dict(game) for game in games]}
