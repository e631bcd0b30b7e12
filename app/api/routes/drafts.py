"""Draft API routes.

Drafts are addressed as /leagues/{league_id}/drafts/{draft_id}, where
draft_id is either the draft's id or its key ("winter-2026").

Provides endpoints for:
- Creating, ordering and starting a draft
- Submitting and skipping picks
- Draft room presence
"""
from typing import Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models import DraftPhase, PickType
from app.services.draft.draft_service import DraftService

router = APIRouter(prefix="/leagues/{league_id}/drafts", tags=["drafts"])


class CreateDraftRequest(BaseModel):
    """Request to create a phase draft for the league's season."""
    phase: DraftPhase
    order: List[str] = Field(default_factory=list, description="Pick order; defaults to member order")


class DraftOrderRequest(BaseModel):
    order: List[str] = Field(..., min_length=1)


class SubmitPickRequest(BaseModel):
    """A pick for the user on the clock."""
    user_id: str = Field(..., min_length=1)
    game_id: str = Field(..., min_length=1)
    pick_type: PickType


def get_draft_service(db: Session = Depends(get_db)) -> DraftService:
    """Dependency to get draft service instance."""
    return DraftService(db)


@router.post("", status_code=201)
async def create_draft(
    league_id: str,
    body: CreateDraftRequest,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    draft = service.create_draft(league_id, body.phase.value, body.order or None)
    return service.get_draft_state(league_id, draft.id)


@router.get("")
async def list_drafts(league_id: str, service: DraftService = Depends(get_draft_service)) -> List[Dict]:
    return [
        {
            "id": draft.id,
            "draft_key": draft.draft_key,
            "phase": draft.phase,
            "season": draft.season,
            "status": draft.status,
        }
        for draft in service.list_drafts(league_id)
    ]


@router.get("/{draft_id}")
async def get_draft(league_id: str, draft_id: str, service: DraftService = Depends(get_draft_service)) -> Dict:
    """Draft state: order, current pick, pick log, presence and eligible pick types."""
    return service.get_draft_state(league_id, draft_id)


@router.put("/{draft_id}/order")
async def set_draft_order(
    league_id: str,
    draft_id: str,
    body: DraftOrderRequest,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    service.set_draft_order(league_id, draft_id, body.order)
    return service.get_draft_state(league_id, draft_id)


@router.post("/{draft_id}/start")
async def start_draft(league_id: str, draft_id: str, service: DraftService = Depends(get_draft_service)) -> Dict:
    service.start_draft(league_id, draft_id)
    return service.get_draft_state(league_id, draft_id)


@router.post("/{draft_id}/picks")
@limiter.limit(settings.PICK_RATE_LIMIT)
async def submit_pick(
    request: Request,
    league_id: str,
    draft_id: str,
    body: SubmitPickRequest,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    """
    Submit a pick.

    Returns 409 not_your_turn when the caller is not on the clock; clients
    should re-read the draft state rather than retry blindly.
    """
    service.submit_pick(league_id, draft_id, body.user_id, body.game_id, body.pick_type.value)
    return service.get_draft_state(league_id, draft_id)


@router.post("/{draft_id}/skip")
async def skip_current_pick(
    league_id: str,
    draft_id: str,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    """Administrative: pass over the user on the clock."""
    service.skip_current_pick(league_id, draft_id)
    return service.get_draft_state(league_id, draft_id)


@router.put("/{draft_id}/presence/{user_id}")
async def add_presence(
    league_id: str,
    draft_id: str,
    user_id: str,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    return {"presence": service.add_presence(league_id, draft_id, user_id)}


@router.delete("/{draft_id}/presence/{user_id}")
async def remove_presence(
    league_id: str,
    draft_id: str,
    user_id: str,
    service: DraftService = Depends(get_draft_service),
) -> Dict:
    return {"presence": service.remove_presence(league_id, draft_id, user_id)}
