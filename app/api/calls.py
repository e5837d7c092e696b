"""Call list and team phone configuration endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.dependencies import get_call_state_machine, get_team_phone_repository
from app.services.calls.models import CallView, to_call_view
from app.services.calls.state_machine import CallStateMachine
from app.services.team.repository import TeamPhoneRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class TeamPhoneRequest(BaseModel):
    """New team phone."""
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    enabled: bool = True
    ring_order: int = 0


class TeamPhoneUpdate(BaseModel):
    """Partial team phone update."""
    name: Optional[str] = None
    phone: Optional[str] = None
    enabled: Optional[bool] = None
    ring_order: Optional[int] = None


class TeamPhoneResponse(BaseModel):
    """Team phone response model."""
    id: int
    name: str
    phone: str
    enabled: bool
    ring_order: int

    class Config:
        from_attributes = True


@router.get("/api/calls", response_model=List[CallView])
async def list_calls(
    limit: int = 100,
    machine: CallStateMachine = Depends(get_call_state_machine),
):
    """Most recent calls, each shaped by its status."""
    calls = await machine.list_calls(limit=limit)
    logger.debug(f"[CALLS] Returning {len(calls)} calls")
    return [to_call_view(call) for call in calls]


@router.get("/api/team-phones", response_model=List[TeamPhoneResponse])
async def list_team_phones(repository: TeamPhoneRepository = Depends(get_team_phone_repository)):
    return await repository.list_all()


@router.post("/api/team-phones", response_model=TeamPhoneResponse)
async def create_team_phone(
    body: TeamPhoneRequest,
    repository: TeamPhoneRepository = Depends(get_team_phone_repository),
):
    return await repository.create(body.name, body.phone, body.enabled, body.ring_order)


@router.patch("/api/team-phones/{team_phone_id}", response_model=TeamPhoneResponse)
async def update_team_phone(
    team_phone_id: int,
    body: TeamPhoneUpdate,
    repository: TeamPhoneRepository = Depends(get_team_phone_repository),
):
    return await repository.update(team_phone_id, **body.model_dump(exclude_unset=True))
