"""
Agent preference endpoints.

WHAT: Read and store a user's agent settings per role
WHY: Agents only act for users who opted in
HOW: FastAPI router delegating to the orchestrator
"""

from typing import Literal

from fastapi import APIRouter, Depends

from ....models.api_schemas import AgentPreferencesRequest, AgentPreferencesResponse
from ....services.negotiation_orchestrator import NegotiationOrchestrator
from .negotiation import get_orchestrator

router = APIRouter()


@router.get("/{user_id}/{role}", response_model=AgentPreferencesResponse)
async def get_agent_preferences(
    user_id: str,
    role: Literal["owner", "renter"],
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """Stored preferences, or the disabled defaults."""
    prefs = orchestrator.get_agent_preferences(user_id, role)
    return AgentPreferencesResponse(user_id=user_id, role=role, preferences=prefs)


@router.put("/{user_id}/{role}", response_model=AgentPreferencesResponse)
async def put_agent_preferences(
    user_id: str,
    role: Literal["owner", "renter"],
    body: AgentPreferencesRequest,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    prefs = orchestrator.enable_agent(user_id, role, body.to_preferences())
    return AgentPreferencesResponse(user_id=user_id, role=role, preferences=prefs)
