"""
Negotiation endpoints.

WHAT: Open negotiations, submit and answer offers, trigger agent rounds, read state
WHY: Thin HTTP surface over the orchestrator
HOW: FastAPI router; orchestrator and repository come from app.state
"""

from fastapi import APIRouter, Depends, Request, status

from ....core.repository import NegotiationRepository
from ....models.api_schemas import (
    DecisionResponse,
    NegotiationStateResponse,
    OfferResponse,
    OpenNegotiationRequest,
    RespondRequest,
    SubmitOfferRequest,
    TriggerRoundRequest,
)
from ....services.negotiation_orchestrator import NegotiationOrchestrator
from ....utils.exceptions import NegotiationNotFoundException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> NegotiationOrchestrator:
    return request.app.state.orchestrator


def get_repository(request: Request) -> NegotiationRepository:
    return request.app.state.repository


def _state(repository: NegotiationRepository, negotiation_id: str) -> NegotiationStateResponse:
    record = repository.get_negotiation(negotiation_id)
    if record is None:
        raise NegotiationNotFoundException(negotiation_id)
    return NegotiationStateResponse.build(record, repository.list_offers(negotiation_id))


@router.post(
    "",
    response_model=NegotiationStateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def open_negotiation(
    body: OpenNegotiationRequest,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
    repository: NegotiationRepository = Depends(get_repository),
):
    """
    Open a negotiation with the renter's opening offer.

    If the owner has an enabled agent it answers before the response is returned.
    """
    record = await orchestrator.open_negotiation(**body.model_dump())
    logger.info(f"Negotiation opened via API: {record.negotiation_id}")
    return _state(repository, record.negotiation_id)


@router.get("/{negotiation_id}", response_model=NegotiationStateResponse)
async def get_negotiation(
    negotiation_id: str,
    repository: NegotiationRepository = Depends(get_repository),
):
    """Negotiation state with the offer chain, most recent first."""
    return _state(repository, negotiation_id)


@router.get("/{negotiation_id}/offers", response_model=list[OfferResponse])
async def list_offers(
    negotiation_id: str,
    repository: NegotiationRepository = Depends(get_repository),
):
    if repository.get_negotiation(negotiation_id) is None:
        raise NegotiationNotFoundException(negotiation_id)
    return [OfferResponse.from_offer(o) for o in repository.list_offers(negotiation_id)]


@router.post("/{negotiation_id}/offers", response_model=NegotiationStateResponse)
async def submit_offer(
    negotiation_id: str,
    body: SubmitOfferRequest,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
    repository: NegotiationRepository = Depends(get_repository),
):
    """Submit a human counter-offer; supersedes the pending offer."""
    await orchestrator.submit_offer(negotiation_id, body.from_user_id, body.price, body.message)
    return _state(repository, negotiation_id)


@router.post("/{negotiation_id}/respond", response_model=NegotiationStateResponse)
async def respond(
    negotiation_id: str,
    body: RespondRequest,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
    repository: NegotiationRepository = Depends(get_repository),
):
    """Accept or reject the pending offer addressed to the caller."""
    await orchestrator.respond(negotiation_id, body.user_id, body.action)
    return _state(repository, negotiation_id)


@router.post("/{negotiation_id}/next-round", response_model=DecisionResponse)
async def trigger_next_round(
    negotiation_id: str,
    body: TriggerRoundRequest | None = None,
    orchestrator: NegotiationOrchestrator = Depends(get_orchestrator),
):
    """
    Run the next automatic round now.

    A no-op (acted=false) when the negotiation is not waiting on an agent.
    """
    expected = body.expected_offer_id if body else None
    decision = await orchestrator.trigger_next_round(negotiation_id, expected)
    if decision is None:
        return DecisionResponse(negotiation_id=negotiation_id, acted=False)
    return DecisionResponse(
        negotiation_id=negotiation_id,
        acted=True,
        action=decision.action,
        counter_price=decision.counter_price,
        reasoning=decision.reasoning,
        confidence=decision.confidence,
    )
