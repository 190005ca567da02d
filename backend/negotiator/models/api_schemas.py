"""
Pydantic API schemas for the negotiation endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization at the HTTP boundary
HOW: Pydantic v2 models with validators and constraints
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .negotiation import AgentPreferences, NegotiationRecord, Offer


# ========== Requests ==========

class OpenNegotiationRequest(BaseModel):
    """Renter's booking request with an opening price."""
    space_id: str = Field(..., min_length=1, max_length=36)
    owner_id: str = Field(..., min_length=1, max_length=100)
    renter_id: str = Field(..., min_length=1, max_length=100)
    original_price: float = Field(..., gt=0, description="Listed hourly price")
    offer_price: float = Field(..., gt=0, description="Renter's opening hourly offer")
    space_type: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    message: str = Field("", max_length=1000)

    @model_validator(mode='after')
    def validate_parties(self):
        """Owner and renter must differ."""
        if self.owner_id == self.renter_id:
            raise ValueError("owner_id and renter_id must be different")
        return self


class SubmitOfferRequest(BaseModel):
    """Human counter-offer."""
    from_user_id: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., gt=0)
    message: str = Field("", max_length=1000)


class RespondRequest(BaseModel):
    """Human answer to the pending offer addressed to them."""
    user_id: str = Field(..., min_length=1, max_length=100)
    action: Literal["accept", "reject"]


class TriggerRoundRequest(BaseModel):
    """Manual trigger for the next automatic round."""
    expected_offer_id: Optional[str] = None


class AgentPreferencesRequest(BaseModel):
    """Agent opt-in and limits for one user in one role."""
    enabled: bool = False
    min_acceptable_price: Optional[float] = Field(None, gt=0)
    max_acceptable_price: Optional[float] = Field(None, gt=0)
    auto_accept_threshold: float = Field(0.95, gt=0, le=1.5)
    strategy: Literal["aggressive", "moderate", "conservative"] = "moderate"
    max_counter_offers: int = Field(5, ge=1, le=50)

    def to_preferences(self) -> AgentPreferences:
        return AgentPreferences(**self.model_dump())


# ========== Responses ==========

class OfferResponse(BaseModel):
    offer_id: str
    price: float
    from_party: str
    to_party: str
    message: str
    status: str
    ai_generated: bool
    created_at: datetime

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferResponse":
        return cls(**offer.model_dump(exclude={"negotiation_id"}))


class NegotiationStateResponse(BaseModel):
    """Negotiation with its offer chain, most recent first."""
    negotiation_id: str
    space_id: str
    owner_id: str
    renter_id: str
    space_type: Optional[str] = None
    location: Optional[str] = None
    original_price: float
    final_price: Optional[float] = None
    status: str
    created_at: datetime
    updated_at: datetime
    offers: List[OfferResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, record: NegotiationRecord, offers: List[Offer]) -> "NegotiationStateResponse":
        return cls(**record.model_dump(), offers=[OfferResponse.from_offer(o) for o in offers])


class DecisionResponse(BaseModel):
    """Result of a manual trigger."""
    negotiation_id: str
    acted: bool
    action: Optional[str] = None
    counter_price: Optional[float] = None
    reasoning: Optional[str] = None
    confidence: Optional[float] = None


class AgentPreferencesResponse(BaseModel):
    user_id: str
    role: str
    preferences: AgentPreferences


class GovernorStatusResponse(BaseModel):
    count: int
    max_requests: int
    is_blocked: bool
    remaining: int
