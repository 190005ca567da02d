"""
Negotiation domain models.

WHAT: Offers, agent preferences, market snapshots, decisions, and the context the engine reasons over
WHY: Explicit typed payloads instead of loose dicts flowing between persistence, market data, and engine
HOW: Pydantic v2 models; value objects are frozen, market payloads accept camelCase at the boundary
"""

from datetime import datetime
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


OfferStatus = Literal["pending", "accepted", "rejected", "superseded"]
NegotiationStatus = Literal["pending", "negotiating", "accepted", "rejected"]
Role = Literal["owner", "renter"]
Strategy = Literal["aggressive", "moderate", "conservative"]
DemandLevel = Literal["low", "medium", "high"]
DecisionAction = Literal["accept", "reject", "counter"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"accepted", "rejected"})


class Offer(BaseModel):
    """One priced move in a negotiation, directional from one party to the other."""

    model_config = ConfigDict(frozen=True)

    offer_id: str = Field(default_factory=lambda: str(uuid4()))
    negotiation_id: str
    price: float = Field(gt=0.0)
    from_party: str
    to_party: str
    message: str = ""
    status: OfferStatus = "pending"
    ai_generated: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AgentPreferences(BaseModel):
    """Per-party agent configuration. Agents are off unless explicitly enabled."""

    enabled: bool = False
    min_acceptable_price: float | None = Field(default=None, gt=0.0)
    max_acceptable_price: float | None = Field(default=None, gt=0.0)
    auto_accept_threshold: float = Field(default=0.95, gt=0.0)
    strategy: Strategy = "moderate"
    max_counter_offers: int = Field(default=5, ge=1)


class PriceRange(BaseModel):
    """Observed price band for comparable spaces."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    min: float = Field(ge=0.0)
    max: float = Field(ge=0.0)

    @model_validator(mode="after")
    def validate_bounds(self):
        """Ensure min <= max."""
        if self.min > self.max:
            raise ValueError("priceRange.min must be <= priceRange.max")
        return self


class MarketSnapshot(BaseModel):
    """Comparable-pricing statistics for a space category and area."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    average_price: float = Field(gt=0.0)
    median_price: float = Field(gt=0.0)
    price_range: PriceRange
    competitor_count: int = Field(ge=0)
    demand_level: DemandLevel = "medium"
    seasonal_factor: float = Field(default=1.0, gt=0.0)
    source: Literal["llm", "comparables", "synthetic"] = "synthetic"

    @field_validator("demand_level", mode="before")
    @classmethod
    def normalize_demand_level(cls, v):
        """LLM output says "High" or "MEDIUM" as often as "high"."""
        if isinstance(v, str):
            return v.strip().lower()
        return v


class Decision(BaseModel):
    """Outcome of evaluating one offer. Never persisted directly."""

    model_config = ConfigDict(frozen=True)

    action: DecisionAction
    counter_price: float | None = Field(default=None, gt=0.0)
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    ai_generated: bool = True

    @model_validator(mode="after")
    def validate_counter_price(self):
        """counter_price is present iff the action is counter."""
        if self.action == "counter" and self.counter_price is None:
            raise ValueError("counter decisions require counter_price")
        if self.action != "counter" and self.counter_price is not None:
            raise ValueError("counter_price is only valid for counter decisions")
        return self


class NegotiationRecord(BaseModel):
    """Read model of a persisted negotiation (one booking request)."""

    negotiation_id: str
    space_id: str
    owner_id: str
    renter_id: str
    space_type: str | None = None
    location: str | None = None
    original_price: float = Field(gt=0.0)
    final_price: float | None = None
    status: NegotiationStatus = "pending"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def role_of(self, user_id: str) -> Role | None:
        """Return which side a user is on, or None for outsiders."""
        if user_id == self.owner_id:
            return "owner"
        if user_id == self.renter_id:
            return "renter"
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class NegotiationContext(BaseModel):
    """Everything the decision engine needs to evaluate the active offer."""

    negotiation_id: str
    space_id: str
    owner_id: str
    renter_id: str
    space_type: str | None = None
    location: str | None = None
    original_listing_price: float = Field(gt=0.0)
    current_offer: float = Field(gt=0.0)
    owner_preferences: AgentPreferences | None = None
    renter_preferences: AgentPreferences | None = None
    offer_history: list[Offer] = Field(default_factory=list)  # most recent first
    market: MarketSnapshot | None = None

    @property
    def round_number(self) -> int:
        return len(self.offer_history)

    def preferences_for(self, role: Role) -> AgentPreferences | None:
        return self.owner_preferences if role == "owner" else self.renter_preferences

    def agent_enabled(self, role: Role) -> bool:
        prefs = self.preferences_for(role)
        return bool(prefs and prefs.enabled)
