"""
Unit tests for the decision engine.

WHAT: Test owner and renter rule tables, boundaries, and preconditions
WHY: Rule order and thresholds decide real money outcomes
HOW: Build NegotiationContext objects directly, no persistence
"""

import pytest

from negotiator.models.negotiation import (
    AgentPreferences, MarketSnapshot, NegotiationContext, Offer, PriceRange
)
from negotiator.services.decision_engine import DecisionEngine
from negotiator.utils.exceptions import AgentNotEnabledError


def make_market(average, demand="medium"):
    return MarketSnapshot(
        average_price=average,
        median_price=average,
        price_range=PriceRange(min=average * 0.7, max=average * 1.3),
        competitor_count=10,
        demand_level=demand,
    )


def make_context(offer, *, listing=20.0, average=18.0, owner=None, renter=None, history=0):
    offers = [
        Offer(negotiation_id="n-1", price=offer, from_party="renter-1", to_party="owner-1")
        for _ in range(history)
    ]
    return NegotiationContext(
        negotiation_id="n-1",
        space_id="space-1",
        owner_id="owner-1",
        renter_id="renter-1",
        space_type="driveway",
        original_listing_price=listing,
        current_offer=offer,
        owner_preferences=owner,
        renter_preferences=renter,
        offer_history=offers,
        market=make_market(average),
    )


OWNER_AGENT = AgentPreferences(enabled=True)


@pytest.fixture
def engine():
    return DecisionEngine()


@pytest.mark.unit
class TestOwnerRules:

    def test_accepts_at_threshold(self, engine):
        decision = engine.decide(make_context(19.00, average=20.0, owner=OWNER_AGENT), "owner")
        assert decision.action == "accept"
        assert decision.confidence == 0.95

    def test_just_below_threshold_counters(self, engine):
        decision = engine.decide(make_context(18.99, average=20.0, owner=OWNER_AGENT), "owner")
        assert decision.action == "counter"

    def test_high_offer_accepted(self, engine):
        decision = engine.decide(make_context(19.50, owner=OWNER_AGENT), "owner")
        assert decision.action == "accept"
        assert decision.confidence == 0.95
        assert decision.counter_price is None
        assert "Offer of $19.50/hr" in decision.reasoning

    def test_accepts_at_market_average(self, engine):
        decision = engine.decide(make_context(17.50, average=17.0, owner=OWNER_AGENT), "owner")
        assert decision.action == "accept"
        assert decision.confidence == 0.85
        assert "market average of $17.00/hr" in decision.reasoning

    def test_market_accept_needs_reasonable_ratio(self, engine):
        # Above a very low market average but only 80% of listing
        decision = engine.decide(make_context(16.00, average=12.0, owner=OWNER_AGENT), "owner")
        assert decision.action == "counter"

    def test_rejects_below_default_floor(self, engine):
        decision = engine.decide(make_context(13.99, owner=OWNER_AGENT), "owner")
        assert decision.action == "reject"
        assert decision.confidence == 0.9
        assert "$14.00/hr" in decision.reasoning

    def test_offer_at_floor_is_not_rejected(self, engine):
        decision = engine.decide(make_context(14.00, owner=OWNER_AGENT), "owner")
        assert decision.action == "counter"

    @pytest.mark.parametrize("listing, offer", [(16.60, 15.77), (20.00, 19.00), (37.30, 35.44)])
    def test_threshold_is_inclusive_at_cent_prices(self, engine, listing, offer):
        decision = engine.decide(make_context(offer, listing=listing, average=50.0, owner=OWNER_AGENT), "owner")
        assert decision.action == "accept"
        assert decision.confidence == 0.95

    def test_cent_below_threshold_on_odd_listing_counters(self, engine):
        decision = engine.decide(make_context(15.76, listing=16.60, owner=OWNER_AGENT), "owner")
        assert decision.action == "counter"

    @pytest.mark.parametrize("listing, floor", [(19.10, 13.37), (20.00, 14.00), (17.30, 12.11)])
    def test_default_floor_is_inclusive_at_cent_prices(self, engine, listing, floor):
        at_floor = engine.decide(make_context(floor, listing=listing, owner=OWNER_AGENT), "owner")
        below = engine.decide(make_context(round(floor - 0.01, 2), listing=listing, owner=OWNER_AGENT), "owner")

        assert at_floor.action == "counter"
        assert below.action == "reject"
        assert f"${floor:.2f}/hr" in below.reasoning

    def test_custom_floor(self, engine):
        prefs = AgentPreferences(enabled=True, min_acceptable_price=16.0)
        decision = engine.decide(make_context(15.50, owner=prefs), "owner")
        assert decision.action == "reject"

    def test_custom_threshold(self, engine):
        prefs = AgentPreferences(enabled=True, auto_accept_threshold=0.8)
        decision = engine.decide(make_context(16.00, average=25.0, owner=prefs), "owner")
        assert decision.action == "accept"

    def test_counter_first_round(self, engine):
        decision = engine.decide(make_context(17.00, owner=OWNER_AGENT), "owner")
        assert decision.action == "counter"
        assert decision.counter_price == pytest.approx(18.5)
        assert decision.confidence == 0.75
        assert decision.ai_generated is True

    def test_counter_uses_history_length_as_round(self, engine):
        decision = engine.decide(make_context(17.00, owner=OWNER_AGENT, history=1), "owner")
        assert decision.counter_price == pytest.approx(18.2)


@pytest.mark.unit
class TestRenterRules:

    def test_accepts_within_budget_near_market(self, engine):
        decision = engine.decide(make_context(19.50, renter=AgentPreferences(enabled=True)), "renter")
        assert decision.action == "accept"
        assert decision.confidence == 0.9
        assert "close to market average" in decision.reasoning

    def test_accepts_bargain_over_budget(self, engine):
        prefs = AgentPreferences(enabled=True, max_acceptable_price=10.0)
        decision = engine.decide(make_context(14.00, renter=prefs), "renter")
        assert decision.action == "accept"
        assert decision.confidence == 0.95
        assert "22% below market average" in decision.reasoning

    def test_rejects_far_over_budget(self, engine):
        prefs = AgentPreferences(enabled=True, max_acceptable_price=16.0)
        decision = engine.decide(make_context(18.50, renter=prefs), "renter")
        assert decision.action == "reject"
        assert "$16.00/hr" in decision.reasoning

    def test_counters_and_clamps_to_budget(self, engine):
        prefs = AgentPreferences(enabled=True, max_acceptable_price=16.0)
        decision = engine.decide(make_context(18.00, renter=prefs), "renter")
        assert decision.action == "counter"
        assert decision.counter_price == 16.0

    def test_offer_at_budget_is_accepted(self, engine):
        prefs = AgentPreferences(enabled=True, max_acceptable_price=round(16.60 * 0.95, 2))
        decision = engine.decide(make_context(15.77, listing=16.60, renter=prefs), "renter")
        assert decision.action == "accept"

    def test_default_budget_is_ten_percent_over_listing(self, engine):
        # 21.5 <= 22 but 21.5 / 18 > 1.1, and 21.5 <= 22 * 1.15
        decision = engine.decide(make_context(21.50, renter=AgentPreferences(enabled=True)), "renter")
        assert decision.action == "counter"


@pytest.mark.unit
class TestPreconditions:

    def test_disabled_agent_raises(self, engine):
        context = make_context(17.0, owner=AgentPreferences(enabled=False))
        with pytest.raises(AgentNotEnabledError):
            engine.decide(context, "owner")

    def test_missing_preferences_raise(self, engine):
        with pytest.raises(AgentNotEnabledError):
            engine.decide(make_context(17.0, owner=OWNER_AGENT), "renter")

    def test_missing_market_raises(self, engine):
        context = make_context(17.0, owner=OWNER_AGENT).model_copy(update={"market": None})
        with pytest.raises(ValueError, match="Market snapshot"):
            engine.decide(context, "owner")
