"""
Decision engine for agent-controlled negotiation moves.

WHAT: Decide accept / reject / counter for the side an offer is addressed to
WHY: Opted-in agents answer offers without their user in the loop
HOW: Ordered rule table per role (first match wins), counters priced by counter_offer
     Price thresholds compare at cent granularity
"""

from ..models.negotiation import AgentPreferences, Decision, NegotiationContext, Role
from ..utils.exceptions import AgentNotEnabledError
from ..utils.logger import get_logger
from . import counter_offer

logger = get_logger(__name__)

# Owner: accept at/above market average when the offer is at least this share of listing
OWNER_MARKET_ACCEPT_RATIO = 0.85
# Owner floor when none is configured, as a share of listing
DEFAULT_MIN_PRICE_RATIO = 0.7
# Renter budget when none is configured, as a share of listing
DEFAULT_MAX_PRICE_RATIO = 1.1
RENTER_MARKET_TOLERANCE = 1.1
RENTER_BARGAIN_RATIO = 0.85
RENTER_REJECT_OVER_BUDGET = 1.15


def _cents(amount: float) -> float:
    return round(amount, 2)


class DecisionEngine:
    """Stateless evaluator; one instance can serve every negotiation."""

    def decide(self, context: NegotiationContext, role: Role) -> Decision:
        """
        Evaluate context.current_offer on behalf of role.

        Raises:
            AgentNotEnabledError: role has no enabled agent
            ValueError: no market snapshot attached to the context
        """
        prefs = context.preferences_for(role)
        if prefs is None or not prefs.enabled:
            raise AgentNotEnabledError(
                f"No enabled {role} agent for negotiation {context.negotiation_id}"
            )
        if context.market is None:
            raise ValueError("Market snapshot must be attached before evaluation")

        if role == "owner":
            decision = self._decide_owner(context, prefs)
        else:
            decision = self._decide_renter(context, prefs)

        logger.info(
            f"[{context.negotiation_id}] {role} agent round {context.round_number}: "
            f"{decision.action}"
            + (f" ${decision.counter_price:.2f}" if decision.counter_price is not None else "")
            + f" (confidence {decision.confidence:.2f})"
        )
        return decision

    def _decide_owner(self, context: NegotiationContext, prefs: AgentPreferences) -> Decision:
        market = context.market
        listing = context.original_listing_price
        offer = context.current_offer
        min_price = prefs.min_acceptable_price or listing * DEFAULT_MIN_PRICE_RATIO
        offer_ratio = offer / listing

        logger.debug(
            f"Owner analysis: offer_ratio={offer_ratio:.3f}, "
            f"market_ratio={offer / market.average_price:.3f}, min_price={min_price:.2f}, "
            f"strategy={prefs.strategy}"
        )

        if _cents(offer) >= _cents(listing * prefs.auto_accept_threshold):
            return Decision(
                action="accept",
                reasoning=(
                    f"Offer of ${offer:.2f}/hr is {offer_ratio * 100:.0f}% of listing price. "
                    f"Excellent deal!"
                ),
                confidence=0.95,
            )

        if _cents(offer) >= _cents(market.average_price) and _cents(offer) >= _cents(
            listing * OWNER_MARKET_ACCEPT_RATIO
        ):
            return Decision(
                action="accept",
                reasoning=(
                    f"Offer exceeds market average of ${market.average_price:.2f}/hr. "
                    f"Good market value."
                ),
                confidence=0.85,
            )

        if _cents(offer) < _cents(min_price):
            return Decision(
                action="reject",
                reasoning=(
                    f"Offer of ${offer:.2f}/hr is below minimum acceptable price "
                    f"of ${min_price:.2f}/hr."
                ),
                confidence=0.9,
            )

        counter_price = counter_offer.counter_owner(
            original_price=listing,
            current_offer=offer,
            min_price=min_price,
            market=market,
            strategy=prefs.strategy,
            round_number=context.round_number,
        )
        return Decision(
            action="counter",
            counter_price=counter_price,
            reasoning=counter_offer.owner_counter_reasoning(counter_price, offer, market),
            confidence=0.75,
        )

    def _decide_renter(self, context: NegotiationContext, prefs: AgentPreferences) -> Decision:
        market = context.market
        listing = context.original_listing_price
        offer = context.current_offer
        max_price = prefs.max_acceptable_price or listing * DEFAULT_MAX_PRICE_RATIO
        market_ratio = offer / market.average_price

        logger.debug(
            f"Renter analysis: offer_ratio={offer / listing:.3f}, "
            f"market_ratio={market_ratio:.3f}, max_price={max_price:.2f}, "
            f"strategy={prefs.strategy}"
        )

        if _cents(offer) <= _cents(max_price) and _cents(offer) <= _cents(
            market.average_price * RENTER_MARKET_TOLERANCE
        ):
            comparison = "at or below" if market_ratio <= 1.0 else "close to"
            return Decision(
                action="accept",
                reasoning=f"Price of ${offer:.2f}/hr is within budget and {comparison} market average.",
                confidence=0.9,
            )

        if _cents(offer) < _cents(market.average_price * RENTER_BARGAIN_RATIO):
            return Decision(
                action="accept",
                reasoning=f"Excellent deal! Price is {(1 - market_ratio) * 100:.0f}% below market average.",
                confidence=0.95,
            )

        if _cents(offer) > _cents(max_price * RENTER_REJECT_OVER_BUDGET):
            return Decision(
                action="reject",
                reasoning=f"Price of ${offer:.2f}/hr exceeds maximum budget of ${max_price:.2f}/hr.",
                confidence=0.9,
            )

        counter_price = counter_offer.counter_renter(
            original_price=listing,
            owner_offer=offer,
            max_price=max_price,
            market=market,
            strategy=prefs.strategy,
            round_number=context.round_number,
        )
        return Decision(
            action="counter",
            counter_price=counter_price,
            reasoning=counter_offer.renter_counter_reasoning(counter_price, market),
            confidence=0.75,
        )
