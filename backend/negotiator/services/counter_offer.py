"""
Counter-offer pricing.

WHAT: Deterministic counter prices and their explanations for both sides
WHY: Agents must converge toward the other party's number over successive rounds
HOW: Strategy-weighted base price, demand adjustment (owner only), a round-based
     pull toward the counterparty capped per side, then clamp to the party's limit
"""

from ..models.negotiation import MarketSnapshot, Strategy

# Rounds after which the convergence pull would reach 100% if uncapped
CONVERGENCE_ROUNDS = 5
OWNER_PROGRESS_CAP = 0.3
RENTER_PROGRESS_CAP = 0.4

OWNER_STRATEGY_WEIGHTS = {
    "aggressive": 0.7,
    "conservative": 0.4,
    "moderate": 0.5,
}

DEMAND_MULTIPLIERS = {
    "high": 1.05,
    "medium": 1.0,
    "low": 0.95,
}


def progress_factor(round_number: int, cap: float) -> float:
    """Fraction of the remaining gap to concede at this round."""
    return min(max(round_number, 0) / CONVERGENCE_ROUNDS, cap)


def counter_owner(
    original_price: float,
    current_offer: float,
    min_price: float,
    market: MarketSnapshot,
    strategy: Strategy,
    round_number: int,
) -> float:
    """
    Owner's counter to a renter offer.

    Starts between the renter's offer and the listing price (aggressive stays
    near the listing), nudges for demand, then concedes toward the offer as
    rounds progress. Never below min_price.
    """
    weight = OWNER_STRATEGY_WEIGHTS.get(strategy, OWNER_STRATEGY_WEIGHTS["moderate"])
    counter = current_offer + (original_price - current_offer) * weight
    counter *= DEMAND_MULTIPLIERS.get(market.demand_level, 1.0)

    counter -= (counter - current_offer) * progress_factor(round_number, OWNER_PROGRESS_CAP)
    counter = max(counter, min_price)
    return round(counter, 2)


def counter_renter(
    original_price: float,
    owner_offer: float,
    max_price: float,
    market: MarketSnapshot,
    strategy: Strategy,
    round_number: int,
) -> float:
    """
    Renter's counter to an owner offer.

    Anchored on the market average rather than the listing, then pulled toward
    the owner's offer as rounds progress. Never above max_price.
    """
    average = market.average_price
    if strategy == "aggressive":
        counter = average * 0.85
    elif strategy == "conservative":
        counter = (owner_offer + average) / 2
    else:
        counter = average * 0.95

    counter += (owner_offer - counter) * progress_factor(round_number, RENTER_PROGRESS_CAP)
    counter = min(counter, max_price)
    return round(counter, 2)


def owner_counter_reasoning(counter_price: float, current_offer: float, market: MarketSnapshot) -> str:
    percent_above = (counter_price / current_offer - 1) * 100
    if market.demand_level == "high":
        demand_remark = "Demand is currently high in this area."
    elif market.demand_level == "low":
        demand_remark = "I'm being flexible given current market conditions."
    else:
        demand_remark = "This represents fair market value for the space."

    return " ".join([
        f"Based on market analysis, comparable spaces average ${market.average_price:.2f}/hr.",
        f"My counter-offer of ${counter_price:.2f}/hr is {percent_above:.0f}% above your offer.",
        demand_remark,
        "Let's find a price that works for both of us.",
    ])


def renter_counter_reasoning(counter_price: float, market: MarketSnapshot) -> str:
    if counter_price >= market.average_price:
        market_remark = "This is already above the market average."
    else:
        market_remark = "This is a competitive offer for similar spaces."

    return " ".join([
        f"I've researched comparable spaces in the area averaging ${market.average_price:.2f}/hr.",
        f"My offer of ${counter_price:.2f}/hr reflects fair market value.",
        market_remark,
        "I'm ready to book immediately at this price.",
    ])
