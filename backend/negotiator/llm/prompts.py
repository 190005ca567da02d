"""
Prompt templates for market analysis.

WHAT: Render the chat messages asking the completion service for comparable pricing
WHY: The provider only sees plain text; the response contract lives here next to the prompt
HOW: System + user message pair requesting a single JSON object with camelCase keys
"""

from .types import ChatMessage


MARKET_ANALYSIS_SYSTEM_PROMPT = (
    "You are a pricing analyst for a marketplace where people rent out private space "
    "(driveways, garages, storage units) by the hour. You answer with JSON only."
)

MARKET_RESPONSE_FORMAT = """{
  "averagePrice": 12.5,
  "medianPrice": 12.0,
  "priceRange": {"min": 8.0, "max": 18.0},
  "competitorCount": 14,
  "demandLevel": "medium",
  "seasonalFactor": 1.0
}"""


def render_market_prompt(
    space_type: str | None,
    location: str | None,
    listing_price: float,
) -> list[ChatMessage]:
    """
    Build the market analysis request.

    Args:
        space_type: Listing category, e.g. "driveway"
        location: Rough location of the listing
        listing_price: Owner's hourly asking price

    Returns:
        Messages for CompletionProvider.complete
    """
    user_prompt = f"""Estimate current hourly rental prices for spaces comparable to this listing.

SPACE DETAILS:
- Space Type: {space_type or 'unspecified'}
- Location: {location or 'Not specified'}
- Owner's Asking Price: ${listing_price:.2f}/hour

Return ONLY a JSON object in exactly this format:
{MARKET_RESPONSE_FORMAT}

demandLevel must be one of "low", "medium", "high". Prices are USD per hour.
Do not include any text before or after the JSON."""

    return [
        {"role": "system", "content": MARKET_ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]
