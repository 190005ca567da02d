"""
Market data for pricing decisions.

WHAT: Produce a MarketSnapshot for a listing from the best source available
WHY: The decision engine needs an external anchor beyond the two parties' numbers
HOW: LLM market analysis (governed) -> comparable listings -> synthetic fallback;
     any failure drops to the next source and is logged, never raised
"""

from statistics import mean

from pydantic import ValidationError

from ..core.config import Settings, settings as default_settings
from ..core.repository import NegotiationRepository
from ..llm.prompts import render_market_prompt
from ..llm.provider import CompletionProvider
from ..models.negotiation import MarketSnapshot, PriceRange
from ..services.request_governor import RequestGovernor
from ..utils.exceptions import QuotaExhaustedError
from ..utils.logger import get_logger
from ..utils.parsing import extract_json_object

logger = get_logger(__name__)

HIGH_DEMAND_COMPETITORS = 15
MEDIUM_DEMAND_COMPETITORS = 8


def summarize_prices(prices: list[float]) -> MarketSnapshot:
    """
    Build a snapshot from comparable listing prices.

    Median is the upper middle element for even counts. Demand is inferred
    from how many comparables exist.

    Raises:
        ValueError: If prices is empty
    """
    if not prices:
        raise ValueError("No comparable prices to summarize")

    ordered = sorted(prices)
    count = len(ordered)
    if count > HIGH_DEMAND_COMPETITORS:
        demand = "high"
    elif count > MEDIUM_DEMAND_COMPETITORS:
        demand = "medium"
    else:
        demand = "low"

    return MarketSnapshot(
        average_price=mean(ordered),
        median_price=ordered[count // 2],
        price_range=PriceRange(min=ordered[0], max=ordered[-1]),
        competitor_count=count,
        demand_level=demand,
        seasonal_factor=1.0,
        source="comparables",
    )


def synthetic_snapshot(original_price: float) -> MarketSnapshot:
    """Fallback estimate derived from the listing price alone."""
    return MarketSnapshot(
        average_price=original_price * 0.95,
        median_price=original_price,
        price_range=PriceRange(min=original_price * 0.7, max=original_price * 1.3),
        competitor_count=10,
        demand_level="medium",
        seasonal_factor=1.0,
        source="synthetic",
    )


class MarketDataProvider:
    """Resolves market snapshots; never cached, every evaluation asks again."""

    def __init__(
        self,
        repository: NegotiationRepository,
        governor: RequestGovernor,
        provider: CompletionProvider | None = None,
        config: Settings = default_settings,
    ):
        self.repository = repository
        self.governor = governor
        self.provider = provider
        self.config = config

    async def get_snapshot(
        self,
        space_type: str | None,
        location: str | None,
        original_price: float,
        exclude_space_id: str | None = None,
    ) -> MarketSnapshot:
        """
        Get market data for a listing.

        Args:
            space_type: Listing category used to find comparables
            location: Rough location, only used in the LLM prompt
            original_price: Owner's listed hourly price
            exclude_space_id: The listing itself, left out of comparables

        Returns:
            MarketSnapshot whose source records which step produced it
        """
        if self.provider is not None:
            snapshot = await self._from_llm(space_type, location, original_price)
            if snapshot is not None:
                return snapshot

        if space_type:
            snapshot = self._from_comparables(space_type, exclude_space_id)
            if snapshot is not None:
                return snapshot

        logger.info(f"Using synthetic market data for listing price ${original_price:.2f}")
        return synthetic_snapshot(original_price)

    async def _from_llm(
        self, space_type: str | None, location: str | None, original_price: float
    ) -> MarketSnapshot | None:
        messages = render_market_prompt(space_type, location, original_price)

        async def call():
            return await self.provider.complete(
                messages,
                temperature=self.config.LLM_DEFAULT_TEMPERATURE,
                max_tokens=self.config.LLM_DEFAULT_MAX_TOKENS,
            )

        try:
            result = await self.governor.execute_with_retry(call, "market analysis")
        except QuotaExhaustedError as e:
            logger.info(f"LLM market analysis skipped: {e}")
            return None
        except Exception as e:
            logger.warning(f"LLM market analysis failed: {e}")
            return None

        try:
            payload = extract_json_object(result.text)
            payload["source"] = "llm"
            snapshot = MarketSnapshot.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding malformed market analysis: {e}")
            return None

        logger.info(
            f"LLM market data: avg ${snapshot.average_price:.2f}, "
            f"{snapshot.competitor_count} competitors, {snapshot.demand_level} demand"
        )
        return snapshot

    def _from_comparables(self, space_type: str, exclude_space_id: str | None) -> MarketSnapshot | None:
        try:
            prices = self.repository.comparable_prices(
                space_type, exclude_space_id, self.config.COMPARABLE_LISTINGS_LIMIT
            )
        except Exception as e:
            logger.warning(f"Failed to load comparable listings: {e}")
            return None

        if not prices:
            logger.debug(f"No comparable listings for space type {space_type}")
            return None

        snapshot = summarize_prices(prices)
        logger.info(
            f"Comparable market data: {snapshot.competitor_count} listings, "
            f"avg ${snapshot.average_price:.2f}"
        )
        return snapshot
