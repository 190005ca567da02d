"""
User notifications for negotiation events.

WHAT: Tell a party about a new offer, a finalized agreement, or a rejection
WHY: Automated rounds happen without either user watching
HOW: Dispatcher protocol; the default implementation writes notification rows
"""

from typing import Protocol

from ..core.repository import NegotiationRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery; callers log failures and move on."""

    async def notify_offer(self, user_id: str, negotiation_id: str, price: float, message: str) -> None: ...

    async def notify_agreement_ready(
        self, user_id: str, negotiation_id: str, agreement_id: str | None = None
    ) -> None: ...

    async def notify_rejection(self, user_id: str, negotiation_id: str, reasoning: str) -> None: ...


class DatabaseNotificationDispatcher:
    """Stores notifications for the surrounding application to deliver."""

    def __init__(self, repository: NegotiationRepository):
        self.repository = repository

    async def notify_offer(self, user_id: str, negotiation_id: str, price: float, message: str) -> None:
        suffix = f': "{message}"' if message else ""
        self.repository.insert_notification(
            user_id=user_id,
            type="negotiation_offer",
            title="New Price Offer",
            message=f"You received an offer of ${price:.2f}/hr{suffix}",
            data={"negotiation_id": negotiation_id, "offer_price": price},
        )
        logger.debug(f"Offer notification stored for {user_id} ({negotiation_id})")

    async def notify_agreement_ready(
        self, user_id: str, negotiation_id: str, agreement_id: str | None = None
    ) -> None:
        self.repository.insert_notification(
            user_id=user_id,
            type="agreement_ready",
            title="Agreement Ready to Sign",
            message="Your rental agreement is ready for signature. Please review and sign.",
            data={"negotiation_id": negotiation_id, "agreement_id": agreement_id},
        )
        logger.debug(f"Agreement notification stored for {user_id} ({negotiation_id})")

    async def notify_rejection(self, user_id: str, negotiation_id: str, reasoning: str) -> None:
        self.repository.insert_notification(
            user_id=user_id,
            type="negotiation_rejected",
            title="Offer Declined",
            message=reasoning,
            data={"negotiation_id": negotiation_id},
        )
        logger.debug(f"Rejection notification stored for {user_id} ({negotiation_id})")
