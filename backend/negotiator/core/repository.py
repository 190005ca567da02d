"""
Persistence interface for the negotiation core.

WHAT: Repository protocol plus its SQLAlchemy implementation
WHY: The orchestrator only needs a handful of operations; tests and alternative stores plug in here
HOW: Each call opens its own session scope and returns pydantic read models, never ORM objects
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from .database import SessionLocal, session_scope
from .models import (
    Agreement, AgentPreferenceRecord, Negotiation, Notification, OfferRecord, Space
)
from ..models.negotiation import (
    AgentPreferences, NegotiationRecord, NegotiationStatus, Offer, OfferStatus, Role
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NegotiationRepository(Protocol):
    """Operations the orchestrator and market data provider rely on."""

    def create_negotiation(self, record: NegotiationRecord) -> NegotiationRecord: ...

    def get_negotiation(self, negotiation_id: str) -> NegotiationRecord | None: ...

    def update_negotiation_status(
        self, negotiation_id: str, status: NegotiationStatus, final_price: float | None = None
    ) -> None: ...

    def insert_offer(self, offer: Offer) -> Offer: ...

    def update_offer_status(self, offer_id: str, status: OfferStatus) -> None: ...

    def list_offers(self, negotiation_id: str) -> list[Offer]: ...

    def get_agent_preferences(self, user_id: str, role: Role) -> AgentPreferences | None: ...

    def save_agent_preferences(self, user_id: str, role: Role, preferences: AgentPreferences) -> None: ...

    def create_agreement(
        self, negotiation_id: str, owner_id: str, renter_id: str, agreed_price: float, terms: str
    ) -> str: ...

    def comparable_prices(self, space_type: str, exclude_space_id: str | None, limit: int) -> list[float]: ...

    def insert_notification(self, user_id: str, type: str, title: str, message: str, data: dict) -> None: ...


def _to_record(row: Negotiation) -> NegotiationRecord:
    return NegotiationRecord(
        negotiation_id=row.negotiation_id,
        space_id=row.space_id,
        owner_id=row.owner_id,
        renter_id=row.renter_id,
        space_type=row.space_type,
        location=row.location,
        original_price=row.original_price,
        final_price=row.final_price,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_offer(row: OfferRecord) -> Offer:
    return Offer(
        offer_id=row.offer_id,
        negotiation_id=row.negotiation_id,
        price=row.offer_price,
        from_party=row.from_user_id,
        to_party=row.to_user_id,
        message=row.message or "",
        status=row.status,
        ai_generated=row.ai_generated,
        created_at=row.created_at,
    )


class SqlNegotiationRepository:
    """SQLAlchemy-backed repository."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def _session(self):
        return session_scope(self.session_factory)

    # === Negotiations ===

    def create_negotiation(self, record: NegotiationRecord) -> NegotiationRecord:
        with self._session() as db:
            row = Negotiation(
                negotiation_id=record.negotiation_id,
                space_id=record.space_id,
                owner_id=record.owner_id,
                renter_id=record.renter_id,
                space_type=record.space_type,
                location=record.location,
                original_price=record.original_price,
                final_price=record.final_price,
                status=record.status,
            )
            db.add(row)
            db.flush()
            logger.info(f"Created negotiation {row.negotiation_id} for space {row.space_id}")
            return _to_record(row)

    def get_negotiation(self, negotiation_id: str) -> NegotiationRecord | None:
        with self._session() as db:
            row = db.get(Negotiation, negotiation_id)
            return _to_record(row) if row else None

    def update_negotiation_status(
        self, negotiation_id: str, status: NegotiationStatus, final_price: float | None = None
    ) -> None:
        with self._session() as db:
            row = db.get(Negotiation, negotiation_id)
            if row is None:
                raise LookupError(f"Negotiation {negotiation_id} not found")
            row.status = status
            if final_price is not None:
                row.final_price = final_price
            row.updated_at = datetime.utcnow()

    # === Offers ===

    def insert_offer(self, offer: Offer) -> Offer:
        with self._session() as db:
            last_sequence = db.scalar(
                select(func.max(OfferRecord.sequence))
                .where(OfferRecord.negotiation_id == offer.negotiation_id)
            )
            row = OfferRecord(
                offer_id=offer.offer_id,
                negotiation_id=offer.negotiation_id,
                sequence=(last_sequence or 0) + 1,
                from_user_id=offer.from_party,
                to_user_id=offer.to_party,
                offer_price=offer.price,
                message=offer.message,
                status=offer.status,
                ai_generated=offer.ai_generated,
                created_at=offer.created_at,
            )
            db.add(row)
            db.flush()
            return _to_offer(row)

    def update_offer_status(self, offer_id: str, status: OfferStatus) -> None:
        with self._session() as db:
            row = db.get(OfferRecord, offer_id)
            if row is None:
                raise LookupError(f"Offer {offer_id} not found")
            row.status = status
            row.responded_at = datetime.utcnow()

    def list_offers(self, negotiation_id: str) -> list[Offer]:
        """Offers for a negotiation, most recent first."""
        with self._session() as db:
            rows = db.scalars(
                select(OfferRecord)
                .where(OfferRecord.negotiation_id == negotiation_id)
                .order_by(OfferRecord.sequence.desc())
            ).all()
            return [_to_offer(row) for row in rows]

    # === Agent preferences ===

    def get_agent_preferences(self, user_id: str, role: Role) -> AgentPreferences | None:
        with self._session() as db:
            row = db.scalar(
                select(AgentPreferenceRecord)
                .where(AgentPreferenceRecord.user_id == user_id, AgentPreferenceRecord.role == role)
            )
            if row is None:
                return None
            return AgentPreferences(
                enabled=row.enabled,
                min_acceptable_price=row.min_acceptable_price,
                max_acceptable_price=row.max_acceptable_price,
                auto_accept_threshold=row.auto_accept_threshold,
                strategy=row.strategy,
                max_counter_offers=row.max_counter_offers,
            )

    def save_agent_preferences(self, user_id: str, role: Role, preferences: AgentPreferences) -> None:
        with self._session() as db:
            row = db.scalar(
                select(AgentPreferenceRecord)
                .where(AgentPreferenceRecord.user_id == user_id, AgentPreferenceRecord.role == role)
            )
            if row is None:
                row = AgentPreferenceRecord(user_id=user_id, role=role)
                db.add(row)
            for field, value in preferences.model_dump().items():
                setattr(row, field, value)

    # === Side effects ===

    def create_agreement(
        self, negotiation_id: str, owner_id: str, renter_id: str, agreed_price: float, terms: str
    ) -> str:
        with self._session() as db:
            row = Agreement(
                negotiation_id=negotiation_id,
                owner_id=owner_id,
                renter_id=renter_id,
                agreed_price=agreed_price,
                terms=terms,
            )
            db.add(row)
            db.flush()
            return row.agreement_id

    def insert_notification(self, user_id: str, type: str, title: str, message: str, data: dict) -> None:
        with self._session() as db:
            db.add(Notification(user_id=user_id, type=type, title=title, message=message, data=data))

    # === Market data ===

    def comparable_prices(self, space_type: str, exclude_space_id: str | None, limit: int) -> list[float]:
        """Hourly prices of other listings of the same type."""
        with self._session() as db:
            query = select(Space.price_per_hour).where(Space.space_type == space_type)
            if exclude_space_id:
                query = query.where(Space.space_id != exclude_space_id)
            return list(db.scalars(query.limit(limit)).all())

