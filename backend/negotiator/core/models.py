"""
ORM models for negotiation persistence.

WHAT: SQLAlchemy models for all database tables
WHY: Persist negotiations, the offer chain, agent preferences, agreements, and notifications
HOW: Declarative models with constraints, relationships, and indexes
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from .database import Base


class Space(Base):
    """
    Space listing table, read for comparable-pricing statistics.

    Listing CRUD lives in the surrounding application; this service only reads it.
    """
    __tablename__ = "spaces"

    space_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String(100), nullable=False)
    space_type = Column(String(50), nullable=False)
    location = Column(String(200), nullable=True)
    price_per_hour = Column(Float, nullable=False)

    __table_args__ = (
        CheckConstraint("price_per_hour > 0", name="check_space_price_positive"),
        Index("idx_spaces_space_type", "space_type"),
    )

    def __repr__(self):
        return f"<Space(space_id={self.space_id}, type={self.space_type}, price={self.price_per_hour})>"


class Negotiation(Base):
    """
    Negotiation table - one booking request being priced between owner and renter.

    WHAT: Aggregate root for an offer chain
    WHY: Track status and the running/final agreed price
    HOW: Primary key on negotiation_id with CASCADE relationships
    """
    __tablename__ = "negotiations"

    negotiation_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    space_id = Column(String(36), nullable=False)
    owner_id = Column(String(100), nullable=False)
    renter_id = Column(String(100), nullable=False)
    space_type = Column(String(50), nullable=True)
    location = Column(String(200), nullable=True)
    original_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("original_price > 0", name="check_original_price_positive"),
        CheckConstraint(
            "status IN ('pending', 'negotiating', 'accepted', 'rejected')",
            name="check_negotiation_status"
        ),
    )

    offers = relationship("OfferRecord", back_populates="negotiation", cascade="all, delete-orphan")
    agreement = relationship("Agreement", back_populates="negotiation", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Negotiation(id={self.negotiation_id}, status={self.status})>"


class OfferRecord(Base):
    """
    Offer table - append-only chain of priced moves.

    WHAT: One offer from one party to the other
    WHY: The latest pending row is the active offer; history drives round counting
    HOW: Foreign key to Negotiation, sequence column for strict ordering
    """
    __tablename__ = "offers"

    offer_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    negotiation_id = Column(
        String(36), ForeignKey("negotiations.negotiation_id", ondelete="CASCADE"), nullable=False
    )
    sequence = Column(Integer, nullable=False)
    from_user_id = Column(String(100), nullable=False)
    to_user_id = Column(String(100), nullable=False)
    offer_price = Column(Float, nullable=False)
    message = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="pending")
    ai_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    responded_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("offer_price > 0", name="check_offer_price_positive"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'superseded')",
            name="check_offer_status"
        ),
        UniqueConstraint("negotiation_id", "sequence", name="uq_offer_sequence"),
        Index("idx_offers_negotiation_sequence", "negotiation_id", "sequence"),
    )

    negotiation = relationship("Negotiation", back_populates="offers")

    def __repr__(self):
        return f"<OfferRecord(id={self.offer_id}, price={self.offer_price}, status={self.status})>"


class AgentPreferenceRecord(Base):
    """Stored agent opt-in and strategy for one user acting in one role."""
    __tablename__ = "agent_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=False)
    role = Column(String(10), nullable=False)
    enabled = Column(Boolean, nullable=False, default=False)
    min_acceptable_price = Column(Float, nullable=True)
    max_acceptable_price = Column(Float, nullable=True)
    auto_accept_threshold = Column(Float, nullable=False, default=0.95)
    strategy = Column(String(20), nullable=False, default="moderate")
    max_counter_offers = Column(Integer, nullable=False, default=5)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_agent_preferences_user_role"),
        CheckConstraint("role IN ('owner', 'renter')", name="check_agent_role"),
        CheckConstraint("max_counter_offers >= 1", name="check_max_counter_offers"),
    )

    def __repr__(self):
        return f"<AgentPreferenceRecord(user={self.user_id}, role={self.role}, enabled={self.enabled})>"


class Agreement(Base):
    """Finalized rental agreement created when a price is accepted."""
    __tablename__ = "agreements"

    agreement_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    negotiation_id = Column(
        String(36), ForeignKey("negotiations.negotiation_id", ondelete="CASCADE"),
        nullable=False, unique=True
    )
    owner_id = Column(String(100), nullable=False)
    renter_id = Column(String(100), nullable=False)
    agreed_price = Column(Float, nullable=False)
    terms = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    negotiation = relationship("Negotiation", back_populates="agreement")


class Notification(Base):
    """User notification row; delivery (email/SMS) happens outside this service."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(100), nullable=False)
    type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "type IN ('negotiation_offer', 'agreement_ready', 'negotiation_rejected')",
            name="check_notification_type"
        ),
        Index("idx_notifications_user_id", "user_id"),
    )
