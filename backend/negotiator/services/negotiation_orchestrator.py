"""
Negotiation orchestrator.

WHAT: Drive a negotiation from an inbound offer to a terminal state
WHY: Offers can be answered by humans or by opted-in agents, possibly both in turn
HOW: Per-negotiation asyncio.Lock around read-decide-write; agent rounds chain through
     tracked asyncio tasks that re-read state before acting, so stale rounds are no-ops
"""

import asyncio
from typing import Literal
from uuid import uuid4

from ..core.config import settings
from ..core.repository import NegotiationRepository
from ..models.negotiation import (
    AgentPreferences, Decision, NegotiationContext, NegotiationRecord, Offer, Role
)
from ..utils.exceptions import (
    AgentNotEnabledError,
    NegotiationNotActiveException,
    NegotiationNotFoundException,
    NotAParticipantException,
    OfferNotPendingException,
    ValidationException,
)
from ..utils.logger import get_logger
from .decision_engine import DecisionEngine
from .market_data import MarketDataProvider
from .notifications import NotificationDispatcher

logger = get_logger(__name__)

ROUND_LIMIT_REASONING = "Negotiation limit reached"

AGREEMENT_TERMS_TEMPLATE = """SPACE RENTAL AGREEMENT

Space: {space_type} ({space_id})
Location: {location}

Listed Price: ${original_price:.2f} per hour
Agreed Price: ${agreed_price:.2f} per hour

{negotiated_by}
Both parties have reviewed and agree to these terms.

Decision Reasoning: {reasoning}
"""


class NegotiationOrchestrator:
    """
    Owns the negotiation state machine.

    pending -> negotiating | accepted | rejected
    negotiating -> negotiating | accepted | rejected
    """

    def __init__(
        self,
        repository: NegotiationRepository,
        notifier: NotificationDispatcher,
        market_data: MarketDataProvider,
        engine: DecisionEngine | None = None,
        *,
        next_round_delay: float | None = None,
        max_rounds: int | None = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.market_data = market_data
        self.engine = engine or DecisionEngine()
        self.next_round_delay = (
            next_round_delay if next_round_delay is not None else settings.NEXT_ROUND_DELAY_SECONDS
        )
        self.max_rounds = max_rounds if max_rounds is not None else settings.MAX_NEGOTIATION_ROUNDS
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    def _lock_for(self, negotiation_id: str) -> asyncio.Lock:
        lock = self._locks.get(negotiation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[negotiation_id] = lock
        return lock

    def _release_lock(self, negotiation_id: str) -> None:
        # Terminal negotiations take no further moves
        self._locks.pop(negotiation_id, None)

    # === Agent preferences ===

    def get_agent_preferences(self, user_id: str, role: Role) -> AgentPreferences:
        """Stored preferences, or disabled defaults when the user never opted in."""
        return self.repository.get_agent_preferences(user_id, role) or AgentPreferences()

    def enable_agent(self, user_id: str, role: Role, preferences: AgentPreferences) -> AgentPreferences:
        self.repository.save_agent_preferences(user_id, role, preferences)
        logger.info(
            f"Agent preferences saved for {user_id} as {role} "
            f"(enabled={preferences.enabled}, strategy={preferences.strategy})"
        )
        return preferences

    # === Inbound events ===

    async def open_negotiation(
        self,
        *,
        space_id: str,
        owner_id: str,
        renter_id: str,
        original_price: float,
        offer_price: float,
        space_type: str | None = None,
        location: str | None = None,
        message: str = "",
    ) -> NegotiationRecord:
        """
        Start a negotiation with the renter's opening offer.

        The owner's agent answers immediately if enabled; otherwise the offer
        waits for the owner.
        """
        if owner_id == renter_id:
            raise ValidationException("Owner and renter must be different users")
        if offer_price <= 0 or original_price <= 0:
            raise ValidationException("Prices must be positive")

        record = self.repository.create_negotiation(
            NegotiationRecord(
                negotiation_id=str(uuid4()),
                space_id=space_id,
                owner_id=owner_id,
                renter_id=renter_id,
                space_type=space_type,
                location=location,
                original_price=original_price,
                status="pending",
            )
        )
        self.repository.insert_offer(
            Offer(
                negotiation_id=record.negotiation_id,
                price=offer_price,
                from_party=renter_id,
                to_party=owner_id,
                message=message,
            )
        )
        logger.info(
            f"[{record.negotiation_id}] Opened: renter {renter_id} offers ${offer_price:.2f} "
            f"on listing ${original_price:.2f}"
        )
        await self._notify_offer(owner_id, record.negotiation_id, offer_price, message)

        async with self._lock_for(record.negotiation_id):
            await self._answer_automatically(record.negotiation_id)

        return self.repository.get_negotiation(record.negotiation_id)

    async def submit_offer(
        self, negotiation_id: str, from_user_id: str, price: float, message: str = ""
    ) -> Offer:
        """
        Record a human counter-offer.

        The previous pending offer is superseded. The recipient's agent, if
        enabled, answers before this returns.
        """
        if price <= 0:
            raise ValidationException("Offer price must be positive", [{"field": "price", "message": "must be > 0"}])

        async with self._lock_for(negotiation_id):
            record = self._require_active(negotiation_id)
            role = record.role_of(from_user_id)
            if role is None:
                raise NotAParticipantException(negotiation_id, from_user_id)
            to_user_id = record.renter_id if role == "owner" else record.owner_id

            for previous in self.repository.list_offers(negotiation_id):
                if previous.status == "pending":
                    self.repository.update_offer_status(previous.offer_id, "superseded")

            offer = self.repository.insert_offer(
                Offer(
                    negotiation_id=negotiation_id,
                    price=price,
                    from_party=from_user_id,
                    to_party=to_user_id,
                    message=message,
                )
            )
            self.repository.update_negotiation_status(negotiation_id, "negotiating")
            logger.info(f"[{negotiation_id}] {role} {from_user_id} offers ${price:.2f}")

            await self._notify_offer(to_user_id, negotiation_id, price, message)
            await self._answer_automatically(negotiation_id)

        return offer

    async def respond(
        self, negotiation_id: str, user_id: str, action: Literal["accept", "reject"]
    ) -> NegotiationRecord:
        """A human accepts or rejects the pending offer addressed to them."""
        async with self._lock_for(negotiation_id):
            record = self._require_active(negotiation_id)
            role = record.role_of(user_id)
            if role is None:
                raise NotAParticipantException(negotiation_id, user_id)

            offers = self.repository.list_offers(negotiation_id)
            latest = offers[0] if offers else None
            if latest is None or latest.status != "pending" or latest.to_party != user_id:
                raise OfferNotPendingException(negotiation_id, user_id)

            verb = "accepted" if action == "accept" else "declined"
            decision = Decision(
                action=action,
                reasoning=f"The {role} {verb} the offer of ${latest.price:.2f}/hr.",
                confidence=1.0,
                ai_generated=False,
            )
            await self.execute_decision(record, latest, decision)

        return self.repository.get_negotiation(negotiation_id)

    # === Agent rounds ===

    async def process_offer(self, negotiation_id: str) -> Decision | None:
        """
        Let the agent of the side the latest pending offer is addressed to respond.

        Returns:
            The executed Decision, or None when no agent acted
        """
        async with self._lock_for(negotiation_id):
            record = self.repository.get_negotiation(negotiation_id)
            if record is None:
                raise NegotiationNotFoundException(negotiation_id)
            return await self._process_locked(record)

    async def trigger_next_round(
        self, negotiation_id: str, expected_offer_id: str | None = None
    ) -> Decision | None:
        """
        Run one automatic round if the negotiation is still waiting on an agent.

        Safe to call repeatedly: rounds whose premise no longer holds
        (terminal status, no pending offer, a newer offer) do nothing.
        """
        async with self._lock_for(negotiation_id):
            record = self.repository.get_negotiation(negotiation_id)
            if record is None:
                raise NegotiationNotFoundException(negotiation_id)
            if record.status != "negotiating":
                logger.info(f"[{negotiation_id}] Next round skipped: status is {record.status}")
                return None
            return await self._process_locked(record, expected_offer_id)

    def schedule_next_round(self, negotiation_id: str, expected_offer_id: str | None = None) -> asyncio.Task:
        """Run trigger_next_round after the configured delay as a tracked task."""

        async def run_round():
            if self.next_round_delay > 0:
                await asyncio.sleep(self.next_round_delay)
            try:
                await self.trigger_next_round(negotiation_id, expected_offer_id)
            except Exception as e:
                logger.error(f"[{negotiation_id}] Scheduled round failed: {e}", exc_info=True)

        task = asyncio.get_running_loop().create_task(
            run_round(), name=f"negotiation-round-{negotiation_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"[{negotiation_id}] Next round scheduled in {self.next_round_delay}s")
        return task

    @property
    def pending_rounds(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until no scheduled rounds remain, including rounds they schedule."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel scheduled rounds."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Orchestrator shut down ({len(tasks)} scheduled rounds cancelled)")

    async def _process_locked(
        self, record: NegotiationRecord, expected_offer_id: str | None = None
    ) -> Decision | None:
        negotiation_id = record.negotiation_id
        if record.is_terminal:
            logger.info(f"[{negotiation_id}] Already {record.status}; nothing to process")
            return None

        offers = self.repository.list_offers(negotiation_id)
        latest = offers[0] if offers else None
        if latest is None or latest.status != "pending":
            logger.info(f"[{negotiation_id}] No pending offer; nothing to process")
            return None
        if expected_offer_id is not None and latest.offer_id != expected_offer_id:
            logger.info(
                f"[{negotiation_id}] Stale round for offer {expected_offer_id}; "
                f"latest is {latest.offer_id}"
            )
            return None

        role = record.role_of(latest.to_party)
        if role is None:
            logger.error(f"[{negotiation_id}] Offer {latest.offer_id} addressed to a non-participant")
            return None

        owner_prefs = self.get_agent_preferences(record.owner_id, "owner")
        renter_prefs = self.get_agent_preferences(record.renter_id, "renter")
        prefs = owner_prefs if role == "owner" else renter_prefs
        if not prefs.enabled:
            logger.info(f"[{negotiation_id}] {role} agent not enabled; waiting for the {role}")
            return None

        market = await self.market_data.get_snapshot(
            record.space_type, record.location, record.original_price, record.space_id
        )
        context = NegotiationContext(
            negotiation_id=negotiation_id,
            space_id=record.space_id,
            owner_id=record.owner_id,
            renter_id=record.renter_id,
            space_type=record.space_type,
            location=record.location,
            original_listing_price=record.original_price,
            current_offer=latest.price,
            owner_preferences=owner_prefs,
            renter_preferences=renter_prefs,
            offer_history=offers,
            market=market,
        )

        try:
            decision = self.engine.decide(context, role)
        except AgentNotEnabledError as e:
            logger.warning(f"[{negotiation_id}] {e}")
            return None

        decision = self._apply_round_limit(decision, context, prefs)
        await self.execute_decision(record, latest, decision)
        return decision

    async def _answer_automatically(self, negotiation_id: str) -> None:
        """Let the recipient's agent answer a freshly stored human offer; its failures stay in the log."""
        try:
            await self._process_locked(self.repository.get_negotiation(negotiation_id))
        except Exception as e:
            logger.error(f"[{negotiation_id}] Automatic response failed; offer stays pending: {e}", exc_info=True)

    def _apply_round_limit(
        self, decision: Decision, context: NegotiationContext, prefs: AgentPreferences
    ) -> Decision:
        """Turn a counter into a reject once the round limit is reached."""
        limit = min(prefs.max_counter_offers, self.max_rounds)
        if decision.action != "counter" or context.round_number < limit:
            return decision
        logger.info(
            f"[{context.negotiation_id}] Round {context.round_number} reached limit {limit}; "
            f"rejecting instead of countering ${decision.counter_price:.2f}"
        )
        return Decision(action="reject", reasoning=ROUND_LIMIT_REASONING, confidence=decision.confidence)

    # === Executing decisions ===

    async def execute_decision(self, record: NegotiationRecord, offer: Offer, decision: Decision) -> None:
        """
        Apply a decision on offer, made by the party the offer is addressed to.

        Caller holds the negotiation lock. Side-effect failures are logged and
        do not undo the decision.
        """
        negotiation_id = record.negotiation_id
        responder_id = offer.to_party
        offerer_id = offer.from_party
        logger.info(
            f"[{negotiation_id}] Executing {decision.action} on offer {offer.offer_id} "
            f"(${offer.price:.2f}) by {responder_id}: {decision.reasoning}"
        )

        if decision.action == "accept":
            self._persist("mark offer accepted", self.repository.update_offer_status, offer.offer_id, "accepted")
            self._persist(
                "mark negotiation accepted",
                self.repository.update_negotiation_status, negotiation_id, "accepted", offer.price,
            )
            agreement_id = self._persist(
                "create agreement",
                self.repository.create_agreement,
                negotiation_id, record.owner_id, record.renter_id, offer.price,
                self._agreement_terms(record, offer.price, decision),
            )
            for user_id in (record.renter_id, record.owner_id):
                await self._notify(
                    "agreement", self.notifier.notify_agreement_ready(user_id, negotiation_id, agreement_id)
                )
            self._release_lock(negotiation_id)

        elif decision.action == "reject":
            self._persist("mark offer rejected", self.repository.update_offer_status, offer.offer_id, "rejected")
            self._persist(
                "mark negotiation rejected",
                self.repository.update_negotiation_status, negotiation_id, "rejected",
            )
            await self._notify(
                "rejection", self.notifier.notify_rejection(offerer_id, negotiation_id, decision.reasoning)
            )
            self._release_lock(negotiation_id)

        else:
            # A failed insert must leave the previous offer pending
            counter = self._persist(
                "insert counter-offer",
                self.repository.insert_offer,
                Offer(
                    negotiation_id=negotiation_id,
                    price=decision.counter_price,
                    from_party=responder_id,
                    to_party=offerer_id,
                    message=f"AI Agent: {decision.reasoning}",
                    ai_generated=decision.ai_generated,
                ),
            )
            if counter is None:
                return
            self._persist("supersede offer", self.repository.update_offer_status, offer.offer_id, "superseded")
            self._persist(
                "mark negotiation negotiating",
                self.repository.update_negotiation_status, negotiation_id, "negotiating", counter.price,
            )
            await self._notify_offer(offerer_id, negotiation_id, counter.price, counter.message)

            offerer_role = record.role_of(offerer_id)
            if offerer_role and self.get_agent_preferences(offerer_id, offerer_role).enabled:
                self.schedule_next_round(negotiation_id, counter.offer_id)

    # === Helpers ===

    def _require_active(self, negotiation_id: str) -> NegotiationRecord:
        record = self.repository.get_negotiation(negotiation_id)
        if record is None:
            raise NegotiationNotFoundException(negotiation_id)
        if record.is_terminal:
            raise NegotiationNotActiveException(negotiation_id, record.status)
        return record

    def _persist(self, label: str, fn, *args):
        try:
            return fn(*args)
        except Exception as e:
            logger.error(f"Failed to {label}: {e}", exc_info=True)
            return None

    async def _notify(self, label: str, notification) -> None:
        try:
            await notification
        except Exception as e:
            logger.error(f"Failed to send {label} notification: {e}")

    async def _notify_offer(self, user_id: str, negotiation_id: str, price: float, message: str) -> None:
        await self._notify("offer", self.notifier.notify_offer(user_id, negotiation_id, price, message))

    @staticmethod
    def _agreement_terms(record: NegotiationRecord, agreed_price: float, decision: Decision) -> str:
        negotiated_by = (
            "This agreement was negotiated with AI assistance."
            if decision.ai_generated
            else "This agreement was accepted directly by the parties."
        )
        return AGREEMENT_TERMS_TEMPLATE.format(
            space_type=record.space_type or "Space",
            space_id=record.space_id,
            location=record.location or "N/A",
            original_price=record.original_price,
            agreed_price=agreed_price,
            negotiated_by=negotiated_by,
            reasoning=decision.reasoning,
        )
