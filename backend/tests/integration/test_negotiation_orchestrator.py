"""
Integration tests for the negotiation orchestrator.

WHAT: Test opt-in, accept/reject/counter execution, chained agent rounds, round limit,
      stale triggers, human moves, and side-effect failure handling
WHY: This is where decisions turn into persisted offers and notifications
HOW: In-memory SQLite repository, recording notifier, synthetic market data
     (listing $20 gives a $19 market average); chains finish via drain()
"""

import pytest

from negotiator.core.database import session_scope
from negotiator.core.models import Agreement
from negotiator.models.negotiation import AgentPreferences
from negotiator.services.decision_engine import DecisionEngine
from negotiator.services.negotiation_orchestrator import NegotiationOrchestrator
from negotiator.utils.exceptions import (
    NegotiationNotActiveException,
    NegotiationNotFoundException,
    NotAParticipantException,
    OfferNotPendingException,
)

OWNER = "owner-1"
RENTER = "renter-1"


class SpyEngine(DecisionEngine):
    def __init__(self):
        self.calls = []

    def decide(self, context, role):
        self.calls.append((context.negotiation_id, role))
        return super().decide(context, role)


async def open_at(orchestrator, offer_price, listing=20.0):
    return await orchestrator.open_negotiation(
        space_id="space-1",
        owner_id=OWNER,
        renter_id=RENTER,
        original_price=listing,
        offer_price=offer_price,
        space_type="driveway",
        location="Brooklyn",
    )


@pytest.mark.integration
class TestOptIn:

    @pytest.mark.asyncio
    async def test_no_agent_means_no_automatic_response(self, repository, notifier, market_data):
        engine = SpyEngine()
        orchestrator = NegotiationOrchestrator(
            repository, notifier, market_data, engine, next_round_delay=0
        )

        record = await open_at(orchestrator, 15.0)

        assert engine.calls == []
        assert record.status == "pending"
        offers = repository.list_offers(record.negotiation_id)
        assert len(offers) == 1
        assert offers[0].status == "pending"
        assert notifier.of_kind("offer") == [("offer", OWNER, record.negotiation_id, 15.0)]

    @pytest.mark.asyncio
    async def test_disabled_preferences_also_skip(self, repository, notifier, market_data):
        engine = SpyEngine()
        orchestrator = NegotiationOrchestrator(repository, notifier, market_data, engine)
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=False, strategy="aggressive"))

        await open_at(orchestrator, 15.0)

        assert engine.calls == []

    def test_default_preferences_are_disabled(self, orchestrator):
        assert orchestrator.get_agent_preferences("nobody", "renter").enabled is False


@pytest.mark.integration
class TestOwnerAgentDecisions:

    @pytest.mark.asyncio
    async def test_accept_finalizes_agreement(self, orchestrator, repository, notifier, session_factory):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 19.5)

        assert record.status == "accepted"
        assert record.final_price == 19.5
        assert repository.list_offers(record.negotiation_id)[0].status == "accepted"
        with session_scope(session_factory) as db:
            agreement = db.query(Agreement).one()
            assert agreement.agreed_price == 19.5
            assert "AI assistance" in agreement.terms
        assert {entry[1] for entry in notifier.of_kind("agreement_ready")} == {OWNER, RENTER}

    @pytest.mark.asyncio
    async def test_reject_below_floor(self, orchestrator, repository, notifier):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 13.0)

        assert record.status == "rejected"
        assert repository.list_offers(record.negotiation_id)[0].status == "rejected"
        rejection = notifier.of_kind("rejection")[0]
        assert rejection[1] == RENTER
        assert "below minimum acceptable price" in rejection[3]

    @pytest.mark.asyncio
    async def test_counter_to_human_renter(self, orchestrator, repository, notifier):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 17.0)

        # Round 1: 18.5 pulled 20% toward 17
        assert record.status == "negotiating"
        assert record.final_price == pytest.approx(18.2)
        counter, opening = repository.list_offers(record.negotiation_id)
        assert opening.status == "superseded"
        assert counter.status == "pending"
        assert counter.ai_generated is True
        assert counter.from_party == OWNER and counter.to_party == RENTER
        assert counter.message.startswith("AI Agent: ")
        assert notifier.of_kind("offer")[-1][1:] == (RENTER, record.negotiation_id, counter.price)
        assert orchestrator.pending_rounds == 0


@pytest.mark.integration
class TestChainedRounds:

    @pytest.mark.asyncio
    async def test_both_agents_converge_to_agreement(self, orchestrator, repository):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        orchestrator.enable_agent(RENTER, "renter", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 15.0)
        await orchestrator.drain()

        final = repository.get_negotiation(record.negotiation_id)
        assert final.status == "accepted"
        assert final.final_price == pytest.approx(17.0)
        counter, opening = repository.list_offers(record.negotiation_id)
        assert counter.status == "accepted"
        assert opening.status == "superseded"

    @pytest.mark.asyncio
    async def test_round_limit_turns_counter_into_reject(self, orchestrator, repository, notifier):
        orchestrator.enable_agent(
            OWNER, "owner", AgentPreferences(enabled=True, strategy="aggressive", max_counter_offers=3)
        )
        orchestrator.enable_agent(
            RENTER, "renter", AgentPreferences(enabled=True, strategy="aggressive", max_acceptable_price=16.0)
        )

        record = await open_at(orchestrator, 14.5)
        await orchestrator.drain()

        final = repository.get_negotiation(record.negotiation_id)
        assert final.status == "rejected"
        offers = repository.list_offers(record.negotiation_id)
        assert [o.price for o in offers] == pytest.approx([16.0, 17.58, 14.5])
        assert [o.status for o in offers] == ["rejected", "superseded", "superseded"]
        assert notifier.of_kind("rejection")[0][3] == "Negotiation limit reached"

    @pytest.mark.asyncio
    async def test_global_round_cap(self, repository, notifier, market_data):
        orchestrator = NegotiationOrchestrator(
            repository, notifier, market_data, next_round_delay=0, max_rounds=1
        )
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 17.0)

        assert record.status == "rejected"


@pytest.mark.integration
class TestTriggerNextRound:

    @pytest.mark.asyncio
    async def test_repeated_trigger_is_idempotent(self, repository, notifier, market_data):
        orchestrator = NegotiationOrchestrator(
            repository, notifier, market_data, next_round_delay=60
        )
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        orchestrator.enable_agent(RENTER, "renter", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 15.0)
        counter = repository.list_offers(record.negotiation_id)[0]
        assert orchestrator.pending_rounds == 1

        first = await orchestrator.trigger_next_round(record.negotiation_id, counter.offer_id)
        second = await orchestrator.trigger_next_round(record.negotiation_id, counter.offer_id)
        await orchestrator.shutdown()

        assert first.action == "accept"
        assert second is None
        assert len(repository.list_offers(record.negotiation_id)) == 2
        assert repository.get_negotiation(record.negotiation_id).status == "accepted"

    @pytest.mark.asyncio
    async def test_stale_expected_offer_is_ignored(self, orchestrator, repository):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        record = await open_at(orchestrator, 17.0)
        orchestrator.enable_agent(RENTER, "renter", AgentPreferences(enabled=True))
        opening = repository.list_offers(record.negotiation_id)[-1]

        assert await orchestrator.trigger_next_round(record.negotiation_id, opening.offer_id) is None
        assert repository.get_negotiation(record.negotiation_id).status == "negotiating"

    @pytest.mark.asyncio
    async def test_trigger_without_renter_agent_does_nothing(self, orchestrator, repository):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        record = await open_at(orchestrator, 17.0)

        assert await orchestrator.trigger_next_round(record.negotiation_id) is None
        assert len(repository.list_offers(record.negotiation_id)) == 2

    @pytest.mark.asyncio
    async def test_unknown_negotiation(self, orchestrator):
        with pytest.raises(NegotiationNotFoundException):
            await orchestrator.trigger_next_round("missing")


@pytest.mark.integration
class TestHumanMoves:

    @pytest.mark.asyncio
    async def test_human_counter_is_answered_by_agent(self, orchestrator, repository):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        record = await open_at(orchestrator, 17.0)

        await orchestrator.submit_offer(record.negotiation_id, RENTER, 17.5, "Meet me here?")

        offers = repository.list_offers(record.negotiation_id)
        assert len(offers) == 4
        assert offers[0].from_party == OWNER and offers[0].ai_generated
        assert offers[0].price == pytest.approx(18.38, abs=0.01)
        assert offers[1].price == 17.5 and offers[1].status == "superseded"
        assert all(o.status != "pending" for o in offers[1:])

    @pytest.mark.asyncio
    async def test_human_owner_accepts(self, orchestrator, repository, notifier):
        record = await open_at(orchestrator, 16.0)

        result = await orchestrator.respond(record.negotiation_id, OWNER, "accept")

        assert result.status == "accepted"
        assert result.final_price == 16.0
        assert len(notifier.of_kind("agreement_ready")) == 2

    @pytest.mark.asyncio
    async def test_human_owner_rejects(self, orchestrator, notifier):
        record = await open_at(orchestrator, 16.0)

        result = await orchestrator.respond(record.negotiation_id, OWNER, "reject")

        assert result.status == "rejected"
        assert notifier.of_kind("rejection")[0][1] == RENTER

    @pytest.mark.asyncio
    async def test_only_the_addressee_can_respond(self, orchestrator):
        record = await open_at(orchestrator, 16.0)
        with pytest.raises(OfferNotPendingException):
            await orchestrator.respond(record.negotiation_id, RENTER, "accept")
        with pytest.raises(NotAParticipantException):
            await orchestrator.respond(record.negotiation_id, "stranger", "accept")

    @pytest.mark.asyncio
    async def test_terminal_negotiation_refuses_moves(self, orchestrator):
        record = await open_at(orchestrator, 16.0)
        await orchestrator.respond(record.negotiation_id, OWNER, "reject")

        with pytest.raises(NegotiationNotActiveException):
            await orchestrator.submit_offer(record.negotiation_id, RENTER, 18.0)


@pytest.mark.integration
class TestSideEffectFailures:

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_undo_decision(self, orchestrator, notifier):
        notifier.fail = True
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 19.5)

        assert record.status == "accepted"

    @pytest.mark.asyncio
    async def test_failed_counter_insert_leaves_offer_pending(self, orchestrator, repository, monkeypatch):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))
        orchestrator.enable_agent(RENTER, "renter", AgentPreferences(enabled=True))
        original_insert = repository.insert_offer

        def insert_offer(offer):
            if offer.ai_generated:
                raise RuntimeError("disk full")
            return original_insert(offer)

        monkeypatch.setattr(repository, "insert_offer", insert_offer)

        record = await open_at(orchestrator, 17.0)

        offers = repository.list_offers(record.negotiation_id)
        assert len(offers) == 1
        assert offers[0].status == "pending"
        assert record.status == "pending"
        assert orchestrator.pending_rounds == 0

    @pytest.mark.asyncio
    async def test_failing_agent_lookup_keeps_opening_offer_pending(self, orchestrator, repository, monkeypatch):
        def broken_preferences(user_id, role):
            raise RuntimeError("db read failed")

        monkeypatch.setattr(repository, "get_agent_preferences", broken_preferences)

        record = await open_at(orchestrator, 17.0)

        assert record.status == "pending"
        offers = repository.list_offers(record.negotiation_id)
        assert len(offers) == 1
        assert offers[0].status == "pending"

    @pytest.mark.asyncio
    async def test_failing_agent_keeps_human_counter(self, orchestrator, repository, monkeypatch):
        record = await open_at(orchestrator, 16.0)

        def broken_preferences(user_id, role):
            raise RuntimeError("db read failed")

        monkeypatch.setattr(repository, "get_agent_preferences", broken_preferences)

        offer = await orchestrator.submit_offer(record.negotiation_id, OWNER, 18.0, "How about 18?")

        latest = repository.list_offers(record.negotiation_id)[0]
        assert latest.offer_id == offer.offer_id
        assert latest.status == "pending"
        assert repository.get_negotiation(record.negotiation_id).status == "negotiating"


@pytest.mark.integration
class TestLockLifecycle:

    @pytest.mark.asyncio
    async def test_lock_released_after_agreement(self, orchestrator):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 19.5)

        assert record.status == "accepted"
        assert record.negotiation_id not in orchestrator._locks

    @pytest.mark.asyncio
    async def test_lock_released_after_human_rejection(self, orchestrator):
        record = await open_at(orchestrator, 16.0)
        assert record.negotiation_id in orchestrator._locks

        await orchestrator.respond(record.negotiation_id, OWNER, "reject")

        assert record.negotiation_id not in orchestrator._locks

    @pytest.mark.asyncio
    async def test_ongoing_negotiation_keeps_its_lock(self, orchestrator):
        orchestrator.enable_agent(OWNER, "owner", AgentPreferences(enabled=True))

        record = await open_at(orchestrator, 17.0)

        assert record.status == "negotiating"
        assert record.negotiation_id in orchestrator._locks
