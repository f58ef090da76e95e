"""Tests for the reservation flow: collection, availability, and the single commit."""

import asyncio

import pytest

from concierge.agents.booking_agent import SLOT_TAKEN_ERROR
from concierge.agents.router import AgentRouter
from concierge.prompts.prompt_templates import READBACK_PREFIX
from concierge.prompts.system_prompts import (
    BOOKING_ASK_MODIFICATION,
    BOOKING_GREETING,
    BOOKING_IN_PROGRESS,
    BOOKING_RECOVERY,
)
from concierge.schemas.conversation_schema import CallMetadata, Intent
from concierge.schemas.crm_schema import CRMActionStatus, CRMActionType, ReservationPayload
from concierge.tools.availability import AvailabilityBoard
from concierge.tools.crm import MockCRMService
from tests.conftest import (
    NEXT_MONDAY_ISO,
    TODAY_ISO,
    TOMORROW_ISO,
    add_agent_line,
    fixed_today,
    make_board,
    make_session,
    say,
)


def _remaining(board, iso_date, time):
    return board.get_day(iso_date).find(time).remaining_slots


def _ready_to_confirm(store, call_id="call-1"):
    """A session that has just heard the read-back."""
    session = make_session(
        store,
        call_id,
        name="Sarah Johnson",
        party_size=2,
        date_time=f"{TODAY_ISO} 19:00",
    )
    store.update(call_id, current_intent=Intent.BOOKING)
    add_agent_line(store, session, f"{READBACK_PREFIX} Sarah Johnson, party of 2, today at 7 PM.")
    return session


def _router(store, board, crm):
    return AgentRouter.build(store, availability=board, crm=crm, today=fixed_today)


class TestBookingScenario:
    @pytest.mark.asyncio
    async def test_full_booking_then_switch_to_menu(self, store, router, availability, crm):
        session = make_session(store)

        reply = await say(router, session, "I would like to make a reservation for 4 people tonight at 7 PM")
        assert session.current_intent == Intent.BOOKING
        assert session.collected.party_size == 4
        assert session.collected.date_time == f"{TODAY_ISO} 19:00"
        assert reply == (
            "Great news! I have a table for 4 today at 7 PM. "
            "What name should I put the reservation under?"
        )

        reply = await say(router, session, "The name is Sarah Johnson")
        assert reply == (
            "Let me confirm your reservation: Sarah Johnson, party of 4, today at 7 PM. "
            "Is that correct?"
        )

        reply = await say(router, session, "yes")
        assert reply.startswith("Perfect! Your reservation is confirmed for Sarah Johnson")
        assert _remaining(availability, TODAY_ISO, "19:00") == 1
        assert len(crm.reservations) == 1
        action = session.crm_actions[0]
        assert action.type == CRMActionType.RESERVATION_CREATE
        assert action.status == CRMActionStatus.SUCCESS
        assert action.record_id in crm.reservations

        reply = await router.switch_intent(session, Intent.MENU, "What are today's specials?")
        assert session.current_intent == Intent.MENU
        assert session.last_intent == Intent.BOOKING
        assert reply.startswith("Absolutely! I'd love to tell you about our menu.")
        assert "Today's specials are" in reply

    @pytest.mark.asyncio
    async def test_one_slot_at_a_time(self, store, router):
        session = make_session(store)

        assert await say(router, session, "I'd like to book a table") == BOOKING_GREETING
        reply = await say(router, session, "There will be two of us")
        assert reply == "Perfect, a table for 2. What date and time would you like?"
        reply = await say(router, session, "tomorrow at 7")
        assert reply.startswith("Great news! I have a table for 2 tomorrow at 7 PM.")
        reply = await say(router, session, "Sarah Johnson")
        assert session.collected.name == "Sarah Johnson"
        assert reply.startswith(READBACK_PREFIX)
        assert session.collected.date_time == f"{TOMORROW_ISO} 19:00"

    @pytest.mark.asyncio
    async def test_stating_availability_does_not_fill_the_name(self, store, router):
        session = make_session(store)
        await say(router, session, "I'd like a reservation for 4 people")
        reply = await say(router, session, "I'm free tomorrow at 8 PM")
        assert session.collected.name is None
        assert session.collected.date_time == f"{TOMORROW_ISO} 20:00"
        assert not reply.startswith(READBACK_PREFIX)

    @pytest.mark.asyncio
    async def test_menu_question_mid_booking_leaves_date_unset(self, store, router):
        session = make_session(store, party_size=2)
        store.update(session.call_id, current_intent=Intent.BOOKING)
        reply = await say(router, session, "What are today's specials?")
        assert session.collected.date_time is None
        assert reply == "Perfect, a table for 2. What date and time would you like?"

    @pytest.mark.asyncio
    async def test_confirming_twice_books_once(self, store, router, crm):
        session = _ready_to_confirm(store)
        await say(router, session, "yes")
        reply = await say(router, session, "yes")
        assert reply.startswith("Your table for 2 today at 7 PM is all set.")
        assert len(crm.reservations) == 1
        assert len(session.crm_actions) == 1

    @pytest.mark.asyncio
    async def test_phone_falls_back_to_caller_id(self, store, router, crm):
        session = make_session(
            store,
            metadata=CallMetadata(customer_number="+15551234567"),
            name="Sarah Johnson",
            party_size=2,
            date_time=f"{TODAY_ISO} 19:00",
        )
        store.update(session.call_id, current_intent=Intent.BOOKING)
        await say(router, session, "yes, book it")
        (record,) = crm.reservations.values()
        assert record["phone"] == "+15551234567"
        assert isinstance(session.crm_actions[0].data, ReservationPayload)


class TestCorrections:
    @pytest.mark.asyncio
    async def test_time_correction_after_readback(self, store, router):
        session = _ready_to_confirm(store)
        reply = await say(router, session, "Actually, make it 8 PM")
        assert session.collected.date_time == f"{TODAY_ISO} 20:00"
        assert reply == (
            "Let me confirm your reservation: Sarah Johnson, party of 2, today at 8 PM. "
            "Is that correct?"
        )

    @pytest.mark.asyncio
    async def test_party_size_correction(self, store, router):
        session = _ready_to_confirm(store)
        await say(router, session, "Can we change that to a party of 5?")
        assert session.collected.party_size == 5

    @pytest.mark.asyncio
    async def test_without_cue_values_are_kept(self, store, router):
        session = _ready_to_confirm(store)
        await say(router, session, "a party of 5 sounds nice")
        assert session.collected.party_size == 2

    @pytest.mark.asyncio
    async def test_negation_asks_what_to_change(self, store, router, crm):
        session = _ready_to_confirm(store)
        assert await say(router, session, "no") == BOOKING_ASK_MODIFICATION
        assert crm.reservations == {}


class TestAvailability:
    @pytest.mark.asyncio
    async def test_unavailable_then_take_an_alternative(self, store, crm):
        board = make_board(today_slots={"18:30": 2, "19:00": 0, "20:00": 2})
        router = _router(store, board, crm)
        session = make_session(store)

        reply = await say(router, session, "Book a table for 4 tonight at 7 PM")
        assert reply == (
            "I'm sorry, we don't have a table for 4 today at 7 PM. "
            "I do have openings today at 6:30 PM or 8 PM. Would any of those work for you?"
        )

        reply = await say(router, session, "8 PM works")
        assert session.collected.date_time == f"{TODAY_ISO} 20:00"
        assert reply.startswith("Great news! I have a table for 4 today at 8 PM.")

    @pytest.mark.asyncio
    async def test_offered_time_on_another_day(self, store, crm):
        board = make_board(today_slots={"19:00": 0})
        router = _router(store, board, crm)
        session = make_session(store)

        reply = await say(router, session, "Book a table for 2 tonight at 7 PM")
        assert "tomorrow at 7 PM" in reply

        await say(router, session, "7 PM is fine")
        assert session.collected.date_time == f"{TOMORROW_ISO} 19:00"

    @pytest.mark.asyncio
    async def test_closed_day(self, store, router):
        session = make_session(store)
        reply = await say(router, session, "Can I book a table for 2 on Monday at 7 PM")
        assert session.collected.date_time == f"{NEXT_MONDAY_ISO} 19:00"
        assert reply.startswith("I'm sorry, we're closed on Mondays.")

    @pytest.mark.asyncio
    async def test_party_too_large_for_any_table(self, store, router):
        session = make_session(store)
        reply = await say(router, session, "Book a table for 12 tonight at 7 PM")
        assert reply.startswith("I'm sorry, we don't have a table for 12 today at 7 PM.")
        assert "I don't see any openings for a party of 12" in reply


class TestCommitRaces:
    @pytest.mark.asyncio
    async def test_two_callers_race_for_the_last_table(self, store, crm):
        board = make_board(today_slots={"19:00": 1, "20:00": 2})
        router = _router(store, board, crm)
        first = _ready_to_confirm(store, "call-a")
        second = _ready_to_confirm(store, "call-b")

        replies = await asyncio.gather(
            say(router, first, "yes"),
            say(router, second, "yes"),
        )

        confirmed = [r for r in replies if r.startswith("Perfect! Your reservation is confirmed")]
        lost = [r for r in replies if "was just booked" in r]
        assert len(confirmed) == 1
        assert len(lost) == 1
        assert "8 PM" in lost[0]
        assert len(crm.reservations) == 1
        assert _remaining(board, TODAY_ISO, "19:00") == 0

    @pytest.mark.asyncio
    async def test_slot_lost_between_check_and_commit(self, store, crm):
        class RacyBoard(AvailabilityBoard):
            def is_slot_available(self, iso_date, time, party_size):
                return True

            def reserve_slot(self, iso_date, time, party_size, payload=None):
                return None

        board = RacyBoard.from_days([make_board().get_day(TODAY_ISO)])
        router = _router(store, board, crm)
        session = _ready_to_confirm(store)

        reply = await say(router, session, "yes")
        assert reply.startswith("I'm sorry, but 7 PM today was just booked.")
        assert crm.reservations == {}
        (action,) = session.crm_actions
        assert action.status == CRMActionStatus.FAILED
        assert action.error == SLOT_TAKEN_ERROR

    @pytest.mark.asyncio
    async def test_same_call_turns_are_serialized(self, store, router, crm):
        session = _ready_to_confirm(store)
        replies = await asyncio.gather(say(router, session, "yes"), say(router, session, "yes"))
        assert replies[0].startswith("Perfect! Your reservation is confirmed")
        assert replies[1].startswith("Your table for 2 today at 7 PM is all set.")
        assert len(crm.reservations) == 1


class TestSideEffectFailures:
    @pytest.mark.asyncio
    async def test_crm_failure_releases_table_and_allows_retry(self, store, availability):
        crm = MockCRMService(enabled=True, fail_operations={"create_reservation"})
        router = _router(store, availability, crm)
        session = _ready_to_confirm(store)

        assert await say(router, session, "yes") == BOOKING_RECOVERY
        assert _remaining(availability, TODAY_ISO, "19:00") == 2
        (failed,) = session.crm_actions
        assert failed.status == CRMActionStatus.FAILED
        assert "create_reservation failed" in failed.error

        crm.fail_operations.clear()
        reply = await say(router, session, "yes please")
        assert reply.startswith("Perfect! Your reservation is confirmed")
        assert _remaining(availability, TODAY_ISO, "19:00") == 1
        assert [a.status for a in session.crm_actions] == [
            CRMActionStatus.FAILED,
            CRMActionStatus.SUCCESS,
        ]

    @pytest.mark.asyncio
    async def test_crm_not_configured_still_confirms(self, store, availability):
        crm = MockCRMService(enabled=False)
        router = _router(store, availability, crm)
        session = _ready_to_confirm(store)

        reply = await say(router, session, "yes")
        assert reply.startswith("Perfect! Your reservation is confirmed")
        (action,) = session.crm_actions
        assert action.status == CRMActionStatus.SUCCESS
        assert action.skipped is True
        assert crm.reservations == {}

    @pytest.mark.asyncio
    async def test_pending_commit_is_not_repeated(self, store, router, crm):
        session = _ready_to_confirm(store)
        store.begin_crm_action(
            session.call_id,
            CRMActionType.RESERVATION_CREATE,
            ReservationPayload(name="Sarah Johnson", party_size=2, date=TODAY_ISO, time="19:00"),
        )
        assert await say(router, session, "yes") == BOOKING_IN_PROGRESS
        assert crm.calls == []
