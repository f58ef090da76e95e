"""
Booking agent: party size, date and time, then name, then a read-back.

Availability is checked as soon as party size and date/time are known, so
the caller hears alternatives before being asked for a name. The caller's
"yes" to the read-back commits the reservation:

    begin_crm_action -> reserve_slot -> create_reservation

A slot lost between the read-back and the commit is reported as taken, and a
failed CRM write gives the held table back.
"""

import re
from datetime import date
from typing import Callable, Optional

from concierge.agents.base_agent import SlotFillingAgent
from concierge.conversation.selectors import (
    get_crm_actions,
    get_last_agent_message,
    get_missing_fields,
    was_crm_action_successful,
)
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import PatternSlotExtractor, SlotExtractor
from concierge.conversation.state_machine import DialoguePhase, resolve_phase
from concierge.logging_context import get_call_logger
from concierge.prompts.prompt_templates import (
    READBACK_PREFIX,
    build_alternatives_text,
    build_ask_date_time,
    build_availability_confirmed,
    build_reservation_confirmed,
    build_reservation_follow_up,
    build_reservation_readback,
    build_unavailable_response,
)
from concierge.prompts.system_prompts import (
    BOOKING_ASK_MODIFICATION,
    BOOKING_ASK_NAME,
    BOOKING_ASK_PARTY_SIZE,
    BOOKING_GREETING,
    BOOKING_IN_PROGRESS,
    BOOKING_RECOVERY,
)
from concierge.schemas.conversation_schema import Intent, Session
from concierge.schemas.crm_schema import CRMActionStatus, CRMActionType, ReservationPayload
from concierge.schemas.slots_schema import BookingSlots, slots_for_intent
from concierge.tools.availability import AvailabilityBoard
from concierge.tools.crm import CRMService

logger = get_call_logger(__name__)

CONFIRM_PATTERN = re.compile(
    r"\b(?:yes|yeah|yep|yup|correct|that'?s right|sounds good|perfect|confirm|go ahead|book it|please do)\b",
    re.IGNORECASE,
)
NEGATION_PATTERN = re.compile(r"\b(?:no|nope|not quite|wrong|incorrect|wait)\b", re.IGNORECASE)
MODIFICATION_PATTERN = re.compile(
    r"\b(?:change|actually|instead|how about|make it|switch|move it)\b", re.IGNORECASE
)

SLOT_TAKEN_ERROR = "Time slot no longer available"


class BookingAgent(SlotFillingAgent):
    """Reservation flow with an availability check and a single commit."""

    intent = Intent.BOOKING
    CORE_FIELDS = ("party_size", "date_time", "name")

    def __init__(
        self,
        store: SessionStore,
        availability: Optional[AvailabilityBoard] = None,
        crm: Optional[CRMService] = None,
        extractor: Optional[SlotExtractor] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        super().__init__(store, extractor or PatternSlotExtractor(today=today), crm)
        self.availability = availability or AvailabilityBoard(start=today())
        self._today = today

    def is_complete(self, session: Session) -> bool:
        return was_crm_action_successful(session, CRMActionType.RESERVATION_CREATE)

    async def respond(self, session: Session, text: str) -> str:
        if self.is_complete(session):
            slots: BookingSlots = slots_for_intent(Intent.BOOKING, session.collected)
            return build_reservation_follow_up(slots.party_size, slots.date_time, self._today())
        if get_crm_actions(session, CRMActionType.RESERVATION_CREATE, CRMActionStatus.PENDING):
            return BOOKING_IN_PROGRESS

        written = self._collect(session, text)
        collected = session.collected
        state = resolve_phase(
            get_missing_fields(session, Intent.BOOKING),
            first_turn=all(getattr(collected, f) is None for f in self.CORE_FIELDS),
            needs_confirmation=True,
        )
        logger.debug("Booking phase: %s (wrote %s)", state.describe(), written)

        if state.phase == DialoguePhase.GREETING:
            return BOOKING_GREETING
        if state.missing_field == "party_size":
            return BOOKING_ASK_PARTY_SIZE
        if state.missing_field == "date_time":
            return build_ask_date_time(collected.party_size)

        if not self._requested_slot_available(session):
            slot_taken = not written and self._confirms(text) and self._read_back_last(session)
            return self._offer_alternatives(session, slot_taken=slot_taken)
        if state.missing_field == "name":
            return build_availability_confirmed(
                collected.party_size, collected.date_time, self._today()
            )

        # Confirming: a "yes" only counts when nothing changed this turn.
        if not written and self._confirms(text):
            return await self._finalize(session)
        if not written and (NEGATION_PATTERN.search(text) or MODIFICATION_PATTERN.search(text)):
            return BOOKING_ASK_MODIFICATION
        return build_reservation_readback(
            collected.name,
            collected.party_size,
            collected.date_time,
            collected.special_requests,
            self._today(),
        )

    @staticmethod
    def _read_back_last(session: Session) -> bool:
        return (get_last_agent_message(session) or "").startswith(READBACK_PREFIX)

    @staticmethod
    def _confirms(text: str) -> bool:
        return bool(CONFIRM_PATTERN.search(text)) and not NEGATION_PATTERN.search(text)

    # ------------------------------------------------------------------ #
    # Extraction and corrections
    # ------------------------------------------------------------------ #

    def _collect(self, session: Session, text: str) -> list[str]:
        correcting = bool(MODIFICATION_PATTERN.search(text)) or self._slot_unavailable(session)
        written = self._fill(
            session,
            text,
            ("party_size", "name", "phone", "special_requests"),
            overwrite=("party_size", "name") if correcting else (),
        )
        written += self._fill_date_time(session, text, correcting)
        last = get_last_agent_message(session) or ""
        if not written and last.endswith(BOOKING_ASK_NAME):
            written = self._fill_name_answer(session, text)
        return written

    def _fill_date_time(self, session: Session, text: str, correcting: bool) -> list[str]:
        """Fill ``date_time``, or change one half of it during a correction."""
        current = session.collected.date_time
        if current is None:
            return self._fill(session, text, ("date_time",))
        if not correcting:
            return []

        new_date = self.extractor.extract_slot("date", text)
        new_time = self.extractor.extract_slot("time", text)
        if new_date is None and new_time is None:
            return []
        day, clock = current.split(" ")
        if new_date is None and self._slot_unavailable(session):
            # "8 PM works" after an offer means the offered day, not the original one.
            offers = self.availability.suggest_alternatives(
                day, clock, session.collected.party_size
            )
            new_date = next((d for d, t in offers if t == new_time), None)

        value = f"{new_date or day} {new_time or clock}"
        if value == current:
            return []
        self.store.update_collected(session.call_id, date_time=value)
        logger.info("Booking date/time changed")
        return ["date_time"]

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    def _slot_unavailable(self, session: Session) -> bool:
        collected = session.collected
        if collected.party_size is None or collected.date_time is None:
            return False
        return not self._requested_slot_available(session)

    def _requested_slot_available(self, session: Session) -> bool:
        day, clock = session.collected.date_time.split(" ")
        return self.availability.is_slot_available(day, clock, session.collected.party_size)

    def _offer_alternatives(self, session: Session, slot_taken: bool = False) -> str:
        collected = session.collected
        day, clock = collected.date_time.split(" ")
        offers = self.availability.suggest_alternatives(day, clock, collected.party_size)
        alternatives = build_alternatives_text(collected.party_size, offers, self._today())
        logger.info("Requested slot unavailable; offering %d alternative(s)", len(offers))

        board_day = self.availability.get_day(day)
        if board_day is not None and not board_day.is_open and not slot_taken:
            return f"I'm sorry, we're closed on {board_day.day_name}s. {alternatives}"
        return build_unavailable_response(
            collected.party_size, collected.date_time, alternatives, slot_taken, self._today()
        )

    # ------------------------------------------------------------------ #
    # Commit
    # ------------------------------------------------------------------ #

    async def _finalize(self, session: Session) -> str:
        slots: BookingSlots = slots_for_intent(Intent.BOOKING, session.collected)
        payload = ReservationPayload(
            name=slots.name,
            party_size=slots.party_size,
            date=slots.date,
            time=slots.time,
            phone=slots.phone or session.metadata.customer_number,
            email=session.collected.email,
            special_requests=slots.special_requests,
        )
        action = self.store.begin_crm_action(
            session.call_id, CRMActionType.RESERVATION_CREATE, payload
        )
        if action is None:
            return BOOKING_IN_PROGRESS

        hold = self.availability.reserve_slot(
            slots.date, slots.time, slots.party_size, {"name": slots.name}
        )
        if hold is None:
            self.store.update_crm_action(
                session.call_id,
                action.idempotency_key,
                status=CRMActionStatus.FAILED,
                error=SLOT_TAKEN_ERROR,
            )
            return self._offer_alternatives(session, slot_taken=True)

        saved = await self._execute_side_effect(
            session,
            action,
            lambda: self.crm.create_reservation(payload, action.idempotency_key),
        )
        if not saved:
            self.availability.release_slot(hold)
            return BOOKING_RECOVERY

        logger.info(
            "Reservation confirmed for party of %d (%s, source %s)",
            slots.party_size,
            hold,
            payload.source,
        )
        return build_reservation_confirmed(
            slots.name, slots.party_size, slots.date_time, self._today()
        )
