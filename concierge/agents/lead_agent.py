"""
Lead agent: captures name and email, then upserts a CRM contact once.

When the caller later says what they are interested in, the agent records
it and opens a deal against the contact.
"""

from typing import Optional

from concierge.agents.base_agent import SlotFillingAgent
from concierge.config import settings
from concierge.conversation.selectors import (
    get_crm_actions,
    get_last_agent_message,
    get_missing_fields,
    has_keywords,
    has_required_data,
)
from concierge.conversation.state_machine import DialoguePhase, resolve_phase
from concierge.logging_context import get_call_logger
from concierge.prompts.prompt_templates import (
    build_lead_confirmation,
    build_lead_follow_up,
    build_lead_interest_noted,
)
from concierge.prompts.system_prompts import (
    LEAD_ASK_EMAIL,
    LEAD_ASK_NAME,
    LEAD_GREETING,
    LEAD_NEW_REQUEST,
    LEAD_RECOVERY,
)
from concierge.schemas.conversation_schema import Intent, Session
from concierge.schemas.crm_schema import (
    ContactPayload,
    CRMActionStatus,
    CRMActionType,
    DealPayload,
)
from concierge.schemas.slots_schema import LeadSlots, slots_for_intent

logger = get_call_logger(__name__)

NEW_REQUEST_CUES = ("also", "another", "something else", "one more", "question")
MAX_DEAL_NAME_LENGTH = 100


class LeadAgent(SlotFillingAgent):
    """Lead capture with a single contact upsert."""

    intent = Intent.LEAD
    FIELDS = ("name", "email", "phone", "use_case")

    def is_complete(self, session: Session) -> bool:
        return has_required_data(session, Intent.LEAD)

    async def respond(self, session: Session, text: str) -> str:
        if self.is_complete(session):
            return await self._handle_complete(session, text)

        written = self._fill(session, text, self.FIELDS)
        if not written and get_last_agent_message(session) in (LEAD_GREETING, LEAD_ASK_NAME):
            self._fill_name_answer(session, text)
        if self.is_complete(session):
            return await self._handle_complete(session, text)

        started = any(getattr(session.collected, f) is not None for f in self.FIELDS)
        state = resolve_phase(
            get_missing_fields(session, Intent.LEAD),
            first_turn=not started,
        )
        logger.debug("Lead phase: %s", state.describe())

        if state.phase == DialoguePhase.GREETING:
            return LEAD_GREETING
        if state.missing_field == "name":
            return LEAD_ASK_NAME
        return LEAD_ASK_EMAIL.format(name=session.collected.name)

    # ------------------------------------------------------------------ #
    # Completion
    # ------------------------------------------------------------------ #

    async def _handle_complete(self, session: Session, text: str) -> str:
        slots: LeadSlots = slots_for_intent(Intent.LEAD, session.collected)

        if not get_crm_actions(session, CRMActionType.CONTACT_UPSERT):
            saved = await self._upsert_contact(session, slots)
            if saved is False:
                return LEAD_RECOVERY
            if slots.use_case:
                await self._create_deal(session, slots)
            return build_lead_confirmation(
                slots.name, slots.email, ask_interest=slots.use_case is None
            )

        contact_ok = bool(
            get_crm_actions(session, CRMActionType.CONTACT_UPSERT, CRMActionStatus.SUCCESS)
        )
        if not contact_ok:
            return LEAD_RECOVERY

        written = self._fill(session, text, ("use_case", "phone"))
        if "use_case" in written:
            slots = slots_for_intent(Intent.LEAD, session.collected)
            await self._create_deal(session, slots)
            return build_lead_interest_noted(slots.use_case)
        if has_keywords(text, NEW_REQUEST_CUES):
            return LEAD_NEW_REQUEST
        return build_lead_follow_up(slots.name)

    async def _upsert_contact(self, session: Session, slots: LeadSlots) -> Optional[bool]:
        """Create the contact. None means another attempt is already in flight."""
        first, _, last = slots.name.partition(" ")
        payload = ContactPayload(
            email=slots.email,
            firstname=first,
            lastname=last,
            phone=slots.phone,
            lead_source=settings.crm.lead_source,
            notes=slots.use_case,
        )
        action = self.store.begin_crm_action(
            session.call_id, CRMActionType.CONTACT_UPSERT, payload
        )
        if action is None:
            return None
        return await self._execute_side_effect(
            session, action, lambda: self.crm.upsert_contact(payload, action.idempotency_key)
        )

    async def _create_deal(self, session: Session, slots: LeadSlots) -> None:
        contact = get_crm_actions(
            session, CRMActionType.CONTACT_UPSERT, CRMActionStatus.SUCCESS
        )
        contact_id = contact[0].record_id if contact else None
        payload = DealPayload(
            deal_name=f"{slots.name} - {slots.use_case}"[:MAX_DEAL_NAME_LENGTH],
            contact_id=contact_id,
            description=slots.use_case or "",
        )
        action = self.store.begin_crm_action(session.call_id, CRMActionType.DEAL_CREATE, payload)
        if action is None:
            return
        await self._execute_side_effect(
            session,
            action,
            lambda: self.crm.create_deal(payload, contact_id, action.idempotency_key),
        )
