"""
Agent router: runs one caller turn end to end.

    override check -> intent detection (once) -> hand-off check -> agent

Turns for a call are serialized on the store's per-call lock, and any
exception inside a turn becomes the generic apology, so the caller always
gets a reply.

Usage:
    store = SessionStore()
    router = AgentRouter.build(store)
    session = store.create("call-1")
    store.add_transcript("call-1", TranscriptEntry(who=Speaker.CALLER, text=text))
    reply = await router.process_turn(session, text)
"""

import time
from datetime import date
from typing import Callable, Mapping, Optional

from concierge.agents.base_agent import SlotFillingAgent
from concierge.agents.booking_agent import BookingAgent
from concierge.agents.lead_agent import LeadAgent
from concierge.agents.menu_agent import MenuAgent
from concierge.config import settings
from concierge.conversation.intent_classifier import IntentClassifier, KeywordIntentClassifier
from concierge.conversation.policy_overrides import PolicyOverrideTable, build_default_overrides
from concierge.conversation.selectors import get_caller_messages
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import PatternSlotExtractor, SlotExtractor
from concierge.logging_context import bound_call_id, get_call_logger
from concierge.prompts.system_prompts import (
    CLARIFY_CAPABILITIES,
    GENERIC_APOLOGY,
    SWITCH_ACKNOWLEDGMENTS,
)
from concierge.schemas.conversation_schema import Intent, Session, Speaker, TranscriptEntry
from concierge.tools.availability import AvailabilityBoard
from concierge.tools.crm import CRMService, MockCRMService
from concierge.tools.menu import MenuCatalog

logger = get_call_logger(__name__)

# Intents a finished conversation may hand off to. Lead is the fallback,
# never a destination.
HANDOFF_TARGETS = (Intent.BOOKING, Intent.MENU)


class AgentRouter:
    """Dispatches caller turns to the agent for the session's intent."""

    def __init__(
        self,
        store: SessionStore,
        agents: Mapping[Intent, SlotFillingAgent],
        classifier: Optional[IntentClassifier] = None,
        overrides: Optional[PolicyOverrideTable] = None,
        switch_confidence: Optional[float] = None,
        auto_handoff: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.agents = dict(agents)
        self.classifier = classifier or KeywordIntentClassifier()
        self.overrides = overrides if overrides is not None else build_default_overrides()
        self.switch_confidence = (
            switch_confidence
            if switch_confidence is not None
            else settings.routing.switch_confidence
        )
        self.auto_handoff = (
            auto_handoff if auto_handoff is not None else settings.routing.auto_handoff
        )

    @classmethod
    def build(
        cls,
        store: SessionStore,
        *,
        availability: Optional[AvailabilityBoard] = None,
        catalog: Optional[MenuCatalog] = None,
        crm: Optional[CRMService] = None,
        extractor: Optional[SlotExtractor] = None,
        classifier: Optional[IntentClassifier] = None,
        overrides: Optional[PolicyOverrideTable] = None,
        today: Callable[[], date] = date.today,
        auto_handoff: Optional[bool] = None,
    ) -> "AgentRouter":
        """Wire the three standard agents around one store and CRM."""
        crm = crm or MockCRMService()
        extractor = extractor or PatternSlotExtractor(today=today)
        agents: dict[Intent, SlotFillingAgent] = {
            Intent.LEAD: LeadAgent(store, extractor, crm),
            Intent.BOOKING: BookingAgent(store, availability, crm, extractor, today),
            Intent.MENU: MenuAgent(store, catalog, extractor),
        }
        return cls(store, agents, classifier, overrides, auto_handoff=auto_handoff)

    # ------------------------------------------------------------------ #
    # Public entry points
    # ------------------------------------------------------------------ #

    async def process_turn(self, session: Session, text: Optional[str]) -> str:
        """Answer one caller utterance. Never raises."""
        async with self.store.call_lock(session.call_id):
            with bound_call_id(session.call_id):
                try:
                    response = await self._run_turn(session, text)
                except Exception:
                    logger.exception(
                        "Turn failed (intent=%s)",
                        session.current_intent.value if session.current_intent else None,
                    )
                    response = GENERIC_APOLOGY
                self._record(session, response)
                return response

    async def switch_intent(self, session: Session, new_intent: Intent, text: str) -> str:
        """Move the call to ``new_intent`` and answer ``text`` under it."""
        async with self.store.call_lock(session.call_id):
            with bound_call_id(session.call_id):
                try:
                    response = await self._switch(session, new_intent, text)
                except Exception:
                    logger.exception("Switch to %s failed", new_intent.value)
                    response = GENERIC_APOLOGY
                self._record(session, response)
                return response

    # ------------------------------------------------------------------ #
    # Turn pipeline
    # ------------------------------------------------------------------ #

    async def _run_turn(self, session: Session, text: Optional[str]) -> str:
        text = (text or "").strip()
        if not text:
            logger.warning("Empty caller text")
            return GENERIC_APOLOGY

        override = self.overrides.evaluate(session, text)
        if override is not None:
            return override

        if session.current_intent is None:
            self._assign_intent(session, text)
        elif self.auto_handoff:
            target = self._handoff_target(session, text)
            if target is not None:
                return await self._switch(session, target, text)

        return await self._dispatch(session, text)

    def _assign_intent(self, session: Session, text: str) -> None:
        history = get_caller_messages(session)
        # The transport already appended this utterance.
        if history and history[-1].strip() == text:
            history = history[:-1]
        intent, confidence = self.classifier.classify_intent(text, history)
        self.store.update(session.call_id, current_intent=intent)
        logger.info("Intent assigned: %s (confidence %.2f)", intent.value, confidence)

    def _handoff_target(self, session: Session, text: str) -> Optional[Intent]:
        """A different intent the caller has clearly moved on to, if any.

        Only consulted when auto hand-off is enabled. Only a finished agent
        hands off; mid-collection the current intent stays put.
        """
        agent = self.agents.get(session.current_intent)
        if agent is None or not agent.is_complete(session):
            return None
        intent, confidence = self.classifier.classify_intent(text, [])
        if (
            intent in HANDOFF_TARGETS
            and intent != session.current_intent
            and confidence >= self.switch_confidence
        ):
            return intent
        return None

    async def _switch(self, session: Session, new_intent: Intent, text: str) -> str:
        previous = session.current_intent
        self.store.update(session.call_id, last_intent=previous, current_intent=new_intent)
        logger.info(
            "Intent switched: %s -> %s",
            previous.value if previous else None,
            new_intent.value,
        )
        acknowledgment = SWITCH_ACKNOWLEDGMENTS.get(new_intent, "") if previous else ""
        response = await self._dispatch(session, text)
        return f"{acknowledgment} {response}".strip()

    async def _dispatch(self, session: Session, text: str) -> str:
        agent = self.agents.get(session.current_intent)
        if agent is None:
            logger.warning("No agent for intent %r", session.current_intent)
            return CLARIFY_CAPABILITIES
        return await agent.respond(session, text)

    def _record(self, session: Session, response: str) -> None:
        self.store.add_transcript(
            session.call_id,
            TranscriptEntry(who=Speaker.AGENT, text=response, timestamp=time.time()),
        )
