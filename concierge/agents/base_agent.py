"""
Shared machinery for the per-intent slot-filling agents.

An agent owns no state of its own. Everything it learns goes through the
``SessionStore``, and every side effect is tracked as a ``CRMAction`` so a
duplicate turn can never repeat it.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Optional

from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import PatternSlotExtractor, SlotExtractor
from concierge.logging_context import get_call_logger
from concierge.schemas.conversation_schema import Intent, Session
from concierge.schemas.crm_schema import CRMAction, CRMActionStatus
from concierge.tools.crm import CRMResult, CRMService, MockCRMService

logger = get_call_logger(__name__)


class SlotFillingAgent(ABC):
    """Base class: extraction through the store plus tracked side effects."""

    intent: Intent

    def __init__(
        self,
        store: SessionStore,
        extractor: Optional[SlotExtractor] = None,
        crm: Optional[CRMService] = None,
    ) -> None:
        self.store = store
        self.extractor = extractor or PatternSlotExtractor()
        self.crm = crm or MockCRMService()

    @abstractmethod
    def is_complete(self, session: Session) -> bool:
        """True once the intent's required data (and side effect, if any) is done."""

    @abstractmethod
    async def respond(self, session: Session, text: str) -> str:
        """Produce the spoken reply for one caller utterance."""

    # ------------------------------------------------------------------ #
    # Extraction
    # ------------------------------------------------------------------ #

    def _fill(
        self,
        session: Session,
        text: str,
        fields: Iterable[str],
        overwrite: Iterable[str] = (),
    ) -> list[str]:
        """Extract ``fields`` from ``text`` and write new values to the store.

        Filled slots are skipped unless named in ``overwrite`` (an explicit
        correction). Returns the slots actually written.
        """
        overwrite = set(overwrite)
        found: dict[str, object] = {}
        for field_name in fields:
            current = getattr(session.collected, field_name)
            if current is not None and field_name not in overwrite:
                continue
            value = self.extractor.extract_slot(field_name, text)
            if value is not None and value != current:
                found[field_name] = value
        if found:
            self.store.update_collected(session.call_id, **found)
            logger.info("%s agent captured %s", self.intent.value, sorted(found))
        return list(found)

    def _fill_name_answer(self, session: Session, text: str) -> list[str]:
        """Accept a bare reply such as "Sarah Johnson" as the name.

        Only call this right after the agent asked for the name; elsewhere a
        short utterance is far more likely to be something else.
        """
        if session.collected.name is not None:
            return []
        name = self.extractor.extract_slot("name_answer", text)
        if name is None:
            return []
        self.store.update_collected(session.call_id, name=name)
        logger.info("%s agent captured ['name'] from a direct answer", self.intent.value)
        return ["name"]

    # ------------------------------------------------------------------ #
    # Side effects
    # ------------------------------------------------------------------ #

    async def _execute_side_effect(
        self,
        session: Session,
        action: CRMAction,
        operation: Callable[[], Awaitable[CRMResult]],
    ) -> bool:
        """Run a CRM call for a pending action and settle it. Never retries."""
        key = action.idempotency_key
        try:
            result = await operation()
        except Exception as exc:
            logger.exception("%s failed (%s)", action.type.value, key)
            self.store.update_crm_action(
                session.call_id,
                key,
                status=CRMActionStatus.FAILED,
                error=str(exc) or type(exc).__name__,
            )
            return False

        if result.get("skipped"):
            logger.warning(
                "%s skipped: %s", action.type.value, result.get("reason", "not_configured")
            )
            self.store.update_crm_action(
                session.call_id, key, status=CRMActionStatus.SUCCESS, skipped=True
            )
            return True
        if result.get("success"):
            self.store.update_crm_action(
                session.call_id, key, status=CRMActionStatus.SUCCESS, record_id=result.get("id")
            )
            return True

        self.store.update_crm_action(
            session.call_id,
            key,
            status=CRMActionStatus.FAILED,
            error=result.get("error", "unknown error"),
        )
        return False
