"""Read-only helpers over a session.

Nothing here mutates state, so agents and the router can call these freely
while holding the per-call lock.
"""

import re
import time
from typing import Any, Optional, Sequence

from concierge.config import settings
from concierge.schemas.conversation_schema import Intent, Session, Speaker
from concierge.schemas.crm_schema import CRMAction, CRMActionStatus, CRMActionType
from concierge.schemas.slots_schema import REQUIRED_FIELDS

# Conversation-level keyword sets, scored over every caller turn.
CONVERSATION_KEYWORDS: dict[Intent, tuple[str, ...]] = {
    Intent.LEAD: ("information", "details", "learn", "tell me", "contact", "email"),
    Intent.BOOKING: ("reservation", "table", "book", "reserve", "dinner", "lunch", "party"),
    Intent.MENU: ("menu", "food", "eat", "dish", "special", "what do you have"),
}


def keyword_pattern(keyword: str) -> re.Pattern:
    """Match ``keyword`` at a word start, so "special" also matches "specials"."""
    return re.compile(r"\b" + re.escape(keyword), re.IGNORECASE)


def has_keywords(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword_pattern(k).search(text) for k in keywords)


def count_keywords(text: str, keywords: Sequence[str]) -> int:
    return sum(1 for k in keywords if keyword_pattern(k).search(text))


def get_caller_messages(session: Session) -> list[str]:
    return [e.text for e in session.transcript if e.who == Speaker.CALLER]


def get_last_caller_message(session: Session) -> Optional[str]:
    for entry in reversed(session.transcript):
        if entry.who == Speaker.CALLER:
            return entry.text
    return None


def get_last_agent_message(session: Session) -> Optional[str]:
    for entry in reversed(session.transcript):
        if entry.who == Speaker.AGENT:
            return entry.text
    return None


def is_first_interaction(session: Session) -> bool:
    """True until the agent has said anything on this call."""
    return not any(e.who == Speaker.AGENT for e in session.transcript)


def get_missing_fields(session: Session, intent: Optional[Intent] = None) -> list[str]:
    """Required fields for the intent that ``collected`` does not hold yet."""
    intent = intent or session.current_intent
    if intent is None:
        return []
    return [f for f in REQUIRED_FIELDS[intent] if getattr(session.collected, f) is None]


def has_required_data(session: Session, intent: Optional[Intent] = None) -> bool:
    return (intent or session.current_intent) is not None and not get_missing_fields(
        session, intent
    )


def get_conversation_context(session: Session, max_entries: int = 10) -> str:
    """Render the tail of the transcript as ``Caller: ...`` / ``Agent: ...`` lines."""
    lines = []
    for entry in session.transcript[-max_entries:]:
        who = "Caller" if entry.who == Speaker.CALLER else "Agent"
        lines.append(f"{who}: {entry.text}")
    return "\n".join(lines)


def get_session_duration(session: Session) -> float:
    return session.last_activity - session.created_at


def is_session_idle(
    session: Session, idle_minutes: Optional[float] = None, now: Optional[float] = None
) -> bool:
    idle_minutes = idle_minutes if idle_minutes is not None else settings.session.idle_minutes
    now = now if now is not None else time.time()
    return now - session.last_activity > idle_minutes * 60


def get_crm_actions(
    session: Session,
    action_type: Optional[CRMActionType] = None,
    status: Optional[CRMActionStatus] = None,
) -> list[CRMAction]:
    return [
        a
        for a in session.crm_actions
        if (action_type is None or a.type == action_type)
        and (status is None or a.status == status)
    ]


def get_successful_crm_actions(session: Session) -> list[CRMAction]:
    return get_crm_actions(session, status=CRMActionStatus.SUCCESS)


def get_failed_crm_actions(session: Session) -> list[CRMAction]:
    return get_crm_actions(session, status=CRMActionStatus.FAILED)


def was_crm_action_successful(session: Session, action_type: CRMActionType) -> bool:
    return bool(get_crm_actions(session, action_type, CRMActionStatus.SUCCESS))


def get_collected_data_summary(session: Session) -> str:
    """One-line, human-readable summary of what has been collected."""
    collected = session.collected
    parts = []
    if collected.name:
        parts.append(f"Name: {collected.name}")
    if collected.email:
        parts.append(f"Email: {collected.email}")
    if collected.phone:
        parts.append(f"Phone: {collected.phone}")
    if collected.party_size:
        parts.append(f"Party size: {collected.party_size}")
    if collected.date_time:
        parts.append(f"Date/time: {collected.date_time}")
    if collected.use_case:
        parts.append(f"Interest: {collected.use_case}")
    if collected.special_requests:
        parts.append(f"Special requests: {collected.special_requests}")
    return ", ".join(parts) if parts else "No data collected yet"


def get_intent_confidence(session: Session) -> dict[Intent, float]:
    """Fraction of each intent's conversation keywords seen across all caller turns."""
    all_text = " ".join(get_caller_messages(session))
    return {
        intent: count_keywords(all_text, keywords) / len(keywords)
        for intent, keywords in CONVERSATION_KEYWORDS.items()
    }


def describe(session: Session) -> dict[str, Any]:
    """Compact snapshot for logs and the console demo."""
    return {
        "call_id": session.call_id,
        "intent": session.current_intent.value if session.current_intent else None,
        "collected": session.collected.filled(),
        "crm_actions": [
            {"type": a.type.value, "status": a.status.value} for a in session.crm_actions
        ],
        "turns": len(session.transcript),
    }
