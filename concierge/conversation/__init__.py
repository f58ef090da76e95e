from concierge.conversation.intent_classifier import IntentClassifier, KeywordIntentClassifier
from concierge.conversation.policy_overrides import (
    PolicyOverride,
    PolicyOverrideTable,
    build_default_overrides,
)
from concierge.conversation.session_store import SessionConflictError, SessionStore
from concierge.conversation.slot_extractor import PatternSlotExtractor, SlotExtractor
from concierge.conversation.state_machine import DialoguePhase, DialogueState, resolve_phase

__all__ = [
    "SessionStore",
    "SessionConflictError",
    "PolicyOverride",
    "PolicyOverrideTable",
    "build_default_overrides",
    "IntentClassifier",
    "KeywordIntentClassifier",
    "SlotExtractor",
    "PatternSlotExtractor",
    "DialoguePhase",
    "DialogueState",
    "resolve_phase",
]
