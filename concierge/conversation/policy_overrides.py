"""
Priority-ordered policy overrides that can intercept a turn before routing.

Each rule pairs a trigger with a priority and a handler. A trigger is either
a literal, matched as a case-insensitive substring, or a compiled regex,
searched against the raw caller text. Rules run highest priority first; the
first matching handler that returns a non-empty response ends the turn, and
the router, intent detection, and slot extraction are all skipped.

A handler that raises is logged and skipped; evaluation moves on to the next
matching rule, so a broken rule never breaks the conversation.

The table is immutable. ``with_override`` returns a new, re-sorted table
rather than mutating the one being evaluated.

Usage:
    table = build_default_overrides()
    response = table.evaluate(session, "Sorry, could you say that again?")
    if response is not None:
        ...  # speak it and end the turn
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Union

from concierge.config import settings
from concierge.conversation.selectors import get_last_agent_message
from concierge.logging_context import get_call_logger
from concierge.schemas.conversation_schema import Session
from concierge.utils import spell_out

logger = get_call_logger(__name__)

Trigger = Union[str, re.Pattern]
OverrideHandler = Callable[[Session, str], Optional[str]]


@dataclass(frozen=True)
class PolicyOverride:
    """A single interception rule."""

    name: str
    trigger: Trigger
    priority: int
    handler: OverrideHandler

    def matches(self, text: str) -> bool:
        if isinstance(self.trigger, re.Pattern):
            return self.trigger.search(text) is not None
        return self.trigger.lower() in text.lower()


class PolicyOverrideTable:
    """Immutable rule table sorted by priority, highest first."""

    def __init__(self, rules: Iterable[PolicyOverride] = ()) -> None:
        # sorted() is stable, so equal priorities keep insertion order.
        self._rules: tuple[PolicyOverride, ...] = tuple(
            sorted(rules, key=lambda r: r.priority, reverse=True)
        )

    @property
    def rules(self) -> tuple[PolicyOverride, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def with_override(self, rule: PolicyOverride) -> "PolicyOverrideTable":
        """Return a new table that also contains ``rule``."""
        return PolicyOverrideTable((*self._rules, rule))

    def without(self, name: str) -> "PolicyOverrideTable":
        return PolicyOverrideTable(r for r in self._rules if r.name != name)

    def matching(self, text: str) -> list[PolicyOverride]:
        return [r for r in self._rules if r.matches(text)]

    def evaluate(self, session: Session, text: str) -> Optional[str]:
        """Return the response of the first matching rule, or None to continue."""
        for rule in self._rules:
            if not rule.matches(text):
                continue
            try:
                response = rule.handler(session, text)
            except Exception:
                logger.exception("Override '%s' failed; trying next rule", rule.name)
                continue
            if response:
                logger.info("Override '%s' (priority %d) handled turn", rule.name, rule.priority)
                return response
        return None

    def has_high_priority_override(self, text: str, threshold: Optional[int] = None) -> bool:
        threshold = threshold if threshold is not None else settings.routing.high_priority_override
        return any(r.priority >= threshold for r in self.matching(text))


# ---------------------------------------------------------------------- #
# Default rules
# ---------------------------------------------------------------------- #

_biz = settings.business


def _unavailable(session: Session, text: str) -> str:
    return (
        f"I'm sorry about that. We're open for lunch from {_biz.hours_lunch} and dinner "
        f"from {_biz.hours_dinner}, and we're closed {_biz.closed_days}. "
        f"Would you like me to find another time that works?"
    )


def _urgent(session: Session, text: str) -> str:
    return (
        "I understand this is urgent. Let me make sure you get help right away. "
        "Can you tell me briefly what you need?"
    )


def _repeat(session: Session, text: str) -> str:
    if session.last_menu_read:
        return "Of course! Let me repeat that. " + ". ".join(session.last_menu_read)
    last = get_last_agent_message(session)
    if last:
        return f"Sure, let me repeat that. {last}"
    return "I'm sorry, let me start over. How can I help you today?"


def _human(session: Session, text: str) -> str:
    return (
        "I understand you'd like to speak with someone. I'll have a member of our team "
        f"call you back {_biz.human_callback_window}. Is this the best number to reach you?"
    )


def _slower(session: Session, text: str) -> str:
    return "Of course, I'll slow down. Please let me know if you need me to repeat anything."


def _faster(session: Session, text: str) -> str:
    return "Sure thing, I'll pick up the pace."


def _complaint(session: Session, text: str) -> str:
    return (
        "I'm so sorry to hear that. I want to make sure this gets resolved. "
        "I'll make a note for our manager. Could you tell me a little more about what happened?"
    )


def _spell(session: Session, text: str) -> str:
    email = session.collected.email
    if email:
        return f"Sure! Your email address is spelled: {spell_out(email)}. Did I get that right?"
    return "I don't have an email address for you yet. Could you spell it out for me?"


def _cancel(session: Session, text: str) -> str:
    return (
        "No problem. If you'd like to cancel or change a reservation, I'll have our team "
        "take care of it. Could I get the name the reservation is under?"
    )


def _menu_repeat(session: Session, text: str) -> Optional[str]:
    if not session.last_menu_read:
        return None
    return "Here's what I mentioned: " + ". ".join(session.last_menu_read)


def _clarify(session: Session, text: str) -> str:
    return "I'm sorry, let me try to be clearer. What can I help you with?"


def _pattern(expr: str) -> re.Pattern:
    return re.compile(expr, re.IGNORECASE)


DEFAULT_OVERRIDES: tuple[PolicyOverride, ...] = (
    PolicyOverride(
        "unavailable", _pattern(r"\b(?:not available|closed|unavailable)\b"), 10, _unavailable
    ),
    PolicyOverride("urgent", _pattern(r"\b(?:emergency|urgent|asap|right now)\b"), 10, _urgent),
    PolicyOverride(
        "repeat", _pattern(r"\b(?:repeat|say that again|didn'?t catch|didn'?t hear)\b"), 9, _repeat
    ),
    PolicyOverride(
        "human",
        _pattern(r"\b(?:human|manager|real person|speak to (?:someone|a person)|talk to (?:someone|a person))\b"),
        9,
        _human,
    ),
    PolicyOverride("slower", _pattern(r"\b(?:speak slower|slow down|too fast)\b"), 8, _slower),
    PolicyOverride("faster", _pattern(r"\b(?:speak faster|speed up|too slow)\b"), 8, _faster),
    PolicyOverride(
        "complaint",
        _pattern(r"\b(?:complaint|complain|problem with|issue with|went wrong|made a mistake)\b"),
        8,
        _complaint,
    ),
    PolicyOverride("spell", _pattern(r"\b(?:spell|spelling|letters)\b"), 7, _spell),
    PolicyOverride("cancel", _pattern(r"\b(?:cancel|don'?t want)\b"), 7, _cancel),
    PolicyOverride(
        "menu_repeat", _pattern(r"repeat.*menu|menu.*again|last.*menu"), 6, _menu_repeat
    ),
    PolicyOverride(
        "clarify",
        _pattern(r"^\s*(?:what|huh|excuse me|pardon(?: me)?|sorry)\s*[?.!]*\s*$"),
        5,
        _clarify,
    ),
)


def build_default_overrides() -> PolicyOverrideTable:
    return PolicyOverrideTable(DEFAULT_OVERRIDES)
