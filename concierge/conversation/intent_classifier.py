"""
Intent classification behind a swappable interface.

The router only depends on ``IntentClassifier.classify_intent``. The default
``KeywordIntentClassifier`` scores each intent as its keyword hits in the
current utterance plus a weighted conversation confidence, the share of
that intent's conversation keywords seen across all caller turns. The
strictly highest score wins; ties and silence fall back to ``lead``.

Usage:
    classifier = KeywordIntentClassifier()
    intent, confidence = classifier.classify_intent(
        "Can I book a table for tonight?", history=[]
    )
    assert intent == Intent.BOOKING
"""

import logging
from typing import Optional, Protocol, Sequence

from concierge.config import settings
from concierge.conversation.selectors import CONVERSATION_KEYWORDS, count_keywords
from concierge.schemas.conversation_schema import Intent

logger = logging.getLogger(__name__)

DEFAULT_INTENT = Intent.LEAD

UTTERANCE_KEYWORDS: dict[Intent, tuple[str, ...]] = {
    Intent.BOOKING: (
        "reservation", "reserve", "book", "table", "dinner", "lunch",
        "party", "tonight", "tomorrow", "date", "time", "seat",
    ),
    Intent.MENU: (
        "menu", "food", "eat", "dish", "special", "what do you have",
        "appetizer", "entree", "dessert", "drink", "wine", "price",
    ),
    Intent.LEAD: (
        "information", "details", "tell me about", "learn more", "contact",
        "email", "call back", "interested",
    ),
}


class IntentClassifier(Protocol):
    """Anything that can map an utterance plus prior caller turns to an intent."""

    def classify_intent(self, text: str, history: Sequence[str]) -> tuple[Intent, float]:
        ...


class KeywordIntentClassifier:
    """Deterministic keyword scorer."""

    def __init__(
        self,
        confidence_weight: Optional[float] = None,
        utterance_keywords: Optional[dict[Intent, tuple[str, ...]]] = None,
        conversation_keywords: Optional[dict[Intent, tuple[str, ...]]] = None,
    ) -> None:
        self.confidence_weight = (
            confidence_weight
            if confidence_weight is not None
            else settings.routing.intent_confidence_weight
        )
        self.utterance_keywords = utterance_keywords or UTTERANCE_KEYWORDS
        self.conversation_keywords = conversation_keywords or CONVERSATION_KEYWORDS

    def score(self, text: str, history: Sequence[str]) -> dict[Intent, float]:
        """Combined score per intent for ``text`` given earlier caller turns."""
        conversation = " ".join([*history, text])
        scores: dict[Intent, float] = {}
        for intent in Intent:
            hits = count_keywords(text, self.utterance_keywords.get(intent, ()))
            keywords = self.conversation_keywords.get(intent, ())
            confidence = count_keywords(conversation, keywords) / len(keywords) if keywords else 0.0
            scores[intent] = hits + confidence * self.confidence_weight
        return scores

    def classify_intent(self, text: str, history: Sequence[str]) -> tuple[Intent, float]:
        scores = self.score(text, history)
        best = max(scores.values())
        leaders = [intent for intent, value in scores.items() if value == best]

        if best <= 0 or len(leaders) > 1:
            intent = DEFAULT_INTENT
        else:
            intent = leaders[0]

        total = sum(scores.values())
        confidence = scores[intent] / total if total > 0 else 0.0
        logger.debug(
            "Intent scores %s -> %s (%.2f)",
            {k.value: round(v, 2) for k, v in scores.items()},
            intent.value,
            confidence,
        )
        return intent, confidence
