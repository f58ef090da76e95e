"""Tests for keyword intent classification."""

import pytest

from concierge.conversation.intent_classifier import KeywordIntentClassifier
from concierge.schemas.conversation_schema import Intent


@pytest.fixture
def classifier():
    return KeywordIntentClassifier(confidence_weight=2.0)


class TestKeywordIntentClassifier:
    def test_booking_request(self, classifier):
        intent, confidence = classifier.classify_intent("Can I book a table for tonight?", [])
        assert intent == Intent.BOOKING
        assert confidence == pytest.approx(1.0)

    def test_menu_question(self, classifier):
        intent, _ = classifier.classify_intent("What's on the menu?", [])
        assert intent == Intent.MENU

    def test_lead_inquiry(self, classifier):
        intent, _ = classifier.classify_intent("I'd like information about your services", [])
        assert intent == Intent.LEAD

    def test_silence_falls_back_to_lead(self, classifier):
        intent, confidence = classifier.classify_intent("hello", [])
        assert intent == Intent.LEAD
        assert confidence == 0.0

    def test_tie_falls_back_to_lead(self):
        classifier = KeywordIntentClassifier(
            confidence_weight=0,
            utterance_keywords={Intent.BOOKING: ("pasta",), Intent.MENU: ("pasta",)},
        )
        intent, confidence = classifier.classify_intent("pasta please", [])
        assert intent == Intent.LEAD
        assert confidence == 0.0

    def test_history_breaks_silence(self, classifier):
        intent, _ = classifier.classify_intent("sounds good", ["I want to book a table"])
        assert intent == Intent.BOOKING

    def test_keywords_match_word_prefixes(self, classifier):
        scores = classifier.score("any specials tonight?", [])
        assert scores[Intent.MENU] > 0

    def test_scores_cover_every_intent(self, classifier):
        assert set(classifier.score("hi", [])) == set(Intent)
