"""Tests for the call lifecycle adapter."""

from typing import Any, Optional

import pytest

from concierge.call_handler import CallEventHandler
from concierge.prompts.system_prompts import (
    BOOKING_GREETING,
    CALL_ENDED,
    CALL_GREETING,
    GENERIC_APOLOGY,
    LEAD_GREETING,
    TRANSFER_TO_HUMAN,
)
from concierge.schemas.conversation_schema import Speaker
from concierge.tools.speech import SynthesisResult, TranscriptionResult


class FakeSTT:
    def __init__(self, text: str, confidence: float = 0.9) -> None:
        self.text = text
        self.confidence = confidence

    async def transcribe(
        self, audio: bytes, options: Optional[dict[str, Any]] = None
    ) -> TranscriptionResult:
        return TranscriptionResult(text=self.text, confidence=self.confidence)


class FakeTTS:
    async def synthesize(
        self, text: str, options: Optional[dict[str, Any]] = None
    ) -> SynthesisResult:
        return SynthesisResult(audio=text.encode())



class FailingSpeech:
    async def transcribe(
        self, audio: bytes, options: Optional[dict[str, Any]] = None
    ) -> TranscriptionResult:
        raise ConnectionError("stt unavailable")

    async def synthesize(
        self, text: str, options: Optional[dict[str, Any]] = None
    ) -> SynthesisResult:
        raise ConnectionError("tts unavailable")


@pytest.fixture
def handler(store, router):
    return CallEventHandler(store, router)


def _final(call_id: str, text: str) -> dict:
    return {"type": "transcript.final", "call_id": call_id, "text": text}


class TestEventValidation:
    @pytest.mark.asyncio
    async def test_unknown_event_type(self, handler):
        result = await handler.handle_event({"type": "call.exploded", "call_id": "c1"})
        assert result.error.startswith("invalid event")
        assert result.response == GENERIC_APOLOGY

    @pytest.mark.asyncio
    async def test_missing_field(self, handler, store):
        result = await handler.handle_event({"type": "transcript.final", "call_id": "c1"})
        assert result.error == "invalid event: 1 error(s)"
        assert store.get("c1") is None

    @pytest.mark.asyncio
    async def test_empty_call_id(self, handler):
        result = await handler.handle_event({"type": "call.started", "call_id": ""})
        assert result.error is not None


class TestCallLifecycle:
    @pytest.mark.asyncio
    async def test_call_started_greets(self, handler, store):
        result = await handler.handle_event({
            "type": "call.started",
            "call_id": "c1",
            "metadata": {"customer_number": "+15551234567"},
        })
        assert result.response == CALL_GREETING
        session = store.get("c1")
        assert session.metadata.customer_number == "+15551234567"
        assert session.transcript[0].who == Speaker.AGENT

    @pytest.mark.asyncio
    async def test_duplicate_start_is_reported(self, handler):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_event({"type": "call.started", "call_id": "c1"})
        assert "already exists" in result.error

    @pytest.mark.asyncio
    async def test_agents_greet_after_call_greeting(self, handler):
        await handler.handle_event({"type": "call.started", "call_id": "lead"})
        result = await handler.handle_event(_final("lead", "I'd like information about your services"))
        assert result.response == LEAD_GREETING

        await handler.handle_event({"type": "call.started", "call_id": "booking"})
        result = await handler.handle_event(_final("booking", "I'd like to book a table"))
        assert result.response == BOOKING_GREETING

    @pytest.mark.asyncio
    async def test_final_transcript_runs_a_turn(self, handler, store):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_event(
            {**_final("c1", "What's on the menu?"), "confidence": 0.8}
        )
        assert result.response.endswith("Would you like to hear about anything else?")
        caller = [e for e in store.get("c1").transcript if e.who == Speaker.CALLER]
        assert caller[0].text == "What's on the menu?"
        assert caller[0].confidence == 0.8

    @pytest.mark.asyncio
    async def test_partial_transcript_is_ignored(self, handler, store):
        result = await handler.handle_event(
            {"type": "transcript.partial", "call_id": "c1", "text": "what's on"}
        )
        assert result.response is None
        assert result.error is None
        assert store.get("c1") is None

    @pytest.mark.asyncio
    async def test_transcript_without_start_creates_session(self, handler, store):
        result = await handler.handle_event(_final("c1", "What's on the menu?"))
        assert result.response is not None
        assert store.get("c1") is not None

    @pytest.mark.asyncio
    async def test_ended_call_ignores_transcripts(self, handler, store):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        assert (await handler.handle_event({"type": "call.ended", "call_id": "c1"})).error is None
        assert store.get("c1").is_active is False

        result = await handler.handle_event(_final("c1", "hello?"))
        assert result.error == "call has ended"

    @pytest.mark.asyncio
    async def test_deleted_session_is_not_recreated(self, handler, store):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        store.delete("c1")
        result = await handler.handle_event(_final("c1", "hello?"))
        assert result.error == "session was deleted"
        assert store.get("c1") is None

    @pytest.mark.asyncio
    async def test_end_for_unknown_call(self, handler):
        result = await handler.handle_event({"type": "call.ended", "call_id": "nope"})
        assert result.error == "unknown session"


class TestFunctionCalls:
    @pytest.mark.asyncio
    async def test_transfer_to_human(self, handler):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_event({
            "type": "function.call",
            "call_id": "c1",
            "name": "transfer_to_human",
            "parameters": {"reason": "complaint"},
        })
        assert result.transfer is True
        assert result.response == TRANSFER_TO_HUMAN

    @pytest.mark.asyncio
    async def test_end_call(self, handler, store):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_event(
            {"type": "function.call", "call_id": "c1", "name": "end_call"}
        )
        assert result.end_call is True
        assert result.response == CALL_ENDED
        assert store.get("c1").is_active is False

    @pytest.mark.asyncio
    async def test_unknown_function(self, handler):
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_event(
            {"type": "function.call", "call_id": "c1", "name": "order_pizza"}
        )
        assert result.error == "unknown function: order_pizza"

    @pytest.mark.asyncio
    async def test_function_for_unknown_call(self, handler):
        result = await handler.handle_event(
            {"type": "function.call", "call_id": "nope", "name": "end_call"}
        )
        assert result.error == "unknown session"


class TestAudio:
    @pytest.mark.asyncio
    async def test_audio_round_trip(self, store, router):
        handler = CallEventHandler(store, router, stt=FakeSTT("What's on the menu?"), tts=FakeTTS())
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_audio("c1", b"\x00\x01")
        assert result.response is not None
        assert result.audio == result.response.encode()

    @pytest.mark.asyncio
    async def test_silence_is_not_a_turn(self, store, router):
        handler = CallEventHandler(store, router, stt=FakeSTT("   "), tts=FakeTTS())
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_audio("c1", b"")
        assert result.response is None
        assert len(store.get("c1").transcript) == 1

    @pytest.mark.asyncio
    async def test_audio_without_stt_is_reported(self, handler):
        result = await handler.handle_audio("c1", b"")
        assert result.error == "speech-to-text not configured"
        assert result.response == GENERIC_APOLOGY

    @pytest.mark.asyncio
    async def test_transcription_failure_is_reported(self, store, router):
        handler = CallEventHandler(store, router, stt=FailingSpeech())
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_audio("c1", b"\x00")
        assert result.error == "transcription failed"
        assert result.response == GENERIC_APOLOGY
        assert len(store.get("c1").transcript) == 1

    @pytest.mark.asyncio
    async def test_synthesis_failure_keeps_text_reply(self, store, router):
        handler = CallEventHandler(
            store, router, stt=FakeSTT("What's on the menu?"), tts=FailingSpeech()
        )
        await handler.handle_event({"type": "call.started", "call_id": "c1"})
        result = await handler.handle_audio("c1", b"\x00")
        assert result.error is None
        assert result.response
        assert result.audio is None
