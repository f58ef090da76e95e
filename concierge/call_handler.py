"""
Call lifecycle adapter between a voice transport and the conversation core.

The transport posts plain dicts; ``CallEventHandler`` validates them into
typed events, keeps the session store in step with the call, and returns an
``EventResult`` the transport can act on (speak ``response``, hang up on
``end_call``, bridge to staff on ``transfer``). Bad input is reported in the
result rather than raised.

Usage:
    handler = CallEventHandler(store, router)
    await handler.handle_event({"type": "call.started", "call_id": "c1"})
    result = await handler.handle_event(
        {"type": "transcript.final", "call_id": "c1", "text": "Book a table for two"}
    )
    print(result.response)
"""

import time
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from concierge.agents.router import AgentRouter
from concierge.conversation.selectors import describe
from concierge.conversation.session_store import SessionConflictError, SessionStore
from concierge.logging_context import bound_call_id, get_call_logger
from concierge.prompts.system_prompts import (
    CALL_ENDED,
    CALL_GREETING,
    GENERIC_APOLOGY,
    TRANSFER_TO_HUMAN,
)
from concierge.schemas.conversation_schema import Session, Speaker, TranscriptEntry
from concierge.schemas.event_schema import (
    CallEndedEvent,
    CallEvent,
    CallStartedEvent,
    EventResult,
    FunctionCallEvent,
    TranscriptEvent,
)
from concierge.tools.speech import SpeechToText, TextToSpeech
from concierge.utils import redact_mapping, redact_text

logger = get_call_logger(__name__)

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(CallEvent)


class CallEventHandler:
    """Turns call events into store updates and router turns."""

    def __init__(
        self,
        store: SessionStore,
        router: AgentRouter,
        stt: Optional[SpeechToText] = None,
        tts: Optional[TextToSpeech] = None,
    ) -> None:
        self.store = store
        self.router = router
        self.stt = stt
        self.tts = tts

    async def handle_event(self, payload: dict[str, Any]) -> EventResult:
        try:
            event = _EVENT_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            kind = payload.get("type") if isinstance(payload, dict) else None
            logger.warning("Malformed call event %r (%d error(s))", kind, exc.error_count())
            return EventResult(
                error=f"invalid event: {exc.error_count()} error(s)", response=GENERIC_APOLOGY
            )

        with bound_call_id(event.call_id):
            if isinstance(event, CallStartedEvent):
                return self._on_call_started(event)
            if isinstance(event, TranscriptEvent):
                if event.type == "transcript.partial":
                    logger.debug("Partial transcript: %s", redact_text(event.text))
                    return EventResult()
                return await self._on_transcript_final(event)
            if isinstance(event, CallEndedEvent):
                return self._on_call_ended(event)
            return self._on_function_call(event)

    async def handle_audio(self, call_id: str, audio: bytes) -> EventResult:
        """Transcribe caller audio, run the turn, and synthesize the reply.

        Speech failures come back as an ``EventResult`` with ``error`` set. A
        failed synthesis still returns the text response.
        """
        with bound_call_id(call_id):
            if self.stt is None:
                logger.warning("Audio received but no speech-to-text is configured")
                return EventResult(
                    error="speech-to-text not configured", response=GENERIC_APOLOGY
                )
            try:
                transcription = await self.stt.transcribe(audio)
            except Exception:
                logger.exception("Transcription failed")
                return EventResult(error="transcription failed", response=GENERIC_APOLOGY)
        if not transcription.text.strip():
            logger.info("Empty transcription for %s; nothing to answer", call_id)
            return EventResult()

        result = await self.handle_event(
            {
                "type": "transcript.final",
                "call_id": call_id,
                "text": transcription.text,
                "confidence": transcription.confidence,
            }
        )
        if self.tts is not None and result.response:
            with bound_call_id(call_id):
                try:
                    synthesis = await self.tts.synthesize(result.response)
                except Exception:
                    logger.exception("Speech synthesis failed; returning text only")
                else:
                    result.audio = synthesis.audio
        return result

    # ------------------------------------------------------------------ #
    # Event handlers
    # ------------------------------------------------------------------ #

    def _on_call_started(self, event: CallStartedEvent) -> EventResult:
        try:
            self.store.create(event.call_id, event.metadata)
        except SessionConflictError as exc:
            logger.warning("%s", exc)
            return EventResult(error=str(exc))
        self._say(event.call_id, CALL_GREETING)
        logger.info("Call started")
        return EventResult(response=CALL_GREETING)

    async def _on_transcript_final(self, event: TranscriptEvent) -> EventResult:
        session = self._session_for(event.call_id)
        if session is None:
            return EventResult(error="session was deleted")
        if not session.is_active:
            logger.warning("Transcript for an ended call ignored")
            return EventResult(error="call has ended")

        logger.info("Caller said: %s", redact_text(event.text))
        self.store.add_transcript(
            event.call_id,
            TranscriptEntry(
                who=Speaker.CALLER,
                text=event.text,
                timestamp=time.time(),
                confidence=event.confidence,
            ),
        )
        response = await self.router.process_turn(session, event.text)
        return EventResult(response=response)

    def _on_call_ended(self, event: CallEndedEvent) -> EventResult:
        session = self.store.deactivate(event.call_id)
        if session is None:
            logger.warning("call.ended for unknown session")
            return EventResult(error="unknown session")
        logger.info(
            "Call ended (%s): %s", event.reason or "hangup", redact_mapping(describe(session))
        )
        return EventResult()

    def _on_function_call(self, event: FunctionCallEvent) -> EventResult:
        if self.store.get(event.call_id) is None:
            logger.warning("Function call '%s' for unknown session", event.name)
            return EventResult(error="unknown session")

        reason = event.parameters.get("reason")
        if event.name == "transfer_to_human":
            logger.info("Transfer to human requested (reason: %s)", reason)
            self._say(event.call_id, TRANSFER_TO_HUMAN)
            return EventResult(response=TRANSFER_TO_HUMAN, transfer=True)
        if event.name == "end_call":
            logger.info("End call requested (reason: %s)", reason)
            self._say(event.call_id, CALL_ENDED)
            self.store.deactivate(event.call_id)
            return EventResult(response=CALL_ENDED, end_call=True)

        logger.warning("Unknown function call: %s", event.name)
        return EventResult(error=f"unknown function: {event.name}")

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _session_for(self, call_id: str) -> Optional[Session]:
        """Existing session, or a new one when the start event never arrived."""
        session = self.store.get(call_id)
        if session is not None:
            return session
        logger.warning("No session for transcript; creating one")
        try:
            return self.store.create(call_id)
        except SessionConflictError as exc:
            logger.warning("%s", exc)
            return None

    def _say(self, call_id: str, text: str) -> None:
        self.store.add_transcript(
            call_id, TranscriptEntry(who=Speaker.AGENT, text=text, timestamp=time.time())
        )
