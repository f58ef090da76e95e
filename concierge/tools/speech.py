"""Speech capability interfaces.

The concierge never talks to an STT or TTS vendor directly. The transport
supplies objects satisfying these protocols, and ``CallEventHandler`` uses
them to turn caller audio into a turn and the reply back into audio.
"""

from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field


class TranscriptionResult(BaseModel):
    text: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    language: Optional[str] = None


class SynthesisResult(BaseModel):
    audio: bytes
    format: str = "mp3"


class SpeechToText(Protocol):
    async def transcribe(
        self, audio: bytes, options: Optional[dict[str, Any]] = None
    ) -> TranscriptionResult:
        ...


class TextToSpeech(Protocol):
    async def synthesize(
        self, text: str, options: Optional[dict[str, Any]] = None
    ) -> SynthesisResult:
        ...
