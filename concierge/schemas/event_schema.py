"""Transport-agnostic call lifecycle events.

The surrounding transport translates whatever its vendor sends into one of
these shapes before handing it to ``CallEventHandler``. Validation failures
are reported, never raised past the handler.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from concierge.schemas.conversation_schema import CallMetadata


class CallStartedEvent(BaseModel):
    type: Literal["call.started"]
    call_id: str = Field(min_length=1)
    metadata: CallMetadata = Field(default_factory=CallMetadata)


class TranscriptEvent(BaseModel):
    type: Literal["transcript.partial", "transcript.final"]
    call_id: str = Field(min_length=1)
    text: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class CallEndedEvent(BaseModel):
    type: Literal["call.ended"]
    call_id: str = Field(min_length=1)
    reason: Optional[str] = None


class FunctionCallEvent(BaseModel):
    type: Literal["function.call"]
    call_id: str = Field(min_length=1)
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


CallEvent = Annotated[
    Union[CallStartedEvent, TranscriptEvent, CallEndedEvent, FunctionCallEvent],
    Field(discriminator="type"),
]


class EventResult(BaseModel):
    """What the handler reports back to the transport."""
    received: bool = True
    response: Optional[str] = None
    error: Optional[str] = None
    end_call: bool = False
    transfer: bool = False
    audio: Optional[bytes] = None
