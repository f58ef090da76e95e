"""Session, transcript, and collected-slot models for a live call."""

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from concierge.schemas.crm_schema import CRMAction


class Intent(str, Enum):
    LEAD = "lead"
    BOOKING = "booking"
    MENU = "menu"


class Speaker(str, Enum):
    CALLER = "caller"
    AGENT = "agent"


class TranscriptEntry(BaseModel):
    """A single utterance in the call transcript."""

    who: Speaker
    text: str
    timestamp: float = Field(default_factory=time.time)
    confidence: Optional[float] = None


class CollectedData(BaseModel):
    """Slots gathered from the caller across all intents."""

    model_config = ConfigDict(validate_assignment=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    party_size: Optional[int] = Field(default=None, ge=1)
    date_time: Optional[str] = None
    use_case: Optional[str] = None
    special_requests: Optional[str] = None

    def filled(self) -> dict[str, Any]:
        """Return only the slots that hold a value."""
        return self.model_dump(exclude_none=True)


class CallMetadata(BaseModel):
    """Context attached when the call starts. Never changes afterward."""

    model_config = ConfigDict(frozen=True)

    customer_number: Optional[str] = None
    customer_name: Optional[str] = None
    assistant_id: Optional[str] = None
    phone_number_id: Optional[str] = None
    extra: dict[str, str] = Field(default_factory=dict)


class Session(BaseModel):
    """Full mutable state of one in-progress or recently ended call."""

    model_config = ConfigDict(validate_assignment=True)

    call_id: str
    created_at: float = Field(default_factory=time.time)
    last_activity: float = Field(default_factory=time.time)
    current_intent: Optional[Intent] = None
    last_intent: Optional[Intent] = None
    collected: CollectedData = Field(default_factory=CollectedData)
    last_menu_read: list[str] = Field(default_factory=list)
    transcript: list[TranscriptEntry] = Field(default_factory=list)
    crm_actions: list[CRMAction] = Field(default_factory=list)
    is_active: bool = True
    metadata: CallMetadata = Field(default_factory=CallMetadata)
