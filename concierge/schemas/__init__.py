from concierge.schemas.conversation_schema import (
    CallMetadata,
    CollectedData,
    Intent,
    Session,
    Speaker,
    TranscriptEntry,
)
from concierge.schemas.crm_schema import (
    ContactPayload,
    CRMAction,
    CRMActionStatus,
    CRMActionType,
    DealPayload,
    ReservationPayload,
)
from concierge.schemas.slots_schema import BookingSlots, LeadSlots, MenuSlots, slots_for_intent

__all__ = [
    "CallMetadata", "CollectedData", "Intent", "Session", "Speaker", "TranscriptEntry",
    "ContactPayload", "CRMAction", "CRMActionStatus", "CRMActionType", "DealPayload",
    "ReservationPayload", "BookingSlots", "LeadSlots", "MenuSlots", "slots_for_intent",
]
