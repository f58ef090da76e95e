"""CRM action records and their typed payloads."""

import time
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class CRMActionType(str, Enum):
    CONTACT_UPSERT = "contact_upsert"
    RESERVATION_CREATE = "reservation_create"
    DEAL_CREATE = "deal_create"


class CRMActionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ContactPayload(BaseModel):
    """Fields sent to the contact upsert capability."""

    kind: Literal["contact"] = "contact"
    email: str
    firstname: str
    lastname: str = ""
    phone: Optional[str] = None
    lead_source: str = "Voice Agent"
    lead_status: str = "NEW"
    lifecycle_stage: str = "lead"
    notes: Optional[str] = None


class ReservationPayload(BaseModel):
    """Fields sent to the reservation capability."""

    kind: Literal["reservation"] = "reservation"
    name: str
    party_size: int
    date: str
    time: str
    phone: Optional[str] = None
    email: Optional[str] = None
    special_requests: Optional[str] = None
    source: str = "Voice Agent"


class DealPayload(BaseModel):
    """Fields sent to the deal capability once a lead states a use case."""

    kind: Literal["deal"] = "deal"
    deal_name: str
    contact_id: Optional[str] = None
    description: str
    pipeline: str = "default"
    stage: str = "appointmentscheduled"


CRMPayload = Annotated[
    Union[ContactPayload, ReservationPayload, DealPayload],
    Field(discriminator="kind"),
]


class CRMAction(BaseModel):
    """One tracked attempt at an external side effect."""

    type: CRMActionType
    status: CRMActionStatus = CRMActionStatus.PENDING
    idempotency_key: str
    data: CRMPayload
    record_id: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None
    timestamp: float = Field(default_factory=time.time)
