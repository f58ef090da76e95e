"""
CRM capability interface and in-memory mock.

In production, this would wrap HubSpot for contacts and deals and an
Airtable or reservations base for bookings. Every operation takes the
idempotency key of the tracked ``CRMAction``; the mock honours it, so a
replayed call returns the record created the first time.

When the CRM is switched off (``CRM_ENABLED=false``) each operation returns
the "not configured" sentinel instead of failing.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, TypedDict

from concierge.config import settings
from concierge.schemas.crm_schema import ContactPayload, DealPayload, ReservationPayload

logger = logging.getLogger(__name__)


class CRMResult(TypedDict, total=False):
    """Outcome of a CRM write."""

    success: bool
    id: str
    skipped: bool
    reason: str
    error: str


NOT_CONFIGURED: CRMResult = {"success": False, "skipped": True, "reason": "not_configured"}


class CRMError(Exception):
    """Raised by a CRM backend when a write fails outright."""


class CRMService(Protocol):
    async def upsert_contact(self, fields: ContactPayload, idempotency_key: str) -> CRMResult:
        ...

    async def create_deal(
        self, fields: DealPayload, contact_id: Optional[str], idempotency_key: str
    ) -> CRMResult:
        ...

    async def create_reservation(
        self, fields: ReservationPayload, idempotency_key: str
    ) -> CRMResult:
        ...


class MockCRMService:
    """In-memory CRM with idempotent writes.

    ``fail_operations`` names operations that should raise ``CRMError``,
    which lets tests exercise the failure path.
    """

    def __init__(
        self,
        enabled: Optional[bool] = None,
        fail_operations: Optional[set[str]] = None,
        latency: float = 0.0,
    ) -> None:
        self.enabled = settings.crm.enabled if enabled is None else enabled
        self.fail_operations = set(fail_operations or ())
        self.latency = latency
        self.contacts: dict[str, dict[str, Any]] = {}
        self.deals: dict[str, dict[str, Any]] = {}
        self.reservations: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self._by_key: dict[str, str] = {}

    async def _enter(self, operation: str, idempotency_key: str) -> Optional[CRMResult]:
        self.calls.append((operation, idempotency_key))
        await asyncio.sleep(self.latency)
        if not self.enabled:
            logger.warning("CRM not configured; %s skipped", operation)
            return NOT_CONFIGURED
        if operation in self.fail_operations:
            raise CRMError(f"{operation} failed")
        if idempotency_key in self._by_key:
            logger.info("Replayed %s for key %s", operation, idempotency_key)
            return {"success": True, "id": self._by_key[idempotency_key]}
        return None

    def _store(self, table: dict[str, dict[str, Any]], prefix: str, key: str, record: dict) -> CRMResult:
        record_id = f"{prefix}-{uuid.uuid4().hex[:6].upper()}"
        record.update(id=record_id, created_at=datetime.now(timezone.utc).isoformat())
        table[record_id] = record
        self._by_key[key] = record_id
        return {"success": True, "id": record_id}

    async def upsert_contact(self, fields: ContactPayload, idempotency_key: str) -> CRMResult:
        early = await self._enter("upsert_contact", idempotency_key)
        if early is not None:
            return early
        for record_id, contact in self.contacts.items():
            if contact["email"] == fields.email:
                contact.update(fields.model_dump(exclude_none=True))
                self._by_key[idempotency_key] = record_id
                logger.info("Contact updated: %s", record_id)
                return {"success": True, "id": record_id}
        result = self._store(self.contacts, "CON", idempotency_key, fields.model_dump())
        logger.info("Contact created: %s", result["id"])
        return result

    async def create_deal(
        self, fields: DealPayload, contact_id: Optional[str], idempotency_key: str
    ) -> CRMResult:
        early = await self._enter("create_deal", idempotency_key)
        if early is not None:
            return early
        record = fields.model_dump()
        record["contact_id"] = contact_id
        result = self._store(self.deals, "DEAL", idempotency_key, record)
        logger.info("Deal created: %s for contact %s", result["id"], contact_id)
        return result

    async def create_reservation(
        self, fields: ReservationPayload, idempotency_key: str
    ) -> CRMResult:
        early = await self._enter("create_reservation", idempotency_key)
        if early is not None:
            return early
        result = self._store(self.reservations, "RES", idempotency_key, fields.model_dump())
        logger.info(
            "Reservation created: %s on %s at %s", result["id"], fields.date, fields.time
        )
        return result

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        self.contacts.clear()
        self.deals.clear()
        self.reservations.clear()
        self.calls.clear()
        self._by_key.clear()
