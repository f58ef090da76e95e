"""
In-memory session store with per-call serialization and CRM action tracking.

The store owns every ``Session`` for the lifetime of the process. It knows
nothing about dialogue: it merges fields, appends transcript entries and CRM
actions, and sweeps sessions that ended more than the retention window ago.

Mutations run under one re-entrant lock, so each operation is atomic.
``call_lock`` hands out a per-call ``asyncio.Lock`` that the router holds for
a whole turn, which serializes turns for the same call. ``begin_crm_action``
is the atomic check-and-create used for duplicate suppression: it refuses to
open a second action of a type that is already pending or succeeded.

Usage:
    store = SessionStore()
    session = store.create("call-123", CallMetadata(customer_number="+15551234567"))
    store.update_collected("call-123", name="Sarah Johnson")
    action = store.begin_crm_action("call-123", CRMActionType.CONTACT_UPSERT, payload)
    if action is not None:
        ...  # call the CRM
        store.update_crm_action("call-123", action.idempotency_key, status=CRMActionStatus.SUCCESS)
"""

import asyncio
import threading
import time
import uuid
from contextlib import suppress
from typing import Any, Callable, Optional

from concierge.config import settings
from concierge.logging_context import get_call_logger
from concierge.schemas.conversation_schema import (
    CallMetadata,
    CollectedData,
    Session,
    TranscriptEntry,
)
from concierge.schemas.crm_schema import (
    CRMAction,
    CRMActionStatus,
    CRMActionType,
    CRMPayload,
)
from concierge.utils import phones_match, redact_mapping

logger = get_call_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"call_id", "created_at", "metadata"})
# Append-only or one-way fields, changed only through their own operations.
_MANAGED_FIELDS = frozenset({"collected", "transcript", "crm_actions", "is_active"})
_ACTION_FIELDS = frozenset({"status", "record_id", "skipped", "error"})

VALID_STATUS_TRANSITIONS: dict[CRMActionStatus, set[CRMActionStatus]] = {
    CRMActionStatus.PENDING: {CRMActionStatus.SUCCESS, CRMActionStatus.FAILED},
    CRMActionStatus.SUCCESS: set(),
    CRMActionStatus.FAILED: set(),
}


class SessionConflictError(Exception):
    """Raised when a call id is already live or was deleted earlier."""

    def __init__(self, call_id: str, reason: str) -> None:
        self.call_id = call_id
        super().__init__(f"Cannot create session '{call_id}': {reason}")


class SessionStore:
    """Owns session records and their mutation API."""

    def __init__(
        self,
        retention_hours: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        hours = retention_hours if retention_hours is not None else settings.session.retention_hours
        self._retention_seconds = hours * 3600
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._deleted: set[str] = set()
        self._lock = threading.RLock()
        self._call_locks: dict[str, asyncio.Lock] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def _touch(self, session: Session) -> None:
        session.last_activity = max(session.last_activity, self._clock())

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    def create(self, call_id: str, metadata: Optional[CallMetadata] = None) -> Session:
        """Create and register a new session."""
        with self._lock:
            if call_id in self._sessions:
                raise SessionConflictError(call_id, "session already exists")
            if call_id in self._deleted:
                raise SessionConflictError(call_id, "session was deleted")
            now = self._clock()
            session = Session(
                call_id=call_id,
                created_at=now,
                last_activity=now,
                metadata=metadata or CallMetadata(),
            )
            self._sessions[call_id] = session
        logger.info("Session created: %s", call_id)
        return session

    def get(self, call_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(call_id)

    def update(self, call_id: str, **fields: Any) -> Optional[Session]:
        """Merge top-level fields into a session and bump its activity time."""
        frozen = _IMMUTABLE_FIELDS & fields.keys()
        if frozen:
            raise ValueError(f"Session fields are immutable: {sorted(frozen)}")
        managed = _MANAGED_FIELDS & fields.keys()
        if managed:
            raise ValueError(f"Session fields have dedicated mutators: {sorted(managed)}")
        unknown = fields.keys() - Session.model_fields.keys()
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")

        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("Update for unknown session %s ignored", call_id)
                return None
            for name, value in fields.items():
                setattr(session, name, value)
            self._touch(session)
            return session

    def update_collected(self, call_id: str, **slots: Any) -> Optional[Session]:
        """Write slot values into ``collected``."""
        unknown = slots.keys() - CollectedData.model_fields.keys()
        if unknown:
            raise ValueError(f"Unknown slots: {sorted(unknown)}")

        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("Slot update for unknown session %s ignored", call_id)
                return None
            for name, value in slots.items():
                setattr(session.collected, name, value)
            self._touch(session)
        logger.debug("Collected updated: %s", redact_mapping(slots))
        return session

    def add_transcript(self, call_id: str, entry: TranscriptEntry) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("Transcript entry for unknown session %s dropped", call_id)
                return None
            session.transcript.append(entry)
            self._touch(session)
            return session

    def deactivate(self, call_id: str) -> Optional[Session]:
        """Mark a session inactive. Only the first call has any effect."""
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                return None
            if session.is_active:
                session.is_active = False
                self._touch(session)
                logger.info("Session deactivated: %s", call_id)
            return session

    def delete(self, call_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(call_id, None) is not None
            if removed:
                self._deleted.add(call_id)
                self._call_locks.pop(call_id, None)
        if removed:
            logger.info("Session deleted: %s", call_id)
        return removed

    def list_active(self) -> list[Session]:
        with self._lock:
            return [s for s in self._sessions.values() if s.is_active]

    def call_lock(self, call_id: str) -> asyncio.Lock:
        """Return the lock that serializes turns for ``call_id``."""
        with self._lock:
            lock = self._call_locks.get(call_id)
            if lock is None:
                lock = asyncio.Lock()
                self._call_locks[call_id] = lock
            return lock

    # ------------------------------------------------------------------ #
    # CRM action tracking
    # ------------------------------------------------------------------ #

    def add_crm_action(self, call_id: str, action: CRMAction) -> Optional[Session]:
        """Append an action record. Idempotency keys must be unique per session."""
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("CRM action for unknown session %s dropped", call_id)
                return None
            if any(a.idempotency_key == action.idempotency_key for a in session.crm_actions):
                raise ValueError(f"Idempotency key already used: {action.idempotency_key}")
            session.crm_actions.append(action)
            self._touch(session)
            return session

    def begin_crm_action(
        self,
        call_id: str,
        action_type: CRMActionType,
        payload: CRMPayload,
    ) -> Optional[CRMAction]:
        """Atomically open a pending action unless one is already pending or succeeded.

        Returns the new action, or None when the side effect is already in
        flight or done for this session.
        """
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("CRM action for unknown session %s not started", call_id)
                return None
            for existing in session.crm_actions:
                if existing.type == action_type and existing.status in (
                    CRMActionStatus.PENDING,
                    CRMActionStatus.SUCCESS,
                ):
                    logger.info(
                        "Suppressing duplicate %s (existing %s is %s)",
                        action_type.value,
                        existing.idempotency_key,
                        existing.status.value,
                    )
                    return None
            action = CRMAction(
                type=action_type,
                idempotency_key=uuid.uuid4().hex,
                data=payload,
                timestamp=self._clock(),
            )
            session.crm_actions.append(action)
            self._touch(session)
        logger.info("CRM action started: %s (%s)", action_type.value, action.idempotency_key)
        return action

    def update_crm_action(
        self, call_id: str, idempotency_key: str, **partial: Any
    ) -> Optional[Session]:
        """Update an action by key.

        An unknown key or an illegal status transition is logged and left
        alone; neither is an error for the caller.
        """
        unknown = partial.keys() - _ACTION_FIELDS
        if unknown:
            raise ValueError(f"CRM action fields not updatable: {sorted(unknown)}")

        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                logger.warning("CRM update for unknown session %s ignored", call_id)
                return None
            action = next(
                (a for a in session.crm_actions if a.idempotency_key == idempotency_key),
                None,
            )
            if action is None:
                logger.warning("No CRM action with key %s; update ignored", idempotency_key)
                return session

            new_status = partial.get("status")
            if new_status is not None:
                new_status = CRMActionStatus(new_status)
                if new_status != action.status and new_status not in VALID_STATUS_TRANSITIONS[action.status]:
                    logger.warning(
                        "Illegal CRM status change %s -> %s for %s; ignored",
                        action.status.value,
                        new_status.value,
                        idempotency_key,
                    )
                    return session
                partial["status"] = new_status

            for name, value in partial.items():
                setattr(action, name, value)
            self._touch(session)
            return session

    # ------------------------------------------------------------------ #
    # Lookup, stats, and cleanup
    # ------------------------------------------------------------------ #

    def get_session_by_phone(self, phone: str) -> Optional[Session]:
        """Find the most recent session whose caller number or collected phone matches."""
        with self._lock:
            candidates = sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)
        for session in candidates:
            numbers = (session.metadata.customer_number, session.collected.phone)
            if any(n and phones_match(n, phone) for n in numbers):
                return session
        return None

    def get_stats(self) -> dict[str, Any]:
        """Summarize the sessions currently held."""
        with self._lock:
            sessions = list(self._sessions.values())
        now = self._clock()
        by_intent: dict[str, int] = {}
        for session in sessions:
            key = session.current_intent.value if session.current_intent else "unassigned"
            by_intent[key] = by_intent.get(key, 0) + 1
        durations = [s.last_activity - s.created_at for s in sessions]
        active = sum(1 for s in sessions if s.is_active)
        oldest = min(sessions, key=lambda s: s.created_at, default=None)
        return {
            "total": len(sessions),
            "active": active,
            "inactive": len(sessions) - active,
            "by_intent": by_intent,
            "avg_duration_seconds": sum(durations) / len(durations) if durations else 0.0,
            "oldest_session_age_seconds": now - oldest.created_at if oldest else None,
        }

    def sweep(self, now: Optional[float] = None) -> int:
        """Delete inactive sessions whose last activity is past the retention window."""
        now = self._clock() if now is None else now
        with self._lock:
            snapshot = list(self._sessions.items())
        expired = [
            call_id
            for call_id, session in snapshot
            if not session.is_active and now - session.last_activity > self._retention_seconds
        ]
        removed = sum(1 for call_id in expired if self.delete(call_id))
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.sweep()

    def start_sweeper(self, interval_seconds: Optional[float] = None) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        interval = (
            interval_seconds
            if interval_seconds is not None
            else settings.session.sweep_interval_minutes * 60
        )
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(interval))
        return self._sweeper

    async def shutdown(self) -> None:
        """Stop the sweeper and drop every session."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        with self._lock:
            count = len(self._sessions)
            self._deleted.update(self._sessions)
            self._sessions.clear()
            self._call_locks.clear()
        logger.info("Session store shut down (%d session(s) dropped)", count)
