"""Shared test fixtures and helpers."""

from datetime import date, timedelta
from typing import Optional

import pytest

from concierge.agents.router import AgentRouter
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import PatternSlotExtractor
from concierge.schemas.booking_schema import DayAvailability, ServicePeriod, TimeSlot
from concierge.schemas.conversation_schema import (
    CallMetadata,
    Session,
    Speaker,
    TranscriptEntry,
)
from concierge.tools.availability import AvailabilityBoard
from concierge.tools.crm import MockCRMService
from concierge.tools.menu import MenuCatalog

# A Tuesday, so "Monday" resolves to a closed day six days out.
TODAY = date(2026, 3, 17)
TODAY_ISO = TODAY.isoformat()
TOMORROW_ISO = (TODAY + timedelta(days=1)).isoformat()
NEXT_MONDAY_ISO = (TODAY + timedelta(days=6)).isoformat()


def fixed_today() -> date:
    return TODAY


def make_day(
    iso_date: str,
    slots: Optional[dict[str, int]] = None,
    is_open: bool = True,
    max_party_size: int = 8,
) -> DayAvailability:
    """Helper to build one day of dinner seatings: ``{"19:00": remaining}``."""
    return DayAvailability(
        date=iso_date,
        day_name=date.fromisoformat(iso_date).strftime("%A"),
        is_open=is_open,
        slots=[
            TimeSlot(
                time=t,
                period=ServicePeriod.DINNER,
                max_party_size=max_party_size,
                remaining_slots=remaining,
            )
            for t, remaining in (slots or {}).items()
        ],
    )


def make_board(today_slots: Optional[dict[str, int]] = None) -> AvailabilityBoard:
    """Board with today, tomorrow, and a closed Monday."""
    return AvailabilityBoard.from_days([
        make_day(TODAY_ISO, today_slots or {"18:30": 2, "19:00": 2, "20:00": 2}),
        make_day(TOMORROW_ISO, {"19:00": 3}),
        make_day(NEXT_MONDAY_ISO, is_open=False),
    ])


def make_session(
    store: SessionStore,
    call_id: str = "call-1",
    metadata: Optional[CallMetadata] = None,
    **collected,
) -> Session:
    """Helper to create a session with some slots already filled."""
    session = store.create(call_id, metadata)
    if collected:
        store.update_collected(call_id, **collected)
    return session


def add_agent_line(store: SessionStore, session: Session, text: str) -> None:
    store.add_transcript(session.call_id, TranscriptEntry(who=Speaker.AGENT, text=text))


async def say(router: AgentRouter, session: Session, text: str) -> str:
    """Append the caller line the way the transport does, then run the turn."""
    router.store.add_transcript(session.call_id, TranscriptEntry(who=Speaker.CALLER, text=text))
    return await router.process_turn(session, text)


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def availability():
    return make_board()


@pytest.fixture
def catalog():
    return MenuCatalog()


@pytest.fixture
def crm():
    return MockCRMService(enabled=True)


@pytest.fixture
def extractor():
    return PatternSlotExtractor(today=fixed_today)


@pytest.fixture
def router(store, availability, catalog, crm):
    return AgentRouter.build(
        store, availability=availability, catalog=catalog, crm=crm, today=fixed_today
    )
