"""Reservation availability data models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ServicePeriod(str, Enum):
    LUNCH = "lunch"
    DINNER = "dinner"


class TimeSlot(BaseModel):
    """A single seating time on one day."""
    time: str
    period: ServicePeriod
    max_party_size: int
    remaining_slots: int = Field(ge=0)

    @property
    def available(self) -> bool:
        return self.remaining_slots > 0


class DayAvailability(BaseModel):
    """All seating times for one date."""
    date: str
    day_name: str
    is_open: bool = True
    slots: list[TimeSlot] = Field(default_factory=list)

    def find(self, time: str) -> Optional[TimeSlot]:
        for slot in self.slots:
            if slot.time == time:
                return slot
        return None


class ReservationHold(BaseModel):
    """A committed hold against a time slot."""
    date: str
    time: str
    party_size: int
    name: Optional[str] = None
    reference: str
