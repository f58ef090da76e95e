"""
Mock table availability system.

In production, this would integrate with OpenTable, Resy, SevenRooms, or a
custom reservations backend via HTTP client. The mock keeps a seeded
schedule of seating times per day, each with a count of tables remaining.
``reserve_slot`` is an atomic check-and-decrement, so two callers racing for
the last table produce exactly one winner.
"""

import logging
import random
import threading
import uuid
from datetime import date, timedelta
from typing import Any, Optional

from concierge.config import settings
from concierge.schemas.booking_schema import (
    DayAvailability,
    ReservationHold,
    ServicePeriod,
    TimeSlot,
)

logger = logging.getLogger(__name__)

# Schedule generation parameters
LUNCH_TIMES = ["11:30", "12:00", "12:30", "13:00", "13:30", "14:00", "14:30"]
DINNER_TIMES = [
    "17:00", "17:30", "18:00", "18:30", "19:00", "19:30",
    "20:00", "20:30", "21:00", "21:30",
]
LUNCH_MAX_PARTY = 6
DINNER_MAX_PARTY = 8
MAX_TABLES_PER_SLOT = 4
CLOSED_WEEKDAY = 0  # Monday


def _minutes(hhmm: str) -> int:
    hour, minute = hhmm.split(":")
    return int(hour) * 60 + int(minute)


def generate_schedule(
    start: date, days: int, seed: int
) -> dict[str, DayAvailability]:
    """Generate a schedule of ``days`` days from ``start``, closed Mondays."""
    rng = random.Random(seed)
    schedule: dict[str, DayAvailability] = {}
    for offset in range(days):
        day = start + timedelta(days=offset)
        iso = day.isoformat()
        if day.weekday() == CLOSED_WEEKDAY:
            schedule[iso] = DayAvailability(date=iso, day_name=day.strftime("%A"), is_open=False)
            continue
        slots = [
            TimeSlot(
                time=t,
                period=ServicePeriod.LUNCH,
                max_party_size=LUNCH_MAX_PARTY,
                remaining_slots=rng.randint(0, MAX_TABLES_PER_SLOT),
            )
            for t in LUNCH_TIMES
        ] + [
            TimeSlot(
                time=t,
                period=ServicePeriod.DINNER,
                max_party_size=DINNER_MAX_PARTY,
                remaining_slots=rng.randint(0, MAX_TABLES_PER_SLOT),
            )
            for t in DINNER_TIMES
        ]
        schedule[iso] = DayAvailability(date=iso, day_name=day.strftime("%A"), slots=slots)
    return schedule


class AvailabilityBoard:
    """Seating availability with atomic reservation holds."""

    def __init__(
        self,
        schedule: Optional[dict[str, DayAvailability]] = None,
        start: Optional[date] = None,
        days: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> None:
        if schedule is None:
            schedule = generate_schedule(
                start or date.today(),
                days if days is not None else settings.booking.availability_days,
                seed if seed is not None else settings.booking.availability_seed,
            )
        self._schedule = schedule
        self._holds: dict[str, ReservationHold] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_days(cls, days: list[DayAvailability]) -> "AvailabilityBoard":
        return cls(schedule={d.date: d for d in days})

    def get_day(self, iso_date: str) -> Optional[DayAvailability]:
        return self._schedule.get(iso_date)

    def _find(self, iso_date: str, time: str) -> Optional[TimeSlot]:
        day = self._schedule.get(iso_date)
        if day is None or not day.is_open:
            return None
        return day.find(time)

    def is_slot_available(self, iso_date: str, time: str, party_size: int) -> bool:
        slot = self._find(iso_date, time)
        return slot is not None and slot.available and party_size <= slot.max_party_size

    def reserve_slot(
        self,
        iso_date: str,
        time: str,
        party_size: int,
        payload: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """Hold one table. Returns a hold reference, or None if the slot is gone."""
        with self._lock:
            slot = self._find(iso_date, time)
            if slot is None or not slot.available or party_size > slot.max_party_size:
                logger.info("Slot %s %s no longer available for %d", iso_date, time, party_size)
                return None
            slot.remaining_slots -= 1
            reference = f"HOLD-{uuid.uuid4().hex[:6].upper()}"
            self._holds[reference] = ReservationHold(
                date=iso_date,
                time=time,
                party_size=party_size,
                name=(payload or {}).get("name"),
                reference=reference,
            )
        logger.info("Slot reserved: %s %s for %d (%s)", iso_date, time, party_size, reference)
        return reference

    def release_slot(self, reference: str) -> bool:
        """Give a held table back, e.g. when the CRM write failed."""
        with self._lock:
            hold = self._holds.pop(reference, None)
            if hold is None:
                return False
            slot = self._find(hold.date, hold.time)
            if slot is not None:
                slot.remaining_slots += 1
        logger.info("Slot released: %s", reference)
        return True

    def get_hold(self, reference: str) -> Optional[ReservationHold]:
        return self._holds.get(reference)

    def get_available_slots(self, iso_date: str, party_size: int) -> list[TimeSlot]:
        day = self._schedule.get(iso_date)
        if day is None or not day.is_open:
            return []
        return [s for s in day.slots if s.available and party_size <= s.max_party_size]

    def suggest_alternatives(
        self,
        iso_date: str,
        time: str,
        party_size: int,
        limit: Optional[int] = None,
    ) -> list[tuple[str, str]]:
        """Closest open ``(date, time)`` pairs, same day first, then later days."""
        limit = limit or settings.booking.alternative_slots_offered
        target = _minutes(time)
        same_day = sorted(
            (s for s in self.get_available_slots(iso_date, party_size) if s.time != time),
            key=lambda s: abs(_minutes(s.time) - target),
        )
        offers = [(iso_date, s.time) for s in same_day[:limit]]
        if offers:
            return sorted(offers, key=lambda o: _minutes(o[1]))

        for day_iso in sorted(self._schedule):
            if day_iso <= iso_date:
                continue
            later = sorted(
                self.get_available_slots(day_iso, party_size),
                key=lambda s: abs(_minutes(s.time) - target),
            )
            if later:
                return sorted(((day_iso, s.time) for s in later[:limit]), key=lambda o: _minutes(o[1]))
        return []
