"""Response builders that fill collected details into spoken sentences."""

from datetime import date
from typing import Optional

from concierge.config import settings
from concierge.prompts.system_prompts import BOOKING_ASK_NAME
from concierge.utils import format_date_for_speech, format_time_for_speech, spell_out


READBACK_PREFIX = "Let me confirm your reservation:"


def speak_date_time(date_time: str, today: Optional[date] = None) -> tuple[str, str]:
    """Split ``YYYY-MM-DD HH:MM`` into spoken date and time."""
    day, clock = date_time.split(" ")
    return format_date_for_speech(day, today), format_time_for_speech(clock)


def _on(spoken_date: str) -> str:
    return spoken_date if spoken_date in ("today", "tomorrow") else f"on {spoken_date}"


def build_lead_confirmation(name: str, email: str, ask_interest: bool = False) -> str:
    """Final lead response, reading the email back letter by letter."""
    closing = (
        "In the meantime, is there anything specific you're interested in?"
        if ask_interest
        else "Is there anything else I can help you with?"
    )
    return (
        f"Thank you, {name}! I have your email as {spell_out(email)}. "
        f"Someone from our team will reach out {settings.business.lead_followup_window}. "
        f"{closing}"
    )


def build_lead_follow_up(name: str) -> str:
    return (
        f"You're all set, {name}. Someone from our team will be in touch "
        f"{settings.business.lead_followup_window}. Is there anything else I can help you with?"
    )


def build_lead_interest_noted(use_case: str) -> str:
    return (
        f"Thanks for sharing that. I've passed your interest in {use_case} along to our team. "
        f"Is there anything else I can help you with?"
    )


def build_ask_date_time(party_size: int) -> str:
    guests = "one" if party_size == 1 else str(party_size)
    return f"Perfect, a table for {guests}. What date and time would you like?"


def build_availability_confirmed(
    party_size: int, date_time: str, today: Optional[date] = None
) -> str:
    spoken_date, spoken_time = speak_date_time(date_time, today)
    return (
        f"Great news! I have a table for {party_size} {_on(spoken_date)} at {spoken_time}. "
        f"{BOOKING_ASK_NAME}"
    )


def build_reservation_readback(
    name: str,
    party_size: int,
    date_time: str,
    special_requests: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    spoken_date, spoken_time = speak_date_time(date_time, today)
    extra = f", noting: {special_requests}" if special_requests else ""
    return (
        f"{READBACK_PREFIX} {name}, party of {party_size}, "
        f"{_on(spoken_date)} at {spoken_time}{extra}. Is that correct?"
    )


def build_reservation_confirmed(
    name: str, party_size: int, date_time: str, today: Optional[date] = None
) -> str:
    spoken_date, spoken_time = speak_date_time(date_time, today)
    return (
        f"Perfect! Your reservation is confirmed for {name}, party of {party_size}, "
        f"{_on(spoken_date)} at {spoken_time}. We look forward to seeing you!"
    )


def build_reservation_follow_up(
    party_size: int, date_time: str, today: Optional[date] = None
) -> str:
    spoken_date, spoken_time = speak_date_time(date_time, today)
    return (
        f"Your table for {party_size} {_on(spoken_date)} at {spoken_time} is all set. "
        f"Is there anything else I can help you with?"
    )


def build_unavailable_response(
    party_size: int,
    date_time: str,
    alternatives_text: str,
    slot_taken: bool = False,
    today: Optional[date] = None,
) -> str:
    spoken_date, spoken_time = speak_date_time(date_time, today)
    if slot_taken:
        lead = f"I'm sorry, but {spoken_time} {_on(spoken_date)} was just booked."
    else:
        lead = (
            f"I'm sorry, we don't have a table for {party_size} "
            f"{_on(spoken_date)} at {spoken_time}."
        )
    return f"{lead} {alternatives_text}"


def build_alternatives_text(
    party_size: int, offers: list[tuple[str, str]], today: Optional[date] = None
) -> str:
    """Voice list of alternative ``(date, time)`` offers, grouped by day."""
    if not offers:
        return (
            f"I don't see any openings for a party of {party_size} in the coming weeks. "
            f"Would you like us to call you if something opens up?"
        )
    by_day: dict[str, list[str]] = {}
    for day, clock in offers:
        by_day.setdefault(day, []).append(format_time_for_speech(clock))
    phrases = []
    for day, times in by_day.items():
        listed = times[0] if len(times) == 1 else ", ".join(times[:-1]) + f" or {times[-1]}"
        phrases.append(f"{_on(format_date_for_speech(day, today))} at {listed}")
    return f"I do have openings {'; or '.join(phrases)}. Would any of those work for you?"
