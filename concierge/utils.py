"""Shared utilities used across the voice concierge."""

import re
from datetime import date, datetime
from typing import Any, Mapping, Optional

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(\+?1[-.\s]?)?\(?\b([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})\b")

SENSITIVE_KEY_PARTS = ("email", "phone", "ssn")

NUMBER_WORDS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18,
    "nineteen": 19, "twenty": 20,
}


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(555) 123-4567")
        '5551234567'
        >>> normalize_phone("+1 555.123.4567")
        '+15551234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def phones_match(left: str, right: str) -> bool:
    """Compare two phone numbers on their last ten digits."""
    a = re.sub(r"[^\d]", "", left)[-10:]
    b = re.sub(r"[^\d]", "", right)[-10:]
    return bool(a) and a == b


def words_to_number(token: str) -> Optional[int]:
    """Convert ``"4"`` or ``"four"`` to 4. Returns None for anything else."""
    token = token.strip().lower()
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS.get(token)


def redact_text(text: Optional[str]) -> str:
    """Mask emails and phone numbers before text reaches a log line."""
    if not text:
        return ""
    masked = EMAIL_PATTERN.sub("[EMAIL]", text)
    return PHONE_PATTERN.sub("[PHONE]", masked)


def redact_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive keys masked and strings scrubbed."""
    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
            redacted[key] = "[REDACTED]" if value is not None else None
        elif isinstance(value, str):
            redacted[key] = redact_text(value)
        elif isinstance(value, Mapping):
            redacted[key] = redact_mapping(value)
        else:
            redacted[key] = value
    return redacted


def spell_out(value: str) -> str:
    """Spell a value character by character for read-back.

    Examples:
        >>> spell_out("ab@c.io")
        'a b at c dot i o'
    """
    spoken = {"@": "at", ".": "dot", "_": "underscore", "-": "dash", "+": "plus"}
    return " ".join(spoken.get(ch, ch) for ch in value if not ch.isspace())


def format_time_for_speech(hhmm: str) -> str:
    """Render ``19:00`` as ``7 PM`` and ``19:30`` as ``7:30 PM``."""
    parsed = datetime.strptime(hhmm.strip(), "%H:%M")
    hour = parsed.hour % 12 or 12
    suffix = "PM" if parsed.hour >= 12 else "AM"
    if parsed.minute:
        return f"{hour}:{parsed.minute:02d} {suffix}"
    return f"{hour} {suffix}"


def format_date_for_speech(iso_date: str, today: Optional[date] = None) -> str:
    """Render ``YYYY-MM-DD`` as ``today``, ``tomorrow``, or ``Friday, March 15``."""
    target = datetime.strptime(iso_date.strip(), "%Y-%m-%d").date()
    today = today or date.today()
    delta = (target - today).days
    if delta == 0:
        return "today"
    if delta == 1:
        return "tomorrow"
    return f"{target.strftime('%A')}, {target.strftime('%B')} {target.day}"
