"""
Slot extraction behind a swappable interface.

Each slot has a ``SlotDefinition``: a display name for prompts and an
extractor that tries ordered pattern heuristics, rejecting implausible
values (out-of-range party sizes, stop-words captured as names). The first
heuristic whose value passes validation wins. ``date`` and ``time`` are
helper slots so a correction can change one half of ``date_time``.
A miss returns None; that is normal, not an error.

Usage:
    extractor = PatternSlotExtractor()
    extractor.extract_slot("party_size", "a table for four people")  # -> 4
    extractor.extract_slot("name", "My name is Test User and email is ...")  # -> "Test User"
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Optional, Protocol

from concierge.config import settings
from concierge.utils import EMAIL_PATTERN, NUMBER_WORDS, PHONE_PATTERN, normalize_phone, words_to_number

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
MIN_USE_CASE_LENGTH = 5
MAX_USE_CASE_LENGTH = 200

_NAME = r"([A-Za-z][A-Za-z'\-]*(?:\s+[A-Za-z][A-Za-z'\-]*){0,3})"
NAME_PATTERNS = [
    re.compile(r"\bmy name is\s+" + _NAME, re.IGNORECASE),
    re.compile(r"\bname(?:['’]s| is)\s+" + _NAME, re.IGNORECASE),
    re.compile(r"\bthis is\s+" + _NAME, re.IGNORECASE),
    re.compile(r"\bcall me\s+" + _NAME, re.IGNORECASE),
    re.compile(r"\bi(?:['’]m| am)\s+" + _NAME, re.IGNORECASE),
    re.compile(r"\bunder(?: the name)?\s+" + _NAME, re.IGNORECASE),
]

# A captured name ends at the first of these words.
NAME_STOP_WORDS = {
    "and", "my", "email", "e-mail", "phone", "number", "is", "at", "from",
    "with", "here", "for", "to", "but", "please", "i", "the", "or", "so",
    "on", "calling", "party", "table", "reservation", "thanks", "thank",
}

# A capture starting with one of these is not a name ("I'm interested in...").
NOT_A_NAME = {
    "a", "an", "the", "interested", "looking", "calling", "just", "not", "sure",
    "trying", "wondering", "good", "fine", "ok", "okay", "here", "hoping",
    "planning", "thinking", "considering", "very", "really", "also", "still",
    "ready", "back", "glad", "happy", "sorry", "great", "perfect", "correct",
    "right", "wrong", "it", "that", "about", "going", "gonna", "hungry",
    "tonight", "tomorrow", "today", "people", "person", "table", "dinner", "lunch",
    "yes", "no", "yeah", "hi", "hello", "hey", "what", "how", "can", "could",
    "do", "does", "is", "are", "please", "menu", "book", "reservation",
    "free", "available", "busy", "booked", "flexible", "open", "new", "done",
}

# "I'm <word>" followed by a date or time describes plans, not a name.
SELF_INTRO_PATTERN = NAME_PATTERNS[4]
WHEN_AHEAD_PATTERN = re.compile(
    r"\s*(?:tonight|today|tomorrow|this evening|(?:mon|tues|wednes|thurs|fri|satur|sun)day|at\s+\d+|noon"
    r"|\d{1,2}(?::\d{2})?\s*[ap]\.?m)\b",
    re.IGNORECASE,
)

# A short reply such as "Sarah Johnson" or "It's Sarah" given when the name was asked.
BARE_NAME_PATTERN = re.compile(
    r"^\s*(?:it(?:'s| is)\s+|sure,?\s+)?([A-Za-z][A-Za-z'\-]*(?:\s+[A-Za-z][A-Za-z'\-]*){0,2})\s*[.!]?\s*$",
    re.IGNORECASE,
)

_NUM = r"(\d{1,3}|" + "|".join(sorted(NUMBER_WORDS, key=len, reverse=True)) + r")"
PARTY_SIZE_PATTERNS = [
    re.compile(r"\bparty of\s+" + _NUM + r"\b", re.IGNORECASE),
    re.compile(r"\btable for\s+" + _NUM + r"\b", re.IGNORECASE),
    re.compile(r"\bfor\s+" + _NUM + r"\s+(?:people|persons|guests|adults|of us)\b", re.IGNORECASE),
    re.compile(r"\b" + _NUM + r"\s+(?:people|persons|guests|adults)\b", re.IGNORECASE),
    re.compile(r"\b" + _NUM + r"\s+person\b", re.IGNORECASE),
    re.compile(r"\bthere (?:will be|are|'ll be)\s+" + _NUM + r"\b", re.IGNORECASE),
]

_MERIDIEM = r"(a\.?m\.?|p\.?m\.?)"
TIME_PATTERNS = [
    re.compile(r"\b(\d{1,2}):(\d{2})\s*" + _MERIDIEM + r"?", re.IGNORECASE),
    re.compile(r"\b(\d{1,2})\s*" + _MERIDIEM + r"(?![a-z])", re.IGNORECASE),
]
AT_HOUR_PATTERN = re.compile(
    r"\bat\s+(\d{1,2}|" + "|".join(w for w, n in NUMBER_WORDS.items() if n <= 12) + r")"
    r"(?:\s*o'?clock)?\b(?!\s*(?:people|persons|guests|:))",
    re.IGNORECASE,
)
WORD_TIME_PATTERN = re.compile(
    r"\b(" + "|".join(w for w, n in NUMBER_WORDS.items() if n <= 12) + r")\s*" + _MERIDIEM + r"(?![a-z])",
    re.IGNORECASE,
)

# "today's specials" names a menu, not a date.
NOT_POSSESSIVE = r"(?!['’]s\b)"

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
MONTHS = [
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
]
_MONTH_ALT = "|".join(m[:3] + r"(?:" + m[3:] + r")?" for m in MONTHS)
MONTH_DAY_PATTERN = re.compile(
    r"\b(" + _MONTH_ALT + r")\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b", re.IGNORECASE
)
DAY_MONTH_PATTERN = re.compile(
    r"\b(\d{1,2})(?:st|nd|rd|th)?\s+of\s+(" + _MONTH_ALT + r")\b", re.IGNORECASE
)
NUMERIC_DATE_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")

SPOKEN_EMAIL_PATTERN = re.compile(
    r"\b([a-z0-9._%+-]+)\s+at\s+([a-z0-9-]+(?:\s+dot\s+[a-z0-9-]+)*)\s+dot\s+([a-z]{2,})\b",
    re.IGNORECASE,
)

USE_CASE_KEYWORDS = [
    "interested in", "looking for", "want to know about", "need information about",
    "thinking about", "considering", "planning",
]

SPECIAL_REQUEST_KEYWORDS = [
    "birthday", "anniversary", "celebration", "window", "quiet", "allerg",
    "vegetarian", "vegan", "gluten", "wheelchair", "high chair", "booth",
]


def _clean_name(raw: str) -> Optional[str]:
    words: list[str] = []
    for word in raw.split():
        if word.lower() in NAME_STOP_WORDS:
            break
        words.append(word)
    if not words or words[0].lower() in NOT_A_NAME:
        return None
    if any(w.lower() in NOT_A_NAME for w in words):
        words = words[: next(i for i, w in enumerate(words) if w.lower() in NOT_A_NAME)]
    name = " ".join(w if any(c.isupper() for c in w[1:]) else w.capitalize() for w in words)
    return name or None


def _describes_plans(text: str, match: re.Match) -> bool:
    first_word = re.match(r"\S+", text[match.start(1):])
    return bool(WHEN_AHEAD_PATTERN.match(text, match.start(1) + first_word.end()))


def _validate_name(value: str) -> bool:
    return MIN_NAME_LENGTH <= len(value) <= MAX_NAME_LENGTH


def _validate_party_size(value: int) -> bool:
    return 1 <= value <= settings.booking.max_party_size


def _to_24h(hour: int, minute: int, meridiem: Optional[str]) -> Optional[str]:
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem.lower().startswith("p")
        if is_pm and hour != 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0
    elif hour > 23:
        return None
    return f"{hour:02d}:{minute:02d}"


def _sentence_containing(text: str, start: int) -> str:
    left = max(text.rfind(p, 0, start) for p in ".!?") + 1
    rights = [i for i in (text.find(p, start) for p in ".!?") if i != -1]
    right = min(rights) if rights else len(text)
    return text[left:right].strip()


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single slot to extract."""

    name: str
    display_name: str
    extractor: Callable[[str], Any]
    prompt_hint: str = ""


class SlotExtractor(Protocol):
    """Anything that can pull a named slot value out of an utterance."""

    def extract_slot(self, field_name: str, text: str) -> Optional[Any]:
        ...


class PatternSlotExtractor:
    """Ordered regex and keyword heuristics for every collected slot."""

    def __init__(
        self,
        today: Callable[[], date] = date.today,
        default_time: Optional[str] = None,
    ) -> None:
        self._today = today
        self._default_time = default_time or settings.booking.default_dinner_time
        self.definitions: dict[str, SlotDefinition] = {
            d.name: d
            for d in [
                SlotDefinition("name", "name", self.extract_name, "Ask for their name"),
                SlotDefinition("name_answer", "name", self.extract_name_answer),
                SlotDefinition("email", "email address", self.extract_email, "Ask for an email"),
                SlotDefinition("phone", "phone number", self.extract_phone, "Ask for a callback number"),
                SlotDefinition(
                    "party_size", "party size", self.extract_party_size, "Ask how many guests"
                ),
                SlotDefinition(
                    "date_time", "date and time", self.extract_date_time, "Ask when they'd like to dine"
                ),
                SlotDefinition("date", "date", self.extract_date),
                SlotDefinition("time", "time", self.extract_time),
                SlotDefinition(
                    "use_case", "what you're interested in", self.extract_use_case,
                    "Ask what they are interested in",
                ),
                SlotDefinition(
                    "special_requests", "special requests", self.extract_special_requests,
                    "Ask about any special occasion or dietary needs",
                ),
            ]
        }

    def extract_slot(self, field_name: str, text: str) -> Optional[Any]:
        if field_name not in self.definitions:
            raise ValueError(f"Unknown slot: {field_name}")
        if not text:
            return None
        value = self.definitions[field_name].extractor(text)
        if value is not None:
            logger.debug("Extracted slot '%s'", field_name)
        return value

    def display_name(self, field_name: str) -> str:
        return self.definitions[field_name].display_name

    # ------------------------------------------------------------------ #
    # Per-slot heuristics
    # ------------------------------------------------------------------ #

    def extract_name(self, text: str) -> Optional[str]:
        for pattern in NAME_PATTERNS:
            for match in pattern.finditer(text):
                if pattern is SELF_INTRO_PATTERN and _describes_plans(text, match):
                    continue
                name = _clean_name(match.group(1))
                if name and _validate_name(name):
                    return name
        return None

    def extract_name_answer(self, text: str) -> Optional[str]:
        """Name from a reply to "what name?": a phrase or the bare name itself."""
        named = self.extract_name(text)
        if named:
            return named
        match = BARE_NAME_PATTERN.match(text)
        if match is None or self.extract_date(text) or self.extract_time(text):
            return None
        name = _clean_name(match.group(1))
        if name and _validate_name(name):
            return name
        return None

    def extract_email(self, text: str) -> Optional[str]:
        match = EMAIL_PATTERN.search(text)
        if match:
            return match.group(0).lower()
        spoken = SPOKEN_EMAIL_PATTERN.search(text)
        if spoken:
            domain = re.sub(r"\s+dot\s+", ".", spoken.group(2), flags=re.IGNORECASE)
            return f"{spoken.group(1)}@{domain}.{spoken.group(3)}".lower()
        return None

    def extract_phone(self, text: str) -> Optional[str]:
        match = PHONE_PATTERN.search(text)
        if match:
            return normalize_phone(match.group(0))
        return None

    def extract_party_size(self, text: str) -> Optional[int]:
        for pattern in PARTY_SIZE_PATTERNS:
            match = pattern.search(text)
            if match:
                size = words_to_number(match.group(1))
                if size is not None and _validate_party_size(size):
                    return size
        return None

    def extract_time(self, text: str) -> Optional[str]:
        """Return ``HH:MM`` for the first clock time in ``text``."""
        lower = text.lower()
        if re.search(r"\bnoon\b", lower):
            return "12:00"
        match = TIME_PATTERNS[0].search(text)
        if match:
            return _to_24h(int(match.group(1)), int(match.group(2)), match.group(3))
        match = TIME_PATTERNS[1].search(text)
        if match:
            return _to_24h(int(match.group(1)), 0, match.group(2))
        match = WORD_TIME_PATTERN.search(text)
        if match:
            return _to_24h(words_to_number(match.group(1)) or 0, 0, match.group(2))
        match = AT_HOUR_PATTERN.search(text)
        if match:
            hour = words_to_number(match.group(1))
            if hour is not None and 1 <= hour <= 12:
                # Bare "at 7" means evening for a dinner reservation.
                return _to_24h(hour, 0, "pm" if hour <= 10 else "am")
        return None

    def extract_date(self, text: str) -> Optional[str]:
        """Return ``YYYY-MM-DD`` for the first date expression in ``text``."""
        lower = text.lower()
        today = self._today()
        if re.search(r"\b(?:tonight|today|this evening)\b" + NOT_POSSESSIVE, lower):
            return today.isoformat()
        if re.search(r"\btomorrow\b" + NOT_POSSESSIVE, lower):
            return (today + timedelta(days=1)).isoformat()

        for index, day_name in enumerate(WEEKDAYS):
            if re.search(r"\b" + day_name + r"\b" + NOT_POSSESSIVE, lower):
                ahead = (index - today.weekday()) % 7 or 7
                return (today + timedelta(days=ahead)).isoformat()

        month_day = MONTH_DAY_PATTERN.search(text)
        day_month = DAY_MONTH_PATTERN.search(text)
        numeric = NUMERIC_DATE_PATTERN.search(text)
        if month_day:
            month, day, year = self._month_index(month_day.group(1)), int(month_day.group(2)), None
        elif day_month:
            month, day, year = self._month_index(day_month.group(2)), int(day_month.group(1)), None
        elif numeric:
            month, day = int(numeric.group(1)), int(numeric.group(2))
            year = int(numeric.group(3)) if numeric.group(3) else None
            if year is not None and year < 100:
                year += 2000
        else:
            return None

        try:
            candidate = date(year or today.year, month, day)
        except ValueError:
            return None
        if year is None and candidate < today:
            try:
                candidate = candidate.replace(year=today.year + 1)
            except ValueError:
                return None
        return candidate.isoformat()

    def extract_date_time(self, text: str) -> Optional[str]:
        """Combine date and time into ``YYYY-MM-DD HH:MM``.

        A date without a time uses the default dinner time; a time without a
        date means today.
        """
        found_date = self.extract_date(text)
        found_time = self.extract_time(text)
        if found_date is None and found_time is None:
            return None
        return f"{found_date or self._today().isoformat()} {found_time or self._default_time}"

    def extract_use_case(self, text: str) -> Optional[str]:
        lower = text.lower()
        for keyword in USE_CASE_KEYWORDS:
            index = lower.find(keyword)
            if index == -1:
                continue
            remainder = text[index + len(keyword):].strip()
            remainder = re.split(r"[.!?]", remainder, maxsplit=1)[0].strip()
            if MIN_USE_CASE_LENGTH <= len(remainder) <= MAX_USE_CASE_LENGTH:
                return remainder
        return None

    def extract_special_requests(self, text: str) -> Optional[str]:
        lower = text.lower()
        for keyword in SPECIAL_REQUEST_KEYWORDS:
            index = lower.find(keyword)
            if index != -1:
                return _sentence_containing(text, index)[:MAX_USE_CASE_LENGTH]
        return None

    @staticmethod
    def _month_index(token: str) -> int:
        prefix = token.lower()[:3]
        return next(i for i, m in enumerate(MONTHS, start=1) if m.startswith(prefix))
