"""
Date input parsing.

Operators type dates the way they say them: "hier", "12/06", "12/06/25".
Everything here is pure; the current day is always passed in.
"""

import re
from datetime import date, timedelta
from typing import NamedTuple, Optional


RELATIVE_OFFSETS = {
    "aujourd'hui": 0,
    "aujourdhui": 0,
    "today": 0,
    "hier": -1,
    "yesterday": -1,
    "avant-hier": -2,
    "avant hier": -2,
    "day before yesterday": -2,
    "demain": 1,
    "tomorrow": 1,
}

_DAY_MONTH = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})(?:[/.\-](\d{4}|\d{2}))?$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")

# A date written inside a longer message. '12.5' is an amount, so a dot
# separator needs all three parts.
_DATE_IN_TEXT = re.compile(
    r"(?<![\w/.,\-'])"
    r"("
    + "|".join(
        r"\s+".join(re.escape(word) for word in phrase.split())
        for phrase in sorted(RELATIVE_OFFSETS, key=len, reverse=True)
    )
    + r"|\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}[/.\-]\d{1,2}[/.\-](?:\d{4}|\d{2})"
    r"|\d{1,2}[/\-]\d{1,2}"
    r")"
    r"(?![\w/\-']|[.,]\d)"
)


class RelativeDate(NamedTuple):
    value: date
    label: str


class DateParseError(ValueError):
    """
    Raised when text is not a usable date.

    reason is 'invalid_format' when the text does not look like a date,
    'nonexistent_date' when it does but the day does not exist.
    """

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"{reason}: {text!r}")


def _normalize(text: str) -> str:
    cleaned = text.strip().lower().replace("’", "'")
    return re.sub(r"\s+", " ", cleaned)


def resolve_relative_date(text: str, today: date) -> Optional[RelativeDate]:
    """Resolve 'hier', 'demain', 'avant-hier'... against today."""
    phrase = _normalize(text).rstrip(" .!")
    offset = RELATIVE_OFFSETS.get(phrase)
    if offset is None:
        return None
    return RelativeDate(today + timedelta(days=offset), phrase)


def find_date_phrase(text: str) -> Optional[re.Match]:
    """
    First relative phrase or typed date inside a message.

    Expects lowercase text; 'hier cb 1000' finds 'hier'.
    """
    return _DATE_IN_TEXT.search(text.replace("’", "'"))


def split_date_input(text: str, today: date) -> tuple[int, int, int]:
    """
    Break a typed date into (year, month, day) without checking it exists.

    DD/MM uses the current year, DD/MM/YY means 20YY.
    """
    cleaned = _normalize(text)

    match = _ISO.match(cleaned)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return year, month, day

    match = _DAY_MONTH.match(cleaned)
    if not match:
        raise DateParseError(text, "invalid_format")

    day, month = int(match.group(1)), int(match.group(2))
    year_text = match.group(3)
    if year_text is None:
        year = today.year
    elif len(year_text) == 2:
        year = 2000 + int(year_text)
    else:
        year = int(year_text)
    return year, month, day


def parse_date_input(text: str, today: date) -> date:
    """Parse a typed absolute date. Relative phrases are not handled here."""
    year, month, day = split_date_input(text, today)
    try:
        return date(year, month, day)
    except ValueError:
        raise DateParseError(text, "nonexistent_date")


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move a (year, month) pair by offset months."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def recent_days(today: date, count: int) -> list[date]:
    """today, yesterday, ... going back count days (may cross months)."""
    return [today - timedelta(days=offset) for offset in range(count)]
