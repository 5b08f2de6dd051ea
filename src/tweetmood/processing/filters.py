from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from dateutil import parser as date_parser

from tweetmood.core.logger import get_logger
from tweetmood.core.models import CleanedRecord, RawRecord
from tweetmood.core.timeutils import iso

log = get_logger("filters")

MAX_TEXT_LENGTH = 500

MONTH_NUMBERS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
}

# "October 29, 2015 at 05:59 AM"
DATE_WITH_TIME = re.compile(
    r"(\w+)\s+(\d+),\s+(\d+)\s+at\s+(\d+):(\d+)\s+(AM|PM)", re.IGNORECASE
)

# Early in the year so weekday-only input cannot roll into the next one
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2001, 2, 2)

URL = re.compile(r"https?://\S+")
MENTION = re.compile(r"@\w+")
EXCESSIVE_PUNCTUATION = re.compile(r"[.!?]{2,}")
WHITESPACE = re.compile(r"\s+")


def _parse_human_date(text: str) -> Optional[datetime]:
    match = DATE_WITH_TIME.search(text)
    if not match:
        return None
    month_name, day, year, hour, minute, ampm = match.groups()
    month = MONTH_NUMBERS.get(month_name.lower())
    if month is None:
        return None

    hour24 = int(hour)
    if ampm.upper() == "PM" and hour24 != 12:
        hour24 += 12
    elif ampm.upper() == "AM" and hour24 == 12:
        hour24 = 0

    try:
        return datetime(int(year), month, int(day), hour24, int(minute), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_record_date(text: Optional[str]) -> Optional[datetime]:
    """Parse a free-form post date into an aware UTC datetime.

    Tries the crawler's "Month Day, Year at HH:MM AM/PM" shape first, then
    generic parsing. Returns None when neither works, or when the text
    carries no year of its own.
    """
    if not text or not text.strip():
        return None
    trimmed = text.strip()

    parsed = _parse_human_date(trimmed)
    if parsed is not None:
        return parsed

    # dateutil fills missing fields from its default; parsing against two
    # defaults with different years shows whether the year was in the text
    try:
        parsed = date_parser.parse(trimmed, default=_DEFAULT_A)
        check = date_parser.parse(trimmed, default=_DEFAULT_B)
    except (ValueError, OverflowError):
        return None
    if parsed.year != check.year:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_record_date_iso(text: Optional[str]) -> Optional[str]:
    parsed = parse_record_date(text)
    return iso(parsed) if parsed is not None else None


def _clean_once(text: str) -> str:
    text = text.strip()
    text = WHITESPACE.sub(" ", text)
    text = URL.sub("", text)
    text = MENTION.sub("", text)
    text = text.replace("#", "")
    text = EXCESSIVE_PUNCTUATION.sub(".", text)
    text = WHITESPACE.sub(" ", text).strip()
    return text[:MAX_TEXT_LENGTH].strip()


def clean_text(text: Optional[str]) -> str:
    """Normalize post text for classification.

    Strips URLs, mentions and hash markers, collapses whitespace and
    repeated terminal punctuation, and caps the length. Passes repeat until
    the text stops changing, so the result is a fixpoint.
    """
    if not text:
        return ""
    current = text
    while True:
        cleaned = _clean_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


@dataclass
class FilterResult:
    """Cleaned records plus counts of what was dropped and why."""

    records: list[CleanedRecord] = field(default_factory=list)
    total: int = 0
    dropped_undated: int = 0
    dropped_out_of_range: int = 0
    dropped_empty: int = 0

    @property
    def eligible(self) -> int:
        return len(self.records)


def _filter(
    records: Iterable[RawRecord],
    accept_year: Callable[[int], bool],
    description: str,
) -> FilterResult:
    result = FilterResult()
    for record in records:
        result.total += 1
        parsed = parse_record_date(record.created_at_text)
        if parsed is None:
            log.debug(f"Record {record.id} has no usable date: {record.created_at_text!r}")
            result.dropped_undated += 1
            continue

        if not accept_year(parsed.year):
            log.debug(f"Record {record.id} year {parsed.year} is outside {description}")
            result.dropped_out_of_range += 1
            continue

        cleaned = clean_text(record.text)
        if not cleaned:
            result.dropped_empty += 1
            continue

        result.records.append(
            CleanedRecord(raw=record, cleaned_text=cleaned, parsed_date=iso(parsed))
        )

    log.info(
        f"Filtered {result.eligible} records ({description}) from {result.total} total; "
        f"dropped undated={result.dropped_undated} "
        f"out_of_range={result.dropped_out_of_range} empty={result.dropped_empty}"
    )
    return result


def filter_recent(records: Iterable[RawRecord], cutoff_year: int) -> FilterResult:
    """Keep records dated in ``cutoff_year`` or later, cleaned for analysis."""
    return _filter(records, lambda year: year >= cutoff_year, f"year >= {cutoff_year}")


def filter_by_year(records: Iterable[RawRecord], year: int) -> FilterResult:
    """Keep records dated exactly in ``year``, cleaned for analysis."""
    return _filter(records, lambda y: y == year, f"year == {year}")
