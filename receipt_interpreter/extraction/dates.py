"""
Date Extractor

Finds the transaction date printed on a receipt.

DESIGN DECISION: A parsed date is only accepted if it falls within the
last year (now - 1 year <= date <= now). OCR garbage routinely yields
valid-looking dates decades away; a receipt is never future-dated, and
a stale date is more likely a misread than a real transaction.

Each matched string is interpreted with dateutil (day first) and then
with a fixed list of explicit formats. The first interpretation inside
the window wins; a match with no acceptable interpretation is skipped
and the remaining patterns are still tried.
"""

import re
from datetime import date, datetime
from typing import Callable, Iterator, Optional

import structlog
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


logger = structlog.get_logger(__name__)


_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*"
_NUMERIC_DMY = r"\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}"
_NUMERIC_YMD = r"\d{4}[/.-]\d{1,2}[/.-]\d{1,2}"
_NAMED_DMY = rf"\d{{1,2}}\s+{_MONTHS}\.?,?\s+\d{{2,4}}"
_NAMED_MDY = rf"{_MONTHS}\.?\s+\d{{1,2}},?\s+\d{{2,4}}"

DATE_PATTERNS: list[re.Pattern] = [
    re.compile(rf"\b({_NUMERIC_DMY})\b"),
    re.compile(rf"\b({_NUMERIC_YMD})\b"),
    re.compile(rf"\b({_NAMED_DMY})\b", re.IGNORECASE),
    re.compile(rf"\b({_NAMED_MDY})\b", re.IGNORECASE),
    re.compile(
        rf"\bdate\s*[:.-]?\s*({_NUMERIC_YMD}|{_NUMERIC_DMY}|{_NAMED_DMY}|{_NAMED_MDY})\b",
        re.IGNORECASE,
    ),
]

# Tried after dateutil, against the normalized string ("/" separators,
# single spaces, no commas or month abbreviation dots)
EXPLICIT_FORMATS = [
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%d/%m/%y",
    "%m/%d/%y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%d %b %y",
    "%b %d %y",
]


_YEAR_FIRST = re.compile(r"\d{4}[/.-]")


def _normalize(raw: str) -> str:
    normalized = re.sub(r"(?<=\d)[.-](?=\d)", "/", raw)
    normalized = normalized.replace(",", " ")
    normalized = re.sub(r"(?<=[A-Za-z])\.", " ", normalized)
    return " ".join(normalized.split())


class DateExtractor:
    """
    Extracts the first plausible transaction date.

    Args:
        clock: Returns the current time; injectable for tests
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or datetime.now

    def _interpretations(self, raw: str) -> Iterator[date]:
        # dateutil reads "2025-03-04" as year-day-month when dayfirst is set
        dayfirst = not _YEAR_FIRST.match(raw)
        try:
            yield date_parser.parse(raw, dayfirst=dayfirst).date()
        except (ValueError, OverflowError):
            pass

        normalized = _normalize(raw)
        for fmt in EXPLICIT_FORMATS:
            try:
                yield datetime.strptime(normalized, fmt).date()
            except ValueError:
                continue

    def is_plausible(self, candidate: date) -> bool:
        """True when the date lies within the last year."""
        today = self._clock().date()
        return today - relativedelta(years=1) <= candidate <= today

    def parse(self, raw: str) -> Optional[date]:
        """Interpret one matched date string, or None if none is plausible."""
        for candidate in self._interpretations(raw):
            if self.is_plausible(candidate):
                return candidate
        logger.debug("date_rejected", raw=raw)
        return None

    def extract(self, text: str) -> Optional[date]:
        for pattern in DATE_PATTERNS:
            for match in pattern.finditer(text):
                parsed = self.parse(match.group(1))
                if parsed is not None:
                    return parsed
        return None
