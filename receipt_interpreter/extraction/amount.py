"""
Amount Extractor

Finds every plausible money amount in recognized receipt text.

DESIGN DECISION: Extraction is deliberately greedy.
Every pattern is tried on every line and every match becomes a
candidate. Duplicates are expected and resolved by select_best_amount(),
not here. Each pattern carries a WEIGHT reflecting how diagnostic it is
of an actual total:

    total label + currency + number   1.0
    total label + number              0.9
    Rs/LKR + decimal number           0.85
    ₨ + number                        0.85
    $ + number                        0.8
    Rs/LKR + integer number           0.75
    decimal number at end of line     0.7
    any 4+ digit number               0.65

A candidate's confidence is recognizer confidence x pattern weight.

Lines that hold a phone number or date, and lines with 7+ digits and no
decimal point (serial numbers, card numbers), are skipped outright.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, NamedTuple, Optional

import structlog

from receipt_interpreter.config import ExtractionSettings, get_settings
from receipt_interpreter.models.receipt import (
    MAX_AMOUNT,
    AmountCandidate,
    RecognizedLine,
    clamp_confidence,
)
from receipt_interpreter.services.ocr.detectors import has_phone_or_date


logger = structlog.get_logger(__name__)


_NUMBER = r"(\d[\d,]*(?:\.\d+)?)"
_CURRENCY = r"(?:rs\.?|lkr|₨|\$|usd)"
_TOTAL_LABEL = r"(?:grand\s+total|net\s+total|total\s+amount|amount\s+due|balance\s+due|total)"
_ANY_TOTAL_LABEL = (
    r"(?:grand\s+total|net\s+total|total\s+amount|amount\s+due|balance\s+due|"
    r"amount\s+payable|to\s+pay|total|amount|sum)"
)


class AmountPattern(NamedTuple):
    """A compiled amount pattern and its weight. Group 1 is the number."""
    name: str
    regex: re.Pattern
    weight: float


AMOUNT_PATTERNS: list[AmountPattern] = [
    AmountPattern(
        "labelled_total_with_currency",
        re.compile(rf"\b{_TOTAL_LABEL}\b\s*:?\s*{_CURRENCY}\s*:?\s*{_NUMBER}", re.IGNORECASE),
        1.0,
    ),
    AmountPattern(
        "labelled_total",
        re.compile(rf"\b{_ANY_TOTAL_LABEL}\b\s*[:=-]?\s*{_NUMBER}", re.IGNORECASE),
        0.9,
    ),
    AmountPattern(
        "rupees_decimal",
        re.compile(r"\b(?:rs|lkr)\.?\s*:?\s*(\d[\d,]*\.\d{1,2})(?!\d)", re.IGNORECASE),
        0.85,
    ),
    AmountPattern(
        "rupee_sign",
        re.compile(rf"₨\s*{_NUMBER}"),
        0.85,
    ),
    AmountPattern(
        "dollar_sign",
        re.compile(rf"\$\s*{_NUMBER}"),
        0.8,
    ),
    AmountPattern(
        "rupees_integer",
        re.compile(r"\b(?:rs|lkr)\.?\s*:?\s*(\d[\d,]*)(?![\d.,])", re.IGNORECASE),
        0.75,
    ),
    AmountPattern(
        "trailing_decimal",
        re.compile(r"(?<![\d.,])(\d[\d,]*\.\d{2})\s*$"),
        0.7,
    ),
    AmountPattern(
        "large_number",
        re.compile(r"(?<![\d.,])((?:\d{1,3}(?:,\d{3})+|\d{4,})(?:\.\d+)?)(?![\d.,])"),
        0.65,
    ),
]

_PRIORITY_KEYWORDS = re.compile(
    r"\b(?:total|amount|sum|pay|payable|due|balance)\b", re.IGNORECASE
)
_CURRENCY_MARKERS = re.compile(r"\b(?:rs|lkr|usd|rupees)\b|₨|\$", re.IGNORECASE)

# Lines this short cannot hold a labelled amount
MIN_LINE_LENGTH = 4
# Digit runs this long without a decimal point are identifiers, not money
SERIAL_DIGITS = 7


def parse_amount(raw: str) -> Optional[Decimal]:
    """Parse a matched number, stripping thousands separators."""
    try:
        return Decimal(raw.replace(",", ""))
    except (InvalidOperation, ValueError):
        return None


def is_priority_line(text: str) -> bool:
    """True for lines with a total-like keyword or a currency marker."""
    return bool(_PRIORITY_KEYWORDS.search(text) or _CURRENCY_MARKERS.search(text))


def should_skip_line(text: str) -> bool:
    """True for lines the amount patterns must not be run on."""
    stripped = text.strip()
    if len(stripped) < MIN_LINE_LENGTH:
        return True

    digits = sum(1 for ch in stripped if ch.isdigit())
    if digits >= SERIAL_DIGITS and "." not in stripped:
        return True

    return has_phone_or_date(stripped)


class AmountExtractor:
    """
    Pattern-weighted amount extraction.

    Stateless apart from settings; one instance can serve every pass.
    """

    def __init__(self, settings: Optional[ExtractionSettings] = None):
        self._settings = settings or get_settings().extraction
        self._max_amount = min(Decimal(str(self._settings.max_amount)), MAX_AMOUNT)

    def _scan_line(self, text: str, confidence: float) -> list[AmountCandidate]:
        candidates = []
        for pattern in AMOUNT_PATTERNS:
            for match in pattern.regex.finditer(text):
                value = parse_amount(match.group(1))
                if value is None or value <= 0 or value > self._max_amount:
                    continue
                candidates.append(AmountCandidate(
                    value=value,
                    confidence=clamp_confidence(confidence * pattern.weight),
                ))
        return candidates

    def _scan(self, readings: Iterable[tuple[str, float]]) -> list[AmountCandidate]:
        """
        Scan (text, confidence) readings, priority lines first.

        Stops once the candidate cap is reached.
        """
        readings = list(readings)
        ordered = (
            [r for r in readings if is_priority_line(r[0])]
            + [r for r in readings if not is_priority_line(r[0])]
        )

        limit = self._settings.max_amount_candidates
        candidates: list[AmountCandidate] = []
        for text, confidence in ordered:
            if should_skip_line(text):
                continue
            candidates.extend(self._scan_line(text, confidence))
            if len(candidates) >= limit:
                logger.debug("amount_candidate_cap_reached", limit=limit)
                break

        return candidates[:limit]

    def extract(self, text: str, confidence: float) -> list[AmountCandidate]:
        """
        Find amount candidates in free text.

        Args:
            text: Recognized text, one receipt line per text line
            confidence: Recognizer confidence applied to every line

        Returns:
            All candidates in (0, max_amount], unsorted, with duplicates
        """
        confidence = clamp_confidence(confidence)
        return self._scan((line, confidence) for line in text.splitlines())

    def extract_from_lines(self, lines: list[RecognizedLine]) -> list[AmountCandidate]:
        """
        Find amount candidates in recognized lines.

        Each line is scanned at its own confidence. Alternate readings
        are scanned too, at no more than alternate_confidence.
        """
        alternate_ceiling = self._settings.alternate_confidence
        readings = []
        for line in lines:
            readings.append((line.text, line.confidence))
            for alternate in line.alternates:
                readings.append((alternate, min(line.confidence, alternate_ceiling)))
        return self._scan(readings)


def select_best_amount(
    candidates: list[AmountCandidate],
    high_confidence: float = 0.7,
    reasonable_confidence: float = 0.5,
) -> Optional[AmountCandidate]:
    """
    Pick the receipt total from a candidate list.

    Duplicates (same value) collapse to their most confident instance.
    Then the largest value wins among candidates above high_confidence;
    failing that, among those above reasonable_confidence; failing that,
    among all candidates.

    Returns None only for an empty list.
    """
    best_by_value: dict[Decimal, AmountCandidate] = {}
    for candidate in candidates:
        existing = best_by_value.get(candidate.value)
        if existing is None or candidate.confidence > existing.confidence:
            best_by_value[candidate.value] = candidate

    unique = list(best_by_value.values())
    if not unique:
        return None

    for threshold in (high_confidence, reasonable_confidence):
        tier = [c for c in unique if c.confidence > threshold]
        if tier:
            return max(tier, key=lambda c: c.value)

    return max(unique, key=lambda c: c.value)
