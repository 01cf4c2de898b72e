"""
Phone Number and Date Span Detection

Amount extraction must not mistake a phone number or a date for a price.
detect_spans() marks those regions in a line so the amount extractor can
skip the line entirely.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SpanKind(str, Enum):
    """Kinds of span the detector reports."""
    PHONE_NUMBER = "phone_number"
    DATE = "date"


class DetectedSpan(BaseModel):
    """A detected region of a line, as [start, end) character offsets."""
    model_config = ConfigDict(frozen=True)

    kind: SpanKind
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    text: str


# Digit groups separated by spaces or dashes, optionally with a
# country code and a bracketed area code
_PHONE = re.compile(
    r"(?<![\d.,])(?:\+\d{1,3}[\s-]?)?(?:\(?\d{2,4}\)?[\s-]?)?\d{3}[\s-]?\d{3,4}(?![\d.,])"
)
_PHONE_LABEL = re.compile(r"\b(?:tel|phone|mobile|fax|hotline)\b\.?\s*:?\s*\+?[\d\s()-]{6,}", re.IGNORECASE)

_MIN_PHONE_DIGITS = 9
_MAX_PHONE_DIGITS = 15

_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*"

_DATE_PATTERNS = [
    re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}\b"),
    re.compile(r"\b\d{4}[/.-]\d{1,2}[/.-]\d{1,2}\b"),
    re.compile(rf"\b\d{{1,2}}\s+{_MONTHS}\.?,?\s+\d{{2,4}}\b", re.IGNORECASE),
    re.compile(rf"\b{_MONTHS}\.?\s+\d{{1,2}},?\s+\d{{2,4}}\b", re.IGNORECASE),
    # Times are date-like for our purposes: "12:45" is never a price
    re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?(?:\s*[ap]\.?m\.?)?\b", re.IGNORECASE),
]


def _digit_count(text: str) -> int:
    return sum(1 for ch in text if ch.isdigit())


def detect_spans(text: str) -> list[DetectedSpan]:
    """
    Find phone numbers and dates in a line of text.

    Returns spans sorted by start offset. Overlapping matches of the
    same kind are reported once.
    """
    spans: list[DetectedSpan] = []

    for match in _PHONE_LABEL.finditer(text):
        spans.append(DetectedSpan(
            kind=SpanKind.PHONE_NUMBER,
            start=match.start(),
            end=match.end(),
            text=match.group(0).strip(),
        ))

    for match in _PHONE.finditer(text):
        if not _MIN_PHONE_DIGITS <= _digit_count(match.group(0)) <= _MAX_PHONE_DIGITS:
            continue
        spans.append(DetectedSpan(
            kind=SpanKind.PHONE_NUMBER,
            start=match.start(),
            end=match.end(),
            text=match.group(0),
        ))

    for pattern in _DATE_PATTERNS:
        for match in pattern.finditer(text):
            spans.append(DetectedSpan(
                kind=SpanKind.DATE,
                start=match.start(),
                end=match.end(),
                text=match.group(0),
            ))

    spans.sort(key=lambda span: (span.start, -span.end))

    # Drop spans fully covered by an earlier span of the same kind
    merged: list[DetectedSpan] = []
    for span in spans:
        if any(
            kept.kind == span.kind and kept.start <= span.start and span.end <= kept.end
            for kept in merged
        ):
            continue
        merged.append(span)

    return merged


def has_phone_or_date(text: str) -> bool:
    """True when the line holds any phone number or date span."""
    return bool(detect_spans(text))
