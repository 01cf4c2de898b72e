"""Text recognition services package."""

from receipt_interpreter.services.ocr.detectors import (
    DetectedSpan,
    SpanKind,
    detect_spans,
    has_phone_or_date,
)
from receipt_interpreter.services.ocr.interface import TextRecognizer, options_from_settings
from receipt_interpreter.services.ocr.mindee_service import MindeeTextRecognizer

__all__ = [
    "DetectedSpan",
    "MindeeTextRecognizer",
    "SpanKind",
    "TextRecognizer",
    "detect_spans",
    "has_phone_or_date",
    "options_from_settings",
]
