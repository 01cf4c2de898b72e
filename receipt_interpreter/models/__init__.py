"""
Data Models Package

This package contains all Pydantic models used by the receipt interpreter.
All data flowing through the pipeline must conform to these schemas.
"""

from receipt_interpreter.models.receipt import (
    MAX_AMOUNT,
    AmountCandidate,
    CategoryMatch,
    ConfidenceAdjustment,
    ExpenseCategory,
    ExtractionResult,
    PassOutcome,
    PassVariant,
    QualityMetrics,
    RecognitionOptions,
    RecognizedLine,
    ValidationReport,
    clamp_confidence,
)
from receipt_interpreter.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "MAX_AMOUNT",
    "AmountCandidate",
    "CategoryMatch",
    "ConfidenceAdjustment",
    "ExpenseCategory",
    "ExtractionResult",
    "PassOutcome",
    "PassVariant",
    "QualityMetrics",
    "RecognitionOptions",
    "RecognizedLine",
    "ValidationReport",
    "clamp_confidence",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
